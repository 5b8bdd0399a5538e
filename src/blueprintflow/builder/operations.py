"""
Primitive operation grammar for blueprint documents.

Every edit to a document, whether it comes from the UI or from the assistant,
is expressed as an ordered list of these operations. They are pydantic models
tagged by an ``op`` field and parsed through a discriminated union, so a
payload that names an unknown operation or carries an unknown field is
rejected before anything touches a document.

Wire example:
    [
      {"op": "add_node", "nodeType": "trigger", "id": "t1", "position": [0, 0]},
      {"op": "add_connection", "fromNodeId": "t1", "fromPinId": "exec-out",
       "toNodeId": "n2", "toPinId": "exec-in"},
      {"op": "remove_node", "nodeId": "old"}
    ]
"""

from typing import TYPE_CHECKING, Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, JsonValue, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel

from blueprintflow.builder.types import (
    BlueprintNode,
    CommentBox,
    ConnectionType,
    FlowchartVariable,
    NodeID,
    PinID,
    Position,
    ViewportState,
)

if TYPE_CHECKING:
    from blueprintflow.builder.document import DocumentEditor


class OperationBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    op: str

    def apply(self, editor: "DocumentEditor") -> "Operation":
        """Apply to ``editor`` and return the operation as it should be recorded."""
        raise NotImplementedError

    def to_wire(self) -> Dict[str, Any]:
        return {"op": self.op, **self.model_dump(mode="json", by_alias=True, exclude_unset=True, exclude={"op"})}

    def describe(self) -> str:
        return self.op


# --- Nodes ---

class AddNode(OperationBase):
    """
    Add a node. Either ``node`` carries a complete node, or ``node_type`` and
    ``id`` name a catalog type to instantiate with its pin templates.
    """

    op: Literal["add_node"] = "add_node"
    node: Optional[BlueprintNode] = None
    node_type: Optional[str] = None
    id: Optional[NodeID] = None
    position: Optional[Position] = None
    label: Optional[str] = None
    data: Optional[Dict[str, JsonValue]] = None

    @model_validator(mode="after")
    def _one_template(self) -> "AddNode":
        if (self.node is None) == (self.node_type is None):
            raise ValueError("add_node needs exactly one of 'node' or 'nodeType'")
        if self.node_type is not None and not self.id:
            raise ValueError("add_node with 'nodeType' needs an 'id'")
        if self.node is not None and (self.id or self.position or self.label or self.data):
            raise ValueError("add_node with a full 'node' takes no other fields")
        return self

    def apply(self, editor: "DocumentEditor") -> "Operation":
        if self.node is not None:
            editor.add_node(self.node)
        else:
            editor.add_node_of_type(
                self.node_type,
                self.id,
                position=self.position or (0.0, 0.0),
                label=self.label,
                data=self.data,
            )
        return self

    def describe(self) -> str:
        return f"add_node {self.node.id if self.node else self.id}"


class RemoveNode(OperationBase):
    op: Literal["remove_node"] = "remove_node"
    node_id: NodeID

    def apply(self, editor: "DocumentEditor") -> "Operation":
        editor.remove_node(self.node_id)
        return self

    def describe(self) -> str:
        return f"remove_node {self.node_id}"


class UpdateNodeData(OperationBase):
    """Merge ``patch`` into the node's data; a null value deletes the key."""

    op: Literal["update_node_data"] = "update_node_data"
    node_id: NodeID
    patch: Dict[str, JsonValue]

    def apply(self, editor: "DocumentEditor") -> "Operation":
        editor.update_node_data(self.node_id, self.patch)
        return self

    def describe(self) -> str:
        return f"update_node_data {self.node_id} {sorted(self.patch)}"


class UpdateNode(OperationBase):
    """Set cosmetic node fields. Only the fields present are changed."""

    op: Literal["update_node"] = "update_node"
    node_id: NodeID
    label: Optional[str] = None
    collapsed: Optional[bool] = None
    width: Optional[float] = None
    height: Optional[float] = None

    def changes(self) -> Dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in ("label", "collapsed", "width", "height")
            if name in self.model_fields_set
        }

    def apply(self, editor: "DocumentEditor") -> "Operation":
        editor.update_node(self.node_id, self.changes())
        return self


class MoveNode(OperationBase):
    op: Literal["move_node"] = "move_node"
    node_id: NodeID
    position: Position

    def apply(self, editor: "DocumentEditor") -> "Operation":
        editor.move_node(self.node_id, self.position)
        return self


# --- Connections ---

class AddConnection(OperationBase):
    """
    Connect an output pin to an input pin. ``type`` defaults to the class
    implied by the source pin and ``id`` is generated when omitted; the
    recorded operation carries both.
    """

    op: Literal["add_connection"] = "add_connection"
    id: Optional[str] = None
    from_node_id: NodeID
    from_pin_id: PinID
    to_node_id: NodeID
    to_pin_id: PinID
    type: Optional[ConnectionType] = None

    def apply(self, editor: "DocumentEditor") -> "Operation":
        connection = editor.add_connection(
            self.from_node_id,
            self.from_pin_id,
            self.to_node_id,
            self.to_pin_id,
            connection_type=self.type,
            connection_id=self.id,
        )
        if self.id == connection.id and self.type == connection.type:
            return self
        return self.model_copy(update={"id": connection.id, "type": connection.type})

    def describe(self) -> str:
        return (
            f"add_connection {self.from_node_id}.{self.from_pin_id} -> "
            f"{self.to_node_id}.{self.to_pin_id}"
        )


class RemoveConnection(OperationBase):
    op: Literal["remove_connection"] = "remove_connection"
    connection_id: str

    def apply(self, editor: "DocumentEditor") -> "Operation":
        editor.remove_connection(self.connection_id)
        return self

    def describe(self) -> str:
        return f"remove_connection {self.connection_id}"


# --- Variables, comments, viewport ---

class SetVariable(OperationBase):
    op: Literal["set_variable"] = "set_variable"
    variable: FlowchartVariable

    def apply(self, editor: "DocumentEditor") -> "Operation":
        editor.set_variable(self.variable)
        return self


class RemoveVariable(OperationBase):
    op: Literal["remove_variable"] = "remove_variable"
    variable_id: str

    def apply(self, editor: "DocumentEditor") -> "Operation":
        editor.remove_variable(self.variable_id)
        return self


class AddComment(OperationBase):
    op: Literal["add_comment"] = "add_comment"
    comment: CommentBox

    def apply(self, editor: "DocumentEditor") -> "Operation":
        editor.add_comment(self.comment)
        return self


class RemoveComment(OperationBase):
    op: Literal["remove_comment"] = "remove_comment"
    comment_id: str

    def apply(self, editor: "DocumentEditor") -> "Operation":
        editor.remove_comment(self.comment_id)
        return self


class SetViewport(OperationBase):
    op: Literal["set_viewport"] = "set_viewport"
    viewport: Optional[ViewportState] = None

    def apply(self, editor: "DocumentEditor") -> "Operation":
        editor.set_viewport(self.viewport)
        return self


Operation = Annotated[
    Union[
        AddNode,
        RemoveNode,
        UpdateNodeData,
        UpdateNode,
        MoveNode,
        AddConnection,
        RemoveConnection,
        SetVariable,
        RemoveVariable,
        AddComment,
        RemoveComment,
        SetViewport,
    ],
    Field(discriminator="op"),
]

OPERATION_NAMES: List[str] = [
    "add_node",
    "remove_node",
    "update_node_data",
    "update_node",
    "move_node",
    "add_connection",
    "remove_connection",
    "set_variable",
    "remove_variable",
    "add_comment",
    "remove_comment",
    "set_viewport",
]

_operation_list = TypeAdapter(List[Operation])


def parse_operations(raw: Any) -> List[Operation]:
    """
    Parse a JSON-compatible list into operations.

    Raises:
        pydantic.ValidationError: If any item is outside the grammar.
    """
    return _operation_list.validate_python(raw)


def operations_to_wire(operations: List[Operation]) -> List[Dict[str, Any]]:
    return [op.to_wire() for op in operations]
