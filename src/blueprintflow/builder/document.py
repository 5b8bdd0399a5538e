"""
Primitive edits on a working copy of a blueprint document.

DocumentEditor owns a deep copy of the document it was given and exposes the
structural primitives. Each primitive checks its own preconditions and raises
synchronously (DuplicateId, InvalidReference, TypeMismatch, FanInViolation);
nothing is partially applied by a failing primitive.

The editor never runs whole-document validation. The mutation engine applies
a batch of primitives and then validates the result once.
"""

from typing import Any, Dict, List, Optional

from pydantic import JsonValue

from blueprintflow.builder.nodes import NodeRegistry
from blueprintflow.builder.type_lattice import check_connection, connection_type_for
from blueprintflow.builder.types import (
    BlueprintConnection,
    BlueprintFlowchartData,
    BlueprintNode,
    CommentBox,
    ConnectionID,
    ConnectionType,
    FlowchartVariable,
    NodeID,
    NodePin,
    PinDirection,
    PinID,
    Position,
    ViewportState,
)
from blueprintflow.exceptions import (
    DuplicateId,
    FanInViolation,
    IndexCorruptionError,
    InvalidReference,
    TypeMismatch,
)
from blueprintflow.utilities.logging import get_logger

logger = get_logger(__name__)

NODE_UPDATE_FIELDS = ("label", "collapsed", "width", "height")


def merge_patch(target: Dict[str, JsonValue], patch: Dict[str, JsonValue]) -> Dict[str, JsonValue]:
    """JSON merge-patch: null deletes a key, nested objects merge, anything else replaces."""
    result = dict(target)
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_patch(result[key], value)
        else:
            result[key] = value
    return result


class DocumentEditor:
    """
    Mutable working copy of a document.

    Usage:
        editor = DocumentEditor(document)
        editor.add_node_of_type("trigger", "t1")
        working = editor.document
    """

    def __init__(self, document: Optional[BlueprintFlowchartData] = None) -> None:
        source = document if document is not None else BlueprintFlowchartData.empty()
        self._doc = source.model_copy(deep=True)
        self._node_index: Dict[NodeID, int] = {}
        self._connection_index: Dict[ConnectionID, int] = {}
        self._reindex()

    @property
    def document(self) -> BlueprintFlowchartData:
        return self._doc

    # --- Indices ---

    def _reindex(self) -> None:
        self._node_index = {node.id: i for i, node in enumerate(self._doc.nodes)}
        self._connection_index = {conn.id: i for i, conn in enumerate(self._doc.connections)}

    def _node(self, node_id: NodeID) -> BlueprintNode:
        position = self._node_index.get(node_id)
        if position is None:
            raise InvalidReference(f"Node '{node_id}' does not exist", details={"node_id": node_id})
        node = self._doc.nodes[position] if position < len(self._doc.nodes) else None
        if node is None or node.id != node_id:
            raise IndexCorruptionError(
                f"Node index points '{node_id}' at position {position}",
                details={"node_id": node_id, "position": position},
            )
        return node

    def _connection_position(self, connection_id: ConnectionID) -> int:
        position = self._connection_index.get(connection_id)
        if position is None:
            raise InvalidReference(
                f"Connection '{connection_id}' does not exist",
                details={"connection_id": connection_id},
            )
        if position >= len(self._doc.connections) or self._doc.connections[position].id != connection_id:
            raise IndexCorruptionError(
                f"Connection index points '{connection_id}' at position {position}",
                details={"connection_id": connection_id, "position": position},
            )
        return position

    def _pin(self, node_id: NodeID, pin_id: PinID, direction: PinDirection) -> NodePin:
        node = self._node(node_id)
        pin = node.find_pin(pin_id, direction)
        if pin is not None:
            return pin
        other: PinDirection = "input" if direction == "output" else "output"
        if node.find_pin(pin_id, other) is not None:
            message = f"Pin '{node_id}.{pin_id}' is an {other} pin, expected an {direction} pin"
        else:
            message = f"Pin '{node_id}.{pin_id}' does not exist"
        raise InvalidReference(message, details={"node_id": node_id, "pin_id": pin_id, "direction": direction})

    def has_node(self, node_id: NodeID) -> bool:
        return node_id in self._node_index

    def incident_connections(self, node_id: NodeID) -> List[BlueprintConnection]:
        return self._doc.incident_connections(node_id)

    # --- Nodes ---

    def add_node(self, template: BlueprintNode) -> NodeID:
        if template.id in self._node_index:
            raise DuplicateId(f"Node id '{template.id}' already exists", details={"node_id": template.id})
        self._doc.nodes.append(template.model_copy(deep=True))
        self._node_index[template.id] = len(self._doc.nodes) - 1
        logger.debug("add_node %s (%s)", template.id, template.type)
        return template.id

    def add_node_of_type(
        self,
        node_type: str,
        node_id: NodeID,
        position: Position = (0.0, 0.0),
        label: Optional[str] = None,
        data: Optional[Dict[str, JsonValue]] = None,
    ) -> NodeID:
        """Instantiate a catalog node type, copying its pin templates."""
        try:
            node = NodeRegistry.create(node_type, node_id, position=position, label=label, data=data)
        except KeyError:
            raise InvalidReference(
                f"Node type '{node_type}' is not registered",
                details={"node_type": node_type, "known_types": NodeRegistry.list_types()},
            ) from None
        return self.add_node(node)

    def remove_node(self, node_id: NodeID) -> None:
        """
        Remove a node. Incident connections are left in place; the mutation
        engine removes them explicitly before this primitive runs.
        """
        self._node(node_id)
        self._doc.nodes = [n for n in self._doc.nodes if n.id != node_id]
        self._reindex()
        logger.debug("remove_node %s", node_id)

    def update_node_data(self, node_id: NodeID, patch: Dict[str, JsonValue]) -> None:
        node = self._node(node_id)
        node.data = merge_patch(node.data, patch)

    def update_node(self, node_id: NodeID, changes: Dict[str, Any]) -> None:
        node = self._node(node_id)
        unknown = set(changes) - set(NODE_UPDATE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update node fields: {sorted(unknown)}")
        for name, value in changes.items():
            setattr(node, name, value)

    def move_node(self, node_id: NodeID, position: Position) -> None:
        node = self._node(node_id)
        node.position = (float(position[0]), float(position[1]))

    # --- Connections ---

    def _generate_connection_id(self, from_node_id: NodeID, from_pin_id: PinID, to_node_id: NodeID, to_pin_id: PinID) -> ConnectionID:
        base = f"conn-{from_node_id}-{from_pin_id}-{to_node_id}-{to_pin_id}"
        candidate, suffix = base, 2
        while candidate in self._connection_index:
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    def add_connection(
        self,
        from_node_id: NodeID,
        from_pin_id: PinID,
        to_node_id: NodeID,
        to_pin_id: PinID,
        connection_type: Optional[ConnectionType] = None,
        connection_id: Optional[ConnectionID] = None,
    ) -> BlueprintConnection:
        """
        Connect an output pin to an input pin.

        Raises:
            InvalidReference: If an endpoint is missing or has the wrong direction.
            TypeMismatch: If the pin kinds do not fit the connection type.
            FanInViolation: If the target already receives a data connection.
            DuplicateId: If ``connection_id`` is already used.
        """
        source = self._pin(from_node_id, from_pin_id, "output")
        target = self._pin(to_node_id, to_pin_id, "input")
        connection_type = connection_type or connection_type_for(source.type)

        check = check_connection(source.type, target.type, connection_type)
        if not check.valid:
            raise TypeMismatch(
                check.reason,
                details={
                    "from": f"{from_node_id}.{from_pin_id}",
                    "to": f"{to_node_id}.{to_pin_id}",
                    "producer": source.type.value,
                    "consumer": target.type.value,
                    "connection_type": connection_type,
                },
            )

        if connection_type == "data":
            for existing in self._doc.connections:
                if existing.type == "data" and existing.to_node_id == to_node_id and existing.to_pin_id == to_pin_id:
                    raise FanInViolation(
                        f"Input '{to_node_id}.{to_pin_id}' already receives data from connection '{existing.id}'",
                        details={"to": f"{to_node_id}.{to_pin_id}", "existing_connection_id": existing.id},
                    )

        if connection_id is None:
            connection_id = self._generate_connection_id(from_node_id, from_pin_id, to_node_id, to_pin_id)
        elif connection_id in self._connection_index:
            raise DuplicateId(
                f"Connection id '{connection_id}' already exists",
                details={"connection_id": connection_id},
            )

        connection = BlueprintConnection(
            id=connection_id,
            from_node_id=from_node_id,
            from_pin_id=from_pin_id,
            to_node_id=to_node_id,
            to_pin_id=to_pin_id,
            type=connection_type,
        )
        self._doc.connections.append(connection)
        self._connection_index[connection_id] = len(self._doc.connections) - 1
        logger.debug("add_connection %s (%s)", connection_id, connection_type)
        return connection

    def remove_connection(self, connection_id: ConnectionID) -> None:
        position = self._connection_position(connection_id)
        del self._doc.connections[position]
        self._reindex()

    # --- Variables ---

    def set_variable(self, variable: FlowchartVariable) -> None:
        """Insert or replace a variable by id. Another variable holding the same name is a DuplicateId."""
        for existing in self._doc.variables:
            if existing.name == variable.name and existing.id != variable.id:
                raise DuplicateId(
                    f"Variable name '{variable.name}' is already used by '{existing.id}'",
                    details={"variable_id": variable.id, "name": variable.name},
                )
        replacement = variable.model_copy(deep=True)
        for i, existing in enumerate(self._doc.variables):
            if existing.id == variable.id:
                self._doc.variables[i] = replacement
                return
        self._doc.variables.append(replacement)

    def remove_variable(self, variable_id: str) -> None:
        remaining = [v for v in self._doc.variables if v.id != variable_id]
        if len(remaining) == len(self._doc.variables):
            raise InvalidReference(f"Variable '{variable_id}' does not exist", details={"variable_id": variable_id})
        self._doc.variables = remaining

    # --- Comments and viewport ---

    def add_comment(self, comment: CommentBox) -> None:
        if any(c.id == comment.id for c in self._doc.comments):
            raise DuplicateId(f"Comment id '{comment.id}' already exists", details={"comment_id": comment.id})
        self._doc.comments.append(comment.model_copy(deep=True))

    def remove_comment(self, comment_id: str) -> None:
        remaining = [c for c in self._doc.comments if c.id != comment_id]
        if len(remaining) == len(self._doc.comments):
            raise InvalidReference(f"Comment '{comment_id}' does not exist", details={"comment_id": comment_id})
        self._doc.comments = remaining

    def set_viewport(self, viewport: Optional[ViewportState]) -> None:
        self._doc.viewport = viewport.model_copy() if viewport is not None else None
