"""
Centralized type definitions for the BlueprintFlow document model.

This module provides the pydantic models for a blueprint flowchart document:
- Pin kinds and pin templates (NodePin)
- Nodes, connections, variables, comment boxes and the viewport
- The aggregate root, BlueprintFlowchartData

Python attributes are snake_case; the wire format (what the UI sends and the
store persists) uses camelCase aliases. Unknown fields are rejected at every
level, so payloads from the UI or from the assistant cannot carry shapes the
document model does not know about.

This file is UI-agnostic and agent-agnostic: it is imported by the validator,
the mutation engine, the planner and the HTTP layer.
"""

from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, JsonValue
from pydantic.alias_generators import to_camel

# --- Core Type Aliases ---
NodeID = str
PinID = str
ConnectionID = str
Position = Tuple[float, float]
ConnectionType = Literal["execution", "data"]
PinDirection = Literal["input", "output"]


class PinKind(str, Enum):
    """Scalar tag carried by every pin and variable."""

    EXECUTION = "execution"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    ANY = "any"

    @property
    def is_execution(self) -> bool:
        return self is PinKind.EXECUTION


class WireModel(BaseModel):
    """Base for every document entity: camelCase on the wire, strict on unknown keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def to_wire(self) -> Dict[str, object]:
        """Dump to the JSON-compatible wire shape, keeping exactly the fields that were set."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


# --- Pins ---

class NodePin(WireModel):
    """Design-time pin template owned by exactly one node and one direction."""

    id: PinID = Field(min_length=1)
    name: str = Field(min_length=1)
    type: PinKind
    default_value: JsonValue = None
    required: bool = False
    description: Optional[str] = None

    @property
    def has_default(self) -> bool:
        return "default_value" in self.model_fields_set and self.default_value is not None


# --- Nodes and Connections ---

class BlueprintNode(WireModel):
    id: NodeID = Field(min_length=1)
    type: str = Field(min_length=1)
    position: Position = (0.0, 0.0)
    label: Optional[str] = None
    data: Dict[str, JsonValue] = Field(default_factory=dict)
    input_pins: List[NodePin] = Field(default_factory=list)
    output_pins: List[NodePin] = Field(default_factory=list)
    width: Optional[float] = None
    height: Optional[float] = None
    collapsed: Optional[bool] = None
    # Derived on validate; never an input to validation.
    errors: Optional[List[str]] = None
    warnings: Optional[List[str]] = None

    def pins(self, direction: PinDirection) -> List[NodePin]:
        return self.input_pins if direction == "input" else self.output_pins

    def find_pin(self, pin_id: PinID, direction: PinDirection) -> Optional[NodePin]:
        for pin in self.pins(direction):
            if pin.id == pin_id:
                return pin
        return None


class BlueprintConnection(WireModel):
    """Directed edge from an output pin to an input pin, referenced by id pair."""

    id: ConnectionID = Field(min_length=1)
    from_node_id: NodeID = Field(min_length=1)
    from_pin_id: PinID = Field(min_length=1)
    to_node_id: NodeID = Field(min_length=1)
    to_pin_id: PinID = Field(min_length=1)
    type: ConnectionType

    def touches(self, node_id: NodeID) -> bool:
        return self.from_node_id == node_id or self.to_node_id == node_id


# --- Document-scoped annotations ---

class FlowchartVariable(WireModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: PinKind
    default_value: JsonValue = None
    description: Optional[str] = None


class CommentBox(WireModel):
    id: str = Field(min_length=1)
    position: Position
    size: Tuple[float, float]
    text: str = ""
    color: Optional[str] = None
    node_ids: Optional[List[NodeID]] = None


class ViewportState(WireModel):
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0


# --- Aggregate root ---

class BlueprintFlowchartData(WireModel):
    """
    The graph document. Owns nodes, connections, variables and comment boxes as
    four independent collections, plus the cosmetic viewport.

    Identity of the document itself (name, owner, stored id, timestamps) belongs
    to the persistence gateway, not to this model.
    """

    nodes: List[BlueprintNode] = Field(default_factory=list)
    connections: List[BlueprintConnection] = Field(default_factory=list)
    variables: List[FlowchartVariable] = Field(default_factory=list)
    comments: List[CommentBox] = Field(default_factory=list)
    viewport: Optional[ViewportState] = None

    @classmethod
    def empty(cls) -> "BlueprintFlowchartData":
        return cls(nodes=[], connections=[], variables=[], comments=[])

    def get_node(self, node_id: NodeID) -> Optional[BlueprintNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_connection(self, connection_id: ConnectionID) -> Optional[BlueprintConnection]:
        for connection in self.connections:
            if connection.id == connection_id:
                return connection
        return None

    def incident_connections(self, node_id: NodeID) -> List[BlueprintConnection]:
        return [c for c in self.connections if c.touches(node_id)]
