"""
Node Registry for the BlueprintFlow builder

This module provides a central catalog of node types. A node type declares the
pin templates a new node starts with and a versioned schema for the node's
``data`` property bag.

- The node type vocabulary is extensible at runtime: documents may contain
  node types that are not registered here. Such nodes are structurally
  validated but their ``data`` is not schema-checked.
- Registered types get their ``data`` checked against ``data_model``;
  mismatches surface as validation warnings, never as hard errors.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, JsonValue, ValidationError
from pydantic.alias_generators import to_camel

from blueprintflow.builder.types import BlueprintNode, NodePin, PinKind, Position

NodeCategory = Literal["input", "process", "output", "condition", "action"]

EXEC_IN = "exec-in"
EXEC_OUT = "exec-out"


def execution_pin(pin_id: str, name: str) -> NodePin:
    return NodePin(id=pin_id, name=name, type=PinKind.EXECUTION)


def data_pin(pin_id: str, kind: PinKind, *, required: bool = False, default: JsonValue = None, description: Optional[str] = None) -> NodePin:
    fields: Dict[str, object] = {"id": pin_id, "name": pin_id, "type": kind, "required": required}
    if default is not None:
        fields["default_value"] = default
    if description:
        fields["description"] = description
    return NodePin(**fields)


class NodeData(BaseModel):
    """Base for per-type ``data`` schemas. Keys are camelCase, unknown keys rejected."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


@dataclass(frozen=True)
class NodeTypeSpec:
    """Catalog entry for one node type."""

    id: str
    name: str
    category: NodeCategory
    description: str
    icon: str = ""
    color: str = "#6366F1"
    configurable: bool = True
    input_pins: Tuple[NodePin, ...] = ()
    output_pins: Tuple[NodePin, ...] = ()
    data_model: Type[NodeData] = NodeData
    schema_version: int = 1
    default_data: Dict[str, JsonValue] = field(default_factory=dict)

    def summary(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "icon": self.icon,
            "color": self.color,
            "configurable": self.configurable,
            "schemaVersion": self.schema_version,
            "inputPins": [p.to_wire() for p in self.input_pins],
            "outputPins": [p.to_wire() for p in self.output_pins],
        }


class NodeRegistry:
    """
    Central registry for node types.
    """
    _registry: Dict[str, NodeTypeSpec] = {}

    @classmethod
    def register(cls, spec: NodeTypeSpec, *, replace: bool = False) -> None:
        """
        Register a node type.

        Raises:
            ValueError: If the type id is already registered and ``replace`` is False.
        """
        if spec.id in cls._registry and not replace:
            raise ValueError(f"Node type '{spec.id}' is already registered.")
        cls._registry[spec.id] = spec

    @classmethod
    def unregister(cls, node_type: str) -> None:
        cls._registry.pop(node_type, None)

    @classmethod
    def get(cls, node_type: str) -> Optional[NodeTypeSpec]:
        return cls._registry.get(node_type)

    @classmethod
    def list_types(cls) -> List[str]:
        return sorted(cls._registry.keys())

    @classmethod
    def specs(cls) -> List[NodeTypeSpec]:
        return [cls._registry[t] for t in cls.list_types()]

    @classmethod
    def create(
        cls,
        node_type: str,
        node_id: str,
        position: Position = (0.0, 0.0),
        label: Optional[str] = None,
        data: Optional[Dict[str, JsonValue]] = None,
    ) -> BlueprintNode:
        """
        Instantiate a node of a registered type, copying its pin templates.

        Raises:
            KeyError: If the node_type is not registered.
        """
        spec = cls.get(node_type)
        if spec is None:
            raise KeyError(f"Node type '{node_type}' is not registered.")
        return BlueprintNode(
            id=node_id,
            type=spec.id,
            position=position,
            label=label if label is not None else spec.name,
            data={**spec.default_data, **(data or {})},
            input_pins=[p.model_copy(deep=True) for p in spec.input_pins],
            output_pins=[p.model_copy(deep=True) for p in spec.output_pins],
        )

    @classmethod
    def check_data(cls, node: BlueprintNode) -> List[str]:
        """
        Check ``node.data`` against the schema of its type.

        Returns a list of human-readable problems; empty when the data conforms
        or the type is not registered.
        """
        spec = cls.get(node.type)
        if spec is None:
            return []
        try:
            spec.data_model.model_validate(node.data)
        except ValidationError as exc:
            return [
                f"data.{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in exc.errors()
            ]
        return []
