"""
json_graph.py

JSON wire codec for blueprint documents.

- serialize_document / deserialize_document convert between the
  BlueprintFlowchartData model and the camelCase wire format
  ``{nodes, connections, variables, comments, viewport?}``.
- save_document_file writes atomically (temp file in the target directory,
  then move); load_document_file reads and validates.
- convert_legacy_flowchart imports the older 3-D flowchart format, where nodes
  carry ``position: [x, y, z]`` and connections are bare ``from``/``to`` pairs.

Serialization keeps exactly the fields that were set, so a document read from
the wire serializes back to the same shape.
"""

import json
import os
import shutil
import tempfile
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, JsonValue, ValidationError

from blueprintflow.builder.nodes import NodeRegistry
from blueprintflow.builder.types import (
    BlueprintConnection,
    BlueprintFlowchartData,
    BlueprintNode,
    PinKind,
    ViewportState,
)
from blueprintflow.exceptions import SerializationError

LEGACY_EXEC_PIN = "exec"
LEGACY_POSITION_SCALE = 100.0

# --- Serialization ---

def document_to_dict(document: BlueprintFlowchartData) -> Dict[str, Any]:
    wire = document.to_wire()
    # The four collections are always present on the wire.
    for key in ("nodes", "connections", "variables", "comments"):
        wire.setdefault(key, [])
    return wire


def serialize_document(document: BlueprintFlowchartData, indent: Optional[int] = 2) -> str:
    """
    Serialize a document to a JSON string.

    Raises:
        SerializationError: If the document holds values JSON cannot represent.
    """
    try:
        return json.dumps(document_to_dict(document), indent=indent)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Failed to serialize document: {e}") from e

# --- Deserialization ---

def deserialize_document(payload: Union[str, bytes, Dict[str, Any]]) -> BlueprintFlowchartData:
    """
    Parse a JSON string (or an already-decoded mapping) into a document.

    Raises:
        SerializationError: If the JSON is invalid or does not match the document schema.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise SerializationError(f"Invalid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise SerializationError("Document JSON must be an object at the top level.")
    try:
        return BlueprintFlowchartData.model_validate(payload)
    except ValidationError as e:
        raise SerializationError(
            f"Document does not match the blueprint schema: {e.error_count()} error(s)",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e

# --- File I/O Utilities ---

def load_document_file(path: str) -> BlueprintFlowchartData:
    """
    Load a document from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        SerializationError: If the file contents are invalid.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return deserialize_document(f.read())


def save_document_file(document: BlueprintFlowchartData, path: str) -> None:
    """
    Save a document to a JSON file atomically.

    Raises:
        SerializationError: If serialization fails.
        OSError: If the file cannot be written.
    """
    write_json_atomic(serialize_document(document), path)


def write_json_atomic(text: str, path: str) -> None:
    dir_name = os.path.dirname(os.path.abspath(path))
    os.makedirs(dir_name, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=dir_name, delete=False, suffix=".tmp") as tmp_file:
        tmp_file.write(text)
        temp_path = tmp_file.name
    try:
        shutil.move(temp_path, path)
    except OSError as e:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise OSError(f"Failed to write {path} atomically: {e}") from e

# --- Legacy 3-D format ---

class LegacyNode(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    label: Optional[str] = None
    data: Dict[str, JsonValue] = Field(default_factory=dict)


class LegacyConnection(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    from_node: str = Field(alias="from")
    to_node: str = Field(alias="to")


def _exec_pin_id(node_type: str, direction: str) -> str:
    spec = NodeRegistry.get(node_type)
    if spec is not None:
        pins = spec.output_pins if direction == "output" else spec.input_pins
        for pin in pins:
            if pin.type is PinKind.EXECUTION:
                return pin.id
    return LEGACY_EXEC_PIN


def convert_legacy_flowchart(
    nodes: Sequence[Union[LegacyNode, Dict[str, Any]]],
    connections: Sequence[Union[LegacyConnection, Dict[str, Any]]],
) -> BlueprintFlowchartData:
    """
    Convert a legacy 3-D flowchart into a blueprint document.

    Positions map (x, y, z) to (x * 100, z * 100). Registered node types get
    their catalog pin templates; every legacy connection becomes an execution
    connection between the first execution output of its source and the first
    execution input of its target (``exec`` when the type has none).

    Raises:
        SerializationError: If an entry does not match the legacy shape.
    """
    try:
        legacy_nodes = [n if isinstance(n, LegacyNode) else LegacyNode.model_validate(n) for n in nodes]
        legacy_conns = [
            c if isinstance(c, LegacyConnection) else LegacyConnection.model_validate(c) for c in connections
        ]
    except ValidationError as e:
        raise SerializationError(
            f"Legacy flowchart does not match the expected shape: {e.error_count()} error(s)",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e

    types_by_id = {n.id: n.type for n in legacy_nodes}
    blueprint_nodes: List[BlueprintNode] = []
    for legacy in legacy_nodes:
        spec = NodeRegistry.get(legacy.type)
        blueprint_nodes.append(BlueprintNode(
            id=legacy.id,
            type=legacy.type,
            position=(legacy.position[0] * LEGACY_POSITION_SCALE, legacy.position[2] * LEGACY_POSITION_SCALE),
            label=legacy.label if legacy.label is not None else (spec.name if spec else legacy.type),
            data=dict(legacy.data),
            input_pins=[p.model_copy(deep=True) for p in spec.input_pins] if spec else [],
            output_pins=[p.model_copy(deep=True) for p in spec.output_pins] if spec else [],
        ))

    blueprint_connections = [
        BlueprintConnection(
            id=conn.id or f"conn-{index}",
            from_node_id=conn.from_node,
            from_pin_id=_exec_pin_id(types_by_id.get(conn.from_node, ""), "output"),
            to_node_id=conn.to_node,
            to_pin_id=_exec_pin_id(types_by_id.get(conn.to_node, ""), "input"),
            type="execution",
        )
        for index, conn in enumerate(legacy_conns)
    ]

    return BlueprintFlowchartData(
        nodes=blueprint_nodes,
        connections=blueprint_connections,
        variables=[],
        comments=[],
        viewport=ViewportState(zoom=1.0, pan_x=0.0, pan_y=0.0),
    )
