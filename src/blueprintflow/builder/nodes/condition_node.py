"""Branches execution on a boolean input."""

from typing import Optional

from blueprintflow.builder.types import PinKind

from .node_registry import EXEC_IN, NodeData, NodeTypeSpec, data_pin, execution_pin


class ConditionData(NodeData):
    expression: Optional[str] = None


NODE_TYPE = NodeTypeSpec(
    id="condition",
    name="Condition",
    category="condition",
    description="Decision point based on conditions",
    icon="❓",
    color="#F59E0B",
    input_pins=(
        execution_pin(EXEC_IN, "In"),
        data_pin("condition", PinKind.BOOLEAN, required=True),
    ),
    output_pins=(
        execution_pin("true", "True"),
        execution_pin("false", "False"),
    ),
    data_model=ConditionData,
)
