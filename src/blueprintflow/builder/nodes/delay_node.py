"""Waits before continuing execution."""

from pydantic import Field

from blueprintflow.builder.types import PinKind

from .node_registry import EXEC_IN, EXEC_OUT, NodeData, NodeTypeSpec, data_pin, execution_pin


class DelayData(NodeData):
    unit: str = Field(default="seconds", pattern="^(seconds|minutes|hours)$")


NODE_TYPE = NodeTypeSpec(
    id="delay",
    name="Delay",
    category="action",
    description="Wait for specified time before next step",
    icon="⏱️",
    color="#6366F1",
    input_pins=(
        execution_pin(EXEC_IN, "In"),
        data_pin("duration", PinKind.NUMBER, default=60),
    ),
    output_pins=(execution_pin(EXEC_OUT, "Then"),),
    data_model=DelayData,
)
