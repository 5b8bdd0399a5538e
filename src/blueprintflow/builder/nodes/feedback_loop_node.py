"""Polls a published video's performance. Commonly wired back into earlier steps."""

from pydantic import Field

from blueprintflow.builder.types import PinKind

from .node_registry import EXEC_IN, EXEC_OUT, NodeData, NodeTypeSpec, data_pin, execution_pin


class FeedbackLoopData(NodeData):
    interval_hours: float = Field(default=24.0, gt=0)
    metric: str = "views"


NODE_TYPE = NodeTypeSpec(
    id="feedback-loop",
    name="Feedback Loop",
    category="process",
    description="Monitors performance and learns from feedback",
    icon="📊",
    color="#16A34A",
    input_pins=(
        execution_pin(EXEC_IN, "In"),
        data_pin("url", PinKind.STRING, required=True),
    ),
    output_pins=(
        execution_pin(EXEC_OUT, "Then"),
        data_pin("metrics", PinKind.OBJECT),
    ),
    data_model=FeedbackLoopData,
)
