"""AI analysis step that turns a topic into content ideas."""

from typing import Optional

from pydantic import Field

from blueprintflow.builder.types import PinKind

from .node_registry import EXEC_IN, EXEC_OUT, NodeData, NodeTypeSpec, data_pin, execution_pin


class AIThinkingData(NodeData):
    prompt: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    idea_count: int = Field(default=3, ge=1, le=20)


NODE_TYPE = NodeTypeSpec(
    id="ai-thinking",
    name="AI Thinking",
    category="process",
    description="AI analyzes trends and generates content ideas",
    icon="🧠",
    color="#DC2626",
    input_pins=(
        execution_pin(EXEC_IN, "In"),
        data_pin("topic", PinKind.STRING, required=True, description="Subject to brainstorm about"),
    ),
    output_pins=(
        execution_pin(EXEC_OUT, "Then"),
        data_pin("ideas", PinKind.ARRAY),
        data_pin("script", PinKind.STRING),
    ),
    data_model=AIThinkingData,
)
