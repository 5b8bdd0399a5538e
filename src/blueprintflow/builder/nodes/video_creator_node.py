"""Renders a short video from a script."""

from typing import Literal, Optional

from pydantic import Field

from blueprintflow.builder.types import PinKind

from .node_registry import EXEC_IN, EXEC_OUT, NodeData, NodeTypeSpec, data_pin, execution_pin


class VideoCreatorData(NodeData):
    style: Optional[str] = None
    voice: Optional[str] = None
    duration_seconds: int = Field(default=60, ge=1, le=180)
    aspect_ratio: Literal["9:16", "16:9", "1:1"] = "9:16"


NODE_TYPE = NodeTypeSpec(
    id="video-creator",
    name="Video Creator",
    category="process",
    description="Creates video content with visuals and narration",
    icon="🎬",
    color="#DC2626",
    input_pins=(
        execution_pin(EXEC_IN, "In"),
        data_pin("script", PinKind.STRING, required=True),
    ),
    output_pins=(
        execution_pin(EXEC_OUT, "Then"),
        data_pin("video", PinKind.OBJECT),
    ),
    data_model=VideoCreatorData,
)
