"""Publishes a rendered video to a YouTube channel."""

from typing import List, Literal

from pydantic import Field

from blueprintflow.builder.types import PinKind

from .node_registry import EXEC_IN, EXEC_OUT, NodeData, NodeTypeSpec, data_pin, execution_pin


class YouTubeUploadData(NodeData):
    privacy: Literal["public", "unlisted", "private"] = "private"
    tags: List[str] = Field(default_factory=list)
    made_for_kids: bool = False


NODE_TYPE = NodeTypeSpec(
    id="youtube-upload",
    name="YouTube Upload",
    category="output",
    description="Uploads video to YouTube channel",
    icon="📺",
    color="#16A34A",
    input_pins=(
        execution_pin(EXEC_IN, "In"),
        data_pin("video", PinKind.OBJECT, required=True),
        data_pin("title", PinKind.STRING, required=True),
        data_pin("description", PinKind.STRING, default=""),
    ),
    output_pins=(
        execution_pin(EXEC_OUT, "Then"),
        data_pin("url", PinKind.STRING),
    ),
    data_model=YouTubeUploadData,
)
