"""Starting point of an automation. Has no execution input, so it is an entry node."""

from typing import Optional

from .node_registry import EXEC_OUT, NodeData, NodeTypeSpec, execution_pin


class TriggerData(NodeData):
    schedule: Optional[str] = None  # cron expression; None means manual
    enabled: bool = True


NODE_TYPE = NodeTypeSpec(
    id="trigger",
    name="Trigger",
    category="input",
    description="Starting point of the automation",
    icon="⚡",
    color="#8B5CF6",
    configurable=False,
    output_pins=(execution_pin(EXEC_OUT, "Then"),),
    data_model=TriggerData,
)
