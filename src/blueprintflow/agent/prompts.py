"""
Prompt construction for the flowchart assistant.

The system prompt fixes the response contract (one JSON object with an
explanation and a list of primitive operations) and lists the node catalog.
The user prompt carries the serialized document, the truncated history and
the new message.
"""

import json
from typing import Sequence

from blueprintflow.agent.history import ChatMessage
from blueprintflow.builder.json_graph import document_to_dict
from blueprintflow.builder.nodes import NodeRegistry
from blueprintflow.builder.operations import OPERATION_NAMES
from blueprintflow.builder.types import BlueprintFlowchartData, PinKind

SYSTEM_PROMPT = """You are an assistant that edits automation flowcharts for YouTube Shorts generation.
A flowchart is a graph of typed nodes. Nodes have input and output pins. Execution pins
(type "execution") carry control flow; every other pin kind carries data.

## RESPONSE FORMAT
Reply with exactly one JSON object and nothing else:
{{"explanation": "<what you changed and why, in plain language>",
  "operations": [<zero or more operations>]}}

If the user only asks a question, answer in "explanation" and return an empty "operations" list.

## OPERATIONS
Allowed "op" values: {operation_names}
- {{"op": "add_node", "nodeType": "<catalog type>", "id": "<new unique id>", "position": [x, y], "label": "...", "data": {{...}}}}
- {{"op": "remove_node", "nodeId": "..."}}  (its connections are removed with it)
- {{"op": "add_connection", "fromNodeId": "...", "fromPinId": "<output pin id>", "toNodeId": "...", "toPinId": "<input pin id>"}}
- {{"op": "remove_connection", "connectionId": "..."}}
- {{"op": "update_node_data", "nodeId": "...", "patch": {{"key": value, "removedKey": null}}}}
- {{"op": "update_node", "nodeId": "...", "label": "..."}}
- {{"op": "move_node", "nodeId": "...", "position": [x, y]}}
- {{"op": "set_variable", "variable": {{"id": "...", "name": "...", "type": "<pin kind>", "defaultValue": ...}}}}
- {{"op": "remove_variable", "variableId": "..."}}
- {{"op": "add_comment", "comment": {{"id": "...", "position": [x, y], "size": [w, h], "text": "...", "nodeIds": [...]}}}}
- {{"op": "remove_comment", "commentId": "..."}}

## RULES
- Only reference node ids and pin ids that exist in the current flowchart or that you add in the same reply.
- Connect execution pins to execution pins. Connect data pins only when their kinds match; "any" matches every data kind.
- A data input pin accepts at most one incoming connection.
- Pin kinds: {pin_kinds}

## NODE CATALOG
{catalog}
"""


def describe_catalog() -> str:
    lines = []
    for spec in NodeRegistry.specs():
        inputs = ", ".join(f"{p.id}:{p.type.value}" for p in spec.input_pins) or "none"
        outputs = ", ".join(f"{p.id}:{p.type.value}" for p in spec.output_pins) or "none"
        lines.append(f"- {spec.id}: {spec.description} (inputs: {inputs}; outputs: {outputs})")
    return "\n".join(lines) or "- (no registered node types)"


def build_system_prompt() -> str:
    return SYSTEM_PROMPT.format(
        operation_names=", ".join(OPERATION_NAMES),
        pin_kinds=", ".join(kind.value for kind in PinKind),
        catalog=describe_catalog(),
    )


def build_user_prompt(
    message: str,
    document: BlueprintFlowchartData,
    history: Sequence[ChatMessage],
) -> str:
    sections = [
        "## CURRENT FLOWCHART",
        "```json",
        json.dumps(document_to_dict(document), indent=2),
        "```",
    ]
    if history:
        sections.append("## PREVIOUS CONVERSATION")
        for entry in history:
            speaker = "User" if entry.role == "user" else "Assistant"
            sections.append(f"{speaker}: {entry.content}")
    sections.append("## USER MESSAGE")
    sections.append(message)
    return "\n".join(sections)
