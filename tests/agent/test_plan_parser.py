import json

import pytest

from blueprintflow.agent.history import ChatMessage, truncate_history
from blueprintflow.agent.plan_parser import extract_json, parse_plan
from blueprintflow.builder.operations import AddConnection, AddNode, RemoveNode
from blueprintflow.exceptions import MalformedPlan

from tests.factories import plan_response

OPS = [
    {"op": "add_node", "nodeType": "trigger", "id": "t1"},
    {"op": "add_connection", "fromNodeId": "t1", "fromPinId": "exec-out", "toNodeId": "d1", "toPinId": "exec-in"},
    {"op": "remove_node", "nodeId": "old"},
]


def test_parse_fenced_plan():
    plan = parse_plan(plan_response("Adding a trigger.", OPS))
    assert plan.explanation == "Adding a trigger."
    assert [type(op) for op in plan.operations] == [AddNode, AddConnection, RemoveNode]


def test_parse_bare_plan():
    plan = parse_plan(plan_response("ok", OPS, fenced=False))
    assert len(plan.operations) == 3


def test_operations_default_to_empty():
    assert parse_plan('{"explanation": "Just chatting."}').operations == []


def test_unlabelled_fence_is_accepted():
    text = "Sure:\n```\n" + json.dumps({"explanation": "x", "operations": []}) + "\n```"
    assert extract_json(text).startswith("{")


@pytest.mark.parametrize("text, message", [
    ("I would add a trigger node.", "contains no JSON plan"),
    (plan_response("a") + plan_response("b"), "contains 2 JSON blocks"),
    ("```json\n{explanation: 'x'}\n```", "not valid JSON"),
    ("```json\n[1, 2]\n```", "must be a JSON object"),
    ('{"operations": []}', "does not match the operation grammar"),
    ('{"explanation": "x", "operations": [], "confidence": 0.9}', "does not match the operation grammar"),
])
def test_malformed_responses(text, message):
    with pytest.raises(MalformedPlan, match=message):
        parse_plan(text)


def test_unknown_operation_is_malformed():
    with pytest.raises(MalformedPlan) as exc_info:
        parse_plan(plan_response("x", [{"op": "teleport_node", "nodeId": "a"}]))
    assert exc_info.value.details["errors"]


def test_unknown_operation_field_is_malformed():
    with pytest.raises(MalformedPlan):
        parse_plan(plan_response("x", [{"op": "remove_node", "nodeId": "a", "force": True}]))


def test_add_node_needs_a_template():
    with pytest.raises(MalformedPlan):
        parse_plan(plan_response("x", [{"op": "add_node", "id": "a"}]))


def test_truncate_history_keeps_recent_exchanges():
    history = [ChatMessage(role="user" if i % 2 == 0 else "assistant", content=str(i)) for i in range(10)]
    assert [m.content for m in truncate_history(history, 2)] == ["6", "7", "8", "9"]
    assert truncate_history(history, 0) == []
    assert len(truncate_history(history, 50)) == 10
