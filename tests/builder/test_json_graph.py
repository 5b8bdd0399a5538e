import json
import os

import pytest

from blueprintflow.builder.graph_validator import validate
from blueprintflow.builder.json_graph import (
    convert_legacy_flowchart,
    deserialize_document,
    document_to_dict,
    load_document_file,
    save_document_file,
    serialize_document,
)
from blueprintflow.exceptions import SerializationError

WIRE = {
    "nodes": [
        {
            "id": "t1",
            "type": "trigger",
            "position": [0, 0],
            "label": "Start",
            "data": {"enabled": True},
            "inputPins": [],
            "outputPins": [{"id": "exec-out", "name": "Then", "type": "execution"}],
        },
        {
            "id": "n1",
            "type": "custom",
            "position": [250.5, 40],
            "data": {"nested": {"list": [1, "two", None]}},
            "inputPins": [
                {"id": "exec-in", "name": "In", "type": "execution"},
                {"id": "topic", "name": "Topic", "type": "string", "required": True, "defaultValue": None},
            ],
            "outputPins": [],
            "collapsed": False,
        },
    ],
    "connections": [
        {"id": "c1", "fromNodeId": "t1", "fromPinId": "exec-out", "toNodeId": "n1", "toPinId": "exec-in", "type": "execution"},
    ],
    "variables": [{"id": "v1", "name": "retries", "type": "number", "defaultValue": 3}],
    "comments": [{"id": "k1", "position": [-10, -10], "size": [400, 200], "text": "Main flow", "nodeIds": ["t1", "n1"]}],
    "viewport": {"zoom": 0.75, "panX": 12, "panY": -4},
}


def test_wire_round_trip_preserves_shape():
    doc = deserialize_document(json.dumps(WIRE))
    assert document_to_dict(doc) == WIRE
    assert document_to_dict(deserialize_document(serialize_document(doc))) == WIRE


def test_round_trip_preserves_explicit_null_default():
    doc = deserialize_document(WIRE)
    topic = doc.get_node("n1").find_pin("topic", "input")
    assert "defaultValue" in topic.to_wire()
    assert not topic.has_default


def test_collections_are_always_emitted():
    doc = deserialize_document("{}")
    assert document_to_dict(doc) == {"nodes": [], "connections": [], "variables": [], "comments": []}


def test_bytes_payload_is_accepted():
    assert len(deserialize_document(json.dumps(WIRE).encode("utf-8")).nodes) == 2


@pytest.mark.parametrize("payload, message", [
    ("{not json", "Invalid JSON"),
    ("[]", "must be an object"),
    ('{"nodes": [{"id": "a"}]}', "does not match the blueprint schema"),
    ('{"nodes": [], "edges": []}', "does not match the blueprint schema"),
])
def test_bad_payloads_raise_serialization_error(payload, message):
    with pytest.raises(SerializationError, match=message):
        deserialize_document(payload)


def test_save_and_load_file(tmp_path):
    path = tmp_path / "nested" / "flow.json"
    save_document_file(deserialize_document(WIRE), str(path))
    assert os.listdir(path.parent) == ["flow.json"]
    assert document_to_dict(load_document_file(str(path))) == WIRE


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_document_file(str(tmp_path / "missing.json"))


def test_convert_legacy_flowchart():
    nodes = [
        {"id": "t", "type": "trigger", "position": [1, 0, 2]},
        {"id": "a", "type": "ai-thinking", "position": [3, 5, 4], "label": "Think", "data": {"prompt": "x"}},
        {"id": "u", "type": "mystery", "position": [0, 0, 0], "color": "#fff"},
    ]
    connections = [{"from": "t", "to": "a"}, {"id": "k", "from": "a", "to": "u"}]
    doc = convert_legacy_flowchart(nodes, connections)

    t, a, u = doc.nodes
    assert t.position == (100.0, 200.0)
    assert a.position == (300.0, 400.0)
    assert (t.label, a.label, u.label) == ("Trigger", "Think", "mystery")
    assert a.data == {"prompt": "x"}
    assert [p.id for p in a.input_pins] == ["exec-in", "topic"]
    assert u.input_pins == [] and u.output_pins == []

    first, second = doc.connections
    assert (first.id, first.from_pin_id, first.to_pin_id, first.type) == ("conn-0", "exec-out", "exec-in", "execution")
    assert (second.id, second.from_pin_id, second.to_pin_id) == ("k", "exec-out", "exec")
    assert doc.viewport.zoom == 1.0

    report = validate(doc)
    assert report.referencing("conn-0") == []
    assert [f.code for f in report.referencing("k")] == ["dangling_reference"]


def test_convert_legacy_rejects_bad_shape():
    with pytest.raises(SerializationError, match="Legacy flowchart"):
        convert_legacy_flowchart([{"id": "t", "type": "trigger"}], [{"from": "t"}])
