import pytest

from blueprintflow.builder.nodes import NodeData, NodeRegistry, NodeTypeSpec
from blueprintflow.builder.nodes.node_registry import data_pin, execution_pin
from blueprintflow.builder.types import PinKind

BUILT_IN = ["ai-thinking", "condition", "delay", "feedback-loop", "trigger", "video-creator", "youtube-upload"]


class StampData(NodeData):
    stamp: str


@pytest.fixture
def stamp_type():
    spec = NodeTypeSpec(
        id="stamp",
        name="Stamp",
        category="action",
        description="Adds a stamp",
        input_pins=(execution_pin("exec-in", "In"), data_pin("text", PinKind.STRING, default="ok")),
        output_pins=(execution_pin("exec-out", "Then"),),
        data_model=StampData,
        default_data={"stamp": "draft"},
    )
    NodeRegistry.register(spec)
    yield spec
    NodeRegistry.unregister("stamp")


def test_built_in_types_are_registered():
    assert set(BUILT_IN) <= set(NodeRegistry.list_types())


def test_register_rejects_duplicates(stamp_type):
    with pytest.raises(ValueError, match="already registered"):
        NodeRegistry.register(stamp_type)
    NodeRegistry.register(stamp_type, replace=True)


def test_create_copies_pin_templates(stamp_type):
    created = NodeRegistry.create("stamp", "s1", data={"extra": 1})
    assert created.data == {"stamp": "draft", "extra": 1}
    created.input_pins[1].name = "changed"
    assert stamp_type.input_pins[1].name == "text"
    assert created.input_pins[1].default_value == "ok"


def test_create_unknown_type_raises_key_error():
    with pytest.raises(KeyError):
        NodeRegistry.create("nope", "x")


def test_check_data_reports_schema_problems(stamp_type):
    good = NodeRegistry.create("stamp", "s1")
    assert NodeRegistry.check_data(good) == []
    bad = good.model_copy(update={"data": {"stamp": 3, "extra": True}})
    problems = NodeRegistry.check_data(bad)
    assert len(problems) == 2
    assert any(p.startswith("data.stamp") for p in problems)
    assert any(p.startswith("data.extra") for p in problems)


def test_summary_uses_wire_names():
    summary = NodeRegistry.get("delay").summary()
    assert summary["schemaVersion"] == 1
    assert [p["id"] for p in summary["inputPins"]] == ["exec-in", "duration"]
    assert summary["inputPins"][1]["defaultValue"] == 60
