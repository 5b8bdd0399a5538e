import pytest

from blueprintflow.builder.document import DocumentEditor, merge_patch
from blueprintflow.builder.json_graph import document_to_dict
from blueprintflow.builder.types import CommentBox, FlowchartVariable, ViewportState
from blueprintflow.exceptions import DuplicateId, FanInViolation, InvalidReference, TypeMismatch

from tests.factories import exec_node, node


def test_editor_works_on_a_copy(exec_chain):
    before = document_to_dict(exec_chain)
    editor = DocumentEditor(exec_chain)
    editor.add_node(exec_node("C"))
    editor.move_node("A", (5, 6))
    editor.remove_connection("c1")
    assert document_to_dict(exec_chain) == before
    assert editor.document is not exec_chain


def test_add_node_rejects_duplicate_id(exec_chain):
    editor = DocumentEditor(exec_chain)
    with pytest.raises(DuplicateId, match="Node id 'A' already exists"):
        editor.add_node(exec_node("A"))


def test_add_node_of_type_copies_catalog_pins():
    editor = DocumentEditor()
    editor.add_node_of_type("ai-thinking", "think", position=(10, 20), data={"ideaCount": 5})
    created = editor.document.get_node("think")
    assert [p.id for p in created.input_pins] == ["exec-in", "topic"]
    assert [p.id for p in created.output_pins] == ["exec-out", "ideas", "script"]
    assert created.label == "AI Thinking"
    assert created.position == (10.0, 20.0)
    assert created.data == {"ideaCount": 5}


def test_add_node_of_unknown_type_is_invalid_reference():
    with pytest.raises(InvalidReference, match="not registered") as exc_info:
        DocumentEditor().add_node_of_type("teleporter", "x")
    assert "trigger" in exc_info.value.details["known_types"]


def test_type_mismatch_on_add_connection(number_and_string):
    editor = DocumentEditor(number_and_string)
    with pytest.raises(TypeMismatch, match="Cannot connect number to string"):
        editor.add_connection("A", "result", "B", "value", "data")
    assert editor.document.connections == []


def test_add_connection_infers_type_and_id(exec_chain):
    editor = DocumentEditor(exec_chain)
    editor.remove_connection("c1")
    connection = editor.add_connection("A", "out", "B", "in")
    assert connection.type == "execution"
    assert connection.id == "conn-A-out-B-in"
    again = editor.add_connection("A", "out", "B", "in")
    assert again.id == "conn-A-out-B-in-2"


def test_add_connection_rejects_duplicate_id(exec_chain):
    editor = DocumentEditor(exec_chain)
    with pytest.raises(DuplicateId, match="c1"):
        editor.add_connection("A", "out", "B", "in", connection_id="c1")


def test_add_connection_from_input_pin_is_invalid_reference(exec_chain):
    editor = DocumentEditor(exec_chain)
    with pytest.raises(InvalidReference, match="is an input pin, expected an output pin"):
        editor.add_connection("B", "in", "A", "out")


def test_add_connection_to_missing_node_or_pin(exec_chain):
    editor = DocumentEditor(exec_chain)
    with pytest.raises(InvalidReference, match="Node 'Z' does not exist"):
        editor.add_connection("A", "out", "Z", "in")
    with pytest.raises(InvalidReference, match="Pin 'B.nope' does not exist"):
        editor.add_connection("A", "out", "B", "nope")


def test_data_into_execution_pin_is_type_mismatch():
    editor = DocumentEditor()
    editor.add_node(node("A", outputs=[("result", "number")]))
    editor.add_node(exec_node("B"))
    with pytest.raises(TypeMismatch):
        editor.add_connection("A", "result", "B", "in")


def test_fan_in_violation_leaves_connections_untouched(data_chain):
    editor = DocumentEditor(data_chain)
    with pytest.raises(FanInViolation, match="already receives data from connection 'c1'"):
        editor.add_connection("C", "result", "B", "value")
    assert [c.id for c in editor.document.connections] == ["c1"]


def test_remove_node_leaves_connections_for_the_engine(exec_chain):
    editor = DocumentEditor(exec_chain)
    editor.remove_node("A")
    assert not editor.has_node("A")
    assert [c.id for c in editor.document.connections] == ["c1"]
    with pytest.raises(InvalidReference):
        editor.remove_node("A")


def test_indices_follow_removal():
    editor = DocumentEditor()
    for node_id in ("A", "B", "C"):
        editor.add_node(exec_node(node_id))
    editor.remove_node("A")
    editor.move_node("C", (1, 2))
    assert editor.document.get_node("C").position == (1.0, 2.0)


def test_merge_patch_semantics():
    data = {"a": 1, "nested": {"x": 1, "y": 2}, "keep": True}
    patched = merge_patch(data, {"a": None, "nested": {"y": 3}, "b": "new"})
    assert patched == {"nested": {"x": 1, "y": 3}, "keep": True, "b": "new"}
    assert data["a"] == 1


def test_update_node_data_merges():
    editor = DocumentEditor()
    editor.add_node(node("N", data={"prompt": "old", "model": "x"}))
    editor.update_node_data("N", {"prompt": "new", "model": None})
    assert editor.document.get_node("N").data == {"prompt": "new"}


def test_update_node_sets_cosmetic_fields(exec_chain):
    editor = DocumentEditor(exec_chain)
    editor.update_node("A", {"label": "Start", "collapsed": True})
    updated = editor.document.get_node("A")
    assert updated.label == "Start"
    assert updated.collapsed is True
    with pytest.raises(ValueError, match="Cannot update node fields"):
        editor.update_node("A", {"type": "other"})


def test_set_variable_upserts_by_id():
    editor = DocumentEditor()
    editor.set_variable(FlowchartVariable(id="v1", name="count", type="number", default_value=0))
    editor.set_variable(FlowchartVariable(id="v1", name="count", type="number", default_value=10))
    [variable] = editor.document.variables
    assert variable.default_value == 10


def test_set_variable_rejects_name_clash():
    editor = DocumentEditor()
    editor.set_variable(FlowchartVariable(id="v1", name="count", type="number"))
    with pytest.raises(DuplicateId, match="already used by 'v1'"):
        editor.set_variable(FlowchartVariable(id="v2", name="count", type="string"))


def test_remove_missing_variable_or_comment():
    editor = DocumentEditor()
    with pytest.raises(InvalidReference):
        editor.remove_variable("v1")
    with pytest.raises(InvalidReference):
        editor.remove_comment("k1")


def test_comments_and_viewport():
    editor = DocumentEditor()
    comment = CommentBox(id="k1", position=(0, 0), size=(200, 100), text="Intro")
    editor.add_comment(comment)
    with pytest.raises(DuplicateId):
        editor.add_comment(comment)
    editor.set_viewport(ViewportState(zoom=2.0, pan_x=10, pan_y=-5))
    assert editor.document.viewport.zoom == 2.0
    editor.remove_comment("k1")
    editor.set_viewport(None)
    assert editor.document.comments == []
    assert editor.document.viewport is None
