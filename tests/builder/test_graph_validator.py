import pytest

from blueprintflow.builder.graph_validator import GraphValidator, annotate, validate
from blueprintflow.builder.nodes import NodeRegistry
from blueprintflow.builder.types import CommentBox, FlowchartVariable

from tests.factories import connect, document, exec_node, node, pin


def codes(report, severity=None):
    return [f.code for f in report if severity is None or f.severity == severity]


def test_clean_document_has_no_findings(exec_chain):
    report = GraphValidator(exec_chain).validate()
    assert report.is_clean
    assert not report.has_errors
    assert len(report) == 0


def test_empty_document_is_clean():
    assert validate(document()).is_clean


def test_validation_is_deterministic(exec_chain):
    broken = exec_chain.model_copy(update={"connections": exec_chain.connections + [
        connect("c2", "A.out", "missing.in", "execution"),
        connect("c3", "B.out", "A.out", "execution"),
    ]})
    assert validate(broken) == validate(broken)
    assert validate(broken).to_list() == validate(broken).to_list()


def test_duplicate_node_id_is_error():
    report = validate(document(exec_node("A", entry=True), exec_node("A", entry=True)))
    assert codes(report, "error") == ["duplicate_node_id"]


def test_duplicate_pin_id_and_name_are_errors():
    dup_id = node("N", inputs=[("p", "string")], outputs=[("p", "string")])
    dup_name = node("M", inputs=[pin("a", "string", name="value"), pin("b", "number", name="value")])
    report = validate(document(dup_id, dup_name))
    assert sorted(codes(report, "error")) == ["duplicate_pin_id", "duplicate_pin_name"]
    assert report.for_node("N")[0].pin_id == "p"


def test_same_pin_name_on_both_sides_is_allowed():
    n = node("N", inputs=[pin("in", "string", name="value")], outputs=[pin("out", "string", name="value")])
    assert not validate(document(n)).has_errors


def test_connection_to_missing_node_is_dangling(exec_chain):
    doc = exec_chain.model_copy(update={"connections": [connect("c9", "A.out", "ghost.in", "execution")]})
    report = validate(doc)
    [finding] = report.errors
    assert finding.code == "dangling_reference"
    assert finding.connection_id == "c9"
    assert "ghost" in finding.message


def test_connection_to_missing_pin_is_dangling(exec_chain):
    doc = exec_chain.model_copy(update={"connections": [connect("c9", "A.out", "B.nope", "execution")]})
    [finding] = validate(doc).errors
    assert finding.code == "dangling_reference"
    assert finding.pin_id == "nope"
    assert "does not exist" in finding.message


def test_connection_from_input_pin_is_dangling(exec_chain):
    doc = exec_chain.model_copy(update={"connections": [connect("c9", "B.in", "B.in", "execution")]})
    report = validate(doc)
    assert codes(report, "error") == ["dangling_reference"]
    assert "is not an output pin" in report.errors[0].message


def test_data_type_mismatch(number_and_string):
    doc = number_and_string.model_copy(update={"connections": [connect("c1", "A.result", "B.value")]})
    [finding] = validate(doc).errors
    assert finding.code == "type_mismatch"
    assert finding.connection_id == "c1"
    assert finding.node_id == "B"


def test_execution_pins_joined_by_data_connection_is_mismatch(exec_chain):
    doc = exec_chain.model_copy(update={"connections": [connect("c1", "A.out", "B.in", "data")]})
    assert codes(validate(doc), "error") == ["type_mismatch"]


def test_any_pin_accepts_data():
    doc = document(
        node("A", outputs=[("result", "number")]),
        node("B", inputs=[("value", "any")]),
        connections=[connect("c1", "A.result", "B.value")],
    )
    assert validate(doc).is_clean


def test_data_fan_in_is_error(data_chain):
    doc = data_chain.model_copy(update={"connections": data_chain.connections + [connect("c2", "C.result", "B.value")]})
    report = validate(doc)
    [finding] = report.errors
    assert finding.code == "fan_in_violation"
    assert finding.connection_id == "c2"
    assert "c1" in finding.message


def test_execution_fan_in_is_allowed():
    doc = document(
        exec_node("A1", entry=True),
        exec_node("A2", entry=True),
        exec_node("B"),
        connections=[
            connect("c1", "A1.out", "B.in", "execution"),
            connect("c2", "A2.out", "B.in", "execution"),
        ],
    )
    assert validate(doc).is_clean


def test_duplicate_connection_id_is_error(exec_chain):
    doc = exec_chain.model_copy(update={"connections": exec_chain.connections * 2})
    assert codes(validate(doc), "error") == ["duplicate_connection_id"]


def test_execution_cycle_is_warning():
    doc = document(
        exec_node("T", entry=True),
        exec_node("A"),
        exec_node("B"),
        connections=[
            connect("c0", "T.out", "A.in", "execution"),
            connect("c1", "A.out", "B.in", "execution"),
            connect("c2", "B.out", "A.in", "execution"),
        ],
    )
    report = validate(doc)
    assert not report.has_errors
    [finding] = report.warnings
    assert finding.code == "execution_cycle"
    assert set(finding.related) == {"A", "B"}
    assert "A -> B -> A" in finding.message


def test_self_loop_is_a_cycle():
    doc = document(
        exec_node("T", entry=True),
        exec_node("A"),
        connections=[
            connect("c0", "T.out", "A.in", "execution"),
            connect("c1", "A.out", "A.in", "execution"),
        ],
    )
    [finding] = validate(doc).warnings
    assert finding.code == "execution_cycle"
    assert finding.related == ("A",)


def test_one_cycle_reported_per_component():
    doc = document(
        exec_node("T", entry=True),
        exec_node("A"),
        exec_node("B"),
        exec_node("C"),
        connections=[
            connect("c0", "T.out", "A.in", "execution"),
            connect("c1", "A.out", "B.in", "execution"),
            connect("c2", "B.out", "A.in", "execution"),
            connect("c3", "B.out", "C.in", "execution"),
            connect("c4", "C.out", "B.in", "execution"),
        ],
    )
    assert codes(validate(doc)) == ["execution_cycle"]


def test_separate_components_each_report_a_cycle():
    doc = document(
        exec_node("T1", entry=True),
        exec_node("A"),
        exec_node("B"),
        exec_node("T2", entry=True),
        exec_node("C"),
        exec_node("D"),
        connections=[
            connect("c0", "T1.out", "A.in", "execution"),
            connect("c1", "A.out", "B.in", "execution"),
            connect("c2", "B.out", "A.in", "execution"),
            connect("c3", "T2.out", "C.in", "execution"),
            connect("c4", "C.out", "D.in", "execution"),
            connect("c5", "D.out", "C.in", "execution"),
        ],
    )
    assert codes(validate(doc)) == ["execution_cycle", "execution_cycle"]


def test_data_cycle_is_not_an_execution_cycle():
    doc = document(
        node("A", inputs=[("x", "number")], outputs=[("y", "number")]),
        node("B", inputs=[("x", "number")], outputs=[("y", "number")]),
        connections=[connect("c1", "A.y", "B.x"), connect("c2", "B.y", "A.x")],
    )
    assert validate(doc).is_clean


def test_unreachable_node_is_warning():
    doc = document(exec_node("T", entry=True), exec_node("orphan"))
    report = validate(doc)
    [finding] = report.warnings
    assert finding.code == "unreachable_node"
    assert finding.node_id == "orphan"


def test_no_entry_node_is_warning():
    report = validate(document(exec_node("B")))
    [finding] = report.warnings
    assert finding.code == "no_entry_node"
    assert finding.node_id is None


def test_required_input_without_connection_or_default_warns():
    required = node("N", inputs=[pin("topic", "string", required=True)])
    defaulted = node("M", inputs=[pin("topic", "string", required=True, default_value="news")])
    report = validate(document(required, defaulted))
    [finding] = report.warnings
    assert finding.code == "unconnected_required_input"
    assert (finding.node_id, finding.pin_id) == ("N", "topic")


def test_connected_required_input_does_not_warn():
    doc = document(
        node("S", outputs=[("text", "string")]),
        node("N", inputs=[pin("topic", "string", required=True)]),
        connections=[connect("c1", "S.text", "N.topic")],
    )
    assert validate(doc).is_clean


def test_registered_node_data_is_schema_checked():
    trigger = NodeRegistry.create("trigger", "t1")
    delay = NodeRegistry.create("delay", "d1", data={"unit": "weeks"})
    doc = document(
        trigger,
        delay,
        connections=[connect("c1", "t1.exec-out", "d1.exec-in", "execution")],
    )
    report = validate(doc)
    assert not report.has_errors
    [finding] = report.warnings
    assert finding.code == "data_schema"
    assert finding.node_id == "d1"
    assert "data.unit" in finding.message


def test_unregistered_node_data_is_not_checked():
    doc = document(node("N", node_type="my-plugin", data={"anything": [1, 2, 3]}))
    assert validate(doc).is_clean


def test_duplicate_variable_name_is_error():
    variables = [
        FlowchartVariable(id="v1", name="count", type="number"),
        FlowchartVariable(id="v2", name="count", type="string"),
    ]
    report = validate(document(variables=variables))
    assert codes(report, "error") == ["duplicate_variable_name"]
    assert report.errors[0].variable_id == "v2"
    assert report.errors[0].to_dict()["variableId"] == "v2"


def test_duplicate_variable_id_names_the_variable():
    variables = [
        FlowchartVariable(id="v1", name="count", type="number"),
        FlowchartVariable(id="v1", name="total", type="number"),
    ]
    report = validate(document(variables=variables))
    assert codes(report, "error") == ["duplicate_variable_id"]
    assert [f.code for f in report.referencing("v1")] == ["duplicate_variable_id"]


def test_duplicate_comment_id_names_the_comment():
    comments = [
        CommentBox(id="k1", position=(0, 0), size=(100, 50), text="one"),
        CommentBox(id="k1", position=(200, 0), size=(100, 50), text="two"),
    ]
    report = validate(document(exec_node("A", entry=True), comments=comments))
    assert codes(report, "error") == ["duplicate_comment_id"]
    assert report.errors[0].comment_id == "k1"
    assert report.errors[0].to_dict()["commentId"] == "k1"


def test_comment_referencing_missing_node_warns(exec_chain):
    comment = CommentBox(id="k1", position=(0, 0), size=(100, 50), text="group", node_ids=["A", "gone"])
    doc = exec_chain.model_copy(update={"comments": [comment]})
    report = validate(doc)
    assert codes(report) == ["comment_unknown_node"]
    assert report.warnings[0].comment_id == "k1"
    assert not report.has_errors


def test_finding_to_dict_uses_camel_case(number_and_string):
    doc = number_and_string.model_copy(update={"connections": [connect("c1", "A.result", "B.value")]})
    [entry] = validate(doc).to_list()
    assert entry["severity"] == "error"
    assert entry["connectionId"] == "c1"
    assert entry["nodeId"] == "B"
    assert entry["pinId"] == "value"


def test_annotate_attaches_findings_without_touching_input():
    doc = document(exec_node("T", entry=True), exec_node("orphan"))
    annotated = annotate(doc)
    orphan = annotated.get_node("orphan")
    assert orphan.errors == []
    assert len(orphan.warnings) == 1
    assert annotated.get_node("T").warnings is None
    assert doc.get_node("orphan").warnings is None


def test_annotate_clears_stale_findings(exec_chain):
    stale = exec_chain.model_copy(update={"nodes": [
        exec_chain.nodes[0].model_copy(update={"warnings": ["old"]}),
        exec_chain.nodes[1],
    ]})
    annotated = annotate(stale)
    assert annotated.get_node("A").warnings is None
    assert "warnings" not in annotated.get_node("A").to_wire()


def test_stale_annotations_do_not_affect_validation(exec_chain):
    noisy = exec_chain.model_copy(update={"nodes": [
        n.model_copy(update={"errors": ["bogus"]}) for n in exec_chain.nodes
    ]})
    assert validate(noisy) == validate(exec_chain)


@pytest.mark.parametrize("node_type", ["trigger", "delay", "condition", "ai-thinking"])
def test_registered_types_have_unique_pin_ids(node_type):
    n = NodeRegistry.create(node_type, "x")
    report = validate(document(n))
    assert not report.has_errors
