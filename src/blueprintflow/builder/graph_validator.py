"""
Validation engine for blueprint documents.

GraphValidator walks a document and reports every integrity violation as a
Finding. Findings are either ``error`` (the document must not be accepted or
persisted) or ``warning`` (structurally legal but suspicious).

Pass 1 builds id indices for nodes and pins and checks every connection:
  - references resolve to an existing node and a pin of the right direction
  - the connection class matches the pin kinds (via the type lattice)
  - data inputs have a fan-in of at most one
Pass 2 runs a depth-first search with a recursion stack over the execution
subgraph and reports the first cycle found per connected component. Cycles
are warnings: some node types consume feedback deliberately.

The engine is pure and deterministic. Identical input yields an identical
report, which the mutation engine relies on for its all-or-nothing guarantee.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Literal, Optional, Set, Tuple

from blueprintflow.builder.nodes import NodeRegistry
from blueprintflow.builder.type_lattice import check_connection
from blueprintflow.builder.types import (
    BlueprintConnection,
    BlueprintFlowchartData,
    BlueprintNode,
    NodeID,
    NodePin,
    PinID,
)

Severity = Literal["error", "warning"]


@dataclass(frozen=True)
class Finding:
    severity: Severity
    code: str
    message: str
    node_id: Optional[NodeID] = None
    connection_id: Optional[str] = None
    pin_id: Optional[PinID] = None
    variable_id: Optional[str] = None
    comment_id: Optional[str] = None
    related: Tuple[NodeID, ...] = ()

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def references(self, entity_id: str) -> bool:
        return entity_id in (self.node_id, self.connection_id, self.variable_id, self.comment_id) or entity_id in self.related

    def to_dict(self) -> Dict[str, object]:
        out: Dict[str, object] = {"severity": self.severity, "code": self.code, "message": self.message}
        if self.node_id is not None:
            out["nodeId"] = self.node_id
        if self.connection_id is not None:
            out["connectionId"] = self.connection_id
        if self.pin_id is not None:
            out["pinId"] = self.pin_id
        if self.variable_id is not None:
            out["variableId"] = self.variable_id
        if self.comment_id is not None:
            out["commentId"] = self.comment_id
        if self.related:
            out["related"] = list(self.related)
        return out


@dataclass(frozen=True)
class ValidationReport:
    findings: Tuple[Finding, ...] = ()

    @property
    def errors(self) -> List[Finding]:
        return [f for f in self.findings if f.is_error]

    @property
    def warnings(self) -> List[Finding]:
        return [f for f in self.findings if not f.is_error]

    @property
    def has_errors(self) -> bool:
        return any(f.is_error for f in self.findings)

    @property
    def is_clean(self) -> bool:
        return not self.findings

    def for_node(self, node_id: NodeID) -> List[Finding]:
        return [f for f in self.findings if f.node_id == node_id or node_id in f.related]

    def referencing(self, entity_id: str) -> List[Finding]:
        return [f for f in self.findings if f.references(entity_id)]

    def to_list(self) -> List[Dict[str, object]]:
        return [f.to_dict() for f in self.findings]

    def __len__(self) -> int:
        return len(self.findings)

    def __iter__(self):
        return iter(self.findings)


@dataclass
class _PinIndex:
    inputs: Dict[PinID, NodePin] = field(default_factory=dict)
    outputs: Dict[PinID, NodePin] = field(default_factory=dict)


class GraphValidator:
    """
    Validates a BlueprintFlowchartData document.

    Usage:
        report = GraphValidator(document).validate()
    """

    def __init__(self, document: BlueprintFlowchartData) -> None:
        self.document = document
        self._findings: List[Finding] = []
        self._nodes: Dict[NodeID, BlueprintNode] = {}
        self._pins: Dict[NodeID, _PinIndex] = {}
        self._valid_connections: List[BlueprintConnection] = []

    # --- Public API ---

    def validate(self) -> ValidationReport:
        self._findings = []
        self._build_indices()
        self._check_connections()
        self._check_variables()
        self._check_comments()
        self._check_required_inputs()
        self._check_node_data()
        self._check_execution_cycles()
        self._check_reachability()
        return ValidationReport(tuple(self._findings))

    # --- Pass 1: indices ---

    def _error(self, code: str, message: str, **refs) -> None:
        self._findings.append(Finding("error", code, message, **refs))

    def _warn(self, code: str, message: str, **refs) -> None:
        self._findings.append(Finding("warning", code, message, **refs))

    def _build_indices(self) -> None:
        self._nodes = {}
        self._pins = {}
        for node in self.document.nodes:
            if node.id in self._nodes:
                self._error("duplicate_node_id", f"Duplicate node id '{node.id}'", node_id=node.id)
                continue
            self._nodes[node.id] = node
            index = _PinIndex()
            seen_pin_ids: Set[PinID] = set()
            for direction, pins, target in (
                ("input", node.input_pins, index.inputs),
                ("output", node.output_pins, index.outputs),
            ):
                seen_names: Set[str] = set()
                for pin in pins:
                    if pin.id in seen_pin_ids:
                        self._error(
                            "duplicate_pin_id",
                            f"Node '{node.id}' has more than one pin with id '{pin.id}'",
                            node_id=node.id,
                            pin_id=pin.id,
                        )
                        continue
                    seen_pin_ids.add(pin.id)
                    if pin.name in seen_names:
                        self._error(
                            "duplicate_pin_name",
                            f"Node '{node.id}' has more than one {direction} pin named '{pin.name}'",
                            node_id=node.id,
                            pin_id=pin.id,
                        )
                    seen_names.add(pin.name)
                    target[pin.id] = pin
            self._pins[node.id] = index

    def _check_connections(self) -> None:
        self._valid_connections = []
        seen_ids: Set[str] = set()
        data_fan_in: Dict[Tuple[NodeID, PinID], str] = {}
        for conn in self.document.connections:
            if conn.id in seen_ids:
                self._error("duplicate_connection_id", f"Duplicate connection id '{conn.id}'", connection_id=conn.id)
                continue
            seen_ids.add(conn.id)

            source = self._resolve(conn, conn.from_node_id, conn.from_pin_id, "output")
            target = self._resolve(conn, conn.to_node_id, conn.to_pin_id, "input")
            if source is None or target is None:
                continue

            check = check_connection(source.type, target.type, conn.type)
            if not check.valid:
                self._error(
                    "type_mismatch",
                    f"Connection '{conn.id}': {check.reason}",
                    node_id=conn.to_node_id,
                    connection_id=conn.id,
                    pin_id=conn.to_pin_id,
                )
                continue

            if conn.type == "data":
                key = (conn.to_node_id, conn.to_pin_id)
                holder = data_fan_in.get(key)
                if holder is not None:
                    self._error(
                        "fan_in_violation",
                        f"Input '{conn.to_node_id}.{conn.to_pin_id}' already receives data from connection '{holder}'",
                        node_id=conn.to_node_id,
                        connection_id=conn.id,
                        pin_id=conn.to_pin_id,
                    )
                    continue
                data_fan_in[key] = conn.id
            self._valid_connections.append(conn)

    def _resolve(
        self,
        conn: BlueprintConnection,
        node_id: NodeID,
        pin_id: PinID,
        direction: str,
    ) -> Optional[NodePin]:
        end = "source" if direction == "output" else "target"
        if node_id not in self._nodes:
            self._error(
                "dangling_reference",
                f"Connection '{conn.id}' {end} node '{node_id}' does not exist",
                connection_id=conn.id,
            )
            return None
        index = self._pins[node_id]
        pins, other = (index.outputs, index.inputs) if direction == "output" else (index.inputs, index.outputs)
        pin = pins.get(pin_id)
        if pin is not None:
            return pin
        if pin_id in other:
            message = f"Connection '{conn.id}' {end} pin '{node_id}.{pin_id}' is not an {direction} pin"
        else:
            message = f"Connection '{conn.id}' {end} pin '{node_id}.{pin_id}' does not exist"
        self._error("dangling_reference", message, node_id=node_id, connection_id=conn.id, pin_id=pin_id)
        return None

    def _check_variables(self) -> None:
        ids: Set[str] = set()
        names: Set[str] = set()
        for variable in self.document.variables:
            if variable.id in ids:
                self._error("duplicate_variable_id", f"Duplicate variable id '{variable.id}'", variable_id=variable.id)
            if variable.name in names:
                self._error("duplicate_variable_name", f"Duplicate variable name '{variable.name}'", variable_id=variable.id)
            ids.add(variable.id)
            names.add(variable.name)

    def _check_comments(self) -> None:
        ids: Set[str] = set()
        for comment in self.document.comments:
            if comment.id in ids:
                self._error("duplicate_comment_id", f"Duplicate comment id '{comment.id}'", comment_id=comment.id)
            ids.add(comment.id)
            for node_id in comment.node_ids or []:
                if node_id not in self._nodes:
                    self._warn(
                        "comment_unknown_node",
                        f"Comment '{comment.id}' refers to missing node '{node_id}'",
                        comment_id=comment.id,
                    )

    def _check_required_inputs(self) -> None:
        connected: Set[Tuple[NodeID, PinID]] = {(c.to_node_id, c.to_pin_id) for c in self._valid_connections}
        for node_id, node in self._nodes.items():
            for pin in node.input_pins:
                if pin.required and not pin.has_default and (node_id, pin.id) not in connected:
                    self._warn(
                        "unconnected_required_input",
                        f"Required input '{pin.name}' on node '{node_id}' has no connection and no default value",
                        node_id=node_id,
                        pin_id=pin.id,
                    )

    def _check_node_data(self) -> None:
        for node_id, node in self._nodes.items():
            for problem in NodeRegistry.check_data(node):
                self._warn(
                    "data_schema",
                    f"Node '{node_id}' ({node.type}) {problem}",
                    node_id=node_id,
                )

    # --- Pass 2: execution subgraph ---

    def _execution_adjacency(self) -> Dict[NodeID, List[NodeID]]:
        adj: Dict[NodeID, List[NodeID]] = {node_id: [] for node_id in self._nodes}
        for conn in self._valid_connections:
            if conn.type == "execution" and conn.to_node_id not in adj[conn.from_node_id]:
                adj[conn.from_node_id].append(conn.to_node_id)
        return adj

    def _components(self, adj: Dict[NodeID, List[NodeID]]) -> Dict[NodeID, NodeID]:
        """Weakly connected components of the execution subgraph, keyed to a root node id."""
        parent: Dict[NodeID, NodeID] = {node_id: node_id for node_id in adj}

        def find(node_id: NodeID) -> NodeID:
            while parent[node_id] != node_id:
                parent[node_id] = parent[parent[node_id]]
                node_id = parent[node_id]
            return node_id

        for source, targets in adj.items():
            for target in targets:
                a, b = find(source), find(target)
                if a != b:
                    parent[b] = a
        return {node_id: find(node_id) for node_id in adj}

    def _check_execution_cycles(self) -> None:
        adj = self._execution_adjacency()
        component_of = self._components(adj)
        reported: Set[NodeID] = set()
        visited: Set[NodeID] = set()

        for start in adj:
            if start in visited:
                continue
            # Iterative DFS; path mirrors the recursion stack.
            path: List[NodeID] = [start]
            on_path: Set[NodeID] = {start}
            cursors: List[Iterable[NodeID]] = [iter(adj[start])]
            visited.add(start)
            while cursors:
                neighbor = next(cursors[-1], None)
                if neighbor is None:
                    cursors.pop()
                    on_path.discard(path.pop())
                    continue
                if neighbor in on_path:
                    component = component_of[neighbor]
                    if component not in reported:
                        reported.add(component)
                        cycle = path[path.index(neighbor):]
                        self._warn(
                            "execution_cycle",
                            "Execution cycle: " + " -> ".join(cycle + [neighbor]),
                            node_id=neighbor,
                            related=tuple(cycle),
                        )
                    continue
                if neighbor in visited:
                    continue
                visited.add(neighbor)
                path.append(neighbor)
                on_path.add(neighbor)
                cursors.append(iter(adj[neighbor]))

    def _check_reachability(self) -> None:
        """Nodes with execution inputs should be reachable from an entry node."""
        has_exec_input = {
            node_id for node_id, node in self._nodes.items()
            if any(p.type.is_execution for p in node.input_pins)
        }
        if not has_exec_input:
            return
        entries = [
            node_id for node_id, node in self._nodes.items()
            if node_id not in has_exec_input and any(p.type.is_execution for p in node.output_pins)
        ]
        if not entries:
            self._warn("no_entry_node", "No entry node: every execution node waits on an incoming execution connection")
            return
        adj = self._execution_adjacency()
        stack: List[NodeID] = list(entries)
        seen: Set[NodeID] = set()
        while stack:
            node_id = stack.pop()
            if node_id not in seen:
                seen.add(node_id)
                stack.extend(adj.get(node_id, []))
        for node_id in self._nodes:
            if node_id in has_exec_input and node_id not in seen:
                self._warn(
                    "unreachable_node",
                    f"Node '{node_id}' is not reachable from any entry node",
                    node_id=node_id,
                )


def validate(document: BlueprintFlowchartData) -> ValidationReport:
    """Validate a document and return its report."""
    return GraphValidator(document).validate()


def annotate(
    document: BlueprintFlowchartData,
    report: Optional[ValidationReport] = None,
) -> BlueprintFlowchartData:
    """
    Return a copy of ``document`` whose nodes carry their findings as
    ``errors`` / ``warnings``. The input document is not modified.
    """
    report = report if report is not None else validate(document)
    nodes = []
    for node in document.nodes:
        findings = report.for_node(node.id)
        if findings:
            node = node.model_copy(update={
                "errors": [f.message for f in findings if f.is_error],
                "warnings": [f.message for f in findings if not f.is_error],
            })
        elif node.errors is not None or node.warnings is not None:
            # Rebuild without the stale derived fields so they are not emitted on the wire.
            wire = node.to_wire()
            wire.pop("errors", None)
            wire.pop("warnings", None)
            node = BlueprintNode.model_validate(wire)
        nodes.append(node)
    return document.model_copy(update={"nodes": nodes})
