"""
BlueprintFlow builder: the graph document model and its edit pipeline.

- types: pydantic models for the document and its wire format
- type_lattice: pin kind compatibility
- graph_validator: findings for every integrity violation
- operations / document / mutation_engine: atomic, validated edit batches
- versioning: immutable snapshots with compare-and-swap commits
- json_graph: wire codec, atomic files, legacy import
"""

from blueprintflow.builder.document import DocumentEditor
from blueprintflow.builder.graph_validator import Finding, GraphValidator, ValidationReport, annotate, validate
from blueprintflow.builder.mutation_engine import MutationEngine, MutationOutcome
from blueprintflow.builder.operations import Operation, parse_operations
from blueprintflow.builder.type_lattice import check_connection, compatible
from blueprintflow.builder.types import (
    BlueprintConnection,
    BlueprintFlowchartData,
    BlueprintNode,
    CommentBox,
    FlowchartVariable,
    NodePin,
    PinKind,
    ViewportState,
)
from blueprintflow.builder.versioning import MutationRecord, VersionedDocument

__all__ = [
    "BlueprintConnection",
    "BlueprintFlowchartData",
    "BlueprintNode",
    "CommentBox",
    "DocumentEditor",
    "Finding",
    "FlowchartVariable",
    "GraphValidator",
    "MutationEngine",
    "MutationOutcome",
    "MutationRecord",
    "NodePin",
    "Operation",
    "PinKind",
    "ValidationReport",
    "VersionedDocument",
    "ViewportState",
    "annotate",
    "check_connection",
    "compatible",
    "parse_operations",
    "validate",
]
