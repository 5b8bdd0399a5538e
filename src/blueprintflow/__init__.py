"""BlueprintFlow - a blueprint-style flowchart builder with an assistant that edits the graph."""

from importlib.metadata import version as _version

from blueprintflow.builder.graph_validator import ValidationReport, validate
from blueprintflow.builder.mutation_engine import MutationEngine, MutationOutcome
from blueprintflow.builder.types import BlueprintFlowchartData
from blueprintflow.builder.versioning import VersionedDocument

__version__: str = _version("blueprintflow")

__all__ = [
    "BlueprintFlowchartData",
    "MutationEngine",
    "MutationOutcome",
    "ValidationReport",
    "VersionedDocument",
    "validate",
]
