"""
Atomic mutation batches.

MutationEngine.apply takes an ordered list of primitive operations and the
document they target:

1. A working copy of the document is created; the input is never modified.
2. Each operation is expanded (``remove_node`` becomes one ``remove_connection``
   per incident connection followed by the ``remove_node`` itself) and applied.
   A structural error raised by a primitive aborts the batch and propagates.
3. The Validation Engine runs once over the working copy.
4. Any error finding discards the batch: the outcome carries the original
   document object and the report. Otherwise the annotated working copy is
   the new document.

The applied list in the outcome is the expanded, resolved batch, so replaying
it against the base document reproduces the result.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from blueprintflow.builder.document import DocumentEditor
from blueprintflow.builder.graph_validator import ValidationReport, annotate, validate
from blueprintflow.builder.operations import Operation, RemoveConnection, RemoveNode
from blueprintflow.builder.types import BlueprintFlowchartData
from blueprintflow.exceptions import ValidationRejected
from blueprintflow.utilities.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class MutationOutcome:
    document: BlueprintFlowchartData
    committed: bool
    report: ValidationReport
    applied: Tuple[Operation, ...] = ()
    base: Optional[BlueprintFlowchartData] = None
    version: Optional[int] = None

    @property
    def rejected(self) -> bool:
        return not self.committed

    def raise_for_rejection(self) -> "MutationOutcome":
        if not self.committed:
            raise ValidationRejected(self.report)
        return self


@dataclass
class MutationEngine:
    """Applies operation batches with all-or-nothing semantics."""

    annotate_findings: bool = True

    @staticmethod
    def expand(editor: DocumentEditor, operation: Operation) -> List[Operation]:
        """The primitive operations ``operation`` implies against the editor's current state."""
        if isinstance(operation, RemoveNode) and editor.has_node(operation.node_id):
            steps: List[Operation] = [
                RemoveConnection(connection_id=c.id)
                for c in editor.incident_connections(operation.node_id)
            ]
            steps.append(operation)
            return steps
        return [operation]

    def apply(
        self,
        document: BlueprintFlowchartData,
        operations: Sequence[Operation],
    ) -> MutationOutcome:
        """
        Apply a batch atomically.

        Raises:
            DuplicateId, InvalidReference, TypeMismatch, FanInViolation:
                A primitive rejected an operation; nothing is applied.
        """
        editor = DocumentEditor(document)
        applied: List[Operation] = []
        for operation in operations:
            for step in self.expand(editor, operation):
                applied.append(step.apply(editor))
                logger.debug("applied %s", step.describe())

        report = validate(editor.document)
        if report.has_errors:
            logger.info(
                "Mutation batch rejected: %d operation(s), %d error(s)",
                len(applied), len(report.errors),
            )
            return MutationOutcome(
                document=document,
                committed=False,
                report=report,
                applied=tuple(applied),
                base=document,
            )

        new_document = annotate(editor.document, report) if self.annotate_findings else editor.document
        logger.info(
            "Mutation batch committed: %d operation(s), %d warning(s)",
            len(applied), len(report.warnings),
        )
        return MutationOutcome(
            document=new_document,
            committed=True,
            report=report,
            applied=tuple(applied),
            base=document,
        )
