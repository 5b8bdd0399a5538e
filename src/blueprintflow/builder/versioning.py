"""
Version arena for a single document.

Each committed document is stored as an immutable snapshot under a
monotonically increasing version number. ``commit`` is a compare-and-swap on
the latest-version pointer: the caller names the version it based its edit on,
and a stale base raises VersionConflict without applying anything.

The lock only guards apply + validate + pointer swap. Slow work such as the
assistant round trip happens before ``commit`` is called.
"""

import datetime
import threading
from dataclasses import dataclass, replace
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from blueprintflow.builder.mutation_engine import MutationEngine, MutationOutcome
from blueprintflow.builder.operations import Operation
from blueprintflow.builder.types import BlueprintFlowchartData
from blueprintflow.exceptions import NotFoundError, VersionConflict
from blueprintflow.utilities.logging import get_logger

logger = get_logger(__name__)

RecordKind = Literal["commit", "undo", "redo"]


@dataclass(frozen=True)
class MutationRecord:
    """Audit entry: (old version, new version, applied operations)."""

    base_version: int
    new_version: int
    operations: Tuple[Operation, ...]
    origin: str
    timestamp: datetime.datetime
    kind: RecordKind = "commit"
    reverts: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "baseVersion": self.base_version,
            "newVersion": self.new_version,
            "operations": [op.to_wire() for op in self.operations],
            "origin": self.origin,
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind,
            "reverts": self.reverts,
        }


class VersionedDocument:
    """
    Arena of immutable document snapshots with optimistic concurrency.

    Usage:
        versions = VersionedDocument(document)
        outcome = versions.commit(versions.latest_version, ops, origin="ui")

    ``base_version`` numbers the initial snapshot, so an arena reopened from a
    stored document continues its version sequence.
    """

    def __init__(
        self,
        document: Optional[BlueprintFlowchartData] = None,
        engine: Optional[MutationEngine] = None,
        base_version: int = 0,
    ) -> None:
        if base_version < 0:
            raise ValueError("base_version must not be negative")
        self._engine = engine or MutationEngine()
        self._snapshots: Dict[int, BlueprintFlowchartData] = {
            base_version: document if document is not None else BlueprintFlowchartData.empty()
        }
        self._latest = base_version
        self._records: List[MutationRecord] = []
        self._undo_stack: List[MutationRecord] = []
        self._redo_stack: List[MutationRecord] = []
        self._lock = threading.Lock()

    # --- Read access ---

    @property
    def latest_version(self) -> int:
        return self._latest

    @property
    def current(self) -> BlueprintFlowchartData:
        return self._snapshots[self._latest]

    def get(self, version: Optional[int] = None) -> BlueprintFlowchartData:
        version = self._latest if version is None else version
        try:
            return self._snapshots[version]
        except KeyError:
            raise NotFoundError(f"Version {version} does not exist", details={"version": version}) from None

    def versions(self) -> List[int]:
        return sorted(self._snapshots)

    def history(self) -> List[MutationRecord]:
        return list(self._records)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    # --- Writes ---

    def _check_base(self, base_version: int) -> None:
        if base_version != self._latest:
            raise VersionConflict(
                f"Base version {base_version} is stale; latest is {self._latest}",
                details={"base_version": base_version, "latest_version": self._latest},
            )

    def _store(
        self,
        document: BlueprintFlowchartData,
        operations: Sequence[Operation],
        origin: str,
        kind: RecordKind,
        reverts: Optional[int] = None,
    ) -> MutationRecord:
        record = MutationRecord(
            base_version=self._latest,
            new_version=self._latest + 1,
            operations=tuple(operations),
            origin=origin,
            timestamp=datetime.datetime.now(datetime.timezone.utc),
            kind=kind,
            reverts=reverts,
        )
        self._snapshots[record.new_version] = document
        self._latest = record.new_version
        self._records.append(record)
        return record

    def commit(
        self,
        base_version: int,
        operations: Sequence[Operation],
        origin: str = "ui",
    ) -> MutationOutcome:
        """
        Apply ``operations`` on top of ``base_version``.

        Returns the engine outcome with ``version`` set to the new version on
        commit, or to the unchanged latest version on rejection.

        Raises:
            VersionConflict: If ``base_version`` is not the latest version.
            DuplicateId, InvalidReference, TypeMismatch, FanInViolation:
                A primitive rejected an operation.
        """
        with self._lock:
            self._check_base(base_version)
            outcome = self._engine.apply(self._snapshots[self._latest], operations)
            if not outcome.committed:
                return replace(outcome, version=self._latest)
            record = self._store(outcome.document, outcome.applied, origin, "commit")
            self._undo_stack.append(record)
            self._redo_stack.clear()
            logger.info("Committed version %d from %s", record.new_version, origin)
            return replace(outcome, version=record.new_version)

    def undo(self, base_version: int, origin: str = "ui") -> MutationRecord:
        """
        Re-commit the pre-image of the most recent undoable mutation as a new version.

        Raises:
            VersionConflict: If ``base_version`` is not the latest version.
            NotFoundError: If there is nothing to undo.
        """
        with self._lock:
            self._check_base(base_version)
            if not self._undo_stack:
                raise NotFoundError("Nothing to undo")
            target = self._undo_stack.pop()
            record = self._store(self._snapshots[target.base_version], (), origin, "undo", reverts=target.new_version)
            self._redo_stack.append(target)
            logger.info("Undo of version %d stored as version %d", target.new_version, record.new_version)
            return record

    def redo(self, base_version: int, origin: str = "ui") -> MutationRecord:
        """
        Re-commit the post-image of the most recently undone mutation as a new version.

        Raises:
            VersionConflict: If ``base_version`` is not the latest version.
            NotFoundError: If there is nothing to redo.
        """
        with self._lock:
            self._check_base(base_version)
            if not self._redo_stack:
                raise NotFoundError("Nothing to redo")
            target = self._redo_stack.pop()
            record = self._store(
                self._snapshots[target.new_version], target.operations, origin, "redo", reverts=target.new_version
            )
            self._undo_stack.append(target)
            logger.info("Redo of version %d stored as version %d", target.new_version, record.new_version)
            return record
