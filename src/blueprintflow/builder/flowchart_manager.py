"""
BlueprintFlow Flowchart Manager

Service layer over the document model, the persistence gateway and the
assistant. The HTTP API and the CLI talk to this class, never to the store
directly.

Features:
- Validate and mutate documents (stateless, for UI round trips).
- Save, fetch, list, update and delete stored flowcharts per owner. A document
  whose validation report has errors is never persisted.
- Versioned editing sessions per stored flowchart: commits go through the
  compare-and-swap version arena and each committed version is written back
  to the store. Version numbers continue from the stored version, also across
  replacements and restarts, so a token never names two different documents.
- Store writes for one flowchart are serialized by a per-flowchart lock, and
  only the head of the live arena is ever written.
- Assistant chat, both one-shot and through a per-flowchart ChatSession.
- Event hooks for flowchart lifecycle and mutation outcomes.
"""

import asyncio
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from blueprintflow.agent.collaborator import GeminiCollaborator
from blueprintflow.agent.history import ChatMessage
from blueprintflow.agent.planner import ChatSession, ChatTurnResult, ConversationPlanner, discarded_result
from blueprintflow.builder.graph_validator import ValidationReport, validate
from blueprintflow.builder.mutation_engine import MutationEngine, MutationOutcome
from blueprintflow.builder.operations import Operation
from blueprintflow.builder.types import BlueprintFlowchartData
from blueprintflow.builder.versioning import VersionedDocument
from blueprintflow.exceptions import NotFoundError, ValidationRejected, VersionConflict
from blueprintflow.persistence import FileDocumentStore, PersistenceGateway, StoredDocument, StoredDocumentSummary
from blueprintflow.settings import get_settings
from blueprintflow.utilities.logging import get_logger

logger = get_logger(__name__)

EventCallback = Callable[[str, Dict[str, Any]], Any]
SessionKey = Tuple[str, str]


# --- Event Bus with Async Support ---
class EventBus:
    """
    Simple event bus supporting sync and async event hooks.
    A failing subscriber is logged and does not stop the others.
    """
    def __init__(self) -> None:
        self._subscribers: Dict[str, List[EventCallback]] = {}

    def subscribe(self, event_type: str, callback: EventCallback) -> None:
        self._subscribers.setdefault(event_type, []).append(callback)

    def publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        for cb in self._subscribers.get(event_type, []):
            try:
                cb(event_type, payload)
            except Exception:
                logger.exception("EventBus callback for %s failed", event_type)

    async def publish_async(self, event_type: str, payload: Dict[str, Any]) -> None:
        for cb in self._subscribers.get(event_type, []):
            try:
                if asyncio.iscoroutinefunction(cb):
                    await cb(event_type, payload)
                else:
                    cb(event_type, payload)
            except Exception:
                logger.exception("EventBus async callback for %s failed", event_type)


class FlowchartManager:
    """
    Orchestrates validation, mutation, persistence and assistant chat for flowcharts.
    """

    def __init__(
        self,
        store: Optional[PersistenceGateway] = None,
        planner: Optional[ConversationPlanner] = None,
        engine: Optional[MutationEngine] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._store = store or FileDocumentStore(get_settings().storage_dir)
        self._planner = planner
        self._engine = engine or MutationEngine()
        self._event_bus = event_bus or EventBus()
        self._versions: Dict[SessionKey, VersionedDocument] = {}
        self._chat_sessions: Dict[SessionKey, ChatSession] = {}
        self._document_locks: Dict[SessionKey, threading.RLock] = {}
        self._lock = threading.Lock()

    @property
    def store(self) -> PersistenceGateway:
        return self._store

    @property
    def planner(self) -> ConversationPlanner:
        if self._planner is None:
            self._planner = ConversationPlanner(GeminiCollaborator.from_settings())
        return self._planner

    # --- Stateless document operations ---

    def validate(self, document: BlueprintFlowchartData) -> ValidationReport:
        return validate(document)

    def apply(self, document: BlueprintFlowchartData, operations: Sequence[Operation]) -> MutationOutcome:
        outcome = self._engine.apply(document, operations)
        self._publish_outcome(outcome, origin="ui")
        return outcome

    def _publish_outcome(self, outcome: MutationOutcome, origin: str, **extra: Any) -> None:
        event = "mutation_committed" if outcome.committed else "mutation_rejected"
        self._event_bus.publish(event, {
            "origin": origin,
            "operations": len(outcome.applied),
            "errors": len(outcome.report.errors),
            "warnings": len(outcome.report.warnings),
            "version": outcome.version,
            **extra,
        })

    # --- Persistence ---

    def _require_valid(self, document: BlueprintFlowchartData) -> ValidationReport:
        report = validate(document)
        if report.has_errors:
            raise ValidationRejected(report, "Refusing to persist a flowchart with validation errors")
        return report

    def save(
        self,
        owner_id: str,
        name: str,
        document: BlueprintFlowchartData,
        description: Optional[str] = None,
    ) -> StoredDocument:
        """
        Persist a new flowchart.

        Raises:
            ValidationRejected: If the document has error-level findings.
        """
        self._require_valid(document)
        stored = self._store.save(owner_id, name, document, description)
        self._event_bus.publish("flowchart_saved", {"owner_id": owner_id, "document_id": stored.id})
        logger.info("Flowchart %s saved by %s", stored.id, owner_id)
        return stored

    def fetch(self, owner_id: str, document_id: str) -> StoredDocument:
        """
        Raises:
            NotFoundError: If the owner has no such flowchart.
        """
        stored = self._store.fetch(owner_id, document_id)
        if stored is None:
            raise NotFoundError(
                f"Flowchart '{document_id}' not found",
                details={"owner_id": owner_id, "document_id": document_id},
            )
        return stored

    def list_flowcharts(self, owner_id: str) -> List[StoredDocumentSummary]:
        return self._store.list_by_owner(owner_id)

    def update(
        self,
        owner_id: str,
        document_id: str,
        *,
        name: Optional[str] = None,
        document: Optional[BlueprintFlowchartData] = None,
        description: Optional[str] = None,
        base_version: Optional[int] = None,
    ) -> StoredDocument:
        """
        A new document is stored as the next version. It closes any open
        editing session and cancels that session's in-flight chat turn.

        Raises:
            ValidationRejected: If the new document has error-level findings.
            VersionConflict: If ``base_version`` is given and stale.
            NotFoundError: If the owner has no such flowchart.
        """
        if document is not None:
            self._require_valid(document)
        key = (owner_id, document_id)
        with self._document_lock(key):
            version: Optional[int] = None
            if document is not None or base_version is not None:
                latest = self._latest_version(owner_id, document_id)
                if base_version is not None and base_version != latest:
                    raise VersionConflict(
                        f"Base version {base_version} is stale; latest is {latest}",
                        details={"base_version": base_version, "latest_version": latest},
                    )
                if document is not None:
                    version = latest + 1
            stored = self._store.update(
                owner_id, document_id, name=name, document=document, description=description, version=version
            )
            if document is not None:
                with self._lock:
                    self._close_session(key)
        self._event_bus.publish("flowchart_updated", {"owner_id": owner_id, "document_id": document_id})
        return stored

    def delete(self, owner_id: str, document_id: str) -> bool:
        key = (owner_id, document_id)
        with self._document_lock(key):
            deleted = self._store.delete(owner_id, document_id)
            with self._lock:
                self._close_session(key)
        if deleted:
            self._event_bus.publish("flowchart_deleted", {"owner_id": owner_id, "document_id": document_id})
            logger.info("Flowchart %s deleted by %s", document_id, owner_id)
        else:
            logger.warning("Attempted to delete non-existent flowchart %s", document_id)
        return deleted

    # --- Versioned editing sessions ---

    def _document_lock(self, key: SessionKey) -> threading.RLock:
        with self._lock:
            return self._document_locks.setdefault(key, threading.RLock())

    def _close_session(self, key: SessionKey) -> None:
        """Drop the arena and chat session for ``key``. Caller holds ``_lock``."""
        session = self._chat_sessions.pop(key, None)
        if session is not None:
            session.cancel()
        self._versions.pop(key, None)

    def _latest_version(self, owner_id: str, document_id: str) -> int:
        with self._lock:
            versions = self._versions.get((owner_id, document_id))
        if versions is not None:
            return versions.latest_version
        return self.fetch(owner_id, document_id).version

    def _write_back(
        self,
        key: SessionKey,
        versions: VersionedDocument,
        version: Optional[int],
        document: BlueprintFlowchartData,
    ) -> bool:
        """
        Persist ``document`` as ``version`` if it is still the head of the live
        arena. Caller holds the document lock.
        """
        with self._lock:
            live = self._versions.get(key) is versions
        if not live or version != versions.latest_version:
            logger.debug("Skipping write of version %s for %s: superseded", version, key[1])
            return False
        self._store.update(key[0], key[1], document=document, version=version)
        return True

    def open_session(self, owner_id: str, document_id: str) -> VersionedDocument:
        """
        Return the version arena for a stored flowchart, loading it on first use.
        The arena continues from the stored version.
        """
        key = (owner_id, document_id)
        with self._lock:
            versions = self._versions.get(key)
        if versions is not None:
            return versions
        with self._document_lock(key):
            stored = self.fetch(owner_id, document_id)
            with self._lock:
                return self._versions.setdefault(
                    key, VersionedDocument(stored.document, self._engine, base_version=stored.version)
                )

    def commit(
        self,
        owner_id: str,
        document_id: str,
        base_version: int,
        operations: Sequence[Operation],
        origin: str = "ui",
    ) -> MutationOutcome:
        """
        Commit a batch to a stored flowchart and write the new version back.

        Raises:
            VersionConflict: If ``base_version`` is stale.
            NotFoundError: If the owner has no such flowchart.
        """
        key = (owner_id, document_id)
        with self._document_lock(key):
            versions = self.open_session(owner_id, document_id)
            outcome = versions.commit(base_version, operations, origin=origin)
            if outcome.committed:
                self._write_back(key, versions, outcome.version, outcome.document)
        self._publish_outcome(outcome, origin, owner_id=owner_id, document_id=document_id)
        return outcome

    # --- Assistant ---

    async def chat(
        self,
        message: str,
        document: BlueprintFlowchartData,
        history: Sequence[ChatMessage] = (),
    ) -> ChatTurnResult:
        """
        One-shot assistant turn against a client-held document.

        Raises:
            CollaboratorUnavailable: If the assistant is down.
        """
        result = await self.planner.chat(message, document, history)
        await self._event_bus.publish_async(
            "chat_turn", {"applied": result.applied, "rejected": result.rejection is not None}
        )
        return result

    def chat_session(self, owner_id: str, document_id: str) -> ChatSession:
        versions = self.open_session(owner_id, document_id)
        key = (owner_id, document_id)
        with self._lock:
            session = self._chat_sessions.get(key)
            if session is None or session.versions is not versions:
                session = ChatSession(self.planner, versions)
                self._chat_sessions[key] = session
            return session

    async def chat_turn(self, owner_id: str, document_id: str, message: str) -> ChatTurnResult:
        """
        Assistant turn against a stored flowchart. An applied turn is written back to the store.

        If the flowchart is replaced or deleted while the assistant is thinking,
        the turn comes back discarded and nothing is written.

        Raises:
            CollaboratorUnavailable: If the assistant is down.
            NotFoundError: If the owner has no such flowchart.
        """
        key = (owner_id, document_id)
        session = self.chat_session(owner_id, document_id)
        result = await session.send(message)
        if result.applied:
            with self._document_lock(key):
                with self._lock:
                    live = self._versions.get(key) is session.versions
                if live:
                    self._write_back(key, session.versions, result.version, result.document)
            if not live:
                logger.warning("Discarding assistant turn for %s: the flowchart was replaced", document_id)
                stored = self._store.fetch(owner_id, document_id)
                if stored is None:
                    return discarded_result(BlueprintFlowchartData.empty(), None)
                return discarded_result(stored.document, stored.version)
        if not result.discarded:
            await self._event_bus.publish_async("chat_turn", {
                "applied": result.applied,
                "rejected": result.rejection is not None,
                "owner_id": owner_id,
                "document_id": document_id,
                "version": result.version,
            })
        return result

    # --- Event Hooks ---

    def subscribe_to_event(self, event_type: str, callback: EventCallback) -> None:
        self._event_bus.subscribe(event_type, callback)

    def on_flowchart_saved(self, callback: EventCallback) -> None:
        self.subscribe_to_event("flowchart_saved", callback)

    def on_flowchart_updated(self, callback: EventCallback) -> None:
        self.subscribe_to_event("flowchart_updated", callback)

    def on_flowchart_deleted(self, callback: EventCallback) -> None:
        self.subscribe_to_event("flowchart_deleted", callback)

    def on_mutation_committed(self, callback: EventCallback) -> None:
        self.subscribe_to_event("mutation_committed", callback)

    def on_mutation_rejected(self, callback: EventCallback) -> None:
        self.subscribe_to_event("mutation_rejected", callback)

    def on_chat_turn(self, callback: EventCallback) -> None:
        self.subscribe_to_event("chat_turn", callback)
