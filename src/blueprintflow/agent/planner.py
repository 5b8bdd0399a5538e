"""
Conversation-to-Mutation Planner

Bridges a free-form chat message to the strict primitive-operation vocabulary.

Turn lifecycle
--------------
1. Build one request (system rules + node catalog + serialized document +
   truncated history + message) and send it to the language-model collaborator.
   This is the only slow step and it holds no lock.
2. Parse the response into a Plan (explanation + operations). Unparseable or
   out-of-grammar output is a MalformedPlan.
3. Hand the operations to the mutation engine, or commit them through a
   VersionedDocument. The atomic accept/reject outcome is the turn's result.

Failure modes
-------------
- CollaboratorUnavailable (timeout, provider error) is raised to the caller.
- MalformedPlan, structural errors, stale base versions and validation
  rejection are reported in ``ChatTurnResult.rejection``; the document comes
  back unchanged and the explanation is always present.
- Non-recoverable errors (index corruption) propagate.

ChatSession adds the stateful parts: it owns the conversation history and
supersedes an in-flight turn when a new message arrives. The superseded turn
is cancelled, and if its response still arrives it is discarded, never applied.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from blueprintflow.agent.collaborator import LanguageModelCollaborator, call_collaborator
from blueprintflow.agent.history import ChatMessage, truncate_history
from blueprintflow.agent.plan_parser import Plan, parse_plan
from blueprintflow.agent.prompts import build_system_prompt, build_user_prompt
from blueprintflow.builder.graph_validator import ValidationReport, validate
from blueprintflow.builder.json_graph import document_to_dict
from blueprintflow.builder.mutation_engine import MutationEngine, MutationOutcome
from blueprintflow.builder.operations import Operation
from blueprintflow.builder.types import BlueprintFlowchartData
from blueprintflow.builder.versioning import VersionedDocument
from blueprintflow.exceptions import BlueprintFlowError, MalformedPlan, ValidationRejected
from blueprintflow.settings import get_settings
from blueprintflow.utilities.logging import get_logger

logger = get_logger(__name__)

ASSISTANT_ORIGIN = "assistant"


@dataclass(frozen=True)
class ChatTurnResult:
    explanation: str
    document: BlueprintFlowchartData
    applied: bool
    findings: ValidationReport
    operations: Tuple[Operation, ...] = ()
    rejection: Optional[Dict[str, Any]] = None
    version: Optional[int] = None
    discarded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "explanation": self.explanation,
            "flowchart": document_to_dict(self.document),
            "applied": self.applied,
            "operations": [op.to_wire() for op in self.operations],
            "findings": self.findings.to_list(),
            "rejection": self.rejection,
            "version": self.version,
            "discarded": self.discarded,
        }


def _rejected(
    explanation: str,
    document: BlueprintFlowchartData,
    error: BlueprintFlowError,
    report: Optional[ValidationReport] = None,
    version: Optional[int] = None,
) -> ChatTurnResult:
    if not error.recoverable:
        raise error
    return ChatTurnResult(
        explanation=explanation,
        document=document,
        applied=False,
        findings=report if report is not None else ValidationReport(),
        rejection=error.to_dict(),
        version=version,
    )


class ConversationPlanner:
    """
    Turns chat messages into committed (or rejected) mutation batches.

    Usage:
        planner = ConversationPlanner(GeminiCollaborator.from_settings())
        result = await planner.chat("add a delay after the trigger", document, history)
    """

    def __init__(
        self,
        collaborator: LanguageModelCollaborator,
        *,
        history_exchanges: Optional[int] = None,
        timeout: Optional[float] = None,
        engine: Optional[MutationEngine] = None,
    ) -> None:
        settings = get_settings()
        self.collaborator = collaborator
        self.history_exchanges = settings.history_exchanges if history_exchanges is None else history_exchanges
        self.timeout = settings.collaborator_timeout if timeout is None else timeout
        self.engine = engine or MutationEngine()

    # --- Plan ---

    async def plan(
        self,
        message: str,
        document: BlueprintFlowchartData,
        history: Sequence[ChatMessage] = (),
    ) -> Plan:
        """
        Ask the collaborator for a plan.

        Raises:
            CollaboratorUnavailable: If the collaborator fails or times out.
            MalformedPlan: If the response is not a plan in the operation grammar.
        """
        recent = truncate_history(history, self.history_exchanges)
        response = await call_collaborator(
            self.collaborator,
            build_system_prompt(),
            build_user_prompt(message, document, recent),
            self.timeout,
        )
        plan = parse_plan(response)
        logger.debug("Parsed plan with %d operation(s)", len(plan.operations))
        return plan

    # --- Apply ---

    def _result(self, plan: Plan, outcome: MutationOutcome) -> ChatTurnResult:
        rejection = None
        if not outcome.committed:
            rejection = ValidationRejected(outcome.report).to_dict()
        return ChatTurnResult(
            explanation=plan.explanation,
            document=outcome.document,
            applied=outcome.committed,
            findings=outcome.report,
            operations=outcome.applied,
            rejection=rejection,
            version=outcome.version,
        )

    def apply_plan(self, plan: Plan, document: BlueprintFlowchartData) -> ChatTurnResult:
        if not plan.operations:
            return ChatTurnResult(plan.explanation, document, False, validate(document))
        try:
            outcome = self.engine.apply(document, plan.operations)
        except BlueprintFlowError as e:
            logger.info("Assistant plan rejected: %s", e.message)
            return _rejected(plan.explanation, document, e)
        return self._result(plan, outcome)

    def commit_plan(self, plan: Plan, versions: VersionedDocument, base_version: int) -> ChatTurnResult:
        if not plan.operations:
            document = versions.get(base_version)
            return ChatTurnResult(plan.explanation, document, False, validate(document), version=base_version)
        try:
            outcome = versions.commit(base_version, plan.operations, origin=ASSISTANT_ORIGIN)
        except BlueprintFlowError as e:
            logger.info("Assistant plan rejected: %s", e.message)
            return _rejected(plan.explanation, versions.current, e, version=versions.latest_version)
        return self._result(plan, outcome)

    # --- One-shot turn ---

    async def chat(
        self,
        message: str,
        document: BlueprintFlowchartData,
        history: Sequence[ChatMessage] = (),
    ) -> ChatTurnResult:
        """
        Run one stateless chat turn against ``document``.

        Raises:
            CollaboratorUnavailable: If the collaborator fails or times out.
        """
        try:
            plan = await self.plan(message, document, history)
        except MalformedPlan as e:
            return _rejected(malformed_explanation(e), document, e, report=validate(document))
        return self.apply_plan(plan, document)


def discarded_result(document: BlueprintFlowchartData, version: Optional[int]) -> ChatTurnResult:
    return ChatTurnResult(
        explanation="",
        document=document,
        applied=False,
        findings=ValidationReport(),
        version=version,
        discarded=True,
    )


def malformed_explanation(error: MalformedPlan) -> str:
    return f"I could not turn that into changes to the flowchart ({error.message}). Nothing was changed."


@dataclass
class ChatSession:
    """
    Stateful chat over one versioned document.

    Sending a new message while a turn is in flight cancels that turn; its
    result comes back with ``discarded=True`` and nothing is applied.
    """

    planner: ConversationPlanner
    versions: VersionedDocument
    history: List[ChatMessage] = field(default_factory=list)
    _generation: int = field(default=0, init=False, repr=False)
    _inflight: Optional["asyncio.Task[Plan]"] = field(default=None, init=False, repr=False)

    def cancel(self) -> None:
        """
        Abandon the in-flight turn, if any. Safe to call from a thread other
        than the one running the turn's event loop.
        """
        self._generation += 1
        task = self._inflight
        if task is None or task.done():
            return
        loop = task.get_loop()
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            task.cancel()
        else:
            loop.call_soon_threadsafe(task.cancel)

    def _discarded(self, base_version: int) -> ChatTurnResult:
        logger.warning("Discarding stale assistant response for base version %d", base_version)
        return discarded_result(self.versions.current, self.versions.latest_version)

    def _remember(self, message: str, explanation: str) -> None:
        self.history.append(ChatMessage(role="user", content=message))
        self.history.append(ChatMessage(role="assistant", content=explanation))

    async def send(self, message: str) -> ChatTurnResult:
        """
        Run a chat turn against the latest version.

        Raises:
            CollaboratorUnavailable: If the collaborator fails or times out.
        """
        self.cancel()
        generation = self._generation
        base_version = self.versions.latest_version
        document = self.versions.get(base_version)

        task = asyncio.ensure_future(self.planner.plan(message, document, list(self.history)))
        self._inflight = task
        try:
            plan = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                return self._discarded(base_version)
            raise
        except MalformedPlan as e:
            if generation != self._generation:
                return self._discarded(base_version)
            explanation = malformed_explanation(e)
            self._remember(message, explanation)
            return _rejected(explanation, self.versions.current, e, version=self.versions.latest_version)
        except BlueprintFlowError:
            if generation != self._generation:
                return self._discarded(base_version)
            raise
        finally:
            if self._inflight is task:
                self._inflight = None

        if generation != self._generation:
            return self._discarded(base_version)
        result = self.planner.commit_plan(plan, self.versions, base_version)
        self._remember(message, plan.explanation)
        return result
