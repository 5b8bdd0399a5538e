"""
BlueprintFlow HTTP API

This FastAPI application exposes the flowchart builder to the UI:
- assistant chat, stateless (``POST /api/flowchart/ai-chat``) or against a
  stored flowchart with server-side history (``POST /api/flowchart/{id}/ai-chat``)
- validation and stateless mutation batches
- saved flowcharts per owner, plus versioned commits against a saved flowchart.
  Every stored flowchart response carries its ``version``, the token to send
  back as ``baseVersion``.
- the node type catalog

All request and response bodies use the camelCase wire format. The owner is
read from the ``X-Owner-Id`` header; authentication happens upstream.
BlueprintFlowError subclasses map to status codes in one exception handler.
"""

from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from blueprintflow.agent.history import ChatMessage
from blueprintflow.builder.flowchart_manager import FlowchartManager
from blueprintflow.builder.graph_validator import annotate
from blueprintflow.builder.json_graph import document_to_dict
from blueprintflow.builder.mutation_engine import MutationOutcome
from blueprintflow.builder.nodes import NodeRegistry
from blueprintflow.builder.operations import Operation
from blueprintflow.builder.types import BlueprintFlowchartData
from blueprintflow.exceptions import (
    BlueprintFlowError,
    CollaboratorUnavailable,
    DuplicateId,
    FanInViolation,
    InvalidReference,
    MalformedPlan,
    NotFoundError,
    SerializationError,
    TypeMismatch,
    ValidationRejected,
    VersionConflict,
)
from blueprintflow.persistence import StoredDocument
from blueprintflow.utilities.logging import get_logger

logger = get_logger(__name__)

UNPROCESSABLE = 422

STATUS_BY_ERROR = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (DuplicateId, status.HTTP_409_CONFLICT),
    (VersionConflict, status.HTTP_409_CONFLICT),
    (CollaboratorUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (InvalidReference, UNPROCESSABLE),
    (TypeMismatch, UNPROCESSABLE),
    (FanInViolation, UNPROCESSABLE),
    (ValidationRejected, UNPROCESSABLE),
    (MalformedPlan, UNPROCESSABLE),
    (SerializationError, UNPROCESSABLE),
)


def status_for(error: BlueprintFlowError) -> int:
    for error_type, code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# --- Pydantic Models ---

class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class ChatRequest(ApiModel):
    message: str = Field(min_length=1)
    current_flowchart: BlueprintFlowchartData
    conversation_history: List[ChatMessage] = Field(default_factory=list)


class SessionChatRequest(ApiModel):
    message: str = Field(min_length=1)


class MutationRequest(ApiModel):
    flowchart: BlueprintFlowchartData
    operations: List[Operation]


class CommitRequest(ApiModel):
    base_version: int = Field(ge=0)
    operations: List[Operation]


class SaveRequest(ApiModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    flowchart: BlueprintFlowchartData


class UpdateRequest(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    flowchart: Optional[BlueprintFlowchartData] = None
    base_version: Optional[int] = Field(default=None, ge=0)


# --- Serialization helpers ---

def stored_to_dict(stored: StoredDocument) -> Dict[str, Any]:
    payload = stored.model_dump(mode="json", by_alias=True, exclude={"document"})
    payload["flowchart"] = document_to_dict(stored.document)
    return payload


def outcome_to_dict(outcome: MutationOutcome) -> Dict[str, Any]:
    return {
        "committed": outcome.committed,
        "flowchart": document_to_dict(outcome.document),
        "applied": [op.to_wire() for op in outcome.applied],
        "findings": outcome.report.to_list(),
        "version": outcome.version,
    }


# --- Dependencies ---

def get_manager(request: Request) -> FlowchartManager:
    manager = getattr(request.app.state, "manager", None)
    if manager is None:
        manager = FlowchartManager()
        request.app.state.manager = manager
    return manager


def get_owner_id(x_owner_id: Optional[str] = Header(default=None)) -> str:
    if not x_owner_id or not x_owner_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-Owner-Id header")
    return x_owner_id.strip()


def create_app(manager: Optional[FlowchartManager] = None) -> FastAPI:
    app = FastAPI(
        title="BlueprintFlow",
        version="0.1.0",
        description="Blueprint-style flowchart builder with an assistant that edits the graph.",
        openapi_tags=[
            {"name": "Assistant", "description": "Chat-driven flowchart edits."},
            {"name": "Flowcharts", "description": "Validation, mutation and storage of flowcharts."},
            {"name": "Utility", "description": "Node type catalog."},
        ],
    )
    app.state.manager = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BlueprintFlowError)
    async def blueprintflow_error_handler(request: Request, exc: BlueprintFlowError) -> JSONResponse:
        code = status_for(exc)
        if code >= 500:
            logger.error("%s on %s: %s", exc.__class__.__name__, request.url.path, exc.message)
        return JSONResponse(status_code=code, content=exc.to_dict())

    # --- Assistant ---

    @app.post("/api/flowchart/ai-chat", tags=["Assistant"])
    async def ai_chat(body: ChatRequest, manager: FlowchartManager = Depends(get_manager)) -> Dict[str, Any]:
        result = await manager.chat(body.message, body.current_flowchart, body.conversation_history)
        history = list(body.conversation_history)
        if not result.discarded:
            history.append(ChatMessage(role="user", content=body.message))
            history.append(ChatMessage(role="assistant", content=result.explanation))
        payload = result.to_dict()
        payload["conversationHistory"] = [m.model_dump() for m in history]
        return payload

    @app.post("/api/flowchart/{document_id}/ai-chat", tags=["Assistant"])
    async def stored_ai_chat(
        document_id: str,
        body: SessionChatRequest,
        owner_id: str = Depends(get_owner_id),
        manager: FlowchartManager = Depends(get_manager),
    ) -> Dict[str, Any]:
        result = await manager.chat_turn(owner_id, document_id, body.message)
        payload = result.to_dict()
        session = manager.chat_session(owner_id, document_id)
        payload["conversationHistory"] = [m.model_dump() for m in session.history]
        return payload

    # --- Flowcharts (stateless) ---

    @app.post("/api/flowchart/validate", tags=["Flowcharts"])
    def validate_flowchart(
        document: BlueprintFlowchartData,
        manager: FlowchartManager = Depends(get_manager),
    ) -> Dict[str, Any]:
        report = manager.validate(document)
        return {
            "valid": not report.has_errors,
            "findings": report.to_list(),
            "flowchart": document_to_dict(annotate(document, report)),
        }

    @app.post("/api/flowchart/mutations", tags=["Flowcharts"])
    def apply_mutations(body: MutationRequest, manager: FlowchartManager = Depends(get_manager)) -> Dict[str, Any]:
        outcome = manager.apply(body.flowchart, body.operations)
        outcome.raise_for_rejection()
        return outcome_to_dict(outcome)

    # --- Flowcharts (stored) ---

    @app.get("/api/flowchart", tags=["Flowcharts"])
    def list_flowcharts(
        owner_id: str = Depends(get_owner_id),
        manager: FlowchartManager = Depends(get_manager),
    ) -> Dict[str, Any]:
        summaries = manager.list_flowcharts(owner_id)
        return {"flowcharts": [s.model_dump(mode="json", by_alias=True) for s in summaries]}

    @app.post("/api/flowchart", tags=["Flowcharts"], status_code=status.HTTP_201_CREATED)
    def save_flowchart(
        body: SaveRequest,
        owner_id: str = Depends(get_owner_id),
        manager: FlowchartManager = Depends(get_manager),
    ) -> Dict[str, Any]:
        return stored_to_dict(manager.save(owner_id, body.name, body.flowchart, body.description))

    @app.get("/api/flowchart/{document_id}", tags=["Flowcharts"])
    def get_flowchart(
        document_id: str,
        owner_id: str = Depends(get_owner_id),
        manager: FlowchartManager = Depends(get_manager),
    ) -> Dict[str, Any]:
        return stored_to_dict(manager.fetch(owner_id, document_id))

    @app.put("/api/flowchart/{document_id}", tags=["Flowcharts"])
    def update_flowchart(
        document_id: str,
        body: UpdateRequest,
        owner_id: str = Depends(get_owner_id),
        manager: FlowchartManager = Depends(get_manager),
    ) -> Dict[str, Any]:
        stored = manager.update(
            owner_id,
            document_id,
            name=body.name,
            document=body.flowchart,
            description=body.description,
            base_version=body.base_version,
        )
        return stored_to_dict(stored)

    @app.delete("/api/flowchart/{document_id}", tags=["Flowcharts"])
    def delete_flowchart(
        document_id: str,
        owner_id: str = Depends(get_owner_id),
        manager: FlowchartManager = Depends(get_manager),
    ) -> Dict[str, Any]:
        if not manager.delete(owner_id, document_id):
            raise NotFoundError(f"Flowchart '{document_id}' not found", details={"document_id": document_id})
        return {"deleted": True, "id": document_id}

    @app.post("/api/flowchart/{document_id}/mutations", tags=["Flowcharts"])
    def commit_mutations(
        document_id: str,
        body: CommitRequest,
        owner_id: str = Depends(get_owner_id),
        manager: FlowchartManager = Depends(get_manager),
    ) -> Dict[str, Any]:
        outcome = manager.commit(owner_id, document_id, body.base_version, body.operations)
        outcome.raise_for_rejection()
        return outcome_to_dict(outcome)

    # --- Utility ---

    @app.get("/api/node-types", tags=["Utility"])
    def list_node_types() -> Dict[str, Any]:
        return {"nodeTypes": [spec.summary() for spec in NodeRegistry.specs()]}

    return app


app = create_app()
