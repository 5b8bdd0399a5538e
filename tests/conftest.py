"""
Pytest configuration and fixtures for BlueprintFlow.

- Reusable documents for validator, engine and planner tests.
- A file store rooted in a temp directory, a manager wired to it, an HTTP
  test client and a CLI runner.
"""

from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from typer.testing import CliRunner

from blueprintflow.agent.planner import ConversationPlanner
from blueprintflow.builder.flowchart_manager import FlowchartManager
from blueprintflow.builder.types import BlueprintFlowchartData
from blueprintflow.persistence import FileDocumentStore
from blueprintflow.server import create_app

from tests.factories import ScriptedCollaborator, connect, document, exec_node, node, plan_response

# --- Documents ---

@pytest.fixture
def exec_chain() -> BlueprintFlowchartData:
    """A -> B over one execution connection ``c1``. A is the entry node."""
    return document(
        exec_node("A", entry=True),
        exec_node("B"),
        connections=[connect("c1", "A.out", "B.in", "execution")],
    )


@pytest.fixture
def number_and_string() -> BlueprintFlowchartData:
    """A produces a number on ``result``; B takes a string on ``value``. Nothing connected."""
    return document(
        node("A", outputs=[("result", "number")]),
        node("B", inputs=[("value", "string")]),
    )


@pytest.fixture
def data_chain() -> BlueprintFlowchartData:
    """A.result (number) feeds B.value (number) over ``c1``; C.result is a second number source."""
    return document(
        node("A", outputs=[("result", "number")]),
        node("B", inputs=[("value", "number")]),
        node("C", outputs=[("result", "number")]),
        connections=[connect("c1", "A.result", "B.value")],
    )

# --- Services ---

@pytest.fixture
def store(tmp_path: Path) -> FileDocumentStore:
    return FileDocumentStore(base_dir=str(tmp_path / "storage"))


@pytest.fixture
def collaborator() -> ScriptedCollaborator:
    return ScriptedCollaborator(plan_response("Nothing to change."))


@pytest.fixture
def planner(collaborator: ScriptedCollaborator) -> ConversationPlanner:
    return ConversationPlanner(collaborator, history_exchanges=5, timeout=5.0)


@pytest.fixture
def manager(store: FileDocumentStore, planner: ConversationPlanner) -> FlowchartManager:
    return FlowchartManager(store=store, planner=planner)


@pytest.fixture
def client(manager: FlowchartManager) -> Iterator[TestClient]:
    with TestClient(create_app(manager)) as test_client:
        yield test_client


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()
