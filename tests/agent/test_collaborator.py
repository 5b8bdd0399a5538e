import asyncio

import pytest

from blueprintflow.agent.collaborator import (
    GeminiCollaborator,
    LanguageModelCollaborator,
    _message_text,
    call_collaborator,
)
from blueprintflow.exceptions import CollaboratorUnavailable
from blueprintflow.settings import Settings

from tests.factories import GatedCollaborator, ScriptedCollaborator


def test_fakes_satisfy_protocol():
    assert isinstance(ScriptedCollaborator("x"), LanguageModelCollaborator)
    assert isinstance(GeminiCollaborator(), LanguageModelCollaborator)


def test_gemini_collaborator_reads_settings():
    settings = Settings(gemini_model="gemini-test", temperature=0.1, max_output_tokens=256, collaborator_timeout=9)
    collaborator = GeminiCollaborator.from_settings(settings)
    assert (collaborator.model, collaborator.temperature, collaborator.max_output_tokens, collaborator.timeout) == (
        "gemini-test", 0.1, 256, 9.0,
    )


@pytest.mark.parametrize("content, text", [
    ("plain", "plain"),
    ([{"type": "text", "text": "a"}, "b", {"type": "image_url", "image_url": "x"}], "ab"),
])
def test_message_text_flattens_parts(content, text):
    assert _message_text(content) == text


def test_call_returns_reply():
    reply = asyncio.run(call_collaborator(ScriptedCollaborator("done"), "system", "user", 1.0))
    assert reply == "done"


def test_provider_error_becomes_unavailable():
    with pytest.raises(CollaboratorUnavailable) as exc_info:
        asyncio.run(call_collaborator(ScriptedCollaborator(ConnectionError("reset")), "s", "u", 1.0))
    assert "ConnectionError" in exc_info.value.details["original_exception"]


def test_timeout_becomes_unavailable():
    with pytest.raises(CollaboratorUnavailable) as exc_info:
        asyncio.run(call_collaborator(GatedCollaborator({}, hold=["u"]), "s", "u", 0.01))
    assert exc_info.value.details == {"timeout": 0.01}


def test_cancellation_propagates():
    collaborator = GatedCollaborator({}, hold=["u"])

    async def scenario():
        task = asyncio.ensure_future(call_collaborator(collaborator, "s", "u", 5.0))
        await asyncio.sleep(0.01)
        task.cancel()
        await task

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(scenario())
    assert collaborator.cancelled == ["u"]
