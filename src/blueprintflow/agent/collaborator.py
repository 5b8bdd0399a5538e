"""
Language-model collaborators.

The planner talks to any object with an async ``complete(system_prompt,
user_prompt) -> str`` method. GeminiCollaborator is the production adapter,
built on langchain-google-genai. ``call_collaborator`` bounds a call with a
timeout and turns every provider failure into CollaboratorUnavailable, so
callers can tell "the assistant is down" apart from "the assistant proposed
something invalid".
"""

import asyncio
from typing import Any, Optional, Protocol, runtime_checkable

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from blueprintflow.exceptions import CollaboratorUnavailable
from blueprintflow.settings import Settings, get_settings
from blueprintflow.utilities.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class LanguageModelCollaborator(Protocol):
    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        ...


def _message_text(content: Any) -> str:
    """Flatten a chat message content (string or list of parts) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return str(content)


class GeminiCollaborator:
    """
    Gemini chat model via langchain-google-genai.

    The client is created on first use so a missing API key surfaces as a
    collaborator failure on the chat turn, not at import time.
    """

    def __init__(
        self,
        model: str = "gemini-2.5-flash",
        api_key: Optional[str] = None,
        temperature: float = 0.7,
        max_output_tokens: int = 1024,
        timeout: float = 30.0,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self._api_key = api_key
        self._llm: Optional[ChatGoogleGenerativeAI] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "GeminiCollaborator":
        settings = settings or get_settings()
        return cls(
            model=settings.gemini_model,
            api_key=settings.gemini_api_key,
            temperature=settings.temperature,
            max_output_tokens=settings.max_output_tokens,
            timeout=settings.collaborator_timeout,
        )

    def _client(self) -> ChatGoogleGenerativeAI:
        if self._llm is None:
            kwargs = {
                "model": self.model,
                "temperature": self.temperature,
                "max_output_tokens": self.max_output_tokens,
                "timeout": self.timeout,
            }
            # Without an explicit key the client reads GOOGLE_API_KEY.
            if self._api_key:
                kwargs["google_api_key"] = self._api_key
            self._llm = ChatGoogleGenerativeAI(**kwargs)
        return self._llm

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        response = await self._client().ainvoke([
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_prompt),
        ])
        return _message_text(response.content)


async def call_collaborator(
    collaborator: LanguageModelCollaborator,
    system_prompt: str,
    user_prompt: str,
    timeout: float,
) -> str:
    """
    Run one collaborator call under ``timeout`` seconds.

    Cancellation propagates unchanged.

    Raises:
        CollaboratorUnavailable: On timeout or any provider error.
    """
    try:
        return await asyncio.wait_for(collaborator.complete(system_prompt, user_prompt), timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning("Collaborator timed out after %.1fs", timeout)
        raise CollaboratorUnavailable(
            f"The assistant did not respond within {timeout:g} seconds",
            details={"timeout": timeout},
        ) from e
    except CollaboratorUnavailable:
        raise
    except Exception as e:
        logger.warning("Collaborator call failed: %s", e)
        raise CollaboratorUnavailable.from_exception(e) from e
