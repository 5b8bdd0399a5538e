"""Conversation history entries and truncation."""

from typing import List, Literal, Sequence

from pydantic import BaseModel, ConfigDict


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: Literal["user", "assistant"]
    content: str


def truncate_history(history: Sequence[ChatMessage], exchanges: int) -> List[ChatMessage]:
    """Keep the most recent ``exchanges`` message/response pairs, oldest first."""
    if exchanges <= 0:
        return []
    return list(history[-2 * exchanges:])
