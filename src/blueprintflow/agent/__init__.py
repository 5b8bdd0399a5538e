"""Assistant layer: collaborator adapters, plan parsing and the conversation planner."""

from blueprintflow.agent.collaborator import GeminiCollaborator, LanguageModelCollaborator, call_collaborator
from blueprintflow.agent.history import ChatMessage, truncate_history
from blueprintflow.agent.plan_parser import Plan, parse_plan
from blueprintflow.agent.planner import ChatSession, ChatTurnResult, ConversationPlanner

__all__ = [
    "ChatMessage",
    "ChatSession",
    "ChatTurnResult",
    "ConversationPlanner",
    "GeminiCollaborator",
    "LanguageModelCollaborator",
    "Plan",
    "call_collaborator",
    "parse_plan",
    "truncate_history",
]
