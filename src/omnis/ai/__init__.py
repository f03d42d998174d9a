"""Offline document assistant: heuristic text analytics."""

from .analytics import AssistantAnswer, AssistantMode, QueryIntent, answer_query
from .assistant import AssistantLatency, DocumentAssistant

__all__ = [
    "AssistantAnswer",
    "AssistantLatency",
    "AssistantMode",
    "DocumentAssistant",
    "QueryIntent",
    "answer_query",
]
