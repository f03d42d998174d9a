"""Assistant facade pairing the analytics engine with mode-specific latency."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from .analytics import AssistantAnswer, AssistantMode, answer_query

__all__ = ["AssistantLatency", "DocumentAssistant"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AssistantLatency:
    """Simulated response delay, in seconds, per mode."""

    cloud: float = 0.8
    local: float = 0.3

    def for_mode(self, mode: AssistantMode) -> float:
        return max(0.0, self.cloud if mode is AssistantMode.CLOUD else self.local)


class DocumentAssistant:
    """Answers questions about document text.

    Holds only the selected mode and latency configuration; no conversation
    state is kept between calls.
    """

    def __init__(
        self,
        mode: AssistantMode = AssistantMode.CLOUD,
        *,
        latency: AssistantLatency | None = None,
    ) -> None:
        self._mode = mode
        self._latency = latency or AssistantLatency()

    @property
    def mode(self) -> AssistantMode:
        return self._mode

    def set_mode(self, mode: AssistantMode | str) -> None:
        self._mode = AssistantMode(mode)

    def answer(self, query: str, document_text: str) -> AssistantAnswer:
        return answer_query(query, document_text, self._mode)

    async def ask(self, query: str, document_text: str) -> AssistantAnswer:
        """Answer after the mode's simulated latency."""

        mode = self._mode
        delay = self._latency.for_mode(mode)
        if delay:
            await asyncio.sleep(delay)
        answer = answer_query(query, document_text, mode)
        LOGGER.debug("Assistant answered %s query in %s mode", answer.intent.value, mode.value)
        return answer
