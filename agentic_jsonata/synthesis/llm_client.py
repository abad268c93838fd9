"""
Abstract LLM client used by every component that talks to a model.

Defines the LLMClient ABC and MockLLMClient for testing.
Cloud and local backends are in separate modules (cloud_llm.py, local_llm.py).

One client is built at process start and injected into the selector and the
generators; nothing in the synthesis package reaches for a global client.
"""

from __future__ import annotations

import abc
import logging
from typing import Callable, List, Optional, Sequence

from agentic_jsonata.synthesis.models import ChatMessage

LOG = logging.getLogger("synthesis.llm_client")

Handler = Callable[[List[ChatMessage]], Optional[str]]


class LLMClient(abc.ABC):
    """Abstract base class for chat-completion backends."""

    @abc.abstractmethod
    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        json_mode: bool = False,
    ) -> str:
        """
        Send an ordered conversation and return the raw response text.

        Returns "" when the model answered with no content. Raises LLMError
        when the backend could not be reached or answered malformed data.
        """
        ...

    async def close(self) -> None:
        """Clean up resources (e.g., HTTP clients). Override if needed."""
        pass


class MockLLMClient(LLMClient):
    """
    Mock LLM client for testing.

    Answers from a handler when one is given, otherwise cycles through canned
    responses. Every conversation it receives is kept in ``calls``.
    """

    def __init__(
        self,
        responses: Optional[List[str]] = None,
        handler: Optional[Handler] = None,
    ) -> None:
        self._responses = responses or []
        self._handler = handler
        self.calls: List[List[ChatMessage]] = []
        self.json_mode_calls = 0

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        json_mode: bool = False,
    ) -> str:
        conversation = list(messages)
        self.calls.append(conversation)
        if json_mode:
            self.json_mode_calls += 1
        if self._handler is not None:
            return self._handler(conversation) or ""
        if self._responses:
            return self._responses[(len(self.calls) - 1) % len(self._responses)]
        return "true"

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def prompts(self) -> List[str]:
        """Last message content of every call, in call order."""
        return [call[-1].content for call in self.calls if call]
