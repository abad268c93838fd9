"""
Shared test fixtures and pytest configuration.

Markers:
    @pytest.mark.integration  — Requires a cloud LLM API key

Run stringent tests:
    pytest -m integration             # only tests that call a real model
    pytest -m "not integration"       # skip them (fast CI)
"""

import os
from typing import Callable, List, Optional, Sequence

import pytest

from agentic_jsonata.synthesis.documentation import InMemoryDocumentStore
from agentic_jsonata.synthesis.llm_client import MockLLMClient
from agentic_jsonata.synthesis.models import ChatMessage

DOC_MARKER = "Which documentation files would help"
REASONING_MARKER = "Analyze this JSONata expression"


def _llm_configured() -> bool:
    return bool(
        os.environ.get("AGENTIC_JSONATA_LLM_API_KEY")
        or os.environ.get("OPENAI_API_KEY")
        or os.environ.get("ANTHROPIC_API_KEY")
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: requires a reachable LLM backend")


def pytest_collection_modifyitems(config, items):
    """Auto-skip tests whose infrastructure requirements are not met."""
    if _llm_configured():
        return
    skip_llm = pytest.mark.skip(reason="No LLM API key configured")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_llm)


def kind_of(messages: Sequence[ChatMessage]) -> str:
    """Classify a conversation the loop sends: 'documentation', 'reasoning' or 'candidate'."""
    content = messages[-1].content
    if DOC_MARKER in content:
        return "documentation"
    if REASONING_MARKER in content:
        return "reasoning"
    return "candidate"


class ScriptedLLM(MockLLMClient):
    """
    Answers documentation, reasoning and candidate prompts separately.

    Candidates are served in order; the last one repeats once the list is used up.
    """

    def __init__(
        self,
        candidates: List[str],
        selection: str = '["comparison-operators"]',
        reasoning: str = "Compare the field with = instead.",
        on_candidate: Optional[Callable[[int], None]] = None,
    ) -> None:
        super().__init__(handler=self._answer)
        self._candidates = list(candidates)
        self._selection = selection
        self._reasoning = reasoning
        self._on_candidate = on_candidate
        self.candidate_calls = 0
        self.reasoning_calls = 0
        self.documentation_calls = 0

    def _answer(self, messages: List[ChatMessage]) -> str:
        kind = kind_of(messages)
        if kind == "documentation":
            self.documentation_calls += 1
            return self._selection
        if kind == "reasoning":
            self.reasoning_calls += 1
            return self._reasoning
        index = min(self.candidate_calls, len(self._candidates) - 1)
        self.candidate_calls += 1
        if self._on_candidate is not None:
            self._on_candidate(self.candidate_calls)
        return self._candidates[index]

    def calls_of(self, kind: str) -> List[List[ChatMessage]]:
        return [call for call in self.calls if kind_of(call) == kind]


@pytest.fixture
def doc_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(
        {
            "comparison-operators": "Use = to compare values; the result is a boolean.",
            "boolean-functions": "$exists(arg) returns true when arg has a value.",
            "empty-page": "",
        }
    )


@pytest.fixture
def scripted_llm():
    """Factory for ScriptedLLM instances."""
    return ScriptedLLM
