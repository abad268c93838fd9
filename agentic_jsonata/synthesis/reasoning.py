"""Failure analysis carried into the next candidate prompt as ``last_reasoning``."""

from __future__ import annotations

import logging
from typing import Sequence

from agentic_jsonata.synthesis.documentation import DocumentationSelector
from agentic_jsonata.synthesis.llm_client import LLMClient
from agentic_jsonata.synthesis.models import ChatMessage, EvaluationOutcome, LearningState
from agentic_jsonata.synthesis.prompts import build_reasoning_prompt

LOG = logging.getLogger("synthesis.reasoning")


class ReasoningGenerator:
    def __init__(self, llm_client: LLMClient, selector: DocumentationSelector) -> None:
        self._llm = llm_client
        self._selector = selector

    async def explain_failures(
        self,
        current_expression: str,
        outcomes: Sequence[EvaluationOutcome],
        learning_state: LearningState,
        task_description: str,
    ) -> str:
        """Ask the LLM why the expression fails; the trimmed answer is returned as-is."""
        _, reference_text = await self._selector.select(
            task_description,
            current_expression,
            [],
            [],
            pinned=learning_state.selected_documentation,
        )
        prompt = build_reasoning_prompt(
            current_expression,
            task_description,
            outcomes,
            learning_state,
            reference_text,
        )
        LOG.debug("Reasoning prompt:\n%s", prompt)
        response = await self._llm.complete([ChatMessage("user", prompt)])
        return (response or "").strip()
