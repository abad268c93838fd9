"""
Candidate generation: one LLM call per iteration producing the next expression.

The response is not validated here; a bad candidate simply fails evaluation
on the next pass of the loop.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence, Tuple

from agentic_jsonata.synthesis.documentation import DocumentationSelector
from agentic_jsonata.synthesis.llm_client import LLMClient
from agentic_jsonata.synthesis.models import EvaluationOutcome, LearningState
from agentic_jsonata.synthesis.prompts import build_candidate_messages

LOG = logging.getLogger("synthesis.generator")


def extract_expression(text: str | None) -> str:
    """The response trimmed of surrounding whitespace, otherwise verbatim."""
    return (text or "").strip()


class CandidateGenerator:
    """Builds the candidate prompt and asks the LLM for the next expression."""

    def __init__(self, llm_client: LLMClient, selector: DocumentationSelector) -> None:
        self._llm = llm_client
        self._selector = selector

    async def generate_next(
        self,
        current_expression: str,
        positive_examples: Sequence[Any],
        negative_examples: Sequence[Any],
        task_description: str,
        prior_outcomes: Sequence[EvaluationOutcome],
        learning_state: LearningState,
    ) -> Tuple[str, Tuple[str, ...]]:
        """Return ``(next_expression, documentation)``."""
        documentation, reference_text = await self._selector.select(
            task_description,
            current_expression,
            positive_examples,
            negative_examples,
            pinned=learning_state.selected_documentation,
        )

        messages = build_candidate_messages(
            task_description,
            current_expression,
            positive_examples,
            negative_examples,
            prior_outcomes,
            learning_state,
            reference_text,
        )
        LOG.debug("Candidate prompt:\n%s", messages[-1].content)

        response = await self._llm.complete(messages)
        expression = extract_expression(response)
        if not expression:
            LOG.warning("LLM returned an empty candidate")
        return expression, documentation
