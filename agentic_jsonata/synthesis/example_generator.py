"""
Example generation: seeds the synthesis loop with labeled inputs.

Given an expression that extracts something from a document, its output on a
sample, and a description, the LLM proposes true and false example documents.
A response is accepted only if the expression produces a non-empty result on
every true example; otherwise the prompt is extended with feedback and the
request repeats, up to the configured number of attempts.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Tuple

from agentic_jsonata.synthesis.errors import ExampleGenerationError
from agentic_jsonata.synthesis.evaluator import evaluate_expression
from agentic_jsonata.synthesis.llm_client import LLMClient
from agentic_jsonata.synthesis.models import ExampleSet
from agentic_jsonata.synthesis.prompts import build_example_messages

LOG = logging.getLogger("synthesis.example_generator")


def validate_example(expression: str, example: Any) -> Tuple[bool, Any]:
    """
    Apply the expression to an example.

    Valid means the result is not null/undefined, not an empty array and not
    an empty object. Evaluation errors make the example invalid.
    """
    try:
        result = evaluate_expression(expression, example)
    except Exception as exc:  # noqa: BLE001 - a failing example is simply invalid
        LOG.debug("Example failed validation: %s", exc)
        return False, None

    if result is None:
        return False, result
    if isinstance(result, (list, dict)) and len(result) == 0:
        return False, result
    return True, result


def _parse_response(text: str) -> Optional[Tuple[List[Any], List[Any]]]:
    try:
        payload = json.loads(text or "{}")
    except json.JSONDecodeError:
        LOG.warning("Example response is not valid JSON")
        return None
    if not isinstance(payload, dict):
        return None
    true_examples = payload.get("trueExamples")
    false_examples = payload.get("falseExamples")
    if not isinstance(true_examples, list) or not isinstance(false_examples, list):
        LOG.warning("Example response is missing trueExamples/falseExamples arrays")
        return None
    return true_examples, false_examples


class ExampleGenerator:
    def __init__(self, llm_client: LLMClient, attempts: int = 3, per_polarity: int = 3) -> None:
        self._llm = llm_client
        self._attempts = attempts
        self._per_polarity = per_polarity

    async def generate(self, expression: str, output: Any, description: str) -> ExampleSet:
        feedback: List[str] = []
        for attempt in range(1, self._attempts + 1):
            LOG.info("Example generation attempt %d of %d", attempt, self._attempts)
            messages = build_example_messages(
                expression, output, description, self._per_polarity, feedback
            )
            response = await self._llm.complete(messages, json_mode=True)
            parsed = _parse_response(response)

            if parsed is not None:
                true_examples, false_examples = parsed
                checks = [validate_example(expression, example) for example in true_examples]
                if checks and all(valid for valid, _ in checks):
                    LOG.info("Generated %d true and %d false examples", len(true_examples), len(false_examples))
                    return ExampleSet(
                        true_examples=true_examples,
                        false_examples=false_examples,
                        true_example_outputs=[out for _, out in checks],
                        false_example_outputs=[
                            validate_example(expression, example)[1] for example in false_examples
                        ],
                    )

            LOG.info("Validation failed, retrying with updated prompt")
            feedback.append(
                "Previous attempt failed validation. Please ensure the trueExamples produce "
                f"output similar to: {json.dumps(output, indent=2, default=str)}"
            )

        raise ExampleGenerationError(
            f"Failed to generate valid test examples after {self._attempts} attempts"
        )
