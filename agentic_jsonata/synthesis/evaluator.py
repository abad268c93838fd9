"""
Evaluator: runs a candidate JSONata expression against labeled examples.

Every failure mode is recorded on the outcome rather than raised, so one bad
example never stops its siblings from being evaluated:

    - syntax:     the expression does not parse ("Invalid syntax: ...")
    - evaluation: the expression fails at runtime ("Evaluation failed: ...")
    - type:       the result is not exactly true or false
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Any, Iterable, List

import jsonata

from agentic_jsonata.synthesis.models import EvaluationOutcome, FaultKind

LOG = logging.getLogger("synthesis.evaluator")


def describe_value(value: Any) -> str:
    """JSON rendering of an evaluation result for error messages."""
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return repr(value)


def _error_text(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


def compile_expression(expression: str) -> jsonata.Jsonata:
    """Parse an expression, raising whatever the JSONata parser raises."""
    return jsonata.Jsonata(expression)


def evaluate_expression(expression: str, document: Any) -> Any:
    """Parse and evaluate in one step. Errors propagate to the caller."""
    return compile_expression(expression).evaluate(copy.deepcopy(document))


def _judge(compiled: jsonata.Jsonata, example: Any, expected: bool) -> EvaluationOutcome:
    try:
        result = compiled.evaluate(copy.deepcopy(example))
    except Exception as exc:  # noqa: BLE001 - any runtime failure is outcome data
        return EvaluationOutcome(
            example=example,
            passed=False,
            error=f"Evaluation failed: {_error_text(exc)}",
            fault=FaultKind.EVALUATION,
        )

    # bool is checked by type: 1 == True in Python but is not a boolean result.
    if not isinstance(result, bool):
        return EvaluationOutcome(
            example=example,
            passed=False,
            error=f"Expression must return exactly true or false, got: {describe_value(result)}",
            fault=FaultKind.TYPE,
        )

    return EvaluationOutcome(
        example=example,
        passed=result is expected,
        output=result,
        has_output=True,
    )


def evaluate(expression: str, example: Any, expected: bool) -> EvaluationOutcome:
    """Evaluate one expression against one example with the expected polarity."""
    try:
        compiled = compile_expression(expression)
    except Exception as exc:  # noqa: BLE001
        return EvaluationOutcome(
            example=example,
            passed=False,
            error=f"Invalid syntax: {_error_text(exc)}",
            fault=FaultKind.SYNTAX,
        )
    return _judge(compiled, example, expected)


def evaluate_all(expression: str, examples: Iterable[Any], expected: bool) -> List[EvaluationOutcome]:
    """
    Evaluate an expression against every example, one outcome per example.

    The expression is parsed once; a parse failure is reported on each
    example's outcome so the result stays aligned with the input.
    """
    examples = list(examples)
    try:
        compiled = compile_expression(expression)
    except Exception as exc:  # noqa: BLE001
        error = f"Invalid syntax: {_error_text(exc)}"
        LOG.debug("Expression %r does not parse: %s", expression, exc)
        return [
            EvaluationOutcome(example=example, passed=False, error=error, fault=FaultKind.SYNTAX)
            for example in examples
        ]

    outcomes = [_judge(compiled, example, expected) for example in examples]
    LOG.debug(
        "Evaluated %r against %d %s examples: %d passed",
        expression,
        len(outcomes),
        "positive" if expected else "negative",
        sum(1 for o in outcomes if o.passed),
    )
    return outcomes
