"""
Synthesis loop: iterate generate → evaluate → analyze → emit until every
example passes.

States per iteration:
1. GENERATING  ask the LLM for the next candidate (documentation is selected
               and frozen on the first call)
2. EVALUATING  run the candidate over the positive, then the negative examples
               and recompute the working/failed pattern sets
3. REASONING   only when something failed: ask the LLM to analyze the failures
4. EMITTING    hand the iteration record to the caller's sink

Terminal states: success (all passed), cancelled, exhausted (iteration cap),
timeout (duration cap) and failed (run-level fault). Cancellation is checked
at every suspension point; once observed, nothing more is emitted.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from agentic_jsonata.config import SynthesisConfig
from agentic_jsonata.synthesis.documentation import DocumentationSelector, DocumentStore
from agentic_jsonata.synthesis.errors import RunCancelled
from agentic_jsonata.synthesis.evaluator import evaluate_all
from agentic_jsonata.synthesis.generator import CandidateGenerator
from agentic_jsonata.synthesis.llm_client import LLMClient
from agentic_jsonata.synthesis.models import (
    Candidate,
    EvaluationOutcome,
    IterationRecord,
    LearningState,
    RunResult,
    RunStatus,
    SynthesisRequest,
)
from agentic_jsonata.synthesis.patterns import PatternExtractor, RegexPatternExtractor
from agentic_jsonata.synthesis.reasoning import ReasoningGenerator

LOG = logging.getLogger("synthesis.loop")

RecordSink = Callable[[IterationRecord], Awaitable[None]]


class CancellationToken:
    """Cooperative cancellation flag shared between a run and its caller."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled("Synthesis cancelled by caller")


def partition_patterns(
    extractor: PatternExtractor,
    expression: str,
    outcomes: Sequence[EvaluationOutcome],
) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    """Working and failed pattern sets for one iteration, in first-seen order."""
    working: dict[str, None] = {}
    failed: dict[str, None] = {}
    for outcome in outcomes:
        pattern = extractor.extract(expression, outcome.example)
        if pattern is None:
            continue
        if outcome.passed:
            working.setdefault(pattern)
        else:
            failed.setdefault(pattern)
    return tuple(working), tuple(failed)


class SynthesisLoop:
    """
    Drives one synthesis run per ``run()`` call.

    The loop holds no per-run state between calls; each run builds its own
    LearningState, so concurrent runs on one instance are independent.
    """

    def __init__(
        self,
        config: SynthesisConfig,
        llm_client: LLMClient,
        document_store: DocumentStore,
        pattern_extractor: Optional[PatternExtractor] = None,
    ) -> None:
        self._config = config
        selector = DocumentationSelector(llm_client, document_store)
        self._generator = CandidateGenerator(llm_client, selector)
        self._reasoner = ReasoningGenerator(llm_client, selector)
        self._patterns = pattern_extractor or RegexPatternExtractor()

    def _guard(self, iterations: int, start_time: float) -> Optional[Tuple[RunStatus, str]]:
        cap = self._config.max_iterations
        if cap and iterations >= cap:
            return RunStatus.EXHAUSTED, f"No passing expression after {iterations} iterations"
        limit = self._config.max_duration_seconds
        elapsed = time.monotonic() - start_time
        if limit and elapsed > limit:
            return RunStatus.TIMEOUT, f"Synthesis timeout after {elapsed:.1f}s"
        return None

    async def run(
        self,
        request: SynthesisRequest,
        sink: RecordSink,
        token: Optional[CancellationToken] = None,
    ) -> RunResult:
        """
        Run the loop to a terminal state, delivering one record per iteration.

        Returns a RunResult for every terminal state. Run-level faults are
        logged and reported as FAILED; asyncio cancellation of the task
        itself is recorded and re-raised.
        """
        token = token or CancellationToken()
        start_time = time.monotonic()
        result = RunResult()
        state = LearningState()
        positives = list(request.positive_examples)
        negatives = list(request.negative_examples)
        current = request.initial_expression
        prior_outcomes: List[EvaluationOutcome] = []

        LOG.info(
            "Run %s: starting synthesis for %r (%d positive, %d negative examples)",
            result.id,
            request.task_description[:80],
            len(positives),
            len(negatives),
        )

        try:
            while True:
                if result.iterations:
                    stop = self._guard(result.iterations, start_time)
                    if stop is not None:
                        result.status, result.error_message = stop
                        LOG.info("Run %s: %s", result.id, result.error_message)
                        break

                # GENERATING
                token.raise_if_cancelled()
                expression, documentation = await self._generator.generate_next(
                    current,
                    positives,
                    negatives,
                    request.task_description,
                    prior_outcomes,
                    state,
                )
                token.raise_if_cancelled()
                candidate = Candidate(expression=expression, iteration=result.iterations)
                state.freeze_documentation(documentation)
                current = candidate.expression

                # EVALUATING
                outcomes = evaluate_all(current, positives, True) + evaluate_all(current, negatives, False)
                state.working_patterns, state.failed_patterns = partition_patterns(
                    self._patterns, current, outcomes
                )
                all_passed = all(o.passed for o in outcomes)

                # REASONING
                if not all_passed:
                    token.raise_if_cancelled()
                    state.last_reasoning = await self._reasoner.explain_failures(
                        current, outcomes, state, request.task_description
                    )

                # EMITTING
                token.raise_if_cancelled()
                record = IterationRecord(
                    index=candidate.iteration,
                    expression=current,
                    outcomes=tuple(outcomes),
                    documentation=state.selected_documentation or (),
                    learning_state=state.snapshot(),
                )
                await sink(record)
                result.iterations += 1
                result.expression = current
                LOG.info(
                    "Run %s: iteration %d %r passed %d/%d",
                    result.id,
                    candidate.iteration,
                    current,
                    sum(1 for o in outcomes if o.passed),
                    len(outcomes),
                )

                if all_passed:
                    result.status = RunStatus.SUCCESS
                    break
                prior_outcomes = outcomes

        except RunCancelled as exc:
            result.status = RunStatus.CANCELLED
            result.error_message = str(exc)
            LOG.info("Run %s: cancelled after %d iterations", result.id, result.iterations)
        except asyncio.CancelledError:
            result.status = RunStatus.CANCELLED
            result.error_message = "Synthesis task cancelled"
            LOG.info("Run %s: task cancelled after %d iterations", result.id, result.iterations)
            raise
        except Exception as exc:
            LOG.exception("Run %s: synthesis failed with exception", result.id)
            result.status = RunStatus.FAILED
            result.error_type = exc.__class__.__name__
            result.error_message = str(exc)
        finally:
            result.duration_ms = int((time.monotonic() - start_time) * 1000)

        return result
