"""Tests for the synthesis loop state machine."""

import asyncio

import pytest

from agentic_jsonata.config import SynthesisConfig
from agentic_jsonata.synthesis.documentation import DocumentStore
from agentic_jsonata.synthesis.errors import DocumentStoreError, LLMError
from agentic_jsonata.synthesis.llm_client import MockLLMClient
from agentic_jsonata.synthesis.loop import CancellationToken, SynthesisLoop
from agentic_jsonata.synthesis.models import FaultKind, RunStatus, SynthesisRequest


def _request(positives=({"a": 1},), negatives=({"a": 2},), task="a is one", initial=""):
    return SynthesisRequest(
        initial_expression=initial,
        positive_examples=list(positives),
        negative_examples=list(negatives),
        task_description=task,
    )


class Collector:
    def __init__(self, on_record=None):
        self.records = []
        self._on_record = on_record

    async def __call__(self, record):
        self.records.append(record)
        if self._on_record is not None:
            await self._on_record(record)


async def _run(llm, doc_store, request, config=None, sink=None, token=None):
    loop = SynthesisLoop(config or SynthesisConfig(), llm, doc_store)
    sink = sink or Collector()
    result = await loop.run(request, sink, token)
    return result, sink.records


class TestSuccess:
    @pytest.mark.asyncio
    async def test_first_candidate_passes(self, scripted_llm, doc_store):
        llm = scripted_llm(["a = 1"])

        result, records = await _run(llm, doc_store, _request())

        assert result.status == RunStatus.SUCCESS
        assert result.iterations == 1
        assert result.expression == "a = 1"
        assert len(records) == 1
        assert records[0].index == 0
        assert records[0].all_passed
        assert [o.passed for o in records[0].outcomes] == [True, True]
        # one documentation selection, one candidate, no reasoning
        assert llm.call_count == 2
        assert llm.reasoning_calls == 0

    @pytest.mark.asyncio
    async def test_no_examples_is_done_immediately(self, scripted_llm, doc_store):
        llm = scripted_llm(["anything"])

        result, records = await _run(llm, doc_store, _request(positives=(), negatives=()))

        assert result.status == RunStatus.SUCCESS
        assert len(records) == 1
        assert records[0].outcomes == ()

    @pytest.mark.asyncio
    async def test_outcomes_positive_then_negative(self, scripted_llm, doc_store):
        llm = scripted_llm(["a = 1"])
        request = _request(positives=({"a": 1}, {"a": 1, "b": 0}), negatives=({"a": 3},))

        _, records = await _run(llm, doc_store, request)

        assert [o.example for o in records[0].outcomes] == [{"a": 1}, {"a": 1, "b": 0}, {"a": 3}]

    @pytest.mark.asyncio
    async def test_fixes_after_feedback(self, scripted_llm, doc_store):
        llm = scripted_llm(["a = 2", "a = 1"], reasoning="Compare against 1.")

        result, records = await _run(llm, doc_store, _request())

        assert result.status == RunStatus.SUCCESS
        assert [r.expression for r in records] == ["a = 2", "a = 1"]
        assert [r.index for r in records] == [0, 1]
        assert records[0].learning_state.last_reasoning == "Compare against 1."
        assert llm.reasoning_calls == 1

    @pytest.mark.asyncio
    async def test_empty_candidate_then_valid(self, scripted_llm, doc_store):
        llm = scripted_llm(["", "a = 1"])

        result, records = await _run(llm, doc_store, _request())

        assert result.status == RunStatus.SUCCESS
        assert records[0].expression == ""
        assert not records[0].all_passed
        assert all(o.error for o in records[0].outcomes)
        assert records[1].all_passed

    @pytest.mark.asyncio
    async def test_syntax_error_candidate_recorded(self, scripted_llm, doc_store):
        llm = scripted_llm(["(a = 1", "a = 1"])

        _, records = await _run(llm, doc_store, _request())

        assert all(o.fault == FaultKind.SYNTAX for o in records[0].outcomes)

    @pytest.mark.asyncio
    async def test_fenced_answer_is_recorded_verbatim(self, scripted_llm, doc_store):
        fenced = "```jsonata\na = 1\n```"
        llm = scripted_llm([f"\n{fenced}\n", "a = 1"])

        result, records = await _run(llm, doc_store, _request())

        assert records[0].expression == fenced
        assert not records[0].all_passed
        assert all(o.fault == FaultKind.SYNTAX for o in records[0].outcomes)
        assert "Current expression: " + fenced in llm.calls_of("candidate")[1][-1].content
        assert records[1].expression == "a = 1"
        assert result.status == RunStatus.SUCCESS


class TestLearningState:
    @pytest.mark.asyncio
    async def test_documentation_selected_once(self, scripted_llm, doc_store):
        llm = scripted_llm(["a = 3", "a = 2", "a = 1"])

        _, records = await _run(llm, doc_store, _request())

        assert len(records) == 3
        assert llm.documentation_calls == 1
        assert all(r.documentation == ("comparison-operators",) for r in records)
        assert all(r.learning_state.selected_documentation == ("comparison-operators",) for r in records)

    @pytest.mark.asyncio
    async def test_empty_selection_is_still_frozen(self, scripted_llm, doc_store):
        llm = scripted_llm(["a = 2", "a = 1"], selection="no idea")

        _, records = await _run(llm, doc_store, _request())

        assert llm.documentation_calls == 1
        assert records[1].documentation == ()

    @pytest.mark.asyncio
    async def test_reference_then_reasoning_in_prompts(self, scripted_llm, doc_store):
        llm = scripted_llm(["a = 2", "a = 1"], reasoning="Use the literal 1.")

        await _run(llm, doc_store, _request(initial="a > 5"))

        first, second = [call[-1].content for call in llm.calls_of("candidate")]
        assert "Current expression: a > 5" in first
        assert "JSONATA Documentation:" in first
        assert "Use = to compare values" in first
        assert "Current expression: a = 2" in second
        assert "Last analysis: Use the literal 1." in second
        assert "Results of the current expression:" in second

    @pytest.mark.asyncio
    async def test_patterns_describe_latest_iteration(self, scripted_llm, doc_store):
        llm = scripted_llm(["user.age >= 30", "user.age >= 18"])
        request = _request(
            positives=({"user": {"age": 40}}, {"user": {"age": 20}}),
            negatives=({"user": {"age": 10}},),
        )

        result, records = await _run(llm, doc_store, request)

        assert result.status == RunStatus.SUCCESS
        assert records[0].learning_state.working_patterns == ("user.age",)
        assert records[0].learning_state.failed_patterns == ("user.age",)
        assert records[1].learning_state.working_patterns == ("user.age",)
        assert records[1].learning_state.failed_patterns == ()

    @pytest.mark.asyncio
    async def test_records_hold_snapshots(self, scripted_llm, doc_store):
        llm = scripted_llm(["a = 2", "a = 1"], reasoning="first")

        _, records = await _run(llm, doc_store, _request())

        assert records[0].learning_state is not records[1].learning_state
        assert records[0].learning_state.working_patterns == ()


class TestGuards:
    @pytest.mark.asyncio
    async def test_iteration_cap(self, scripted_llm, doc_store):
        llm = scripted_llm(["a = 2"])

        result, records = await _run(llm, doc_store, _request(), config=SynthesisConfig(max_iterations=3))

        assert result.status == RunStatus.EXHAUSTED
        assert len(records) == 3
        assert result.iterations == 3
        assert result.expression == "a = 2"
        assert "3 iterations" in result.error_message
        assert llm.candidate_calls == 3

    @pytest.mark.asyncio
    async def test_duration_cap(self, scripted_llm, doc_store):
        llm = scripted_llm(["a = 2"])

        async def slow(record):
            await asyncio.sleep(0.05)

        result, records = await _run(
            llm,
            doc_store,
            _request(),
            config=SynthesisConfig(max_iterations=0, max_duration_seconds=0.01),
            sink=Collector(on_record=slow),
        )

        assert result.status == RunStatus.TIMEOUT
        assert len(records) == 1
        assert result.error_message.startswith("Synthesis timeout after")


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_after_first_record(self, scripted_llm, doc_store):
        llm = scripted_llm(["a = 2"])
        token = CancellationToken()

        async def cancel(record):
            token.cancel()

        result, records = await _run(
            llm, doc_store, _request(), sink=Collector(on_record=cancel), token=token
        )

        assert result.status == RunStatus.CANCELLED
        assert len(records) == 1
        assert llm.candidate_calls == 1

    @pytest.mark.asyncio
    async def test_cancel_during_generation_emits_nothing(self, scripted_llm, doc_store):
        token = CancellationToken()
        llm = scripted_llm(["a = 1"], on_candidate=lambda n: token.cancel())

        result, records = await _run(llm, doc_store, _request(), token=token)

        assert result.status == RunStatus.CANCELLED
        assert records == []

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, scripted_llm, doc_store):
        llm = scripted_llm(["a = 1"])
        token = CancellationToken()
        token.cancel()

        result, records = await _run(llm, doc_store, _request(), token=token)

        assert result.status == RunStatus.CANCELLED
        assert llm.call_count == 0
        assert records == []

    @pytest.mark.asyncio
    async def test_task_cancellation_propagates(self, scripted_llm, doc_store):
        llm = scripted_llm(["a = 2"])
        blocked = asyncio.Event()

        async def block(record):
            blocked.set()
            await asyncio.Event().wait()

        loop = SynthesisLoop(SynthesisConfig(), llm, doc_store)
        task = asyncio.create_task(loop.run(_request(), Collector(on_record=block)))
        await blocked.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


class _BrokenStore(DocumentStore):
    def exists(self, name):
        return True

    def read_text(self, name):
        raise DocumentStoreError(f"Could not read {name}")


class TestFaults:
    @pytest.mark.asyncio
    async def test_llm_error_fails_run(self, doc_store):
        def handler(messages):
            raise LLMError("openai request failed after 3 attempts")

        result, records = await _run(MockLLMClient(handler=handler), doc_store, _request())

        assert result.status == RunStatus.FAILED
        assert result.error_type == "LLMError"
        assert "3 attempts" in result.error_message
        assert records == []

    @pytest.mark.asyncio
    async def test_unreadable_documentation_fails_run(self, scripted_llm):
        llm = scripted_llm(["a = 1"])

        result, records = await _run(llm, _BrokenStore(), _request())

        assert result.status == RunStatus.FAILED
        assert result.error_type == "DocumentStoreError"
        assert records == []

    @pytest.mark.asyncio
    async def test_fault_after_first_iteration_keeps_records(self, doc_store):
        answers = iter(['["comparison-operators"]', "a = 2", "analysis"])

        def handler(messages):
            try:
                return next(answers)
            except StopIteration:
                raise LLMError("backend went away") from None

        result, records = await _run(MockLLMClient(handler=handler), doc_store, _request())

        assert result.status == RunStatus.FAILED
        assert len(records) == 1
        assert result.iterations == 1


class TestIndependentRuns:
    @pytest.mark.asyncio
    async def test_concurrent_runs_share_nothing(self, doc_store):
        def handler(messages):
            content = messages[-1].content
            if "Which documentation files would help" in content:
                return '["comparison-operators"]'
            return "a = 1" if "Goal: a is one" in content else "b = 2"

        loop = SynthesisLoop(SynthesisConfig(), MockLLMClient(handler=handler), doc_store)
        first, second = Collector(), Collector()

        results = await asyncio.gather(
            loop.run(_request(task="a is one"), first),
            loop.run(_request(positives=({"b": 2},), negatives=({"b": 1},), task="b is two"), second),
        )

        assert [r.status for r in results] == [RunStatus.SUCCESS, RunStatus.SUCCESS]
        assert results[0].id != results[1].id
        assert first.records[0].expression == "a = 1"
        assert second.records[0].expression == "b = 2"

    @pytest.mark.asyncio
    async def test_duration_recorded(self, scripted_llm, doc_store):
        result, _ = await _run(scripted_llm(["a = 1"]), doc_store, _request())
        assert result.duration_ms >= 0
        assert result.to_dict()["status"] == "success"
