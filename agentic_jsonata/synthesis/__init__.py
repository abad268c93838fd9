"""
Synthesis package: the iterate-evaluate-feedback loop for JSONata expressions.

Only the data models are re-exported here; import the loop, generators and
LLM backends from their modules.
"""

from __future__ import annotations

from agentic_jsonata.synthesis.models import (
    Candidate,
    ChatMessage,
    EvaluationOutcome,
    ExampleSet,
    FaultKind,
    IterationRecord,
    LearningState,
    RunResult,
    RunStatus,
    SynthesisRequest,
)

__all__ = [
    "Candidate",
    "ChatMessage",
    "EvaluationOutcome",
    "ExampleSet",
    "FaultKind",
    "IterationRecord",
    "LearningState",
    "RunResult",
    "RunStatus",
    "SynthesisRequest",
]
