"""
Core data models for the synthesis loop.

Plain dataclasses with ``to_dict()`` for the wire; pydantic is reserved for
request validation at the server boundary (see ``agentic_jsonata.models``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import uuid4


class RunStatus(str, Enum):
    """Terminal state of a synthesis run."""

    SUCCESS = "success"
    CANCELLED = "cancelled"
    EXHAUSTED = "exhausted"
    TIMEOUT = "timeout"
    FAILED = "failed"


class FaultKind(str, Enum):
    """Why an outcome failed before a boolean could be compared."""

    SYNTAX = "syntax"
    EVALUATION = "evaluation"
    TYPE = "type"


@dataclass(frozen=True)
class ChatMessage:
    """One message of an LLM conversation."""

    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Candidate:
    """An expression proposed by the generator for one iteration."""

    expression: str
    iteration: int


@dataclass(frozen=True)
class EvaluationOutcome:
    """Verdict of one candidate against one example."""

    example: Any
    passed: bool
    output: Any = None
    error: str | None = None
    fault: FaultKind | None = None
    has_output: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"example": self.example, "passed": self.passed}
        if self.has_output:
            data["output"] = self.output
        if self.error is not None:
            data["error"] = self.error
        if self.fault is not None:
            data["fault"] = self.fault.value
        return data


@dataclass
class LearningState:
    """
    Context carried from one iteration into the next prompt.

    ``working_patterns`` and ``failed_patterns`` only ever describe the latest
    iteration. ``selected_documentation`` is None until the first candidate is
    generated and never changes afterwards.
    """

    working_patterns: tuple[str, ...] = ()
    failed_patterns: tuple[str, ...] = ()
    last_reasoning: str | None = None
    selected_documentation: tuple[str, ...] | None = None

    def freeze_documentation(self, documentation: tuple[str, ...]) -> None:
        if self.selected_documentation is None:
            self.selected_documentation = tuple(documentation)

    def snapshot(self) -> "LearningState":
        return LearningState(
            working_patterns=self.working_patterns,
            failed_patterns=self.failed_patterns,
            last_reasoning=self.last_reasoning,
            selected_documentation=self.selected_documentation,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "workingPatterns": list(self.working_patterns),
            "failedPatterns": list(self.failed_patterns),
            "lastReasoning": self.last_reasoning,
            "selectedDocumentation": (
                list(self.selected_documentation)
                if self.selected_documentation is not None
                else None
            ),
        }


@dataclass(frozen=True)
class IterationRecord:
    """The unit delivered to the caller once per iteration."""

    index: int
    expression: str
    outcomes: tuple[EvaluationOutcome, ...]
    documentation: tuple[str, ...]
    learning_state: LearningState

    @property
    def all_passed(self) -> bool:
        return all(o.passed for o in self.outcomes)

    @property
    def passed_examples(self) -> list[Any]:
        return [o.example for o in self.outcomes if o.passed]

    @property
    def failed_examples(self) -> list[Any]:
        return [o.example for o in self.outcomes if not o.passed]

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "expression": self.expression,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "documentation": list(self.documentation),
            "learningState": self.learning_state.to_dict(),
            "progress": {
                "passedExamples": self.passed_examples,
                "failedExamples": self.failed_examples,
                "successfulPatterns": list(self.learning_state.working_patterns),
                "reasoning": self.learning_state.last_reasoning,
            },
        }


@dataclass
class SynthesisRequest:
    """Inputs of one synthesis run."""

    initial_expression: str = ""
    positive_examples: list[Any] = field(default_factory=list)
    negative_examples: list[Any] = field(default_factory=list)
    task_description: str = ""


@dataclass
class RunResult:
    """Outcome of a synthesis run."""

    id: str = field(default_factory=lambda: str(uuid4())[:8])
    status: RunStatus = RunStatus.FAILED
    iterations: int = 0
    expression: str | None = None
    duration_ms: int = 0
    error_type: str = ""
    error_message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "iterations": self.iterations,
            "expression": self.expression,
            "duration_ms": self.duration_ms,
            "error_type": self.error_type,
            "error_message": self.error_message,
        }


@dataclass
class ExampleSet:
    """Validated examples produced by the example generator."""

    true_examples: list[Any] = field(default_factory=list)
    false_examples: list[Any] = field(default_factory=list)
    true_example_outputs: list[Any] = field(default_factory=list)
    false_example_outputs: list[Any] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "trueExamples": self.true_examples,
            "falseExamples": self.false_examples,
            "trueExampleOutputs": self.true_example_outputs,
            "falseExampleOutputs": self.false_example_outputs,
        }
