from __future__ import annotations

from typing import Any, List

from pydantic import AliasChoices, BaseModel, Field, field_validator

from agentic_jsonata.synthesis.models import SynthesisRequest


class SynthesisRequestBody(BaseModel):
    initialExpression: str = Field(
        default="",
        validation_alias=AliasChoices("initialExpression", "jsonata"),
    )
    positiveExamples: List[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices("positiveExamples", "trueExamples"),
    )
    negativeExamples: List[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices("negativeExamples", "falseExamples"),
    )
    taskDescription: str = Field(
        validation_alias=AliasChoices("taskDescription", "description"),
    )

    @field_validator("initialExpression", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    def to_request(self) -> SynthesisRequest:
        return SynthesisRequest(
            initial_expression=self.initialExpression,
            positive_examples=list(self.positiveExamples),
            negative_examples=list(self.negativeExamples),
            task_description=self.taskDescription,
        )


class ExampleRequestBody(BaseModel):
    jsonata: str = Field(min_length=1)
    output: Any = None
    description: str = ""


class ExampleSetResponse(BaseModel):
    trueExamples: List[Any]
    falseExamples: List[Any]
    trueExampleOutputs: List[Any]
    falseExampleOutputs: List[Any]


class ErrorResponse(BaseModel):
    error: str
