"""
Prompt construction for every LLM round-trip of the synthesis loop.

Builders are pure functions of their inputs so they can be tested without
a client.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional, Sequence

from agentic_jsonata.synthesis.models import ChatMessage, EvaluationOutcome, LearningState

SYNTAX_RULES = (
    "Use dot notation (.) for property access",
    "Use square brackets [] only for array indexing/predicates",
    "Use backticks (`) for special property names",
)


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


def format_outcomes(outcomes: Sequence[EvaluationOutcome]) -> str:
    """Outcomes as pretty JSON, the same shape the caller receives."""
    return _dump([o.to_dict() for o in outcomes])


def build_documentation_request(
    task_description: str,
    current_expression: str,
    positive_examples: Sequence[Any],
    negative_examples: Sequence[Any],
    catalog: Sequence[str],
) -> str:
    listing = "\n".join(f"- {name}.md" for name in catalog)
    return (
        f"Which documentation files would help with: {task_description}?\n\n"
        f"Available documentation files:\n{listing}\n\n"
        f"Current JSONata expression: {current_expression}\n"
        f"Input examples:\n"
        f"True: {_dump(list(positive_examples))}\n"
        f"False: {_dump(list(negative_examples))}\n\n"
        "IMPORTANT: Return your response as a JSON array of documentation file names "
        '(without the .md extension). For example: ["string-functions", "numeric-functions"]'
    )


def build_candidate_messages(
    task_description: str,
    current_expression: str,
    positive_examples: Sequence[Any],
    negative_examples: Sequence[Any],
    prior_outcomes: Sequence[EvaluationOutcome],
    learning_state: LearningState,
    reference_text: str,
) -> List[ChatMessage]:
    """
    System + user messages asking for the next candidate expression.

    Reference documentation is included until the first failure analysis
    exists; after that the analysis and the pattern sets take its place.
    """
    rules = "\n".join(f"{i}. {rule}" for i, rule in enumerate(SYNTAX_RULES, start=3))
    system = (
        "You are a JSONata expert. Write a JSONata expression that:\n"
        f"1. Satisfies: {task_description}\n"
        "2. Returns true/false for the given examples\n"
        f"{rules}"
    )

    parts: List[str] = [
        f"Goal: {task_description}",
        "",
        "Requirements:",
        "1. Evaluate to true for all true examples",
        "2. Evaluate to false for all false examples",
        rules,
        "",
        f"Current expression: {current_expression}",
        "",
        "Examples:",
        f"This should return true: {_dump(list(positive_examples))}",
        f"This should return false: {_dump(list(negative_examples))}",
        "",
    ]

    if prior_outcomes:
        parts.append("Results of the current expression:")
        parts.append(format_outcomes(prior_outcomes))
        parts.append("")

    if not learning_state.last_reasoning:
        parts.append("Write a JSONata expression that satisfies the requirements above.")
        parts.append("")
        parts.append("JSONATA Documentation:")
        parts.append(reference_text)
    else:
        parts.append("Previous learnings:")
        parts.append(f"- Working patterns: {', '.join(learning_state.working_patterns)}")
        parts.append(f"- Failed patterns: {', '.join(learning_state.failed_patterns)}")
        parts.append("")
        parts.append(f"Last analysis: {learning_state.last_reasoning}")
        parts.append("")
        parts.append("Write a new JSONata expression that:")
        parts.append("1. Builds on the current expression")
        parts.append("2. Incorporates working patterns")
        parts.append("3. Avoids failed patterns")

    parts.append("")
    parts.append("Return ONLY the expression.")

    return [ChatMessage("system", system), ChatMessage("user", "\n".join(parts))]


def build_reasoning_prompt(
    current_expression: str,
    task_description: str,
    outcomes: Sequence[EvaluationOutcome],
    learning_state: LearningState,
    reference_text: str,
) -> str:
    passed = [o.example for o in outcomes if o.passed]
    failed = [o.example for o in outcomes if not o.passed]
    return (
        "You are a JSONata expert. Analyze this JSONata expression and its results, "
        "focusing STRONGLY on using documented functions and methods:\n\n"
        f"Expression: {current_expression}\n"
        f"Task: {task_description}\n\n"
        f"Results:\n{format_outcomes(outcomes)}\n\n"
        "Progress:\n"
        f"- Passed: {_dump(passed)}\n"
        f"- Failed: {_dump(failed)}\n"
        f"- Working patterns: {', '.join(learning_state.working_patterns)}\n"
        f"- Failed patterns: {', '.join(learning_state.failed_patterns)}\n\n"
        f"Available Documentation:\n{reference_text}\n\n"
        "Provide analysis that:\n"
        "1. Identifies working parts and why they work\n"
        "2. Explains failure reasons in detail\n"
        "3. Suggests improvements by:\n"
        "   - STRONGLY preferring documented functions and methods\n"
        "   - Referencing specific documented functions that could help\n"
        "   - Explaining how documented functions would solve the issues\n"
        "4. Proposes next steps using documented approaches\n\n"
        "IMPORTANT: Your suggestions MUST prioritize using documented functions and methods. "
        "If a documented function exists that could solve a problem, you MUST suggest it "
        "over any custom solution."
    )


def build_example_messages(
    expression: str,
    output: Any,
    description: str,
    per_polarity: int = 3,
    feedback: Optional[List[str]] = None,
) -> List[ChatMessage]:
    system = (
        "You are a JSONata expert and software testing specialist. Your task is to generate "
        f"exactly {per_polarity} realistic test examples and edge cases for each case (true and false) "
        "that would make a given JSONata expression return true or false based on a description. "
        "Focus on generating meaningful, real-world data that tests both common scenarios and edge cases."
    )
    user = (
        "Given the following JSONata expression and its output:\n\n"
        f"JSONata:\n{expression}\n\n"
        f"Output:\n{_dump(output)}\n\n"
        f"And the following description of the intended output:\n{description}\n\n"
        "Please generate test examples that would make the JSONata expression return true or false. "
        'Format your response as a JSON object with two arrays: "trueExamples" and "falseExamples". '
        f"For each array, generate exactly {per_polarity} examples that:\n\n"
        "1. Include realistic examples that are representative of the provided output data\n"
        "2. Include some edge cases that test the boundaries of the expression without being overly convoluted\n"
        "3. Ensure each example is a complete JSON object that would be valid input for the JSONata expression\n"
        "4. Ensure that when the JSONata expression is applied to the trueExamples, it produces output "
        "similar to the provided example output\n\n"
        "Focus on generating meaningful, real-world data that tests both common scenarios and edge cases."
    )
    for note in feedback or []:
        user += f"\n\n{note}"
    return [ChatMessage("system", system), ChatMessage("user", user)]
