"""
Exception hierarchy for the synthesis loop.

Per-example faults (syntax, evaluation, type) never become exceptions outside
the evaluator; they are recorded as outcome data. Everything here is either a
run-level fault or internal control flow.
"""

from __future__ import annotations


class SynthesisError(Exception):
    """Base class for synthesis failures."""


class LLMError(SynthesisError):
    """The LLM backend failed after its own retries were exhausted."""


class DocumentStoreError(SynthesisError):
    """A document exists but could not be read."""


class ExampleGenerationError(SynthesisError):
    """No valid example set was produced within the allowed attempts."""


class RunCancelled(SynthesisError):
    """Raised at a suspension point once the caller has cancelled the run."""
