"""
agentic-jsonata: synthesize JSONata expressions from labeled examples.

An LLM proposes a candidate, the candidate is evaluated against positive and
negative example documents, and the results are fed back until every example
passes. Progress is streamed one iteration at a time.
"""

from __future__ import annotations

__version__ = "0.1.0"
