"""
Pattern extraction: a short label for the idiom a candidate expression uses.

Labels are fed back to the LLM as "working" or "failed" patterns. The default
strategy is a regex heuristic over the expression text; a parser-based
strategy can be swapped in without touching the loop.
"""

from __future__ import annotations

import abc
import re
from typing import Any, Optional

_PATH_RE = re.compile(r"[a-zA-Z0-9_]+(?:\.[a-zA-Z0-9_]+)+")
_FUNCTION_RE = re.compile(r"\$[a-zA-Z0-9_]+\(")


class PatternExtractor(abc.ABC):
    """Strategy interface for pattern extraction."""

    @abc.abstractmethod
    def extract(self, expression: str, example: Any) -> Optional[str]:
        """Return a pattern label, or None when nothing recognizable is found."""
        ...


class RegexPatternExtractor(PatternExtractor):
    """
    First dotted path (``a.b.c``) in the expression, else the first function
    name (``$contains``), else None. The example is not consulted.
    """

    def extract(self, expression: str, example: Any) -> Optional[str]:
        match = _PATH_RE.search(expression or "")
        if match:
            return match.group(0)
        match = _FUNCTION_RE.search(expression or "")
        if match:
            return match.group(0)[:-1]
        return None


def extract_pattern(expression: str, example: Any) -> Optional[str]:
    return RegexPatternExtractor().extract(expression, example)
