"""
Documentation selection: which JSONata reference pages go into the prompts.

On the first iteration the LLM is asked which pages of a fixed catalog are
relevant to the task; names that do not exist in the store are dropped and an
unparseable answer degrades to an empty selection. Later iterations pass the
selection back in pinned, so it never changes mid-run.
"""

from __future__ import annotations

import abc
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from agentic_jsonata.config import PACKAGED_DOCS_DIR
from agentic_jsonata.synthesis.errors import DocumentStoreError
from agentic_jsonata.synthesis.llm_client import LLMClient
from agentic_jsonata.synthesis.models import ChatMessage
from agentic_jsonata.synthesis.prompts import build_documentation_request

LOG = logging.getLogger("synthesis.documentation")

DOCUMENT_CATALOG: Tuple[str, ...] = (
    "using-nodejs",
    "using-browser",
    "string-functions",
    "sorting-grouping",
    "simple",
    "regex",
    "programming",
    "processing",
    "predicate",
    "path-operators",
    "overview",
    "other-operators",
    "object-functions",
    "numeric-operators",
    "numeric-functions",
    "higher-order-functions",
    "expressions",
    "embedding-extending",
    "date-time",
    "date-time-functions",
    "construction",
    "composition",
    "comparison-operators",
    "boolean-functions",
    "array-functions",
    "aggregation-functions",
    "boolean-operators",
)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)


class DocumentStore(abc.ABC):
    """Named reference documents."""

    @abc.abstractmethod
    def exists(self, name: str) -> bool:
        ...

    @abc.abstractmethod
    def read_text(self, name: str) -> str:
        """Document body, or "" when the document is missing or empty."""
        ...


class FileDocumentStore(DocumentStore):
    """Markdown files ``<root>/<name>.md``."""

    def __init__(self, root: Path | str = PACKAGED_DOCS_DIR) -> None:
        self._root = Path(root)

    def _path(self, name: str) -> Optional[Path]:
        # Names come from the LLM; keep them inside the root.
        if not name or "/" in name or "\\" in name or name.startswith("."):
            return None
        return self._root / f"{name}.md"

    def exists(self, name: str) -> bool:
        path = self._path(name)
        return path is not None and path.is_file()

    def read_text(self, name: str) -> str:
        path = self._path(name)
        if path is None or not path.is_file():
            LOG.warning("Documentation file not found: %s.md", name)
            return ""
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentStoreError(f"Failed to read documentation {name}: {exc}") from exc
        if not content.strip():
            LOG.warning("Documentation file is empty: %s.md", name)
            return ""
        return content


class InMemoryDocumentStore(DocumentStore):
    """Documents held in a dict; used by tests and embedders."""

    def __init__(self, documents: Optional[Dict[str, str]] = None) -> None:
        self._documents = dict(documents or {})

    def exists(self, name: str) -> bool:
        return name in self._documents

    def read_text(self, name: str) -> str:
        return self._documents.get(name, "")


def parse_selection(text: str) -> List[str]:
    """
    Parse the LLM's answer into a list of document names.

    Accepts a bare JSON array or one wrapped in a Markdown fence. Entries that
    are not strings are ignored, ``.md`` suffixes are stripped and duplicates
    removed. Anything unparseable yields [].
    """
    if not text or not text.strip():
        return []
    candidate = text.strip()
    fenced = _FENCE_RE.search(candidate)
    if fenced:
        candidate = fenced.group(1).strip()
    try:
        parsed: Any = json.loads(candidate)
    except json.JSONDecodeError:
        LOG.warning("Could not parse documentation selection: %r", text[:200])
        return []
    if not isinstance(parsed, list):
        LOG.warning("Documentation selection is not a JSON array: %r", text[:200])
        return []

    names: List[str] = []
    for entry in parsed:
        if not isinstance(entry, str):
            continue
        name = entry.strip()
        if name.endswith(".md"):
            name = name[:-3]
        if name and name not in names:
            names.append(name)
    return names


def concatenate_documents(store: DocumentStore, names: Iterable[str]) -> str:
    """Join document bodies under a header per document; empty ones are skipped."""
    parts: List[str] = []
    for name in names:
        content = store.read_text(name)
        if content:
            parts.append(f"\n\n=== {name} Documentation ===\n{content}")
    return "".join(parts)


class DocumentationSelector:
    """Chooses and loads reference documentation for a task."""

    def __init__(
        self,
        llm_client: LLMClient,
        store: DocumentStore,
        catalog: Sequence[str] = DOCUMENT_CATALOG,
    ) -> None:
        self._llm = llm_client
        self._store = store
        self._catalog = tuple(catalog)

    @property
    def store(self) -> DocumentStore:
        return self._store

    async def select(
        self,
        task_description: str,
        current_expression: str,
        positive_examples: Sequence[Any],
        negative_examples: Sequence[Any],
        pinned: Optional[Tuple[str, ...]] = None,
    ) -> Tuple[Tuple[str, ...], str]:
        """
        Return ``(selection, concatenated_text)``.

        A pinned selection is reused unchanged, without consulting the LLM.
        """
        if pinned is not None:
            selection = pinned
        else:
            prompt = build_documentation_request(
                task_description,
                current_expression,
                positive_examples,
                negative_examples,
                self._catalog,
            )
            LOG.debug("Documentation request prompt:\n%s", prompt)
            response = await self._llm.complete([ChatMessage("user", prompt)])
            requested = parse_selection(response)
            selection = tuple(name for name in requested if self._store.exists(name))
            dropped = [name for name in requested if name not in selection]
            if dropped:
                LOG.warning("Ignoring unknown documentation names: %s", dropped)
            LOG.info("Selected documentation: %s", list(selection))

        return selection, concatenate_documents(self._store, selection)
