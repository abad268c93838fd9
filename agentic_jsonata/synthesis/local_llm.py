"""
Local LLM client: Ollama backend.

Connects to a locally running Ollama instance at http://localhost:11434
through its /api/chat endpoint.
"""

from __future__ import annotations

import logging
from typing import Sequence

import httpx

from agentic_jsonata.synthesis.errors import LLMError
from agentic_jsonata.synthesis.llm_client import LLMClient
from agentic_jsonata.synthesis.models import ChatMessage

LOG = logging.getLogger("synthesis.local_llm")


class LocalLLMClient(LLMClient):
    """
    Local LLM backend using Ollama's HTTP API.

    Requires Ollama to be running locally: https://ollama.ai
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "qwen2.5-coder:7b",
        timeout: float = 120.0,
        temperature: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url
        self._model = model
        self._temperature = temperature
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )
        self._available: bool | None = None

    async def is_available(self) -> bool:
        """Check if Ollama is running and the model is available."""
        if self._available is not None:
            return self._available
        try:
            resp = await self._client.get("/api/tags")
            if resp.status_code == 200:
                models = resp.json().get("models", [])
                model_names = [m.get("name", "") for m in models]
                self._available = any(self._model in name for name in model_names)
                if not self._available:
                    LOG.warning(
                        "Ollama running but model '%s' not found. Available: %s. Pull with: ollama pull %s",
                        self._model,
                        model_names,
                        self._model,
                    )
                return self._available
        except httpx.HTTPError as exc:
            LOG.warning("Ollama not reachable at %s: %s", self._base_url, exc)
        self._available = False
        return False

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        json_mode: bool = False,
    ) -> str:
        if not await self.is_available():
            raise LLMError(
                f"Ollama not available at {self._base_url}. "
                f"Start with 'ollama serve' and ensure '{self._model}' is pulled."
            )

        body = {
            "model": self._model,
            "messages": [m.to_dict() for m in messages],
            "stream": False,
        }
        if json_mode:
            body["format"] = "json"
        if self._temperature is not None:
            body["options"] = {"temperature": self._temperature}

        try:
            resp = await self._client.post("/api/chat", json=body)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LLMError(f"Ollama chat request failed: {exc}") from exc
        return (data.get("message") or {}).get("content", "") or ""

    async def close(self) -> None:
        await self._client.aclose()
