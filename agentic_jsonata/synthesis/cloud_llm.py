"""
Cloud LLM client: OpenAI (chat completions) and Anthropic (messages) backends.

Uses httpx for async HTTP. API key from AGENTIC_JSONATA_LLM_API_KEY, the
provider's usual variable (OPENAI_API_KEY / ANTHROPIC_API_KEY), or passed
directly.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Any, Optional, Sequence

import httpx

from agentic_jsonata.synthesis.errors import LLMError
from agentic_jsonata.synthesis.llm_client import LLMClient
from agentic_jsonata.synthesis.models import ChatMessage

LOG = logging.getLogger("synthesis.cloud_llm")

_PROVIDER_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}

_DEFAULT_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "anthropic": "https://api.anthropic.com/v1",
}


def _decode(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise LLMError(f"Response from {resp.request.url} is not JSON") from exc


class CloudLLMClient(LLMClient):
    """
    Cloud LLM backend using OpenAI or Anthropic APIs.

    Transport and HTTP errors are retried with exponential backoff; once the
    retries are spent the failure is raised as LLMError so the synthesis run
    ends with a fault instead of silently continuing.
    """

    def __init__(
        self,
        api_key: str | None = None,
        provider: str = "openai",  # "openai" or "anthropic"
        model: str = "o3-mini",
        base_url: str | None = None,
        temperature: float | None = None,
        max_retries: int = 3,
        timeout: float = 120.0,
        retry_backoff: float = 1.0,
        requests_per_second: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if provider not in _DEFAULT_BASE_URLS:
            raise ValueError(f"Unknown provider {provider!r}; expected 'openai' or 'anthropic'")

        self._api_key = (
            api_key
            or os.environ.get("AGENTIC_JSONATA_LLM_API_KEY", "")
            or os.environ.get(_PROVIDER_KEY_ENV[provider], "")
        )
        if not self._api_key:
            raise ValueError(
                f"API key required. Set AGENTIC_JSONATA_LLM_API_KEY or {_PROVIDER_KEY_ENV[provider]}, or pass api_key=."
            )

        self._provider = provider
        self._model = model
        self._temperature = temperature
        self._max_retries = max(1, max_retries)
        self._retry_backoff = retry_backoff
        self._min_interval = 1.0 / requests_per_second
        self._last_request_time = 0.0
        self._base_url = base_url or _DEFAULT_BASE_URLS[provider]

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            transport=transport,
        )

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        json_mode: bool = False,
    ) -> str:
        # Rate limiting
        elapsed = time.monotonic() - self._last_request_time
        if elapsed < self._min_interval:
            await asyncio.sleep(self._min_interval - elapsed)

        last_exc: Optional[Exception] = None
        for attempt in range(self._max_retries):
            try:
                if self._provider == "anthropic":
                    text = await self._call_anthropic(messages)
                else:
                    text = await self._call_openai(messages, json_mode)
                self._last_request_time = time.monotonic()
                return text
            except httpx.HTTPError as exc:
                last_exc = exc
                if attempt + 1 == self._max_retries:
                    break
                wait = self._retry_backoff * 2**attempt
                LOG.warning(
                    "API call failed (attempt %d/%d): %s. Retrying in %.1fs.",
                    attempt + 1,
                    self._max_retries,
                    exc,
                    wait,
                )
                await asyncio.sleep(wait)

        raise LLMError(f"{self._provider} request failed after {self._max_retries} attempts: {last_exc}") from last_exc

    async def _call_openai(self, messages: Sequence[ChatMessage], json_mode: bool) -> str:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        body: dict[str, Any] = {
            "model": self._model,
            "messages": [m.to_dict() for m in messages],
        }
        if self._temperature is not None:
            body["temperature"] = self._temperature
        if json_mode:
            body["response_format"] = {"type": "json_object"}
        resp = await self._client.post("/chat/completions", headers=headers, json=body)
        resp.raise_for_status()
        data = _decode(resp)
        try:
            content = data["choices"][0]["message"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise LLMError(f"Malformed chat completion response: {data!r}") from exc
        return content or ""

    async def _call_anthropic(self, messages: Sequence[ChatMessage]) -> str:
        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        }
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        body: dict[str, Any] = {
            "model": self._model,
            "max_tokens": 4096,
            "messages": [m.to_dict() for m in messages if m.role != "system"],
        }
        if system:
            body["system"] = system
        if self._temperature is not None:
            body["temperature"] = self._temperature
        resp = await self._client.post("/messages", headers=headers, json=body)
        resp.raise_for_status()
        data = _decode(resp)
        try:
            blocks = data["content"]
        except (KeyError, TypeError) as exc:
            raise LLMError(f"Malformed messages response: {data!r}") from exc
        return "".join(block.get("text", "") for block in blocks if block.get("type", "text") == "text")

    async def close(self) -> None:
        await self._client.aclose()
