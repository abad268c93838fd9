"""Configuration management for agentic-jsonata.

Loads settings from environment variables with sensible defaults.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

PACKAGED_DOCS_DIR = Path(__file__).resolve().parent / "jsonata_documentation"

_BACKENDS = ("cloud", "local", "mock")
_PROVIDERS = ("openai", "anthropic")


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    return float(value)


@dataclass
class LLMConfig:
    """Which model answers the prompts."""
    backend: str = "cloud"  # "cloud", "local", "mock"
    provider: str = "openai"  # "openai", "anthropic"
    model: str = "o3-mini"
    api_key: str = ""  # empty = provider's environment variable
    base_url: str = ""  # empty = provider default
    temperature: Optional[float] = None  # None = omitted from requests
    max_retries: int = 3
    timeout_seconds: float = 120.0

    def __post_init__(self) -> None:
        if self.backend not in _BACKENDS:
            raise ValueError(f"backend must be one of {_BACKENDS}, got {self.backend!r}")
        if self.provider not in _PROVIDERS:
            raise ValueError(f"provider must be one of {_PROVIDERS}, got {self.provider!r}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")

    @classmethod
    def from_env(cls) -> "LLMConfig":
        return cls(
            backend=os.getenv("AGENTIC_JSONATA_LLM_BACKEND", "cloud"),
            provider=os.getenv("AGENTIC_JSONATA_LLM_PROVIDER", "openai"),
            model=os.getenv("AGENTIC_JSONATA_LLM_MODEL", "o3-mini"),
            api_key=os.getenv("AGENTIC_JSONATA_LLM_API_KEY", ""),
            base_url=os.getenv("AGENTIC_JSONATA_LLM_BASE_URL", ""),
            temperature=_optional_float(os.getenv("AGENTIC_JSONATA_LLM_TEMPERATURE")),
            max_retries=int(os.getenv("AGENTIC_JSONATA_LLM_MAX_RETRIES", "3")),
            timeout_seconds=float(os.getenv("AGENTIC_JSONATA_LLM_TIMEOUT", "120")),
        )


@dataclass
class SynthesisConfig:
    """Guards and sizes for synthesis runs."""
    max_iterations: int = 25  # 0 = unbounded
    max_duration_seconds: float = 900.0  # 0 = unbounded
    example_attempts: int = 3
    examples_per_polarity: int = 3

    def __post_init__(self) -> None:
        if self.max_iterations < 0:
            raise ValueError(f"max_iterations must be >= 0, got {self.max_iterations}")
        if self.max_duration_seconds < 0:
            raise ValueError(f"max_duration_seconds must be >= 0, got {self.max_duration_seconds}")
        if self.example_attempts < 1:
            raise ValueError(f"example_attempts must be >= 1, got {self.example_attempts}")
        if self.examples_per_polarity < 1:
            raise ValueError(f"examples_per_polarity must be >= 1, got {self.examples_per_polarity}")

    @classmethod
    def from_env(cls) -> "SynthesisConfig":
        return cls(
            max_iterations=int(os.getenv("AGENTIC_JSONATA_MAX_ITERATIONS", "25")),
            max_duration_seconds=float(os.getenv("AGENTIC_JSONATA_MAX_DURATION", "900")),
            example_attempts=int(os.getenv("AGENTIC_JSONATA_EXAMPLE_ATTEMPTS", "3")),
            examples_per_polarity=int(os.getenv("AGENTIC_JSONATA_EXAMPLES_PER_POLARITY", "3")),
        )


@dataclass
class AppConfig:
    """Top-level application configuration."""
    llm: LLMConfig = field(default_factory=LLMConfig)
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    documentation_dir: str = str(PACKAGED_DOCS_DIR)
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            llm=LLMConfig.from_env(),
            synthesis=SynthesisConfig.from_env(),
            documentation_dir=os.getenv("AGENTIC_JSONATA_DOCS_DIR", str(PACKAGED_DOCS_DIR)),
            host=os.getenv("AGENTIC_JSONATA_HOST", "127.0.0.1"),
            port=int(os.getenv("AGENTIC_JSONATA_PORT", "8000")),
            log_level=os.getenv("AGENTIC_JSONATA_LOG_LEVEL", "INFO").upper(),
        )
