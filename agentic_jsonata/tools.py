from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from agentic_jsonata.config import AppConfig, LLMConfig
from agentic_jsonata.synthesis.cloud_llm import CloudLLMClient
from agentic_jsonata.synthesis.documentation import DocumentStore, FileDocumentStore
from agentic_jsonata.synthesis.example_generator import ExampleGenerator
from agentic_jsonata.synthesis.llm_client import LLMClient, MockLLMClient
from agentic_jsonata.synthesis.local_llm import LocalLLMClient
from agentic_jsonata.synthesis.loop import CancellationToken, SynthesisLoop
from agentic_jsonata.synthesis.models import IterationRecord, SynthesisRequest

LOG = logging.getLogger("agentic_jsonata.tools")

# Synchronous callers (MCP) always get a bounded run.
DEFAULT_TOOL_MAX_ITERATIONS = 10


def build_llm_client(config: LLMConfig) -> LLMClient:
    """Construct the process-wide LLM client for the configured backend."""
    if config.backend == "mock":
        LOG.warning("Using MockLLMClient; every candidate will be 'true'")
        return MockLLMClient()
    if config.backend == "local":
        return LocalLLMClient(
            base_url=config.base_url or "http://localhost:11434",
            model=config.model,
            timeout=config.timeout_seconds,
            temperature=config.temperature,
        )
    return CloudLLMClient(
        api_key=config.api_key or None,
        provider=config.provider,
        model=config.model,
        base_url=config.base_url or None,
        temperature=config.temperature,
        max_retries=config.max_retries,
        timeout=config.timeout_seconds,
    )


@dataclass
class Services:
    """Collaborators shared by every run of one process."""

    config: AppConfig
    llm_client: LLMClient
    document_store: DocumentStore

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        llm_client: Optional[LLMClient] = None,
        document_store: Optional[DocumentStore] = None,
    ) -> "Services":
        return cls(
            config=config,
            llm_client=llm_client or build_llm_client(config.llm),
            document_store=document_store or FileDocumentStore(config.documentation_dir),
        )

    def synthesis_loop(self, max_iterations: Optional[int] = None) -> SynthesisLoop:
        synthesis_config = self.config.synthesis
        if max_iterations is not None:
            synthesis_config = replace(synthesis_config, max_iterations=max_iterations)
        return SynthesisLoop(synthesis_config, self.llm_client, self.document_store)

    def example_generator(self) -> ExampleGenerator:
        return ExampleGenerator(
            self.llm_client,
            attempts=self.config.synthesis.example_attempts,
            per_polarity=self.config.synthesis.examples_per_polarity,
        )

    async def close(self) -> None:
        await self.llm_client.close()


async def synthesize_tool(
    services: Services,
    request: SynthesisRequest,
    max_iterations: Optional[int] = None,
    token: Optional[CancellationToken] = None,
) -> Dict[str, Any]:
    """Run the loop to completion and return every iteration with the result."""
    cap = max_iterations
    if cap is None or cap <= 0:
        cap = services.config.synthesis.max_iterations or DEFAULT_TOOL_MAX_ITERATIONS
    records: List[IterationRecord] = []

    async def collect(record: IterationRecord) -> None:
        records.append(record)

    result = await services.synthesis_loop(max_iterations=cap).run(request, collect, token)
    return {
        "iterations": [record.to_dict() for record in records],
        "result": result.to_dict(),
    }


async def generate_examples_tool(
    services: Services,
    expression: str,
    output: Any,
    description: str,
) -> Dict[str, Any]:
    example_set = await services.example_generator().generate(expression, output, description)
    return example_set.to_dict()
