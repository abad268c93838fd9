from __future__ import annotations

import logging
from typing import Any, List, Optional

from mcp.server.fastmcp import FastMCP

from agentic_jsonata.config import AppConfig
from agentic_jsonata.synthesis.models import SynthesisRequest
from agentic_jsonata.tools import Services, generate_examples_tool, synthesize_tool

LOG = logging.getLogger("agentic_jsonata.mcp")


def _validate_required(name: str, value: Optional[str]) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"Missing required field: {name}")


def build_server(services: Optional[Services] = None) -> FastMCP:
    services = services or Services.from_config(AppConfig.from_env())
    server = FastMCP("agentic-jsonata")

    @server.tool(
            description="Synthesize a JSONata expression that returns true for the positive examples "
                        "and false for the negative examples. Returns every iteration and the run result."
    )
    async def synthesize_jsonata(
        taskDescription: str,
        positiveExamples: List[Any],
        negativeExamples: List[Any],
        initialExpression: str = "",
        maxIterations: Optional[int] = None,
    ) -> dict:
        _validate_required("taskDescription", taskDescription)
        request = SynthesisRequest(
            initial_expression=initialExpression or "",
            positive_examples=list(positiveExamples),
            negative_examples=list(negativeExamples),
            task_description=taskDescription,
        )
        return await synthesize_tool(services, request, max_iterations=maxIterations)

    @server.tool(
            description="Generate validated true/false example documents for a JSONata expression."
    )
    async def generate_examples(jsonata: str, description: str, output: Any = None) -> dict:
        _validate_required("jsonata", jsonata)
        return await generate_examples_tool(services, jsonata, output, description)

    return server


def main() -> None:
    config = AppConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    server = build_server(Services.from_config(config))
    server.run()


if __name__ == "__main__":
    main()
