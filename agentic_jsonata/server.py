from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from agentic_jsonata.config import AppConfig
from agentic_jsonata.models import ErrorResponse, ExampleRequestBody, ExampleSetResponse, SynthesisRequestBody
from agentic_jsonata.synthesis.errors import ExampleGenerationError, LLMError
from agentic_jsonata.synthesis.loop import CancellationToken
from agentic_jsonata.synthesis.streaming import ndjson_lines, stream_run
from agentic_jsonata.tools import Services, generate_examples_tool

LOG = logging.getLogger("agentic_jsonata.server")


def create_app(config: Optional[AppConfig] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build the HTTP app.

    When ``services`` is given it is used as-is and left open on shutdown;
    otherwise one LLM client and document store are built at startup and
    closed at shutdown.
    """
    config = config or (services.config if services else AppConfig.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        if owned:
            app.state.services = Services.from_config(config)
        LOG.info("agentic-jsonata ready (backend=%s, model=%s)", config.llm.backend, config.llm.model)
        try:
            yield
        finally:
            if owned:
                await app.state.services.close()

    app = FastAPI(title="agentic-jsonata", lifespan=lifespan)
    if services is not None:
        app.state.services = services

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.post("/api/agentic-jsonata")
    async def agentic_jsonata(body: SynthesisRequestBody, request: Request) -> StreamingResponse:
        run_services: Services = request.app.state.services
        token = CancellationToken()
        payloads = stream_run(run_services.synthesis_loop(), body.to_request(), token)
        return StreamingResponse(
            ndjson_lines(payloads),
            media_type="application/x-ndjson",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.post(
        "/api/examples",
        response_model=ExampleSetResponse,
        responses={500: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    )
    async def examples(body: ExampleRequestBody, request: Request):
        run_services: Services = request.app.state.services
        try:
            return await generate_examples_tool(run_services, body.jsonata, body.output, body.description)
        except ExampleGenerationError as exc:
            LOG.error("Example generation failed: %s", exc)
            return JSONResponse(status_code=500, content=ErrorResponse(error=str(exc)).model_dump())
        except LLMError as exc:
            LOG.error("LLM unavailable during example generation: %s", exc)
            return JSONResponse(status_code=502, content=ErrorResponse(error=str(exc)).model_dump())

    return app


def main() -> None:
    config = AppConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
