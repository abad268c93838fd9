"""
Streaming adapter: runs the loop as a producer task feeding a bounded channel.

The consumer side yields one JSON-ready payload per line:

    {"iteration": {...}}                     one per iteration, in order
    {"status": {"status": ..., ...}}         run stopped by a guard
    {"error": {"type": ..., "message": ...}} run-level fault

A successful or cancelled run ends with no extra payload. Closing the
consumer (client disconnect) cancels the token and the producer task.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

from agentic_jsonata.synthesis.loop import CancellationToken, SynthesisLoop
from agentic_jsonata.synthesis.models import IterationRecord, RunResult, RunStatus, SynthesisRequest

LOG = logging.getLogger("synthesis.streaming")

_ITERATION = "iteration"
_RESULT = "result"


def terminal_payload(result: RunResult) -> Optional[Dict[str, Any]]:
    """The closing line for a finished run, or None when nothing follows."""
    if result.status in (RunStatus.SUCCESS, RunStatus.CANCELLED):
        return None
    if result.status == RunStatus.FAILED:
        return {"error": {"type": result.error_type or "Error", "message": result.error_message}}
    return {
        "status": {
            "status": result.status.value,
            "iterations": result.iterations,
            "expression": result.expression,
            "message": result.error_message,
        }
    }


async def stream_run(
    loop: SynthesisLoop,
    request: SynthesisRequest,
    token: Optional[CancellationToken] = None,
) -> AsyncIterator[Dict[str, Any]]:
    """
    Yield payloads for one run.

    Each iteration record is acknowledged by the consumer before the loop
    moves on, so an iteration always reaches the caller before the next one
    is attempted.
    """
    token = token or CancellationToken()
    # One slot: the sink waits for each record to be consumed.
    channel: asyncio.Queue = asyncio.Queue(maxsize=1)

    async def sink(record: IterationRecord) -> None:
        await channel.put((_ITERATION, record))
        await channel.join()

    async def produce() -> None:
        try:
            result = await loop.run(request, sink, token)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - surfaced to the consumer below
            LOG.exception("Synthesis producer crashed")
            result = RunResult(
                status=RunStatus.FAILED,
                error_type=exc.__class__.__name__,
                error_message=str(exc),
            )
        await channel.put((_RESULT, result))

    producer = asyncio.create_task(produce())
    try:
        while True:
            kind, item = await channel.get()
            try:
                if kind == _ITERATION:
                    yield {"iteration": item.to_dict()}
                    continue
                payload = terminal_payload(item)
                if payload is not None:
                    yield payload
                return
            finally:
                channel.task_done()
    finally:
        token.cancel()
        if not producer.done():
            producer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await producer


async def ndjson_lines(payloads: AsyncIterator[Dict[str, Any]]) -> AsyncIterator[str]:
    async with contextlib.aclosing(payloads):
        async for payload in payloads:
            yield json.dumps(payload, default=str) + "\n"
