"""Chat API routes.

`POST /api/chat` runs one turn and streams its events as server-sent events.
Turns are serialized by the session itself; a request arriving while another
turn runs is rejected instead of queued.
"""

import asyncio
import json
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from backend.models import (
    ChatRequest,
    HealthResponse,
    InterruptResponse,
    ToolInfo,
    ToolsResponse,
)
from reporter.core.events import Event, QueueEventSink
from reporter.core.session import ChatSession
from reporter.runtime import Runtime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


def get_runtime(request: Request) -> Runtime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Runtime not ready")
    return runtime


def format_sse(event: Event) -> str:
    payload = json.dumps(event.data or {}, default=str)
    return f"event: {event.event_type}\ndata: {payload}\n\n"


async def stream_turn(session: ChatSession, text: str) -> AsyncIterator[str]:
    """Run one turn in a task and yield its events until it finishes"""
    sink = QueueEventSink()
    turn = asyncio.create_task(session.send(text, sink))
    try:
        while True:
            next_event = asyncio.create_task(sink.queue.get())
            done, _ = await asyncio.wait({next_event, turn}, return_when=asyncio.FIRST_COMPLETED)
            if next_event in done:
                yield format_sse(next_event.result())
                continue
            next_event.cancel()
            break

        while not sink.queue.empty():
            yield format_sse(sink.queue.get_nowait())

        if not turn.cancelled() and turn.exception() is not None:
            # already reported to the client as an `error` event
            logger.error(f"Turn failed: {turn.exception()}")
    finally:
        if not turn.done():
            # client went away mid-turn
            session.interrupt()
            await asyncio.gather(turn, return_exceptions=True)


@router.get("/health", response_model=HealthResponse)
async def health_check(runtime: Runtime = Depends(get_runtime)) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        model=runtime.session.provider.model,
        busy=runtime.session.is_busy,
    )


@router.post("/chat")
async def chat(body: ChatRequest, runtime: Runtime = Depends(get_runtime)) -> StreamingResponse:
    session = runtime.session
    if session.is_busy:
        raise HTTPException(status_code=409, detail="A turn is already running")
    return StreamingResponse(
        stream_turn(session, body.text),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/interrupt", response_model=InterruptResponse)
async def interrupt(runtime: Runtime = Depends(get_runtime)) -> InterruptResponse:
    busy = runtime.session.is_busy
    runtime.session.interrupt()
    return InterruptResponse(interrupted=busy)


@router.post("/clear")
async def clear(runtime: Runtime = Depends(get_runtime)) -> dict:
    if runtime.session.is_busy:
        raise HTTPException(status_code=409, detail="Cannot clear while a turn is running")
    runtime.session.clear()
    return {"status": "cleared"}


@router.get("/tools", response_model=ToolsResponse)
async def list_tools(runtime: Runtime = Depends(get_runtime)) -> ToolsResponse:
    catalog = runtime.tool_router.catalog()
    return ToolsResponse(
        servers=list(runtime.mcp_manager.connections),
        failures=dict(runtime.mcp_manager.failures),
        tools=[ToolInfo(name=t.name, description=t.description) for t in catalog],
    )
