"""SSE endpoint exposing the coordinator's quote state."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from .coordinator import QuoteCoordinator

logger = logging.getLogger(__name__)


def create_stream_router(coordinator: QuoteCoordinator, interval: float = 0.5) -> APIRouter:
    """Create the SSE router bound to one coordinator.

    The coordinator is injected here rather than looked up from a global.
    """
    router = APIRouter(prefix="/api/stream", tags=["streaming"])

    @router.get("/quotes")
    async def stream_quotes(request: Request) -> StreamingResponse:
        """SSE endpoint for live quote state.

        Emits the full state whenever it changes:

            data: {"quotes": {"AAPL": {...}}, "connection_status": "connected", ...}

        Includes a retry directive so EventSource reconnects on its own.
        """
        return StreamingResponse(
            _generate_events(coordinator, request, interval),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    @router.get("/snapshot")
    async def quote_snapshot() -> dict:
        """Current quote state as plain JSON."""
        return coordinator.get_snapshot().to_dict()

    return router


async def _generate_events(
    coordinator: QuoteCoordinator,
    request: Request,
    interval: float = 0.5,
) -> AsyncGenerator[str, None]:
    """Yield SSE-formatted state events until the client disconnects."""
    yield "retry: 1000\n\n"

    last_version = -1
    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s", client_ip)

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break

            state = coordinator.get_snapshot()
            if state.version != last_version:
                last_version = state.version
                yield f"data: {json.dumps(state.to_dict())}\n\n"

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
