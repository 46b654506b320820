"""
routers/sse — Server-Sent Events stream of download progress.

A new subscriber first gets one `download_snapshot` with every known job,
then live `download_update` / task events as they happen.
"""
from __future__ import annotations
import asyncio
import json
from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from ...downloader import DownloadOrchestrator
from ..deps import get_orchestrator
from ..sse import event_bus

router = APIRouter(prefix="/api/v1", tags=["sse"])

PING_INTERVAL_S = 30.0


@router.get("/events")
async def event_stream(orch: DownloadOrchestrator = Depends(get_orchestrator)):
    queue = event_bus.subscribe()
    jobs = [j.to_dict() for j in orch.store.snapshot()]

    async def _generate():
        try:
            yield {"event": "download_snapshot", "data": json.dumps({"jobs": jobs})}
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=PING_INTERVAL_S)
                except asyncio.TimeoutError:
                    yield {"event": "ping", "data": "{}"}
                    continue
                yield {"event": event.type, "data": event.to_sse()}
        finally:
            event_bus.unsubscribe(queue)

    return EventSourceResponse(_generate())
