"""
sse — In-process event bus for Server-Sent Events.
"""
from __future__ import annotations
import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import Any
import structlog

log = structlog.get_logger()


@dataclass
class Event:
    type: str
    data: dict[str, Any]
    timestamp: float = field(default_factory=time.time)

    def to_sse(self) -> str:
        return json.dumps({"type": self.type, "data": self.data, "ts": self.timestamp})


class EventBus:
    """Broadcast events to all connected SSE clients."""

    def __init__(self):
        self._subscribers: list[asyncio.Queue] = []
        self._loop: asyncio.AbstractEventLoop | None = None

    def bind_loop(self, loop: asyncio.AbstractEventLoop | None):
        """Remember the server loop so worker threads can publish into it."""
        self._loop = loop

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=100)
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue):
        try:
            self._subscribers.remove(q)
        except ValueError:
            pass

    def _publish_now(self, event: Event):
        dead = []
        for q in self._subscribers:
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                dead.append(q)
        for q in dead:
            self.unsubscribe(q)
            log.warning("sse_subscriber_dropped", reason="queue_full")

    async def publish(self, event: Event):
        self._publish_now(event)

    def publish_sync(self, event_type: str, data: dict[str, Any]):
        """Publish from a worker thread (download loop, task tracker)."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return  # no server running
        loop.call_soon_threadsafe(self._publish_now, Event(type=event_type, data=data))


# Singleton
event_bus = EventBus()
