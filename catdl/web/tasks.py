"""
tasks — Background threads for server-side downloads and season queues.

Each task is tagged with a key (an episode id, or "<program>/<season>" for a
queue) so the API can tell whether work for that key is still running.
"""
from __future__ import annotations
import threading
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable
import structlog

from .sse import event_bus

log = structlog.get_logger()


class TaskStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class BackgroundTask:
    id: str
    kind: str
    key: str
    status: TaskStatus = TaskStatus.RUNNING
    result: Any = None
    error: str | None = None
    started_at: float | None = None
    finished_at: float | None = None


class TaskTracker:
    def __init__(self, max_history: int = 200):
        self._tasks: dict[str, BackgroundTask] = {}
        self._lock = threading.Lock()
        self._max_history = max_history

    def submit(self, kind: str, key: str, fn: Callable, *args, **kwargs) -> BackgroundTask:
        task = BackgroundTask(id=uuid.uuid4().hex[:12], kind=kind, key=key, started_at=time.time())
        with self._lock:
            self._tasks[task.id] = task
            self._trim()

        def _run():
            try:
                task.result = fn(*args, **kwargs)
                task.status = TaskStatus.COMPLETED
            except Exception as e:
                task.status = TaskStatus.FAILED
                task.error = str(e)
                log.error("background_task_failed", task_id=task.id, kind=kind, key=key, error=str(e))
            finally:
                task.finished_at = time.time()
                event_bus.publish_sync(f"{kind}_{task.status.value}", {
                    "task_id": task.id, "key": key,
                    "result": None if task.result is None else str(task.result),
                    "error": task.error,
                })

        threading.Thread(target=_run, name=f"{kind}-{key}", daemon=True).start()
        log.info("background_task_started", task_id=task.id, kind=kind, key=key)
        return task

    def get(self, task_id: str) -> BackgroundTask | None:
        return self._tasks.get(task_id)

    def running(self, kind: str, key: str) -> BackgroundTask | None:
        with self._lock:
            for t in self._tasks.values():
                if t.kind == kind and t.key == key and t.status == TaskStatus.RUNNING:
                    return t
        return None

    def _trim(self):
        finished = sorted(
            (t for t in self._tasks.values() if t.status != TaskStatus.RUNNING),
            key=lambda t: t.finished_at or 0,
        )
        for t in finished[:max(0, len(self._tasks) - self._max_history)]:
            del self._tasks[t.id]


# Singleton
task_tracker = TaskTracker()
