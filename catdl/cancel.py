"""
cancel — Cooperative cancellation context.

A CancelToken is threaded through resolvers, the orchestrator read loop and
the proxy; each of them polls it before a network call or chunk read.
"""
from __future__ import annotations
import threading

from .errors import Cancelled


class CancelToken:
    """Thread-safe, one-shot cancellation flag."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise Cancelled()

    def wait(self, timeout: float) -> bool:
        """Sleep up to `timeout` seconds; returns True if cancelled meanwhile."""
        return self._event.wait(timeout)


def check(cancel: CancelToken | None):
    """Raise Cancelled if `cancel` is set (None means not cancellable)."""
    if cancel is not None:
        cancel.raise_if_cancelled()
