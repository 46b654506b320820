"""
deps — FastAPI dependencies (config, upstream HTTP client, orchestrator).
"""
from __future__ import annotations

import httpx
from fastapi import Request

from ..config import Config, load_config
from ..downloader import DownloadOrchestrator, DownloadStore, SeasonQueue
from ..paths import download_dir
from .sse import event_bus

_config: Config | None = None
_orchestrator: DownloadOrchestrator | None = None
_queues: dict[str, SeasonQueue] = {}


def get_config() -> Config:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def _publish_job(job):
    event_bus.publish_sync("download_update", job.to_dict())


def _browser_fallback(url: str, filename: str):
    # The server can't open a browser; let connected clients navigate instead
    event_bus.publish_sync("download_fallback", {"url": url, "filename": filename})


def get_orchestrator() -> DownloadOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        cfg = get_config()
        store = DownloadStore()
        store.subscribe(_publish_job)
        _orchestrator = DownloadOrchestrator(
            download_dir(cfg.download_dir),
            store=store,
            title_format=cfg.title_format,
            fallback=_browser_fallback,
            done_clear_delay=cfg.done_clear_delay_s,
            timeout=cfg.request_timeout,
        )
    return _orchestrator


def new_queue(key: str, orchestrator: DownloadOrchestrator, throttle: float) -> SeasonQueue:
    """A fresh queue for each run of a program/season key, replacing the last one."""
    q = SeasonQueue(orchestrator, throttle=throttle)
    _queues[key] = q
    return q


def get_queue(key: str) -> SeasonQueue | None:
    return _queues.get(key)


def get_http_client(request: Request) -> httpx.AsyncClient:
    """App-wide upstream client; created lazily when the lifespan did not run."""
    client = getattr(request.app.state, "http", None)
    if client is None:
        client = httpx.AsyncClient(timeout=get_config().request_timeout)
        request.app.state.http = client
    return client
