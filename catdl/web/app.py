"""
app — FastAPI application factory.
"""
from __future__ import annotations
import asyncio
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..errors import CatdlError
from .deps import get_config
from .sse import event_bus

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    cfg = get_config()
    event_bus.bind_loop(asyncio.get_running_loop())
    app.state.http = httpx.AsyncClient(timeout=cfg.request_timeout)
    log.info("web_started", host=cfg.web_host, port=cfg.web_port)
    yield
    await app.state.http.aclose()
    event_bus.bind_loop(None)
    log.info("web_stopped")


def create_app() -> FastAPI:
    app = FastAPI(title="catdl", lifespan=lifespan)

    from .routers import catalog, proxy, downloads, system, sse as sse_router
    app.include_router(catalog.router)
    app.include_router(proxy.router)
    app.include_router(downloads.router)
    app.include_router(system.router)
    app.include_router(sse_router.router)

    @app.exception_handler(CatdlError)
    async def _catdl_error_handler(request: Request, exc: CatdlError):
        log.warning("api_error", path=request.url.path, error=exc.message,
                    kind=type(exc).__name__, status=exc.status_code)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def _api_error_handler(request: Request, exc: Exception):
        log.error("api_unexpected_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app
