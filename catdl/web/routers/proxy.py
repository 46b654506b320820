"""
routers/proxy — GET /api/v1/download: stream an allow-listed video as an attachment.
"""
from __future__ import annotations
import httpx
import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse, StreamingResponse
from starlette.background import BackgroundTask

from ...errors import DomainRejected, RedirectError
from ...proxy import attachment_headers, is_domain_allowed, open_upstream, stream_body
from ..deps import get_http_client

log = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["proxy"])


@router.get("/download")
async def download(
    url: str | None = Query(None),
    filename: str | None = Query(None),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    if not url or not filename or not filename.strip():
        return PlainTextResponse("Missing parameters: url and filename", status_code=400)
    if not is_domain_allowed(url):
        return PlainTextResponse("Domain not allowed", status_code=403)

    try:
        upstream = await open_upstream(client, url)
    except DomainRejected as e:
        log.warning("proxy_redirect_rejected", url=url, error=str(e))
        return PlainTextResponse(str(e), status_code=403)
    except (RedirectError, httpx.HTTPError) as e:
        log.error("proxy_error", url=url, error=str(e))
        return PlainTextResponse(f"Download failed: {e}", status_code=500)

    if upstream.status_code != 200:
        status = upstream.status_code
        await upstream.aclose()
        return PlainTextResponse(f"Video server error: {status}", status_code=status)

    return StreamingResponse(
        stream_body(upstream),
        status_code=200,
        headers=attachment_headers(upstream, filename),
        # closes the upstream even if the client went away mid-stream
        background=BackgroundTask(upstream.aclose),
    )
