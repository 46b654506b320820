"""
proxy — Redirect-resolving streaming fetch for allow-listed media hosts.

The media CDN serves files cross-origin without a usable filename, so the
web layer relays them with its own Content-Disposition. Redirects are
followed here, hop by hop, so every intermediate host is checked against the
allow-list and no header reaches the client before a final 200.
"""
from __future__ import annotations
from typing import AsyncIterator
from urllib.parse import quote, urljoin, urlparse

import httpx
import structlog

from .cancel import CancelToken, check
from .endpoints import MEDIA_HEADERS
from .errors import BadRedirect, DomainRejected, RedirectLimitExceeded

log = structlog.get_logger()

ALLOWED_DOMAINS = ("3catvideos.cat", "ccma.cat", "amazonaws.com")
MAX_REDIRECTS = 5
REDIRECT_STATUSES = {301, 302, 303, 307, 308}
DEFAULT_CONTENT_TYPE = "video/mp4"
CHUNK_SIZE = 64 * 1024


def is_domain_allowed(url: str) -> bool:
    """Exact root domain or a dot-boundary subdomain of one; never a bare suffix."""
    try:
        p = urlparse(url)
    except ValueError:
        return False
    if p.scheme not in ("http", "https"):
        return False
    host = (p.hostname or "").lower()
    return any(host == d or host.endswith("." + d) for d in ALLOWED_DOMAINS)


def ensure_allowed(url: str):
    if not is_domain_allowed(url):
        raise DomainRejected(f"Domain not allowed: {url}")


def content_disposition(filename: str) -> str:
    """RFC 5987 attachment header that keeps non-ASCII names intact."""
    return f"attachment; filename*=UTF-8''{quote(filename.strip(), safe='')}"


async def open_upstream(
    client: httpx.AsyncClient,
    url: str,
    cancel: CancelToken | None = None,
) -> httpx.Response:
    """
    Send GET `url` and follow up to MAX_REDIRECTS hops.

    Returns the first non-redirect response, still streaming; the caller owns
    it and must close it.
    """
    hops = 0
    while True:
        check(cancel)
        ensure_allowed(url)
        request = client.build_request("GET", url, headers=MEDIA_HEADERS)
        response = await client.send(request, stream=True)

        if response.status_code not in REDIRECT_STATUSES:
            log.info("proxy_upstream_resolved", url=url, status=response.status_code, hops=hops)
            return response

        location = response.headers.get("location")
        await response.aclose()  # discard redirect body
        if not location:
            raise BadRedirect("Redirect without Location header")
        if hops >= MAX_REDIRECTS:
            raise RedirectLimitExceeded(f"Too many redirects (>{MAX_REDIRECTS})")
        next_url = urljoin(url, location)
        log.debug("proxy_redirect", hop=hops + 1, src=url, dst=next_url)
        url = next_url
        hops += 1


def attachment_headers(response: httpx.Response, filename: str) -> dict[str, str]:
    headers = {
        "Content-Disposition": content_disposition(filename),
        "Content-Type": response.headers.get("content-type") or DEFAULT_CONTENT_TYPE,
    }
    length = response.headers.get("content-length")
    if length:
        headers["Content-Length"] = length
    return headers


async def stream_body(
    response: httpx.Response,
    cancel: CancelToken | None = None,
    chunk_size: int = CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """
    Yield the upstream body chunk by chunk.

    An upstream failure ends the stream early (the client sees a truncated
    response, not a hang). The upstream response is closed on every exit,
    including generator close on client disconnect.
    """
    sent = 0
    try:
        async for chunk in response.aiter_bytes(chunk_size):
            if cancel is not None and cancel.cancelled:
                log.info("proxy_stream_cancelled", url=str(response.url), sent=sent)
                return
            sent += len(chunk)
            yield chunk
        log.info("proxy_stream_done", url=str(response.url), sent=sent)
    except httpx.HTTPError as e:
        log.error("proxy_stream_error", url=str(response.url), sent=sent, error=str(e))
    finally:
        await response.aclose()
