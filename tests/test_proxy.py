"""Download proxy: allow-list, bounded redirects, streamed attachment."""

from __future__ import annotations

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from catdl.errors import BadRedirect, DomainRejected, RedirectLimitExceeded
from catdl.proxy import (
    MAX_REDIRECTS,
    content_disposition,
    is_domain_allowed,
    open_upstream,
    stream_body,
)
from catdl.web.app import create_app
from catdl.web.deps import get_http_client

VIDEO = "https://mp4-down-high-es.3catvideos.cat/2024/01/6543210.mp4"


def _redirect_chain(hops: int, *, final: httpx.Response | None = None):
    """/0 → /1 → ... → /hops, which answers 200 (or `final`)."""
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        n = int(request.url.path.rsplit("/", 1)[-1])
        if n < hops:
            return httpx.Response(302, headers={"location": f"/hop/{n + 1}"})
        return final or httpx.Response(200, content=b"video-bytes", headers={"content-type": "video/mp4"})

    return handler, seen


async def _open(handler, url: str) -> httpx.Response:
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        response = await open_upstream(client, url)
        await response.aread()
        await response.aclose()
        return response


# ── allow-list ─────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "url",
    [
        VIDEO,
        "https://3catvideos.cat/x.mp4",
        "https://dinamics.ccma.cat/pvideo/media.jsp",
        "https://mp4-high-es.ccma.cat.s3.eu-west-1.amazonaws.com/a.mp4",
        "http://CCMA.CAT/a.mp4",
    ],
)
def test_allowed_domains(url: str) -> None:
    assert is_domain_allowed(url)


@pytest.mark.parametrize(
    "url",
    [
        "https://evil-3catvideos.cat.example.com/x.mp4",
        "https://evil3catvideos.cat/x.mp4",
        "https://ccma.cat.evil.test/x.mp4",
        "ftp://ccma.cat/x.mp4",
        "https://example.com/?u=ccma.cat",
        "not a url",
    ],
)
def test_rejected_domains(url: str) -> None:
    assert not is_domain_allowed(url)


def test_content_disposition_keeps_non_ascii() -> None:
    header = content_disposition(" Teo - T1xC5 - L'àvia.mp4 ")
    assert header == "attachment; filename*=UTF-8''Teo%20-%20T1xC5%20-%20L%27%C3%A0via.mp4"


# ── redirect resolution ────────────────────────────────────────────────

def test_five_redirects_are_followed() -> None:
    handler, seen = _redirect_chain(MAX_REDIRECTS)
    response = asyncio.run(_open(handler, "https://a.3catvideos.cat/hop/0"))
    assert response.status_code == 200
    assert len(seen) == MAX_REDIRECTS + 1
    assert seen[-1] == "https://a.3catvideos.cat/hop/5"


def test_sixth_redirect_is_refused() -> None:
    handler, seen = _redirect_chain(MAX_REDIRECTS + 1)
    with pytest.raises(RedirectLimitExceeded):
        asyncio.run(_open(handler, "https://a.3catvideos.cat/hop/0"))
    assert len(seen) == MAX_REDIRECTS + 1


def test_redirect_without_location() -> None:
    with pytest.raises(BadRedirect):
        asyncio.run(_open(lambda request: httpx.Response(302), VIDEO))


def test_redirect_to_foreign_host_is_not_followed() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.host)
        return httpx.Response(301, headers={"location": "https://evil.example.com/x.mp4"})

    with pytest.raises(DomainRejected):
        asyncio.run(_open(handler, VIDEO))
    assert seen == ["mp4-down-high-es.3catvideos.cat"]


def test_upstream_request_carries_browser_headers() -> None:
    captured: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured.update(request.headers)
        return httpx.Response(200, content=b"")

    asyncio.run(_open(handler, VIDEO))
    assert "Mozilla/5.0" in captured["user-agent"]
    assert captured["referer"] == "https://www.3cat.cat/"


# ── body streaming ─────────────────────────────────────────────────────

class _BrokenStream(httpx.AsyncByteStream):
    def __init__(self):
        self.closed = False

    async def __aiter__(self):
        yield b"first"
        raise httpx.ReadError("connection reset")

    async def aclose(self) -> None:
        self.closed = True


def test_stream_ends_and_closes_on_upstream_error() -> None:
    stream = _BrokenStream()
    response = httpx.Response(200, stream=stream, request=httpx.Request("GET", VIDEO))

    async def collect() -> list[bytes]:
        return [chunk async for chunk in stream_body(response)]

    assert asyncio.run(collect()) == [b"first"]
    assert stream.closed
    assert response.is_closed


class _EndlessStream(httpx.AsyncByteStream):
    def __init__(self):
        self.closed = False
        self.sent = 0

    async def __aiter__(self):
        while not self.closed:
            self.sent += 1
            yield b"data"

    async def aclose(self) -> None:
        self.closed = True


def test_client_disconnect_closes_upstream() -> None:
    stream = _EndlessStream()
    response = httpx.Response(200, stream=stream, request=httpx.Request("GET", VIDEO))

    async def read_one_then_leave() -> bytes:
        body = stream_body(response, chunk_size=4)
        first = await body.__anext__()
        await body.aclose()
        return first

    assert asyncio.run(read_one_then_leave()) == b"data"
    assert stream.closed
    assert response.is_closed
    assert stream.sent < 10


# ── HTTP route ─────────────────────────────────────────────────────────

@pytest.fixture
def proxy_client():
    def _make(handler) -> TestClient:
        app = create_app()
        app.dependency_overrides[get_http_client] = lambda: httpx.AsyncClient(
            transport=httpx.MockTransport(handler)
        )
        return TestClient(app)
    return _make


def test_route_streams_attachment(proxy_client) -> None:
    body = b"\x00\x01" * 4096

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/start.mp4":
            return httpx.Response(302, headers={"location": VIDEO})
        return httpx.Response(200, content=body, headers={"content-type": "video/mp4"})

    client = proxy_client(handler)
    r = client.get("/api/v1/download", params={
        "url": "https://mp4-down-high-es.3catvideos.cat/start.mp4",
        "filename": "Teo - T1xC5 - L'àvia.mp4",
    })

    assert r.status_code == 200
    assert r.content == body
    assert r.headers["content-type"] == "video/mp4"
    assert r.headers["content-length"] == str(len(body))
    assert r.headers["content-disposition"].startswith("attachment; filename*=UTF-8''Teo%20-%20T1xC5")
    assert "%C3%A0via.mp4" in r.headers["content-disposition"]


def test_route_defaults_content_type(proxy_client) -> None:
    client = proxy_client(lambda request: httpx.Response(200, content=b"abc"))
    r = client.get("/api/v1/download", params={"url": VIDEO, "filename": "a.mp4"})
    assert r.status_code == 200
    assert r.headers["content-type"] == "video/mp4"


@pytest.mark.parametrize("params", [{}, {"url": VIDEO}, {"filename": "a.mp4"}, {"url": VIDEO, "filename": "  "}])
def test_route_missing_parameters(proxy_client, params: dict) -> None:
    client = proxy_client(lambda request: pytest.fail("no upstream call expected"))
    assert client.get("/api/v1/download", params=params).status_code == 400


def test_route_rejects_foreign_host(proxy_client) -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(200)

    client = proxy_client(handler)
    r = client.get("/api/v1/download", params={
        "url": "https://evil-3catvideos.cat.example.com/x.mp4", "filename": "a.mp4",
    })
    assert r.status_code == 403
    assert calls == []


def test_route_rejects_redirect_to_foreign_host(proxy_client) -> None:
    client = proxy_client(lambda request: httpx.Response(302, headers={"location": "https://evil.test/x"}))
    r = client.get("/api/v1/download", params={"url": VIDEO, "filename": "a.mp4"})
    assert r.status_code == 403
    assert "content-disposition" not in r.headers


def test_route_redirect_loop(proxy_client) -> None:
    client = proxy_client(lambda request: httpx.Response(302, headers={"location": VIDEO}))
    r = client.get("/api/v1/download", params={"url": VIDEO, "filename": "a.mp4"})
    assert r.status_code == 500
    assert "Too many redirects" in r.text


def test_route_passes_upstream_status_through(proxy_client) -> None:
    client = proxy_client(lambda request: httpx.Response(404, content=b"gone"))
    r = client.get("/api/v1/download", params={"url": VIDEO, "filename": "a.mp4"})
    assert r.status_code == 404
    assert r.text == "Video server error: 404"


def test_route_network_failure(proxy_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    client = proxy_client(handler)
    r = client.get("/api/v1/download", params={"url": VIDEO, "filename": "a.mp4"})
    assert r.status_code == 500
    assert r.text.startswith("Download failed:")
