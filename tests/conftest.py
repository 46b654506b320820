"""Shared fixtures: fake upstream responses for the requests-based resolvers."""

from __future__ import annotations

import json
import threading
from typing import Any, Callable

import pytest
import requests


def make_response(
    status_code: int = 200,
    *,
    json_data: Any = None,
    text: str | None = None,
    content: bytes | None = None,
    headers: dict[str, str] | None = None,
    url: str = "https://example.test/",
) -> requests.Response:
    r = requests.Response()
    r.status_code = status_code
    if content is None:
        body = json.dumps(json_data) if json_data is not None else (text or "")
        content = body.encode("utf-8")
    r._content = content
    r._content_consumed = True
    r.encoding = "utf-8"
    r.url = url
    for k, v in (headers or {}).items():
        r.headers[k] = v
    return r


class FakeGet:
    """Stand-in for requests.get that routes each call through `handler(url, params)`."""

    def __init__(self, handler: Callable[[str, dict], requests.Response]):
        self._handler = handler
        self._lock = threading.Lock()
        self.calls: list[tuple[str, dict]] = []

    def __call__(self, url, params=None, headers=None, timeout=None, stream=False, **kwargs):
        params = dict(params or {})
        with self._lock:
            self.calls.append((url, params))
        result = self._handler(url, params)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fake_get(monkeypatch: pytest.MonkeyPatch):
    """Install a FakeGet for a handler; returns it so tests can inspect calls."""

    def _install(handler: Callable[[str, dict], requests.Response]) -> FakeGet:
        fake = FakeGet(handler)
        monkeypatch.setattr(requests, "get", fake)
        return fake

    return _install


def listing_page(items: Any, *, page: int = 1, total_pages: int = 1, total_items: int | None = None) -> dict:
    """One page of the season listing service."""
    num = len(items) if isinstance(items, list) else 1
    return {
        "resposta": {
            "items": {"num": num, "item": items},
            "paginacio": {
                "pagina_actual": page,
                "total_pagines": total_pages,
                "total_items": num if total_items is None else total_items,
            },
        }
    }
