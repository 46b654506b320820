"""
episodes — Enumerate every episode of one season from the listing service.
"""
from __future__ import annotations

import requests
import structlog

from .cancel import CancelToken, check
from .endpoints import API_HEADERS, VIDEOS_API, listing_params
from .errors import EnumerationError
from .models import Episode, as_list, parse_int_prefix

log = structlog.get_logger()

PAGE_SIZE = 50


def list_episodes(
    program_id: str,
    season: int,
    cancel: CancelToken | None = None,
    timeout: float = 30,
) -> list[Episode]:
    """
    Paginate GET api.ccma.cat/videos?...&temporada=PUTEMP_{season} to the end.

    Stops on a non-success page, an empty page, or once the server-reported
    page count is reached. Episodes come back sorted by episode number, ties
    kept in listing order.
    """
    items: list[dict] = []
    page = 1

    while True:
        check(cancel)
        try:
            r = requests.get(
                VIDEOS_API,
                params=listing_params(program_id, season, page=page, page_size=PAGE_SIZE),
                headers=API_HEADERS,
                timeout=timeout,
            )
            if not r.ok:
                log.info("episodes_page_rejected", program_id=program_id, season=season,
                         page=page, status=r.status_code)
                break
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            log.error("episodes_request_failed", program_id=program_id, season=season,
                      page=page, error=str(e))
            raise EnumerationError("Could not fetch the episode list") from e

        resposta = data.get("resposta") or {}
        page_items = resposta.get("items")
        if not page_items or parse_int_prefix(page_items.get("num")) == 0:
            break

        items.extend(i for i in as_list(page_items.get("item")) if isinstance(i, dict))

        pagination = resposta.get("paginacio")
        if not pagination or page >= parse_int_prefix(pagination.get("total_pagines")):
            break
        page += 1

    # sorted() is stable: equal episode numbers keep listing order
    episodes = sorted((Episode.from_api(i) for i in items), key=lambda e: e.number)
    log.info("episodes_listed", program_id=program_id, season=season,
             count=len(episodes), pages=page)
    return episodes
