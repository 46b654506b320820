"""
series — Resolve a 3Cat series page into program identity, metadata and seasons.

The site has no public API for this: the program id is dug out of the
Next.js hydration payload embedded in the season-1 episode page, and seasons
are found by probing the listing service for each season number.
"""
from __future__ import annotations
import json
import re
from concurrent.futures import ThreadPoolExecutor

import requests
import structlog
from bs4 import BeautifulSoup

from .cancel import CancelToken, check
from .endpoints import API_HEADERS, PAGE_HEADERS, SERIES_PAGE, VIDEOS_API, listing_params, season_selector
from .errors import InvalidUrl, NoSeasonsFound, NotFound, ParseError
from .models import Season, Series

log = structlog.get_logger()

MAX_SEASON = 15

# https://www.3cat.cat/3cat/{slug}[/...]
_SLUG_RE = re.compile(r"3cat\.cat/3cat/([^/?#]+)")
# The id shows up inside API URLs in the payload, with the underscore either
# literal or percent-encoded (programatv_id=123456, programatv%5Fid=123456)
_PROGRAM_ID_RE = re.compile(r"programatv[_=%5F]{1,6}id[=%5F]{0,3}?(\d{5,12})", re.IGNORECASE)


def extract_slug(url: str) -> str:
    m = _SLUG_RE.search(url or "")
    if not m:
        raise InvalidUrl(f"Not a 3Cat series URL: {url!r} (e.g. https://www.3cat.cat/3cat/teo/)")
    return m.group(1)


def extract_next_data(html: str) -> dict:
    """Parse the __NEXT_DATA__ hydration payload out of a rendered page."""
    soup = BeautifulSoup(html, "html.parser")
    tag = soup.find("script", id="__NEXT_DATA__")
    if tag is None or not tag.string:
        raise ParseError("Could not extract series data from the page")
    try:
        payload = json.loads(tag.string)
    except ValueError as e:
        raise ParseError(f"Series data is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ParseError("Series data is not a JSON object")
    return payload


def find_program_id(payload: dict) -> str:
    full_text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    m = _PROGRAM_ID_RE.search(full_text)
    if not m:
        raise ParseError("Could not find the program id in the series data")
    return m.group(1)


def _pick_thumbnail(images: list) -> str | None:
    images = [i for i in images if isinstance(i, dict)]
    for img in images:
        if str(img.get("rel_name", "")).upper() == "IMATGE_169":
            return img.get("text")
    for img in images:
        if img.get("mida") == "MASTER":
            return img.get("text")
    if images:
        return images[0].get("text")
    return None


def _first_node_props(payload: dict) -> dict:
    node = payload
    for key in ("props", "pageProps", "layout"):
        node = node.get(key) if isinstance(node, dict) else None
    structure = node.get("structure") if isinstance(node, dict) else None
    if not isinstance(structure, list) or not structure or not isinstance(structure[0], dict):
        return {}
    props = structure[0].get("finalProps")
    return props if isinstance(props, dict) else {}


def _probe_season(program_id: str, num: int, timeout: float, cancel: CancelToken | None) -> int:
    """Total episode count for a season; 0 when absent or the probe fails."""
    try:
        check(cancel)
        r = requests.get(
            VIDEOS_API,
            params=listing_params(program_id, num, page=1, page_size=1),
            headers=API_HEADERS,
            timeout=timeout,
        )
        data = r.json()
        total = data.get("resposta", {}).get("paginacio", {}).get("total_items") or 0
        return int(total)
    except Exception as e:
        log.debug("season_probe_failed", program_id=program_id, season=num, error=str(e))
        return 0


def discover_seasons(
    program_id: str,
    cancel: CancelToken | None = None,
    max_season: int = MAX_SEASON,
    timeout: float = 30,
) -> list[Season]:
    """
    Probe seasons 1..max_season concurrently with page-size-1 queries.

    Every probe settles on its own; the result keeps probe order, not
    completion order.
    """
    numbers = list(range(1, max_season + 1))
    with ThreadPoolExecutor(max_workers=len(numbers)) as pool:
        totals = list(pool.map(lambda n: _probe_season(program_id, n, timeout, cancel), numbers))
    check(cancel)

    seasons = [
        Season(num=n, total=total, selector=season_selector(n))
        for n, total in zip(numbers, totals)
        if total > 0
    ]
    if not seasons:
        raise NoSeasonsFound("No seasons found for this series")
    log.info("seasons_discovered", program_id=program_id, seasons=[s.num for s in seasons])
    return seasons


def resolve_series(
    url: str,
    cancel: CancelToken | None = None,
    max_season: int = MAX_SEASON,
    timeout: float = 30,
) -> Series:
    """Page URL → Series (program id, title, description, thumbnail, seasons)."""
    slug = extract_slug(url)
    page_url = SERIES_PAGE.format(slug=slug)

    check(cancel)
    r = requests.get(page_url, headers=PAGE_HEADERS, timeout=timeout)
    if not r.ok:
        log.warning("series_page_not_found", slug=slug, status=r.status_code)
        raise NotFound(f'Series "{slug}" not found')

    payload = extract_next_data(r.text)
    program_id = find_program_id(payload)

    props = _first_node_props(payload)
    images = props.get("imatges") or []
    if not isinstance(images, list):
        images = [images]

    seasons = discover_seasons(program_id, cancel=cancel, max_season=max_season, timeout=timeout)
    series = Series(
        program_id=program_id,
        title=props.get("titol") or slug,
        description=props.get("descripcio") or "",
        slug=slug,
        thumbnail=_pick_thumbnail(images),
        seasons=tuple(seasons),
    )
    log.info("series_resolved", slug=slug, program_id=program_id, title=series.title,
             seasons=len(series.seasons))
    return series
