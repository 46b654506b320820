"""
endpoints — Upstream URLs and request headers for the 3Cat catalog.
"""
from __future__ import annotations

# Full browser UA; the page and media hosts refuse bare clients
BROWSER_UA = (
    "Mozilla/5.0 (X11; Linux x86_64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

SITE_BASE = "https://www.3cat.cat"
SERIES_PAGE = SITE_BASE + "/3cat/{slug}/capitols/temporada/1/"
VIDEOS_API = "https://api.ccma.cat/videos"
MEDIA_API = "https://dinamics.ccma.cat/pvideo/media.jsp"

PAGE_HEADERS = {
    "User-Agent": BROWSER_UA,
    "Accept": "text/html,application/xhtml+xml",
}

API_HEADERS = {
    "User-Agent": BROWSER_UA,
    "Accept": "application/json",
}

MEDIA_HEADERS = {
    "User-Agent": BROWSER_UA,
    "Referer": SITE_BASE + "/",
    "Accept": "*/*",
    "Accept-Language": "ca,es;q=0.9",
}


def season_selector(num: int) -> str:
    return f"PUTEMP_{num}"


def listing_params(program_id: str, season: int, page: int, page_size: int) -> dict:
    """Query string for one page of the season listing service."""
    return {
        "_format": "json",
        "ordre": "capitol",
        "origen": "llistat",
        "perfil": "pc",
        "programatv_id": program_id,
        "tipus_contingut": "PPD",
        "items_pagina": page_size,
        "pagina": page,
        "version": "2.0",
        "temporada": season_selector(season),
        "https": "true",
    }
