"""
media — Resolve an episode id into playable MP4 variants, best quality first.
"""
from __future__ import annotations

import requests
import structlog

from .cancel import CancelToken, check
from .endpoints import API_HEADERS, MEDIA_API
from .errors import NotFound, UpstreamTransient
from .models import VideoInfo, VideoVariant, as_list

log = structlog.get_logger()

# Storage-bucket prefixes → public download hosts. At most one ever matches.
CDN_REWRITES: tuple[tuple[str, str], ...] = (
    (
        "mp4-high-es.ccma.cat.s3.eu-west-1.amazonaws.com/MP4_ALTA_IPTV_ES",
        "mp4-down-high-es.3catvideos.cat",
    ),
    (
        "mp4-high-int.ccma.cat.s3.eu-west-1.amazonaws.com/MP4_ALTA_IPTV_MON",
        "mp4-down-high-int.3catvideos.cat",
    ),
    (
        "mp4-medium-es.ccma.cat.s3.eu-west-1.amazonaws.com/MP4_MITJA_WEB_ES",
        "mp4-down-medium-es.3catvideos.cat",
    ),
    (
        "mp4-medium-int.ccma.cat.s3.eu-west-1.amazonaws.com/MP4_MITJA_WEB_MON",
        "mp4-down-medium-int.3catvideos.cat",
    ),
)


def rewrite_cdn_url(url: str) -> str:
    for src, dst in CDN_REWRITES:
        url = url.replace(src, dst)
    return url


def build_variants(media: dict) -> list[VideoVariant]:
    """media.url entries → active, rewritten variants sorted by quality rank (desc)."""
    fmt = media.get("format") or "MP4"
    variants = []
    for entry in as_list(media.get("url")):
        if not isinstance(entry, dict) or not entry.get("file"):
            continue
        variants.append(VideoVariant(
            quality=str(entry.get("label") or "?"),
            url=rewrite_cdn_url(entry["file"]),
            format=fmt,
            active=entry.get("active") is not False,
        ))
    variants = [v for v in variants if v.active]
    variants.sort(key=lambda v: v.rank, reverse=True)
    return variants


def resolve_video(
    episode_id: str,
    cancel: CancelToken | None = None,
    timeout: float = 30,
) -> VideoInfo:
    check(cancel)
    params = {"media": "video", "version": "0s", "idint": episode_id}
    try:
        r = requests.get(MEDIA_API, params=params, headers=API_HEADERS, timeout=timeout)
    except requests.RequestException as e:
        log.error("video_request_failed", episode_id=episode_id, error=str(e))
        raise UpstreamTransient("Could not fetch the video URL") from e

    if not r.ok:
        raise NotFound("Video not found")
    try:
        data = r.json()
    except ValueError as e:
        raise UpstreamTransient("Video info is not valid JSON") from e

    info = data.get("informacio") or {}
    if not (info.get("estat") or {}).get("actiu"):
        log.info("video_inactive", episode_id=episode_id)
        return VideoInfo(available=False)

    videos = build_variants(data.get("media") or {})
    result = VideoInfo(
        available=bool(videos),
        videos=videos,
        title=info.get("titol") or "",
        full_title=info.get("titol_complet") or "",
    )
    log.info("video_resolved", episode_id=episode_id, variants=len(videos),
             best=result.best.quality if result.best else None)
    return result
