"""
routers/catalog — Series info, season episode listing, video variants.
"""
from __future__ import annotations
from fastapi import APIRouter, Depends, Query

from ...config import Config
from ...episodes import list_episodes
from ...errors import MissingParameter
from ...media import resolve_video
from ...series import resolve_series
from ..deps import get_config
from ..schemas import EpisodeListResponse, EpisodeResponse, SeriesResponse, VideoInfoResponse

router = APIRouter(prefix="/api/v1", tags=["catalog"])


@router.get("/series-info", response_model=SeriesResponse)
def series_info(
    url: str | None = Query(None, description="e.g. https://www.3cat.cat/3cat/teo/"),
    cfg: Config = Depends(get_config),
):
    if not url:
        raise MissingParameter("Missing parameter: url")
    series = resolve_series(url, max_season=cfg.max_season, timeout=cfg.request_timeout)
    return SeriesResponse.from_series(series)


@router.get("/episodes", response_model=EpisodeListResponse)
def episodes(
    program_id: str | None = Query(None),
    season: int | None = Query(None, ge=1),
    cfg: Config = Depends(get_config),
):
    if not program_id or season is None:
        raise MissingParameter("Missing parameters: program_id and season")
    eps = list_episodes(program_id, season, timeout=cfg.request_timeout)
    return EpisodeListResponse(
        episodes=[EpisodeResponse.from_episode(e) for e in eps],
        total=len(eps),
    )


@router.get("/video-url", response_model=VideoInfoResponse)
def video_url(
    id: str | None = Query(None, description="Episode id"),
    cfg: Config = Depends(get_config),
):
    if not id:
        raise MissingParameter("Missing parameter: id")
    return VideoInfoResponse.from_info(resolve_video(id, timeout=cfg.request_timeout))
