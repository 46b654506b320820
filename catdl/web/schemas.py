"""
schemas — Pydantic request/response models for the API.
"""
from __future__ import annotations
from pydantic import BaseModel

from ..models import Episode, Series, VideoInfo, VideoVariant


# --- Series ---

class SeasonResponse(BaseModel):
    num: int
    total: int
    selector: str
    name: str


class SeriesResponse(BaseModel):
    program_id: str
    title: str
    description: str
    slug: str
    thumbnail: str | None
    seasons: list[SeasonResponse]

    @classmethod
    def from_series(cls, s: Series) -> "SeriesResponse":
        return cls(
            program_id=s.program_id,
            title=s.title,
            description=s.description,
            slug=s.slug,
            thumbnail=s.thumbnail,
            seasons=[
                SeasonResponse(num=x.num, total=x.total, selector=x.selector, name=x.name)
                for x in s.seasons
            ],
        )


# --- Episodes ---

class ImageResponse(BaseModel):
    size: str | None
    role: str | None
    url: str | None


class EpisodeResponse(BaseModel):
    id: str
    episode_number: str
    title: str
    full_title: str | None = None
    duration: str
    images: list[ImageResponse]
    synopsis: str

    @classmethod
    def from_episode(cls, ep: Episode) -> "EpisodeResponse":
        return cls(
            id=ep.id,
            episode_number=ep.episode_number,
            title=ep.title,
            full_title=ep.full_title,
            duration=ep.duration,
            images=[ImageResponse(size=i.size, role=i.role, url=i.url) for i in ep.images],
            synopsis=ep.synopsis,
        )


class EpisodeListResponse(BaseModel):
    episodes: list[EpisodeResponse]
    total: int


# --- Video ---

class VideoResponse(BaseModel):
    quality: str
    url: str
    format: str
    active: bool

    @classmethod
    def from_variant(cls, v: VideoVariant) -> "VideoResponse":
        return cls(**v.to_dict())


class VideoInfoResponse(BaseModel):
    available: bool
    videos: list[VideoResponse]
    best: VideoResponse | None
    title: str
    full_title: str

    @classmethod
    def from_info(cls, info: VideoInfo) -> "VideoInfoResponse":
        return cls(
            available=info.available,
            videos=[VideoResponse.from_variant(v) for v in info.videos],
            best=VideoResponse.from_variant(info.best) if info.best else None,
            title=info.title,
            full_title=info.full_title,
        )


# --- Downloads ---

class DownloadJobResponse(BaseModel):
    episode_id: str
    status: str
    progress: int | None
    speed: float | None
    total_bytes: int | None
    path: str | None
    error: str | None


class DownloadRequest(BaseModel):
    episode_id: str
    title: str = ""
    episode_number: str = ""
    full_title: str | None = None
    position: int  # 1-based index within the season listing
    season: int
    series_title: str

    def to_episode(self) -> Episode:
        return Episode(
            id=self.episode_id,
            episode_number=self.episode_number,
            title=self.title,
            full_title=self.full_title,
        )


class QueueRequest(BaseModel):
    program_id: str
    season: int
    series_title: str


class TaskResponse(BaseModel):
    task_id: str | None
    key: str
    status: str


class HealthResponse(BaseModel):
    status: str
    downloads_active: int
