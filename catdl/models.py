"""
models — Catalog data model (series, seasons, episodes, video variants).

All of these are rebuilt on every resolution; nothing here is persisted.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field, asdict
from typing import Any, Optional

_INT_PREFIX_RE = re.compile(r"^\s*([+-]?\d+)")
_FIRST_INT_RE = re.compile(r"(\d+)")


def parse_int_prefix(value: Any) -> int:
    """Leading integer of `value` ('12', '12b', 12) or 0 when there is none."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    m = _INT_PREFIX_RE.match(str(value or ""))
    return int(m.group(1)) if m else 0


def quality_rank(label: Any) -> int:
    """First integer found anywhere in a quality label, 0 if none."""
    m = _FIRST_INT_RE.search(str(label))
    return int(m.group(1)) if m else 0


def as_list(value: Any) -> list:
    """The catalog returns a bare object instead of a list when there is one item."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


@dataclass(frozen=True)
class Season:
    num: int
    total: int
    selector: str

    @property
    def name(self) -> str:
        return f"{self.num}a Temporada"


@dataclass(frozen=True)
class Series:
    program_id: str
    title: str
    description: str
    slug: str
    thumbnail: Optional[str]
    seasons: tuple[Season, ...] = ()

    def season(self, num: int) -> Season | None:
        for s in self.seasons:
            if s.num == num:
                return s
        return None


@dataclass
class EpisodeImage:
    size: Optional[str]
    role: Optional[str]
    url: Optional[str]


@dataclass
class Episode:
    id: str
    episode_number: str
    title: str
    full_title: Optional[str] = None
    duration: str = ""
    images: list[EpisodeImage] = field(default_factory=list)
    synopsis: str = ""
    raw: dict = field(default_factory=dict, repr=False)

    @property
    def number(self) -> int:
        return parse_int_prefix(self.episode_number)

    @classmethod
    def from_api(cls, item: dict) -> "Episode":
        images = [
            EpisodeImage(size=i.get("mida"), role=i.get("rel_name"), url=i.get("text"))
            for i in as_list(item.get("imatges"))
            if isinstance(i, dict)
        ]
        capitol = item.get("capitol")
        return cls(
            id=str(item.get("id", "")),
            episode_number="" if capitol is None else str(capitol),
            title=item.get("titol") or "",
            full_title=item.get("titol_complet") or None,
            duration=item.get("durada") or "",
            images=images,
            synopsis=item.get("entradeta") or item.get("descripcio") or "",
            raw=item,
        )

    def best_image(self, preferred_size: str) -> str | None:
        for img in self.images:
            if img.size == preferred_size:
                return img.url
        return self.images[-1].url if self.images else None


@dataclass
class VideoVariant:
    quality: str
    url: str
    format: str = "MP4"
    active: bool = True

    @property
    def rank(self) -> int:
        return quality_rank(self.quality)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class VideoInfo:
    available: bool
    videos: list[VideoVariant] = field(default_factory=list)
    title: str = ""
    full_title: str = ""

    @property
    def best(self) -> VideoVariant | None:
        return self.videos[0] if self.videos else None
