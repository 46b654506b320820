"""
naming — Download filenames and human-readable sizes/durations.

Filename formats:
  sxxexx        → Series - S01E01 - Episode title.mp4
  txcx          → Series - T1xC54 - Episode title.mp4   (default)
  titol_complet → upstream full title, verbatim
"""
from __future__ import annotations
import re
from enum import Enum

MEDIA_EXTENSION = ".mp4"

_UNSAFE_RE = re.compile(r'[/\\?*:<>"|]')
# Leading "T1xC54 - " the catalog puts in front of most episode titles
_TAG_PREFIX_RE = re.compile(r"^T\d+xC\d+\s*[-–]\s*")


class TitleFormat(str, Enum):
    SXXEXX = "sxxexx"
    TXCX = "txcx"
    FULL_TITLE = "titol_complet"


def sanitize_filename(name: str) -> str:
    return _UNSAFE_RE.sub("", name).strip()


def clean_episode_title(raw_title: str) -> str:
    return _TAG_PREFIX_RE.sub("", raw_title).strip()


def episode_tag(season_num: int, episode_num: int, title_format: TitleFormat | str,
                capitol: str | None = None) -> str | None:
    """Short season/episode label for a format (None for the full-title format)."""
    fmt = TitleFormat(title_format)
    if fmt == TitleFormat.FULL_TITLE:
        return None
    if fmt == TitleFormat.TXCX:
        return f"T{season_num}xC{capitol or episode_num}"
    return f"S{season_num:02d}E{episode_num:02d}"


def build_filename(
    series_title: str,
    season_num: int,
    episode_num: int,
    title: str | None = None,
    title_format: TitleFormat | str = TitleFormat.TXCX,
    *,
    full_title: str | None = None,
    capitol: str | None = None,
) -> str:
    raw_title = title or f"Episodi {episode_num}"
    fmt = TitleFormat(title_format)

    if fmt == TitleFormat.FULL_TITLE:
        full = full_title or f"{series_title} - {raw_title}"
        return sanitize_filename(full) + MEDIA_EXTENSION

    tag = episode_tag(season_num, episode_num, fmt, capitol=capitol)
    clean = clean_episode_title(raw_title)
    return sanitize_filename(f"{series_title} - {tag} - {clean}") + MEDIA_EXTENSION


def format_duration(value: str | None) -> str:
    """'12:34' → '12m 34s'; 'HH:MM:SS' or 'MM:SS:frames' → 'Hh Mm' / 'Mm Ss'."""
    if not value:
        return ""
    try:
        parts = [int(p) for p in value.split(":")]
    except ValueError:
        return ""

    if len(parts) == 1:
        total = parts[0]
    elif len(parts) == 2:
        total = parts[0] * 60 + parts[1]
    elif parts[0] > 23:
        # can't be hours, so MM:SS:frames
        total = parts[0] * 60 + parts[1]
    else:
        total = parts[0] * 3600 + parts[1] * 60 + parts[2]

    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}h {m}m"
    if m > 0:
        return f"{m}m {s}s"
    return f"{s}s"


def format_file_size(num_bytes: int | None) -> str:
    if not num_bytes or num_bytes <= 0:
        return ""
    if num_bytes >= 1024 ** 3:
        return f"{num_bytes / 1024 ** 3:.1f} GB"
    if num_bytes >= 1024 ** 2:
        return f"{num_bytes / 1024 ** 2:.0f} MB"
    if num_bytes >= 1024:
        return f"{round(num_bytes / 1024)} KB"
    return f"{num_bytes} B"


def format_speed(bytes_per_sec: float | None) -> str:
    if not bytes_per_sec or bytes_per_sec < 0:
        return ""
    if bytes_per_sec >= 1024 ** 2:
        return f"{bytes_per_sec / 1024 ** 2:.1f} MB/s"
    if bytes_per_sec >= 1024:
        return f"{round(bytes_per_sec / 1024)} KB/s"
    return f"{round(bytes_per_sec)} B/s"
