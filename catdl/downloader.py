"""
downloader — Per-episode download state machine and the season-wide queue.

State per episode id:

    idle ──▶ loading ──▶ done
               │  ╲
               │   ╲──▶ error
               ╰──▶ idle        (cancelled)

Asking to download an id that is already loading cancels it instead.
"""
from __future__ import annotations
import copy
import threading
import time
import webbrowser
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable

import requests
import structlog

from .cancel import CancelToken
from .endpoints import MEDIA_HEADERS
from .errors import Cancelled, InvalidTransition
from .media import resolve_video
from .models import Episode, VideoInfo
from .naming import TitleFormat, build_filename

log = structlog.get_logger()

CHUNK_SIZE = 256 * 1024
SPEED_INTERVAL_S = 0.5
DONE_CLEAR_DELAY_S = 1.5
QUEUE_THROTTLE_S = 1.8


class DownloadStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    DONE = "done"
    ERROR = "error"


TRANSITIONS: dict[DownloadStatus, set[DownloadStatus]] = {
    DownloadStatus.IDLE: {DownloadStatus.LOADING},
    DownloadStatus.LOADING: {DownloadStatus.DONE, DownloadStatus.ERROR, DownloadStatus.IDLE},
    DownloadStatus.DONE: {DownloadStatus.LOADING},
    DownloadStatus.ERROR: {DownloadStatus.LOADING},
}


@dataclass
class DownloadJob:
    episode_id: str
    status: DownloadStatus = DownloadStatus.IDLE
    progress: int | None = None
    speed: float | None = None
    total_bytes: int | None = None
    path: str | None = None
    error: str | None = None
    cancel: CancelToken | None = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict:
        return {
            "episode_id": self.episode_id,
            "status": self.status.value,
            "progress": self.progress,
            "speed": self.speed,
            "total_bytes": self.total_bytes,
            "path": self.path,
            "error": self.error,
        }


class DownloadStore:
    """The one place download state lives, keyed by episode id."""

    def __init__(self):
        self._jobs: dict[str, DownloadJob] = {}
        self._lock = threading.RLock()
        self._listeners: list[Callable[[DownloadJob], None]] = []

    def subscribe(self, fn: Callable[[DownloadJob], None]):
        self._listeners.append(fn)

    def get(self, episode_id: str) -> DownloadJob:
        """Copy of the job; unknown ids read as idle."""
        with self._lock:
            job = self._jobs.get(episode_id)
            return copy.copy(job) if job else DownloadJob(episode_id=episode_id)

    def snapshot(self) -> list[DownloadJob]:
        with self._lock:
            return [copy.copy(j) for j in self._jobs.values()]

    def begin(self, episode_id: str, token: CancelToken) -> bool:
        """Atomically enter loading; False if this id is already loading."""
        with self._lock:
            job = self._jobs.get(episode_id) or DownloadJob(episode_id=episode_id)
            if job.status == DownloadStatus.LOADING:
                return False
            self._jobs[episode_id] = DownloadJob(
                episode_id=episode_id, status=DownloadStatus.LOADING, cancel=token,
            )
            snap = copy.copy(self._jobs[episode_id])
        self._notify(snap)
        return True

    def update(self, episode_id: str, **fields) -> DownloadJob:
        with self._lock:
            job = self._jobs.get(episode_id) or DownloadJob(episode_id=episode_id)
            new_status = fields.get("status")
            if new_status is not None and new_status != job.status:
                if new_status not in TRANSITIONS[job.status]:
                    raise InvalidTransition(
                        f"{episode_id}: {job.status.value} -> {DownloadStatus(new_status).value}"
                    )
            for k, v in fields.items():
                setattr(job, k, v)
            self._jobs[episode_id] = job
            snap = copy.copy(job)
        self._notify(snap)
        return snap

    def remove(self, episode_id: str):
        with self._lock:
            self._jobs.pop(episode_id, None)
        self._notify(DownloadJob(episode_id=episode_id))

    def cancel_token(self, episode_id: str) -> CancelToken | None:
        with self._lock:
            job = self._jobs.get(episode_id)
            if job and job.status == DownloadStatus.LOADING:
                return job.cancel
            return None

    def _notify(self, job: DownloadJob):
        for fn in list(self._listeners):
            try:
                fn(job)
            except Exception as e:
                log.warning("download_listener_failed", episode_id=job.episode_id, error=str(e))


def open_in_browser(url: str, filename: str):
    """Degraded path: hand the URL to the browser, no progress reporting."""
    log.info("download_fallback_browser", url=url, filename=filename)
    webbrowser.open(url)


class DownloadOrchestrator:
    """Drives one episode at a time through resolve → stream-to-disk → done."""

    def __init__(
        self,
        download_dir: str | Path,
        *,
        store: DownloadStore | None = None,
        title_format: TitleFormat | str = TitleFormat.TXCX,
        resolve: Callable[..., VideoInfo] = resolve_video,
        fallback: Callable[[str, str], None] = open_in_browser,
        done_clear_delay: float = DONE_CLEAR_DELAY_S,
        speed_interval: float = SPEED_INTERVAL_S,
        chunk_size: int = CHUNK_SIZE,
        timeout: float = 30,
    ):
        self.download_dir = Path(download_dir)
        self.store = store or DownloadStore()
        self.title_format = TitleFormat(title_format)
        self._resolve = resolve
        self._fallback = fallback
        self.done_clear_delay = done_clear_delay
        self.speed_interval = speed_interval
        self.chunk_size = chunk_size
        self.timeout = timeout

    def cancel(self, episode_id: str) -> bool:
        token = self.store.cancel_token(episode_id)
        if token is None:
            return False
        token.cancel()
        log.info("download_cancel_requested", episode_id=episode_id)
        return True

    def download(
        self,
        episode: Episode,
        episode_num: int,
        season_num: int,
        series_title: str,
        cancel: CancelToken | None = None,
    ) -> DownloadStatus:
        """
        Run one download to completion in the calling thread; returns the settled status.

        `cancel` lets the caller hold the token before the job is registered
        (the season queue does, so a stop can never miss the current item).
        """
        eid = episode.id
        token = cancel if cancel is not None else CancelToken()
        if not self.store.begin(eid, token):
            # already loading: the second press means "stop"
            self.cancel(eid)
            return DownloadStatus.LOADING

        log.info("download_start", episode_id=eid, season=season_num, episode=episode_num)
        try:
            token.raise_if_cancelled()
            info = self._resolve(eid, cancel=token, timeout=self.timeout)
            best = info.best
            if best is None:
                raise RuntimeError("Video not available")

            filename = build_filename(
                series_title,
                season_num,
                episode_num,
                episode.title,
                self.title_format,
                full_title=info.full_title or episode.full_title,
                capitol=episode.episode_number or None,
            )
            dest = self.download_dir / filename

            try:
                self._transfer(eid, best.url, dest, token)
            except Cancelled:
                raise
            except Exception as e:
                log.warning("download_direct_failed", episode_id=eid, url=best.url, error=str(e))
                token.raise_if_cancelled()
                self._fallback(best.url, filename)

            self.store.update(eid, status=DownloadStatus.DONE, progress=100, speed=None, cancel=None)
            self._schedule_clear(eid)
            log.info("download_done", episode_id=eid, file=str(dest))
            return DownloadStatus.DONE

        except Cancelled:
            self.store.remove(eid)
            log.info("download_cancelled", episode_id=eid)
            return DownloadStatus.IDLE
        except Exception as e:
            log.error("download_failed", episode_id=eid, error=str(e))
            self.store.update(
                eid, status=DownloadStatus.ERROR, error=str(e),
                progress=None, speed=None, total_bytes=None, cancel=None,
            )
            return DownloadStatus.ERROR

    def _transfer(self, eid: str, url: str, dest: Path, token: CancelToken):
        """Stream `url` into `dest`, publishing progress and speed as bytes arrive."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        part = dest.with_name(dest.name + ".part")
        token.raise_if_cancelled()
        try:
            with requests.get(url, headers=MEDIA_HEADERS, stream=True, timeout=self.timeout) as r:
                if not r.ok:
                    raise RuntimeError(f"CDN {r.status_code}")
                length = r.headers.get("Content-Length")
                total = int(length) if length and length.isdigit() else None
                self.store.update(eid, progress=0, total_bytes=total, path=str(dest))

                received = 0
                last_t = time.monotonic()
                last_bytes = 0
                with part.open("wb") as f:
                    for chunk in r.iter_content(chunk_size=self.chunk_size):
                        token.raise_if_cancelled()
                        if not chunk:
                            continue
                        f.write(chunk)
                        received += len(chunk)

                        fields = {}
                        if total:
                            fields["progress"] = min(round(received / total * 100), 99)
                        now = time.monotonic()
                        elapsed = now - last_t
                        if elapsed > 0 and elapsed >= self.speed_interval:
                            fields["speed"] = (received - last_bytes) / elapsed
                            last_t, last_bytes = now, received
                        if fields:
                            self.store.update(eid, **fields)
            part.replace(dest)
        except BaseException:
            part.unlink(missing_ok=True)
            raise

    def _schedule_clear(self, eid: str):
        def _clear():
            job = self.store.get(eid)
            if job.status == DownloadStatus.DONE:
                self.store.update(eid, progress=None, speed=None)

        if self.done_clear_delay <= 0:
            _clear()
            return
        t = threading.Timer(self.done_clear_delay, _clear)
        t.daemon = True
        t.start()


class SeasonQueue:
    """
    Downloads a season's episodes strictly one after another, with a pause between.

    A stop() that arrives before run() starts still holds; the flag is only
    reset once a run has finished.
    """

    def __init__(self, orchestrator: DownloadOrchestrator, throttle: float = QUEUE_THROTTLE_S):
        self.orchestrator = orchestrator
        self.throttle = throttle
        self._stop = threading.Event()
        self._running = threading.Event()
        self._lock = threading.Lock()
        self._current: str | None = None
        self._token: CancelToken | None = None

    @property
    def running(self) -> bool:
        return self._running.is_set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    @property
    def current(self) -> str | None:
        return self._current

    def stop(self):
        self._stop.set()
        with self._lock:
            current, token = self._current, self._token
        if token is not None:
            token.cancel()
        log.info("queue_stop_requested", current=current)

    def _claim(self, episode_id: str) -> CancelToken | None:
        """Register the next item; None once a stop has been requested."""
        token = CancelToken()
        with self._lock:
            self._current, self._token = episode_id, token
        # stop() either saw the token above or set the flag before this check
        if self._stop.is_set():
            self._release()
            return None
        return token

    def _release(self):
        with self._lock:
            self._current, self._token = None, None

    def run(
        self,
        episodes: Iterable[Episode],
        season_num: int,
        series_title: str,
        positions: Iterable[int] | None = None,
    ) -> int:
        """
        Blocks until the queue drains or is stopped; returns the number done.

        `positions` are the episodes' 1-based places in the season listing
        (used for S01E05-style names); defaults to 1, 2, 3...
        """
        if self._running.is_set():
            return 0
        episodes = list(episodes)
        positions = list(positions) if positions is not None else list(range(1, len(episodes) + 1))
        self._running.set()
        done = 0
        try:
            for n, (pos, ep) in enumerate(zip(positions, episodes)):
                # pause between items, cut short by stop()
                if n and self._stop.wait(self.throttle):
                    break
                token = self._claim(ep.id)
                if token is None:
                    break
                status = self.orchestrator.download(ep, pos, season_num, series_title, cancel=token)
                self._release()
                if status == DownloadStatus.DONE:
                    done += 1
        finally:
            stopped = self._stop.is_set()
            self._release()
            self._stop.clear()
            self._running.clear()
        log.info("queue_finished", season=season_num, done=done, stopped=stopped)
        return done
