from __future__ import annotations
import threading

import typer
from rich import print
from rich.console import Console
from rich.progress import (
    BarColumn, DownloadColumn, Progress, TaskID, TextColumn, TransferSpeedColumn,
)
from rich.table import Table

from .config import load_config
from .downloader import DownloadJob, DownloadOrchestrator, DownloadStatus, DownloadStore, SeasonQueue
from .episodes import list_episodes
from .errors import CatdlError
from .logging_setup import setup_logging
from .media import resolve_video
from .naming import TitleFormat, episode_tag, format_duration
from .paths import download_dir, get_dirs
from .series import resolve_series

console = Console()

app = typer.Typer(no_args_is_help=True, help="Find and download episodes from 3Cat.")


def _fail(e: CatdlError):
    console.print(f"[red]{type(e).__name__}[/red]: {e.message}")
    raise typer.Exit(code=1)


@app.command("paths")
def show_paths():
    """Show where catdl stores config, logs and downloads."""
    cfg = load_config()
    setup_logging(cfg.log_level, pretty=True)
    t = Table(title="catdl paths")
    t.add_column("Kind"); t.add_column("Location")
    for k, p in get_dirs().items():
        t.add_row(k, str(p))
    t.add_row("downloads", str(download_dir(cfg.download_dir)))
    console.print(t)


@app.command()
def info(url: str = typer.Argument(..., help="Series page, e.g. https://www.3cat.cat/3cat/teo/")):
    """Resolve a series page: program id, title and available seasons."""
    cfg = load_config()
    setup_logging(cfg.log_level, pretty=True)
    try:
        series = resolve_series(url, max_season=cfg.max_season, timeout=cfg.request_timeout)
    except CatdlError as e:
        _fail(e)

    console.print(f"[bold]{series.title}[/bold]  (program {series.program_id}, slug {series.slug})")
    if series.description:
        console.print(series.description)
    t = Table(title="Seasons")
    t.add_column("Season", justify="right")
    t.add_column("Episodes", justify="right")
    t.add_column("Selector")
    for s in series.seasons:
        t.add_row(str(s.num), str(s.total), s.selector)
    console.print(t)


@app.command()
def episodes(
    url: str = typer.Argument(..., help="Series page URL"),
    season: int = typer.Option(1, "--season", "-s", help="Season number"),
    title_format: str = typer.Option(None, "--format", help="sxxexx, txcx or titol_complet"),
):
    """List a season's episodes in order."""
    cfg = load_config()
    setup_logging(cfg.log_level, pretty=True)
    fmt = TitleFormat(title_format or cfg.title_format)
    try:
        series = resolve_series(url, max_season=cfg.max_season, timeout=cfg.request_timeout)
        eps = list_episodes(series.program_id, season, timeout=cfg.request_timeout)
    except CatdlError as e:
        _fail(e)

    t = Table(title=f"{series.title}: season {season} ({len(eps)} episodes)")
    t.add_column("#", justify="right")
    t.add_column("Tag")
    t.add_column("Id")
    t.add_column("Title")
    t.add_column("Duration")
    for idx, ep in enumerate(eps, 1):
        tag = episode_tag(season, idx, fmt, capitol=ep.episode_number or None) or ""
        t.add_row(str(idx), tag, ep.id, ep.full_title if fmt == TitleFormat.FULL_TITLE and ep.full_title else ep.title,
                  format_duration(ep.duration))
    console.print(t)


@app.command()
def video(episode_id: str = typer.Argument(..., help="Episode id")):
    """Show the playable variants of one episode, best first."""
    cfg = load_config()
    setup_logging(cfg.log_level, pretty=True)
    try:
        vi = resolve_video(episode_id, timeout=cfg.request_timeout)
    except CatdlError as e:
        _fail(e)

    if not vi.available:
        console.print("[yellow]Video not available[/yellow]")
        raise typer.Exit(code=2)
    console.print(f"[bold]{vi.title}[/bold]  {vi.full_title}")
    t = Table()
    t.add_column("Quality"); t.add_column("Format"); t.add_column("URL")
    for v in vi.videos:
        t.add_row(v.quality, v.format, v.url)
    console.print(t)


class _ProgressView:
    """Mirror DownloadStore changes into a rich progress display."""

    def __init__(self, progress: Progress, labels: dict[str, str]):
        self.progress = progress
        self.labels = labels
        self.tasks: dict[str, TaskID] = {}
        self._lock = threading.Lock()

    def __call__(self, job: DownloadJob):
        with self._lock:
            tid = self.tasks.get(job.episode_id)
            if tid is None:
                if job.status != DownloadStatus.LOADING:
                    return
                tid = self.progress.add_task(self.labels.get(job.episode_id, job.episode_id), total=None)
                self.tasks[job.episode_id] = tid

        if job.status == DownloadStatus.LOADING and job.total_bytes and job.progress is not None:
            self.progress.update(tid, total=job.total_bytes,
                                 completed=job.total_bytes * job.progress // 100)
        elif job.status == DownloadStatus.DONE and job.progress == 100:
            total = job.total_bytes or 1
            self.progress.update(tid, total=total, completed=total,
                                 description=f"[green]✓[/green] {self.labels.get(job.episode_id, '')}")
        elif job.status == DownloadStatus.ERROR:
            self.progress.update(tid, description=f"[red]✗ {job.error}[/red]")
        elif job.status == DownloadStatus.IDLE:
            self.progress.update(tid, description=f"[yellow]cancelled[/yellow] {self.labels.get(job.episode_id, '')}")


@app.command()
def download(
    url: str = typer.Argument(..., help="Series page URL"),
    season: int = typer.Option(1, "--season", "-s", help="Season number"),
    episode: list[int] = typer.Option(None, "--episode", "-e", help="Episode position(s) in the season listing"),
    all_: bool = typer.Option(False, "--all", help="Download the whole season"),
    title_format: str = typer.Option(None, "--format", help="sxxexx, txcx or titol_complet"),
    dest: str = typer.Option(None, "--dest", help="Download directory"),
):
    """Download episodes one at a time (Ctrl-C stops the queue)."""
    cfg = load_config()
    setup_logging(cfg.log_level, pretty=True)
    if not all_ and not episode:
        console.print("[yellow]Pick --episode N (repeatable) or --all[/yellow]")
        raise typer.Exit(code=2)

    try:
        series = resolve_series(url, max_season=cfg.max_season, timeout=cfg.request_timeout)
        eps = list_episodes(series.program_id, season, timeout=cfg.request_timeout)
    except CatdlError as e:
        _fail(e)

    wanted = set(episode or [])
    positions = [(i, ep) for i, ep in enumerate(eps, 1) if all_ or i in wanted]
    if not positions:
        console.print("[yellow]No matching episodes[/yellow]")
        raise typer.Exit(code=2)

    out_dir = download_dir(dest or cfg.download_dir)
    store = DownloadStore()
    orch = DownloadOrchestrator(
        out_dir,
        store=store,
        title_format=title_format or cfg.title_format,
        done_clear_delay=0,
        timeout=cfg.request_timeout,
    )

    progress = Progress(
        TextColumn("{task.description}"), BarColumn(), DownloadColumn(), TransferSpeedColumn(),
        console=console,
    )
    store.subscribe(_ProgressView(progress, {ep.id: ep.title or ep.id for _, ep in positions}))

    queue = SeasonQueue(orch, throttle=cfg.queue_throttle_s)
    results: dict[str, int] = {}

    def _run():
        results["done"] = queue.run(
            [ep for _, ep in positions], season, series.title,
            positions=[pos for pos, _ in positions],
        )

    worker = threading.Thread(target=_run, name="catdl-queue", daemon=True)
    with progress:
        worker.start()
        try:
            while worker.is_alive():
                worker.join(timeout=0.2)
        except KeyboardInterrupt:
            queue.stop()
            worker.join()

    print(f"[green]Downloaded {results.get('done', 0)}/{len(positions)} episode(s) to {out_dir}[/green]")


@app.command("serve")
def serve_cmd(
    host: str = typer.Option(None, help="Bind address"),
    port: int = typer.Option(None, help="Port to listen on"),
):
    """Start the API server (catalog, download proxy, server-side downloads)."""
    cfg = load_config()
    setup_logging(cfg.log_level)
    import uvicorn
    from .web.app import create_app
    uvicorn.run(create_app(), host=host or cfg.web_host, port=port or cfg.web_port)


if __name__ == "__main__":
    app()
