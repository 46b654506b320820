"""
routers/downloads — Server-side downloads: per-episode jobs and season queues.
"""
from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException

from ...config import Config
from ...downloader import DownloadJob, DownloadOrchestrator, SeasonQueue
from ...episodes import list_episodes
from ..deps import get_config, get_orchestrator, get_queue, new_queue
from ..schemas import DownloadJobResponse, DownloadRequest, QueueRequest, TaskResponse
from ..tasks import task_tracker

router = APIRouter(prefix="/api/v1", tags=["downloads"])


def _job_to_response(job: DownloadJob) -> DownloadJobResponse:
    return DownloadJobResponse(**job.to_dict())


@router.get("/downloads", response_model=list[DownloadJobResponse])
def list_downloads(orch: DownloadOrchestrator = Depends(get_orchestrator)):
    return [_job_to_response(j) for j in orch.store.snapshot()]


@router.get("/downloads/{episode_id}", response_model=DownloadJobResponse)
def get_download(episode_id: str, orch: DownloadOrchestrator = Depends(get_orchestrator)):
    return _job_to_response(orch.store.get(episode_id))


@router.post("/downloads", response_model=TaskResponse)
def start_download(req: DownloadRequest, orch: DownloadOrchestrator = Depends(get_orchestrator)):
    """Start a download; if this episode is already loading, cancel it instead."""
    if orch.cancel(req.episode_id):
        return TaskResponse(task_id=None, key=req.episode_id, status="cancelling")
    task = task_tracker.submit(
        "download", req.episode_id,
        orch.download, req.to_episode(), req.position, req.season, req.series_title,
    )
    return TaskResponse(task_id=task.id, key=req.episode_id, status=task.status.value)


@router.delete("/downloads/{episode_id}", response_model=TaskResponse)
def cancel_download(episode_id: str, orch: DownloadOrchestrator = Depends(get_orchestrator)):
    if not orch.cancel(episode_id):
        raise HTTPException(404, "No active download for this episode")
    return TaskResponse(task_id=None, key=episode_id, status="cancelling")


def _run_queue(queue: SeasonQueue, program_id: str, season: int, series_title: str, timeout: float) -> int:
    episodes = list_episodes(program_id, season, timeout=timeout)
    return queue.run(episodes, season, series_title)


@router.post("/queues", response_model=TaskResponse)
def start_queue(
    req: QueueRequest,
    cfg: Config = Depends(get_config),
    orch: DownloadOrchestrator = Depends(get_orchestrator),
):
    key = f"{req.program_id}/{req.season}"
    running = task_tracker.running("queue", key)
    if running:
        raise HTTPException(409, f"Queue already running for {key}")
    # registered before the task starts so a stop during listing is not lost
    queue = new_queue(key, orch, cfg.queue_throttle_s)
    task = task_tracker.submit(
        "queue", key,
        _run_queue, queue, req.program_id, req.season, req.series_title, cfg.request_timeout,
    )
    return TaskResponse(task_id=task.id, key=key, status=task.status.value)


@router.delete("/queues/{program_id}/{season}", response_model=TaskResponse)
def stop_queue(program_id: str, season: int):
    key = f"{program_id}/{season}"
    task = task_tracker.running("queue", key)
    queue = get_queue(key)
    if not task or queue is None:
        raise HTTPException(404, f"No queue running for {key}")
    queue.stop()
    return TaskResponse(task_id=task.id, key=key, status="stopping")
