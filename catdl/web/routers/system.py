"""
routers/system — Health check.
"""
from __future__ import annotations
from fastapi import APIRouter, Depends

from ...downloader import DownloadOrchestrator, DownloadStatus
from ..deps import get_orchestrator
from ..schemas import HealthResponse

router = APIRouter(prefix="/api/v1", tags=["system"])


@router.get("/health", response_model=HealthResponse)
def health(orch: DownloadOrchestrator = Depends(get_orchestrator)):
    active = sum(1 for j in orch.store.snapshot() if j.status == DownloadStatus.LOADING)
    return HealthResponse(status="ok", downloads_active=active)
