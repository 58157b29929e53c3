"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from nautilus.scheduler import SyncScheduler
from dashboard.backend.clusters.service import ClusterService
from dashboard.backend.schemas import HealthResponse

router = APIRouter(tags=["health"])

_clusters: ClusterService | None = None
_scheduler: SyncScheduler | None = None
_version: str = "0.0.0"


def init_router(
    clusters: ClusterService,
    scheduler: SyncScheduler | None = None,
    version: str = "0.0.0",
) -> None:
    global _clusters, _scheduler, _version  # noqa: PLW0603
    _clusters = clusters
    _scheduler = scheduler
    _version = version


@router.get("/api/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    scheduler_state = "disabled"
    next_sync = None
    if _scheduler is not None:
        scheduler_state = "running" if _scheduler.is_running else "idle"
        if _scheduler.next_run_time is not None:
            next_sync = _scheduler.next_run_time.isoformat()
    return HealthResponse(
        version=_version,
        clusters=_clusters.cluster_count() if _clusters else 0,
        scheduler=scheduler_state,
        next_sync=next_sync,
    )
