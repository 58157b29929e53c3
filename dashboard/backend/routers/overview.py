"""Overview page aggregates."""

from __future__ import annotations

from fastapi import APIRouter

from dashboard.backend.schemas import (
    EventItem,
    OverviewStats,
    ServiceHealth,
    UtilizationResponse,
    WorkloadResponse,
)
from dashboard.backend.services.overview_service import OverviewService

router = APIRouter(prefix="/api", tags=["overview"])

_service: OverviewService | None = None


def init_router(service: OverviewService) -> None:
    global _service  # noqa: PLW0603
    _service = service


def _svc() -> OverviewService:
    assert _service is not None, "OverviewService not initialized"
    return _service


@router.get("/stats", response_model=OverviewStats)
def get_stats() -> OverviewStats:
    return _svc().stats()


@router.get("/services", response_model=list[ServiceHealth])
def get_services() -> list[ServiceHealth]:
    return _svc().services()


@router.get("/events", response_model=list[EventItem])
def get_events() -> list[EventItem]:
    return _svc().events()


@router.get("/workloads", response_model=WorkloadResponse)
def get_workloads() -> WorkloadResponse:
    return _svc().workloads()


@router.get("/utilization", response_model=UtilizationResponse)
def get_utilization() -> UtilizationResponse:
    return _svc().utilization()
