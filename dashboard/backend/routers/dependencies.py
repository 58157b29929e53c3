"""Cluster dependencies (service meshes, ingress, monitoring, ...)."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from dashboard.backend.network.service import DependencyService
from dashboard.backend.schemas import DependencyResponse

router = APIRouter(tags=["dependencies"])

_service: DependencyService | None = None


def init_router(service: DependencyService) -> None:
    global _service  # noqa: PLW0603
    _service = service


def _svc() -> DependencyService:
    assert _service is not None, "DependencyService not initialized"
    return _service


@router.get("/api/dependencies", response_model=list[DependencyResponse])
def list_dependencies() -> list[DependencyResponse]:
    return _svc().list_dependencies()


@router.get("/api/dependencies/type/{dep_type}", response_model=list[DependencyResponse])
def list_dependencies_by_type(dep_type: str) -> list[DependencyResponse]:
    return _svc().list_dependencies(dep_type=dep_type)


@router.get("/api/dependencies/{dependency_id}", response_model=DependencyResponse)
def get_dependency(dependency_id: str) -> DependencyResponse:
    try:
        dep_id = int(dependency_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid dependency ID") from None
    dependency = _svc().get_dependency(dep_id)
    if dependency is None:
        raise HTTPException(status_code=404, detail="Dependency not found")
    return dependency

