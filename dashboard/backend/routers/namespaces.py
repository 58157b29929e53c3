"""Namespace list and detail."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from dashboard.backend.clusters.service import ClusterService
from dashboard.backend.schemas import NamespaceResponse

router = APIRouter(tags=["namespaces"])

_service: ClusterService | None = None


def init_router(service: ClusterService) -> None:
    global _service  # noqa: PLW0603
    _service = service


def _svc() -> ClusterService:
    assert _service is not None, "ClusterService not initialized"
    return _service


@router.get("/api/namespaces", response_model=list[NamespaceResponse])
def list_namespaces() -> list[NamespaceResponse]:
    return _svc().list_namespaces()


@router.get("/api/namespaces/{namespace_id}", response_model=NamespaceResponse)
def get_namespace(namespace_id: str) -> NamespaceResponse:
    try:
        ns_id = int(namespace_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid namespace ID") from None
    namespace = _svc().get_namespace(ns_id)
    if namespace is None:
        raise HTTPException(status_code=404, detail="Namespace not found")
    return namespace

