"""Network resources: ingress controllers, load balancers, routes, policies."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from dashboard.backend.network.service import NETWORK_KINDS, NetworkService
from dashboard.backend.schemas import NetworkResourcesResponse

router = APIRouter(tags=["network"])

_service: NetworkService | None = None


def init_router(service: NetworkService) -> None:
    global _service  # noqa: PLW0603
    _service = service


def _svc() -> NetworkService:
    assert _service is not None, "NetworkService not initialized"
    return _service


def _check_kind(kind: str) -> None:
    if kind not in NETWORK_KINDS:
        raise HTTPException(status_code=404, detail=f"Unknown network resource kind: {kind}")


def _dump(items: list[Any]) -> list[dict[str, Any]]:
    return [i.model_dump(mode="json", by_alias=True) for i in items]


# ------------------------------------------------------------------
# Combined view (defined before /{kind} to avoid path clashes)
# ------------------------------------------------------------------


@router.get("/api/network/resources", response_model=NetworkResourcesResponse)
def get_network_resources() -> NetworkResourcesResponse:
    return _svc().combined()


# ------------------------------------------------------------------
# Per-kind views
# ------------------------------------------------------------------


@router.get("/api/network/{kind}")
def list_network_resources(kind: str) -> list[dict[str, Any]]:
    _check_kind(kind)
    return _dump(_svc().list_resources(kind))


@router.get("/api/network/{kind}/{resource_id}")
def get_network_resource(kind: str, resource_id: str) -> dict[str, Any]:
    _check_kind(kind)
    try:
        rid = int(resource_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid resource ID") from None
    item = _svc().get_resource(kind, rid)
    if item is None:
        raise HTTPException(status_code=404, detail="Resource not found")
    return item.model_dump(mode="json", by_alias=True)

