"""Cluster list, detail, capacity metrics and per-cluster sub-resources.

Cluster ids may contain "/" (AKS resource group, EKS ARN), so everything
under ``/api/clusters/`` is matched as one path. The full path is tried
as a cluster id first; only when no cluster has that id is the tail read
as a sub-resource (``metrics``, ``namespaces``, ``dependencies``,
``network/resources`` or ``network/{kind}``).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from dashboard.backend.clusters.service import ClusterService
from dashboard.backend.network.service import NETWORK_KINDS, DependencyService, NetworkService
from dashboard.backend.schemas import ClusterResponse

router = APIRouter(prefix="/api/clusters", tags=["clusters"])

_service: ClusterService | None = None
_dependencies: DependencyService | None = None
_network: NetworkService | None = None


def init_router(
    service: ClusterService,
    dependencies: DependencyService,
    network: NetworkService,
) -> None:
    global _service, _dependencies, _network  # noqa: PLW0603
    _service = service
    _dependencies = dependencies
    _network = network


def _svc() -> ClusterService:
    assert _service is not None, "ClusterService not initialized"
    return _service


def _dep_svc() -> DependencyService:
    assert _dependencies is not None, "DependencyService not initialized"
    return _dependencies


def _net_svc() -> NetworkService:
    assert _network is not None, "NetworkService not initialized"
    return _network


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Cluster not found")


@router.get("", response_model=list[ClusterResponse])
def list_clusters() -> list[ClusterResponse]:
    return _svc().list_clusters()


@router.get("/{cluster_path:path}")
def get_cluster_path(cluster_path: str) -> Any:
    cluster = _svc().get_cluster(cluster_path)
    if cluster is not None:
        return cluster

    head, sep, tail = cluster_path.rpartition("/")
    if not sep or not head:
        raise _not_found()

    if tail == "metrics":
        metrics = _svc().get_metrics(head)
        if metrics is None:
            raise _not_found()
        return metrics
    if tail == "namespaces":
        return _svc().list_namespaces(head)
    if tail == "dependencies":
        return _dep_svc().list_dependencies(cluster_id=head)

    cluster_id, sep, section = head.rpartition("/")
    if sep and cluster_id and section == "network":
        if tail == "resources":
            return _net_svc().combined(cluster_id)
        if tail not in NETWORK_KINDS:
            raise HTTPException(status_code=404, detail=f"Unknown network resource kind: {tail}")
        return [
            r.model_dump(mode="json", by_alias=True)
            for r in _net_svc().list_resources(tail, cluster_id)
        ]
    raise _not_found()
