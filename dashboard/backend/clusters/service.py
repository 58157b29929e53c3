"""Read access to persisted clusters, their namespaces and capacity."""

from __future__ import annotations

import json
from typing import Any

from nautilus.db.connection import Database
from dashboard.backend.schemas import (
    ClusterMetrics,
    ClusterResponse,
    NamespaceResponse,
    ResourceUsage,
)


class ClusterService:
    """Queries the ``clusters`` and ``namespaces`` tables."""

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Clusters
    # ------------------------------------------------------------------

    def list_clusters(self) -> list[ClusterResponse]:
        rows = self._db.fetchall("SELECT * FROM clusters ORDER BY provider, name")
        return [self._row_to_cluster(r) for r in rows]

    def get_cluster(self, cluster_id: str) -> ClusterResponse | None:
        row = self._db.fetchone("SELECT * FROM clusters WHERE cluster_id = ?", (cluster_id,))
        if row is None:
            return None
        return self._row_to_cluster(row)

    def cluster_count(self) -> int:
        row = self._db.fetchone("SELECT COUNT(*) AS cnt FROM clusters")
        return row["cnt"] if row else 0

    def get_metrics(self, cluster_id: str) -> ClusterMetrics | None:
        """Requested vs allocatable capacity summed over the cluster's nodes.

        Storage is not collected and is always reported as zero.
        """
        cluster = self.get_cluster(cluster_id)
        if cluster is None:
            return None
        return capacity_metrics([cluster])

    # ------------------------------------------------------------------
    # Namespaces
    # ------------------------------------------------------------------

    def list_namespaces(self, cluster_id: str | None = None) -> list[NamespaceResponse]:
        where = ""
        params: tuple[Any, ...] = ()
        if cluster_id is not None:
            where = "WHERE n.cluster_id = ?"
            params = (cluster_id,)
        rows = self._db.fetchall(
            f"""SELECT n.*, c.name AS cluster_name
                FROM namespaces n
                JOIN clusters c ON n.cluster_id = c.cluster_id
                {where}
                ORDER BY c.name, n.name""",  # noqa: S608
            params,
        )
        return [self._row_to_namespace(r) for r in rows]

    def get_namespace(self, namespace_id: int) -> NamespaceResponse | None:
        row = self._db.fetchone(
            """SELECT n.*, c.name AS cluster_name
               FROM namespaces n
               JOIN clusters c ON n.cluster_id = c.cluster_id
               WHERE n.id = ?""",
            (namespace_id,),
        )
        if row is None:
            return None
        return self._row_to_namespace(row)

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_cluster(row: Any) -> ClusterResponse:
        metadata = json.loads(row["metadata"]) if row["metadata"] else {}
        return ClusterResponse(
            id=row["cluster_id"],
            name=row["name"],
            provider=row["provider"],
            version=row["version"],
            version_status=row["version_status"],
            region=row["region"],
            status=row["status"],
            nodes_total=row["nodes_total"],
            nodes_ready=row["nodes_ready"],
            pods_total=row["pods_total"],
            pods_running=row["pods_running"],
            namespaces=row["namespaces"],
            services=row["services"],
            deployments=row["deployments"],
            ingresses=row["ingresses"],
            created_at=row["created_at"],
            events=metadata.get("events", []),
            nodes=metadata.get("nodes", []),
        )

    @staticmethod
    def _row_to_namespace(row: Any) -> NamespaceResponse:
        return NamespaceResponse(
            id=row["id"],
            cluster_id=row["cluster_id"],
            cluster_name=row["cluster_name"],
            name=row["name"],
            status=row["status"],
            age=row["age"],
            phase=row["phase"],
            labels=json.loads(row["labels"]) if row["labels"] else {},
            annotations=json.loads(row["annotations"]) if row["annotations"] else {},
            pod_count=row["pod_count"],
            resource_quota=bool(row["resource_quota"]),
            created_at=row["created_at"],
        )


def _usage(used: float, total: float) -> ResourceUsage:
    pct = round(used / total * 100, 1) if total > 0 else 0.0
    return ResourceUsage(used=round(used, 2), total=round(total, 2), percentage=pct)


def capacity_metrics(clusters: list[ClusterResponse]) -> ClusterMetrics:
    """Sum node capacity and requests across *clusters*."""
    nodes = [n for c in clusters for n in c.nodes]
    return ClusterMetrics(
        cpu=_usage(sum(n.cpu_requested for n in nodes), sum(n.cpu_cores for n in nodes)),
        memory=_usage(
            sum(n.memory_requested_gib for n in nodes), sum(n.memory_gib for n in nodes),
        ),
        storage=ResourceUsage(),
    )
