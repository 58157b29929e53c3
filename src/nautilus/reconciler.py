"""Reconciler: merges a cycle's clusters and namespaces into the database.

All writes for one cycle happen inside a single transaction. Clusters
are matched on ``cluster_id`` and namespaces on ``(cluster_id, name)``.
Stored clusters are never deleted. Namespaces are deleted only for
clusters that were enriched in this cycle, so a cluster that could not
be reached keeps its last known namespaces.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from nautilus.db.connection import Database
from nautilus.errors import ReconcileError
from nautilus.models import ClusterRecord, NamespaceRecord, ReconcileSummary

logger = logging.getLogger(__name__)

# Columns the cloud provider API supplies on its own.
PROVIDER_COLUMNS = (
    "name", "provider", "version", "version_status", "region", "status",
    "nodes_total", "nodes_ready",
)

# Columns only the Kubernetes API enrichment can supply.
ENRICHED_COLUMNS = (
    "nodes_total", "nodes_ready", "pods_total", "pods_running", "namespaces",
    "services", "deployments", "ingresses", "metadata",
)


class Reconciler:
    """Applies inserts, updates and deletes for one reconciliation cycle."""

    def __init__(self, db: Database, clock: Callable[[], datetime] | None = None) -> None:
        self._db = db
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def reconcile(
        self,
        clusters: Iterable[ClusterRecord],
        namespaces: Iterable[NamespaceRecord],
        enriched_cluster_ids: set[str],
    ) -> ReconcileSummary:
        """Persist one cycle atomically.

        Raises ``ReconcileError`` after rolling back if any write fails.
        """
        summary = ReconcileSummary()
        now = self._clock().isoformat()
        try:
            with self._db.transaction() as conn:
                self._merge_clusters(conn, list(clusters), enriched_cluster_ids, now, summary)
                self._merge_namespaces(conn, list(namespaces), enriched_cluster_ids, now, summary)
        except sqlite3.Error as exc:
            logger.error("Reconciliation rolled back: %s", exc)
            raise ReconcileError(f"Reconciliation rolled back: {exc}") from exc

        logger.info(
            "Reconciled clusters (+%d ~%d), namespaces (+%d ~%d -%d)",
            summary.clusters_inserted, summary.clusters_updated,
            summary.namespaces_inserted, summary.namespaces_updated,
            summary.namespaces_deleted,
        )
        return summary

    # ------------------------------------------------------------------
    # Clusters
    # ------------------------------------------------------------------

    def _merge_clusters(
        self,
        conn: sqlite3.Connection,
        clusters: list[ClusterRecord],
        enriched: set[str],
        now: str,
        summary: ReconcileSummary,
    ) -> None:
        existing = {r["cluster_id"] for r in conn.execute("SELECT cluster_id FROM clusters")}
        seen: set[str] = set()

        for cluster in clusters:
            if cluster.cluster_id in seen:
                logger.warning(
                    "Duplicate cluster id %s in cycle; keeping the first", cluster.cluster_id,
                )
                continue
            seen.add(cluster.cluster_id)
            values = _cluster_values(cluster)
            if cluster.cluster_id not in existing:
                cols = ["cluster_id", *values, "created_at"]
                conn.execute(
                    f"INSERT INTO clusters ({', '.join(cols)}) "  # noqa: S608
                    f"VALUES ({', '.join('?' for _ in cols)})",
                    (
                        cluster.cluster_id,
                        *values.values(),
                        cluster.created_at.isoformat() if cluster.created_at else now,
                    ),
                )
                existing.add(cluster.cluster_id)
                summary.clusters_inserted += 1
                continue

            # Unreachable clusters keep their last enriched values
            columns = dict.fromkeys(PROVIDER_COLUMNS)
            if cluster.cluster_id in enriched:
                columns.update(dict.fromkeys(ENRICHED_COLUMNS))
            assignments = ", ".join(f"{c} = ?" for c in columns)
            created = cluster.created_at.isoformat() if cluster.created_at else None
            conn.execute(
                f"UPDATE clusters SET {assignments}, "  # noqa: S608
                "created_at = COALESCE(?, created_at) WHERE cluster_id = ?",
                (*(values[c] for c in columns), created, cluster.cluster_id),
            )
            summary.clusters_updated += 1

    # ------------------------------------------------------------------
    # Namespaces
    # ------------------------------------------------------------------

    def _merge_namespaces(
        self,
        conn: sqlite3.Connection,
        namespaces: list[NamespaceRecord],
        enriched: set[str],
        now: str,
        summary: ReconcileSummary,
    ) -> None:
        fresh: dict[str, list[NamespaceRecord]] = defaultdict(list)
        for ns in namespaces:
            if ns.cluster_id in enriched:
                fresh[ns.cluster_id].append(ns)

        for cluster_id in sorted(enriched):
            stored = {
                r["name"]: r["id"]
                for r in conn.execute(
                    "SELECT id, name FROM namespaces WHERE cluster_id = ?", (cluster_id,),
                )
            }
            seen: set[str] = set()
            for ns in fresh.get(cluster_id, []):
                if ns.name in seen:
                    logger.warning(
                        "Duplicate namespace %s in cluster %s; keeping the first", ns.name, cluster_id,
                    )
                    continue
                seen.add(ns.name)
                values = _namespace_values(ns)
                created = ns.created_at.isoformat() if ns.created_at else now
                if ns.name in stored:
                    conn.execute(
                        """UPDATE namespaces SET status = ?, age = ?, phase = ?, labels = ?,
                           annotations = ?, pod_count = ?, resource_quota = ?, created_at = ?
                           WHERE id = ?""",
                        (*values, created, stored[ns.name]),
                    )
                    summary.namespaces_updated += 1
                else:
                    cursor = conn.execute(
                        """INSERT INTO namespaces
                           (cluster_id, name, status, age, phase, labels, annotations,
                            pod_count, resource_quota, created_at)
                           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                        (cluster_id, ns.name, *values, created),
                    )
                    stored[ns.name] = cursor.lastrowid
                    summary.namespaces_inserted += 1

            gone = [stored[name] for name in stored if name not in seen]
            if gone:
                conn.executemany("DELETE FROM namespaces WHERE id = ?", [(i,) for i in gone])
                summary.namespaces_deleted += len(gone)


def _cluster_values(cluster: ClusterRecord) -> dict[str, object]:
    """Column -> value for everything but ``cluster_id`` and ``created_at``."""
    return {
        "name": cluster.name,
        "provider": cluster.provider.value,
        "version": cluster.version,
        "version_status": cluster.version_status.value,
        "region": cluster.region,
        "status": cluster.status.value,
        "nodes_total": cluster.nodes_total,
        "nodes_ready": cluster.nodes_ready,
        "pods_total": cluster.pods_total,
        "pods_running": cluster.pods_running,
        "namespaces": cluster.namespaces,
        "services": cluster.services,
        "deployments": cluster.deployments,
        "ingresses": cluster.ingresses,
        "metadata": json.dumps(cluster.metadata_json(), sort_keys=True),
    }


def _namespace_values(ns: NamespaceRecord) -> tuple:
    return (
        ns.status,
        ns.age,
        ns.phase,
        json.dumps(ns.labels, sort_keys=True),
        json.dumps(ns.annotations, sort_keys=True),
        ns.pod_count,
        int(ns.resource_quota),
    )
