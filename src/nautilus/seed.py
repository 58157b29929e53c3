"""Load demo clusters, dependencies and network resources.

Clusters and namespaces go through the ``Reconciler`` just like a real
cycle. Seeding only happens into a database without clusters; once a
sync or an earlier seed has written any, nothing is touched.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml

from nautilus.db.connection import Database
from nautilus.enricher import format_age
from nautilus.models import ClusterRecord, NamespaceRecord
from nautilus.normalizer import parse_timestamp
from nautilus.reconciler import Reconciler

logger = logging.getLogger(__name__)

SAMPLE_DATA = Path(__file__).resolve().parent / "data" / "sample.yaml"

NETWORK_TABLES: dict[str, tuple[str, tuple[str, ...]]] = {
    "ingress_controllers": (
        "network_ingress_controllers",
        ("namespace", "type", "status", "version", "ip_address", "traffic_handled"),
    ),
    "load_balancers": (
        "network_load_balancers",
        ("namespace", "type", "status", "ip_addresses", "traffic_handled"),
    ),
    "routes": ("network_routes", ("source", "destination", "protocol", "status")),
    "policies": ("network_policies", ("namespace", "type", "direction", "status")),
}

SEED_KINDS = ("clusters", "namespaces", "dependencies", *NETWORK_TABLES)


def load_sample(path: str | Path | None = None) -> dict[str, Any]:
    data = yaml.safe_load(Path(path or SAMPLE_DATA).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {path or SAMPLE_DATA}"
        raise ValueError(msg)
    return data


def seed_database(
    db: Database,
    path: str | Path | None = None,
    clock: Callable[[], datetime] | None = None,
) -> dict[str, int]:
    """Seed *db* from the sample file. Returns row counts written per kind."""
    now = (clock or (lambda: datetime.now(tz=UTC)))()
    if not _is_empty(db, "clusters"):
        logger.info("Database already holds clusters, skipping seed")
        return dict.fromkeys(SEED_KINDS, 0)

    data = load_sample(path)

    clusters: list[ClusterRecord] = []
    namespaces: list[NamespaceRecord] = []
    for entry in data.get("clusters", []):
        entry = dict(entry)
        ns_entries = entry.pop("namespaces", [])
        cluster = ClusterRecord.model_validate(entry)
        cluster.namespaces = len(ns_entries)
        clusters.append(cluster)
        for ns in ns_entries:
            created = parse_timestamp(ns.get("created_at")) or cluster.created_at
            phase = ns.get("phase", "Active")
            namespaces.append(NamespaceRecord(
                cluster_id=cluster.cluster_id,
                name=ns["name"],
                status=phase,
                phase=phase,
                age=format_age(created, now),
                labels=ns.get("labels") or {},
                annotations=ns.get("annotations") or {},
                pod_count=ns.get("pod_count", 0),
                resource_quota=ns.get("resource_quota", False),
                created_at=created,
            ))

    summary = Reconciler(db, clock=lambda: now).reconcile(
        clusters, namespaces, {c.cluster_id for c in clusters},
    )
    counts = {
        "clusters": summary.clusters_inserted + summary.clusters_updated,
        "namespaces": summary.namespaces_inserted + summary.namespaces_updated,
        "dependencies": _seed_dependencies(db, data.get("dependencies", []), now),
    }
    network = data.get("network", {})
    for kind, (table, columns) in NETWORK_TABLES.items():
        counts[kind] = _seed_table(db, table, columns, network.get(kind, []), now)
    logger.info("Seeded %s", counts)
    return counts


def _is_empty(db: Database, table: str) -> bool:
    row = db.fetchone(f"SELECT COUNT(*) AS cnt FROM {table}")  # noqa: S608
    return row is None or row["cnt"] == 0


def _seed_dependencies(db: Database, rows: list[dict[str, Any]], now: datetime) -> int:
    if not rows or not _is_empty(db, "cluster_dependencies"):
        return 0
    db.write_many(
        """INSERT INTO cluster_dependencies
           (cluster_id, type, name, namespace, version, status, detected_at, metadata)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        [
            (
                r["cluster_id"], r["type"], r["name"], r.get("namespace", ""),
                r.get("version", ""), r.get("status", "Healthy"), now.isoformat(),
                json.dumps(r.get("metadata", {})),
            )
            for r in rows
        ],
    )
    return len(rows)


def _seed_table(
    db: Database,
    table: str,
    columns: tuple[str, ...],
    rows: list[dict[str, Any]],
    now: datetime,
) -> int:
    if not rows or not _is_empty(db, table):
        return 0
    cols = ("cluster_id", "name", *columns, "created_at", "metadata")
    params = []
    for r in rows:
        values = [
            json.dumps(r.get(c, [])) if c == "ip_addresses" else r.get(c, "")
            for c in columns
        ]
        params.append((
            r["cluster_id"], r["name"], *values, now.isoformat(),
            json.dumps(r.get("metadata", {})),
        ))
    db.write_many(
        f"INSERT INTO {table} ({', '.join(cols)}) "  # noqa: S608
        f"VALUES ({', '.join('?' for _ in cols)})",
        params,
    )
    return len(rows)
