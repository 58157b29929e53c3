"""Version-tracked SQLite schema migrations."""

from __future__ import annotations

import sqlite3

from nautilus.db.connection import Database

MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER NOT NULL
        );
        INSERT INTO schema_version (version) VALUES (0);

        CREATE TABLE IF NOT EXISTS settings (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            key         TEXT UNIQUE NOT NULL,
            value       TEXT NOT NULL DEFAULT '{}',
            updated_at  TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS clusters (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            cluster_id      TEXT UNIQUE NOT NULL,
            name            TEXT NOT NULL,
            provider        TEXT NOT NULL,
            version         TEXT NOT NULL DEFAULT '',
            version_status  TEXT NOT NULL DEFAULT 'Up to date',
            region          TEXT NOT NULL DEFAULT '',
            status          TEXT NOT NULL DEFAULT 'Critical',
            nodes_total     INTEGER NOT NULL DEFAULT 0,
            nodes_ready     INTEGER NOT NULL DEFAULT 0,
            pods_total      INTEGER NOT NULL DEFAULT 0,
            pods_running    INTEGER NOT NULL DEFAULT 0,
            namespaces      INTEGER NOT NULL DEFAULT 0,
            services        INTEGER NOT NULL DEFAULT 0,
            deployments     INTEGER NOT NULL DEFAULT 0,
            ingresses       INTEGER NOT NULL DEFAULT 0,
            created_at      TEXT NOT NULL,
            metadata        TEXT NOT NULL DEFAULT '{}'
        );

        CREATE TABLE IF NOT EXISTS namespaces (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            cluster_id      TEXT NOT NULL REFERENCES clusters(cluster_id),
            name            TEXT NOT NULL,
            status          TEXT NOT NULL DEFAULT 'Active',
            age             TEXT NOT NULL DEFAULT '',
            phase           TEXT NOT NULL DEFAULT 'Active',
            labels          TEXT NOT NULL DEFAULT '{}',
            annotations     TEXT NOT NULL DEFAULT '{}',
            pod_count       INTEGER NOT NULL DEFAULT 0,
            resource_quota  INTEGER NOT NULL DEFAULT 0,
            created_at      TEXT NOT NULL,
            UNIQUE(cluster_id, name)
        );

        CREATE INDEX IF NOT EXISTS idx_namespaces_cluster
            ON namespaces(cluster_id);
        """,
    ),
    (
        2,
        """
        CREATE TABLE IF NOT EXISTS cluster_dependencies (
            id           INTEGER PRIMARY KEY AUTOINCREMENT,
            cluster_id   TEXT NOT NULL REFERENCES clusters(cluster_id),
            type         TEXT NOT NULL,
            name         TEXT NOT NULL,
            namespace    TEXT NOT NULL DEFAULT '',
            version      TEXT NOT NULL DEFAULT '',
            status       TEXT NOT NULL DEFAULT 'Healthy',
            detected_at  TEXT NOT NULL,
            metadata     TEXT NOT NULL DEFAULT '{}'
        );

        CREATE TABLE IF NOT EXISTS network_ingress_controllers (
            id               INTEGER PRIMARY KEY AUTOINCREMENT,
            cluster_id       TEXT NOT NULL REFERENCES clusters(cluster_id),
            name             TEXT NOT NULL,
            namespace        TEXT NOT NULL DEFAULT '',
            type             TEXT NOT NULL DEFAULT '',
            status           TEXT NOT NULL DEFAULT 'Healthy',
            version          TEXT NOT NULL DEFAULT '',
            ip_address       TEXT NOT NULL DEFAULT '',
            traffic_handled  TEXT NOT NULL DEFAULT '',
            created_at       TEXT NOT NULL,
            metadata         TEXT NOT NULL DEFAULT '{}'
        );

        CREATE TABLE IF NOT EXISTS network_load_balancers (
            id               INTEGER PRIMARY KEY AUTOINCREMENT,
            cluster_id       TEXT NOT NULL REFERENCES clusters(cluster_id),
            name             TEXT NOT NULL,
            namespace        TEXT NOT NULL DEFAULT '',
            type             TEXT NOT NULL DEFAULT '',
            status           TEXT NOT NULL DEFAULT 'Healthy',
            ip_addresses     TEXT NOT NULL DEFAULT '[]',
            traffic_handled  TEXT NOT NULL DEFAULT '',
            created_at       TEXT NOT NULL,
            metadata         TEXT NOT NULL DEFAULT '{}'
        );

        CREATE TABLE IF NOT EXISTS network_routes (
            id           INTEGER PRIMARY KEY AUTOINCREMENT,
            cluster_id   TEXT NOT NULL REFERENCES clusters(cluster_id),
            name         TEXT NOT NULL,
            source       TEXT NOT NULL DEFAULT '',
            destination  TEXT NOT NULL DEFAULT '',
            protocol     TEXT NOT NULL DEFAULT '',
            status       TEXT NOT NULL DEFAULT 'Active',
            created_at   TEXT NOT NULL,
            metadata     TEXT NOT NULL DEFAULT '{}'
        );

        CREATE TABLE IF NOT EXISTS network_policies (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            cluster_id  TEXT NOT NULL REFERENCES clusters(cluster_id),
            name        TEXT NOT NULL,
            namespace   TEXT NOT NULL DEFAULT '',
            type        TEXT NOT NULL DEFAULT '',
            direction   TEXT NOT NULL DEFAULT '',
            status      TEXT NOT NULL DEFAULT 'Active',
            created_at  TEXT NOT NULL,
            metadata    TEXT NOT NULL DEFAULT '{}'
        );

        CREATE INDEX IF NOT EXISTS idx_dependencies_cluster
            ON cluster_dependencies(cluster_id);
        CREATE INDEX IF NOT EXISTS idx_dependencies_type
            ON cluster_dependencies(type);
        """,
    ),
]


def get_schema_version(db: Database) -> int:
    """Return the current schema version, or 0 if uninitialized."""
    try:
        row = db.fetchone("SELECT version FROM schema_version")
        return int(row["version"]) if row else 0
    except sqlite3.OperationalError:
        return 0


def run_migrations(db: Database) -> int:
    """Apply pending migrations. Returns the final schema version."""
    current = get_schema_version(db)

    for version, sql in MIGRATIONS:
        if version <= current:
            continue
        db.write_script(sql)
        db.write("UPDATE schema_version SET version = ?", (version,))

    return get_schema_version(db)
