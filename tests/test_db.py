"""Tests for the SQLite database layer and migrations."""

from __future__ import annotations

from pathlib import Path

import pytest

from nautilus.db.connection import Database, path_from_url
from nautilus.db.migrations import MIGRATIONS, get_schema_version, run_migrations
from nautilus.errors import ConfigError

LATEST = MIGRATIONS[-1][0]


@pytest.fixture()
def db(tmp_path: Path) -> Database:
    return Database(str(tmp_path / "test.db"))


class TestPathFromUrl:
    def test_relative(self) -> None:
        assert path_from_url("sqlite:///data/nautilus.db") == "data/nautilus.db"

    def test_absolute(self) -> None:
        assert path_from_url("sqlite:////var/lib/nautilus.db") == "/var/lib/nautilus.db"

    def test_bare_path(self) -> None:
        assert path_from_url("/tmp/n.db") == "/tmp/n.db"

    def test_unsupported_scheme(self) -> None:
        with pytest.raises(ConfigError, match="postgresql"):
            path_from_url("postgresql://user@host/db")

    def test_empty_path(self) -> None:
        with pytest.raises(ConfigError):
            path_from_url("sqlite:///")


class TestDatabase:
    def test_from_url_creates_parent(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "dir" / "n.db"
        db = Database.from_url(f"sqlite:///{target}")
        db.write("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        assert target.exists()
        assert db.path == str(target)

    def test_wal_mode(self, db: Database) -> None:
        row = db.fetchone("PRAGMA journal_mode")
        assert row[0] == "wal"

    def test_foreign_keys_enabled(self, db: Database) -> None:
        row = db.fetchone("PRAGMA foreign_keys")
        assert row[0] == 1

    def test_transaction_commits(self, db: Database) -> None:
        db.write("CREATE TABLE t (val TEXT)")
        with db.transaction() as conn:
            conn.execute("INSERT INTO t (val) VALUES ('a')")
            conn.execute("INSERT INTO t (val) VALUES ('b')")
        assert len(db.fetchall("SELECT * FROM t")) == 2

    def test_transaction_rolls_back(self, db: Database) -> None:
        db.write("CREATE TABLE t (val TEXT)")
        with pytest.raises(RuntimeError), db.transaction() as conn:
            conn.execute("INSERT INTO t (val) VALUES ('a')")
            raise RuntimeError("boom")
        assert db.fetchall("SELECT * FROM t") == []

    def test_write_many(self, db: Database) -> None:
        db.write("CREATE TABLE t (val TEXT)")
        db.write_many("INSERT INTO t (val) VALUES (?)", [("a",), ("b",), ("c",)])
        assert len(db.fetchall("SELECT * FROM t")) == 3


class TestMigrations:
    def test_initial_schema_version(self, db: Database) -> None:
        assert get_schema_version(db) == 0

    def test_run_migrations(self, db: Database) -> None:
        assert run_migrations(db) == LATEST

    def test_migrations_idempotent(self, db: Database) -> None:
        run_migrations(db)
        run_migrations(db)
        assert get_schema_version(db) == LATEST

    @pytest.mark.parametrize(
        "table",
        [
            "settings",
            "clusters",
            "namespaces",
            "cluster_dependencies",
            "network_ingress_controllers",
            "network_load_balancers",
            "network_routes",
            "network_policies",
        ],
    )
    def test_tables_created(self, db: Database, table: str) -> None:
        run_migrations(db)
        rows = db.fetchall(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,),
        )
        assert len(rows) == 1

    def test_namespace_unique_per_cluster(self, db: Database) -> None:
        import sqlite3

        run_migrations(db)
        db.write(
            "INSERT INTO clusters (cluster_id, name, provider, created_at) "
            "VALUES ('c1', 'c1', 'GKE', 'now')",
        )
        insert = "INSERT INTO namespaces (cluster_id, name, created_at) VALUES ('c1', 'ns', 'now')"
        db.write(insert)
        with pytest.raises(sqlite3.IntegrityError):
            db.write(insert)
