"""SQLite persistence for clusters, namespaces and settings."""

from nautilus.db.connection import Database
from nautilus.db.migrations import run_migrations

__all__ = ["Database", "run_migrations"]
