"""Key/value settings store backed by the ``settings`` table.

Each setting is an opaque JSON document under a string key. A missing
row is created on first read, seeded with the caller's defaults.
Writes are last-write-wins.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from nautilus.db.connection import Database
from nautilus.models import AppSettings, AuthSettings, CloudCredentials, DatabaseSettings

logger = logging.getLogger(__name__)

CLOUD_CREDENTIALS_KEY = "cloud_credentials"
DB_SETTINGS_KEY = "db_settings"
APP_SETTINGS_KEY = "app_settings"
AUTH_SETTINGS_KEY = "auth_settings"


class SettingsStore:
    """Reads and writes settings documents."""

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Generic access
    # ------------------------------------------------------------------

    def get(self, key: str, default: dict[str, Any] | None = None) -> dict[str, Any] | None:
        """Return the document stored under *key*.

        If the row is absent and *default* is given, the default is
        persisted and returned.
        """
        row = self._db.fetchone("SELECT value FROM settings WHERE key = ?", (key,))
        if row is not None:
            return json.loads(row["value"]) if row["value"] else {}
        if default is None:
            return None
        logger.info("Initialising setting %s with defaults", key)
        self._db.write(
            "INSERT OR IGNORE INTO settings (key, value, updated_at) VALUES (?, ?, ?)",
            (key, json.dumps(default), _now()),
        )
        return dict(default)

    def set(self, key: str, value: dict[str, Any]) -> dict[str, Any]:
        """Create or replace the document stored under *key*."""
        self._db.write(
            """INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE
               SET value = excluded.value, updated_at = excluded.updated_at""",
            (key, json.dumps(value), _now()),
        )
        return value

    def updated_at(self, key: str) -> str | None:
        row = self._db.fetchone("SELECT updated_at FROM settings WHERE key = ?", (key,))
        return row["updated_at"] if row else None

    # ------------------------------------------------------------------
    # Typed documents
    # ------------------------------------------------------------------

    def load_cloud_credentials(self) -> CloudCredentials:
        data = self.get(
            CLOUD_CREDENTIALS_KEY,
            CloudCredentials.from_env().model_dump(mode="json", by_alias=True),
        )
        return CloudCredentials.model_validate(data)

    def save_cloud_credentials(self, creds: CloudCredentials) -> CloudCredentials:
        self.set(CLOUD_CREDENTIALS_KEY, creds.model_dump(mode="json", by_alias=True))
        return creds

    def load_database_settings(self) -> DatabaseSettings:
        data = self.get(DB_SETTINGS_KEY, DatabaseSettings().model_dump(mode="json", by_alias=True))
        return DatabaseSettings.model_validate(data)

    def save_database_settings(self, settings: DatabaseSettings) -> DatabaseSettings:
        self.set(DB_SETTINGS_KEY, settings.model_dump(mode="json", by_alias=True))
        return settings

    def load_app_settings(self) -> AppSettings:
        data = self.get(APP_SETTINGS_KEY, AppSettings().model_dump(mode="json", by_alias=True))
        return AppSettings.model_validate(data)

    def save_app_settings(self, settings: AppSettings) -> AppSettings:
        self.set(APP_SETTINGS_KEY, settings.model_dump(mode="json", by_alias=True))
        return settings

    def load_auth_settings(self) -> AuthSettings:
        data = self.get(AUTH_SETTINGS_KEY, AuthSettings().model_dump(mode="json", by_alias=True))
        return AuthSettings.model_validate(data)

    def save_auth_settings(self, settings: AuthSettings) -> AuthSettings:
        self.set(AUTH_SETTINGS_KEY, settings.model_dump(mode="json", by_alias=True))
        return settings


def _now() -> str:
    return datetime.now(tz=UTC).isoformat()
