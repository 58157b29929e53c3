"""Settings pages: database, branding, SSO and cloud credentials.

Secrets never leave this service in clear text. Cloud secrets are
replaced by ``MASKED_SECRET`` and the database password is blanked;
posting the mask (or an empty value) back keeps the stored secret.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable

from nautilus.db.connection import Database
from nautilus.models import (
    AppSettings,
    AuthProviderKind,
    AuthSettings,
    CloudCredentials,
    DatabaseSettings,
    Provider,
)
from nautilus.providers import ProviderClient, default_clients
from nautilus.providers.base import ConnectionTestResult
from nautilus.scheduler import validate_schedule
from nautilus.settings.store import SettingsStore
from dashboard.backend.schemas import CloudTestResponse, StatusMessage

logger = logging.getLogger(__name__)

RESULT_KEYS = {Provider.GKE: "gcp", Provider.AKS: "azure", Provider.EKS: "aws"}


class SettingsService:
    """Validates and persists settings documents."""

    def __init__(
        self,
        store: SettingsStore,
        db: Database,
        clients: list[ProviderClient] | None = None,
        on_credentials_saved: Callable[[], object] | None = None,
    ) -> None:
        self._store = store
        self._db = db
        self._clients = clients if clients is not None else default_clients()
        self._on_credentials_saved = on_credentials_saved

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    def get_database_settings(self) -> DatabaseSettings:
        return self._store.load_database_settings().model_copy(update={"password": ""})

    def update_database_settings(self, incoming: DatabaseSettings) -> StatusMessage:
        if not incoming.password:
            stored = self._store.load_database_settings()
            incoming = incoming.model_copy(update={"password": stored.password})
        self._store.save_database_settings(incoming)
        return StatusMessage(success=True, message="Database settings updated successfully")

    def test_database_connection(self) -> StatusMessage:
        """Round-trip a query on the live database."""
        try:
            row = self._db.fetchone("SELECT datetime('now') AS now")
        except sqlite3.Error as exc:
            return StatusMessage(success=False, message=f"Connection failed: {exc}")
        if row is None:
            return StatusMessage(success=False, message="Connection test failed")
        return StatusMessage(success=True, message="Connection to database successful")

    # ------------------------------------------------------------------
    # Branding
    # ------------------------------------------------------------------

    def get_app_settings(self) -> AppSettings:
        return self._store.load_app_settings()

    def update_app_settings(self, incoming: AppSettings) -> StatusMessage:
        if not incoming.product_name.strip():
            raise ValueError("Product name must not be empty")
        self._store.save_app_settings(incoming)
        return StatusMessage(success=True, message="Application settings updated successfully")

    # ------------------------------------------------------------------
    # SSO
    # ------------------------------------------------------------------

    def get_auth_settings(self) -> AuthSettings:
        return self._store.load_auth_settings()

    def update_auth_settings(self, incoming: AuthSettings) -> AuthSettings:
        if incoming.enabled and incoming.provider == AuthProviderKind.OKTA:
            if not incoming.okta_issuer or not incoming.okta_client_id:
                raise ValueError("Okta issuer and client ID are required when SSO is enabled")
        return self._store.save_auth_settings(incoming)

    # ------------------------------------------------------------------
    # Cloud credentials
    # ------------------------------------------------------------------

    def get_cloud_credentials(self) -> CloudCredentials:
        return self._store.load_cloud_credentials().masked()

    def update_cloud_credentials(self, incoming: CloudCredentials) -> StatusMessage:
        try:
            validate_schedule(incoming.update_schedule)
        except ValueError as exc:
            raise ValueError(f"Invalid update schedule: {exc}") from exc

        merged = incoming.merge_secrets(self._store.load_cloud_credentials())
        self._store.save_cloud_credentials(merged)
        logger.info("Cloud credentials updated")
        if self._on_credentials_saved is not None:
            self._on_credentials_saved()
        return StatusMessage(success=True, message="Cloud provider credentials updated successfully")

    def test_cloud_connections(self, incoming: CloudCredentials | None = None) -> CloudTestResponse:
        """Test every enabled provider with the submitted (or stored) credentials."""
        stored = self._store.load_cloud_credentials()
        creds = incoming.merge_secrets(stored) if incoming is not None else stored

        results: dict[str, ConnectionTestResult] = {}
        tested = 0
        for client in self._clients:
            key = RESULT_KEYS[client.provider]
            if not getattr(creds, f"{key}_enabled"):
                results[key] = ConnectionTestResult(success=False, message="Not enabled")
                continue
            tested += 1
            results[key] = client.test_connection(creds)

        failed = [k for k, r in results.items() if getattr(creds, f"{k}_enabled") and not r.success]
        if tested == 0:
            return CloudTestResponse(
                success=False, message="No cloud provider is enabled", results=results,
            )
        if failed:
            return CloudTestResponse(
                success=False,
                message=f"Connection failed for: {', '.join(failed)}",
                results=results,
            )
        return CloudTestResponse(
            success=True, message="All enabled providers connected successfully", results=results,
        )
