"""Core data models for Nautilus.

Defines the schemas for:
- Canonical cluster and namespace records (what gets persisted)
- Connection credentials for a cluster's API server (never persisted)
- Settings documents stored in the key/value settings table
- Per-unit results of a reconciliation cycle
"""

from __future__ import annotations

import enum
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Placeholder returned instead of a stored secret. Posting it back keeps
# the stored value.
MASKED_SECRET = "********"

DEFAULT_UPDATE_SCHEDULE = "0 2 * * *"
DEFAULT_AWS_REGION = "us-west-2"

# --- Enums ---


class Provider(enum.StrEnum):
    GKE = "GKE"
    AKS = "AKS"
    EKS = "EKS"


class ClusterStatus(enum.StrEnum):
    HEALTHY = "Healthy"
    WARNING = "Warning"
    CRITICAL = "Critical"


class VersionStatus(enum.StrEnum):
    UP_TO_DATE = "Up to date"
    UPDATE_AVAILABLE = "Update available"


class CamelModel(BaseModel):
    """Base for documents exchanged with the UI in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Cluster data ---


class ClusterEvent(CamelModel):
    """A recent Kubernetes event kept in the cluster metadata."""

    timestamp: str
    severity: str
    message: str
    source: str


class NodeSummary(CamelModel):
    """Per-node summary kept in the cluster metadata.

    ``cpu`` and ``memory`` are display strings (percent of allocatable
    requested); the numeric fields back the metrics endpoints.
    """

    name: str
    status: str
    role: str
    cpu: str
    memory: str
    pods: str
    cpu_cores: float = 0.0
    cpu_requested: float = 0.0
    memory_gib: float = 0.0
    memory_requested_gib: float = 0.0


class ClusterRecord(BaseModel):
    """Provider-agnostic cluster record.

    ``cluster_id`` is the external identifier and the reconciliation key.
    Counts the provider cannot supply stay zero until enrichment.
    """

    cluster_id: str
    name: str
    provider: Provider
    version: str = ""
    version_status: VersionStatus = VersionStatus.UP_TO_DATE
    region: str = ""
    status: ClusterStatus = ClusterStatus.CRITICAL
    nodes_total: int = 0
    nodes_ready: int = 0
    pods_total: int = 0
    pods_running: int = 0
    namespaces: int = 0
    services: int = 0
    deployments: int = 0
    ingresses: int = 0
    created_at: datetime | None = None
    events: list[ClusterEvent] = Field(default_factory=list)
    nodes: list[NodeSummary] = Field(default_factory=list)

    def metadata_json(self) -> dict[str, Any]:
        return {
            "events": [e.model_dump() for e in self.events],
            "nodes": [n.model_dump() for n in self.nodes],
        }


class NamespaceRecord(BaseModel):
    """A namespace observed in a cluster, keyed by (cluster_id, name)."""

    cluster_id: str
    name: str
    status: str = "Active"
    phase: str = "Active"
    age: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    pod_count: int = 0
    resource_quota: bool = False
    created_at: datetime | None = None


class ClusterCredential(BaseModel):
    """Short-lived connection details for one cluster's API server.

    Either a complete ``kubeconfig`` document or an ``endpoint`` with a
    base64 CA bundle and a bearer ``token``.
    """

    endpoint: str | None = None
    ca_data: str | None = None
    token: str | None = None
    kubeconfig: dict[str, Any] | None = None

    def to_kubeconfig(self, name: str = "nautilus") -> dict[str, Any]:
        """Return a kubeconfig dict usable by the kubernetes client."""
        if self.kubeconfig is not None:
            return self.kubeconfig
        if not self.endpoint:
            msg = "Credential has neither a kubeconfig nor an endpoint"
            raise ValueError(msg)

        cluster_entry: dict[str, Any] = {"server": self.endpoint}
        if self.ca_data:
            cluster_entry["certificate-authority-data"] = self.ca_data
        user_entry: dict[str, Any] = {}
        if self.token:
            user_entry["token"] = self.token

        return {
            "apiVersion": "v1",
            "kind": "Config",
            "clusters": [{"name": name, "cluster": cluster_entry}],
            "users": [{"name": f"{name}-user", "user": user_entry}],
            "contexts": [
                {"name": f"{name}-context", "context": {"cluster": name, "user": f"{name}-user"}},
            ],
            "current-context": f"{name}-context",
            "preferences": {},
        }


# --- Settings documents ---


SECRET_FIELDS: tuple[str, ...] = (
    "gcp_credentials_json",
    "azure_client_secret",
    "aws_secret_access_key",
)


class CloudCredentials(CamelModel):
    """Cloud provider credentials and the sync schedule."""

    gcp_enabled: bool = False
    gcp_project_id: str = ""
    gcp_credentials_json: str = ""
    gcp_scan_all_projects: bool = False

    azure_enabled: bool = False
    azure_tenant_id: str = ""
    azure_client_id: str = ""
    azure_client_secret: str = ""
    azure_subscription_id: str = ""
    azure_scan_all_subscriptions: bool = False

    aws_enabled: bool = False
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = DEFAULT_AWS_REGION
    aws_scan_all_regions: bool = False

    update_schedule: str = DEFAULT_UPDATE_SCHEDULE

    @classmethod
    def from_env(cls) -> CloudCredentials:
        """Defaults for a fresh install, taken from the process environment."""
        gcp_json = ""
        key_file = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        if key_file and Path(key_file).is_file():
            gcp_json = Path(key_file).read_text(encoding="utf-8")

        env = os.environ.get
        return cls(
            gcp_enabled=bool(env("GOOGLE_PROJECT_ID") and gcp_json),
            gcp_project_id=env("GOOGLE_PROJECT_ID", ""),
            gcp_credentials_json=gcp_json,
            azure_enabled=bool(env("AZURE_TENANT_ID") and env("AZURE_CLIENT_ID")),
            azure_tenant_id=env("AZURE_TENANT_ID", ""),
            azure_client_id=env("AZURE_CLIENT_ID", ""),
            azure_client_secret=env("AZURE_CLIENT_SECRET", ""),
            azure_subscription_id=env("AZURE_SUBSCRIPTION_ID", ""),
            aws_enabled=bool(env("AWS_ACCESS_KEY_ID") and env("AWS_SECRET_ACCESS_KEY")),
            aws_access_key_id=env("AWS_ACCESS_KEY_ID", ""),
            aws_secret_access_key=env("AWS_SECRET_ACCESS_KEY", ""),
            aws_region=env("AWS_REGION", DEFAULT_AWS_REGION),
        )

    # --- Provider readiness ---

    def gcp_configured(self) -> bool:
        return self.gcp_enabled and bool(self.gcp_project_id and self.gcp_credentials_json)

    def azure_configured(self) -> bool:
        return self.azure_enabled and all((
            self.azure_tenant_id,
            self.azure_client_id,
            self.azure_client_secret,
            self.azure_subscription_id,
        ))

    def aws_configured(self) -> bool:
        return self.aws_enabled and bool(self.aws_access_key_id and self.aws_secret_access_key)

    def any_configured(self) -> bool:
        return self.gcp_configured() or self.azure_configured() or self.aws_configured()

    # --- Secret masking ---

    def masked(self) -> CloudCredentials:
        """Copy with every stored secret replaced by ``MASKED_SECRET``."""
        updates = {f: MASKED_SECRET for f in SECRET_FIELDS if getattr(self, f)}
        return self.model_copy(update=updates)

    def merge_secrets(self, stored: CloudCredentials) -> CloudCredentials:
        """Copy where masked or empty secrets fall back to *stored* values."""
        updates = {
            f: getattr(stored, f)
            for f in SECRET_FIELDS
            if getattr(self, f) in ("", MASKED_SECRET)
        }
        return self.model_copy(update=updates)


class DatabaseSettings(CamelModel):
    """External database connection details shown on the settings page."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    host: str = ""
    port: str = "5432"
    user: str = ""
    password: str = ""
    database: str = ""
    ssl: bool = True
    connection_timeout: str = "5000"


class AppSettings(CamelModel):
    """Branding for the dashboard UI."""

    product_name: str = "Nautilus"
    logo_url: str = ""
    logo_svg_code: str = ""
    primary_color: str = "#0ea5e9"
    accent_color: str = "#6366f1"


class AuthProviderKind(enum.StrEnum):
    OKTA = "okta"
    NONE = "none"


class AuthSettings(CamelModel):
    """Single sign-on configuration."""

    enabled: bool = False
    provider: AuthProviderKind = AuthProviderKind.NONE
    okta_issuer: str = ""
    okta_client_id: str = ""
    redirect_uri: str = ""
    post_logout_redirect_uri: str = ""


# --- Cycle results ---


class ProviderResult(BaseModel):
    """Outcome of discovering clusters for one provider."""

    provider: Provider
    ok: bool = True
    skipped: bool = False
    error: str | None = None
    clusters: list[ClusterRecord] = Field(default_factory=list)
    credentials: dict[str, ClusterCredential] = Field(default_factory=dict, exclude=True)


class EnrichmentResult(BaseModel):
    """Outcome of enriching one cluster from its own API server."""

    cluster_id: str
    ok: bool = True
    error: str | None = None
    cluster: ClusterRecord | None = None
    namespaces: list[NamespaceRecord] = Field(default_factory=list)


class ReconcileSummary(BaseModel):
    """Row counts written by one reconciliation."""

    clusters_inserted: int = 0
    clusters_updated: int = 0
    namespaces_inserted: int = 0
    namespaces_updated: int = 0
    namespaces_deleted: int = 0


class CycleReport(BaseModel):
    """Structured report of one discover, enrich and persist cycle."""

    started_at: datetime
    finished_at: datetime | None = None
    providers: list[ProviderResult] = Field(default_factory=list)
    enrichments: list[EnrichmentResult] = Field(default_factory=list)
    summary: ReconcileSummary | None = None

    @property
    def clusters(self) -> list[ClusterRecord]:
        """Every collected cluster, enriched where enrichment succeeded."""
        enriched = {e.cluster_id: e.cluster for e in self.enrichments if e.ok and e.cluster}
        return [
            enriched.get(c.cluster_id, c)
            for p in self.providers
            for c in p.clusters
        ]

    @property
    def enriched_cluster_ids(self) -> set[str]:
        return {e.cluster_id for e in self.enrichments if e.ok}

    @property
    def failed_providers(self) -> list[ProviderResult]:
        return [p for p in self.providers if not p.ok]
