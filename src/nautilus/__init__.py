"""Nautilus: multi-cloud Kubernetes visibility for GKE, AKS and EKS."""

__version__ = "0.4.0"

from nautilus.config import NautilusConfig, find_config, load_config
from nautilus.errors import ConfigError, NautilusError, ReconcileError
from nautilus.models import (
    MASKED_SECRET,
    CloudCredentials,
    ClusterCredential,
    ClusterRecord,
    ClusterStatus,
    CycleReport,
    EnrichmentResult,
    NamespaceRecord,
    Provider,
    ProviderResult,
    ReconcileSummary,
    VersionStatus,
)

__all__ = [
    "CloudCredentials",
    "ClusterCredential",
    "ClusterRecord",
    "ClusterStatus",
    "ConfigError",
    "CycleReport",
    "EnrichmentResult",
    "find_config",
    "load_config",
    "MASKED_SECRET",
    "NamespaceRecord",
    "NautilusConfig",
    "NautilusError",
    "Provider",
    "ProviderResult",
    "ReconcileError",
    "ReconcileSummary",
    "VersionStatus",
    "__version__",
]
