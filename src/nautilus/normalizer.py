"""Map provider cluster payloads onto the canonical ``ClusterRecord``.

Pure functions with no I/O. Identical payloads always give identical
records, which keeps a reconciliation cycle idempotent.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from nautilus.models import ClusterRecord, ClusterStatus, Provider, VersionStatus

# Provider status vocabularies, compared case-insensitively.
HEALTHY_STATES: dict[Provider, frozenset[str]] = {
    Provider.GKE: frozenset({"running"}),
    Provider.AKS: frozenset({"succeeded"}),
    Provider.EKS: frozenset({"active"}),
}

WARNING_STATES: dict[Provider, frozenset[str]] = {
    Provider.GKE: frozenset({"degraded", "reconciling"}),
    Provider.AKS: frozenset({"updating", "upgrading", "scaling", "starting", "stopping"}),
    Provider.EKS: frozenset({"updating"}),
}


def map_status(provider: Provider, raw: str | None) -> ClusterStatus:
    """Coarse health from a provider-reported state.

    Unknown or missing states are ``Critical``.
    """
    state = (raw or "").strip().lower()
    if state in HEALTHY_STATES[provider]:
        return ClusterStatus.HEALTHY
    if state in WARNING_STATES[provider]:
        return ClusterStatus.WARNING
    return ClusterStatus.CRITICAL


def version_status(current: str | None, baseline: str | None) -> VersionStatus:
    """``Up to date`` unless both versions are known and differ."""
    if not current or not baseline or current == baseline:
        return VersionStatus.UP_TO_DATE
    return VersionStatus.UPDATE_AVAILABLE


def parse_timestamp(value: Any) -> datetime | None:
    """Accept a datetime or an RFC 3339 string; anything else is ``None``."""
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def region_from_arn(arn: str) -> str:
    """``arn:aws:eks:us-west-2:123:cluster/x`` -> ``us-west-2``."""
    parts = arn.split(":")
    return parts[3] if len(parts) > 3 else ""


def resource_group_from_id(resource_id: str) -> str:
    """Extract the resource group from an Azure resource id."""
    parts = resource_id.split("/")
    for i, part in enumerate(parts[:-1]):
        if part.lower() == "resourcegroups":
            return parts[i + 1]
    return ""


# ---------------------------------------------------------------------------
# GKE
# ---------------------------------------------------------------------------


def normalize_gke(payload: dict[str, Any]) -> ClusterRecord:
    """Container API v1 ``Cluster`` resource -> record."""
    current = payload.get("currentMasterVersion", "")
    nodes = int(payload.get("currentNodeCount") or 0)
    return ClusterRecord(
        cluster_id=payload.get("id") or payload["name"],
        name=payload["name"],
        provider=Provider.GKE,
        version=current,
        version_status=version_status(current, payload.get("initialClusterVersion")),
        region=payload.get("location", ""),
        status=map_status(Provider.GKE, payload.get("status")),
        nodes_total=nodes,
        nodes_ready=nodes,
        created_at=parse_timestamp(payload.get("createTime")),
    )


# ---------------------------------------------------------------------------
# AKS
# ---------------------------------------------------------------------------


def normalize_aks(payload: dict[str, Any], subscription: str | None = None) -> ClusterRecord:
    """ARM ``managedClusters`` resource -> record.

    The external id is ``<resourceGroup>/<name>``, prefixed with
    ``<subscription>/`` when *subscription* is given so that clusters
    from different subscriptions never share an id.
    """
    props = payload.get("properties", {})
    requested = props.get("kubernetesVersion", "")
    current = props.get("currentKubernetesVersion") or requested
    nodes = sum(int(p.get("count") or 0) for p in props.get("agentPoolProfiles", []))
    name = payload["name"]
    group = resource_group_from_id(payload.get("id", ""))
    return ClusterRecord(
        cluster_id="/".join(p for p in (subscription, group, name) if p),
        name=name,
        provider=Provider.AKS,
        version=current,
        version_status=version_status(current, requested),
        region=payload.get("location", ""),
        status=map_status(Provider.AKS, props.get("provisioningState")),
        nodes_total=nodes,
        nodes_ready=nodes,
        created_at=parse_timestamp(payload.get("systemData", {}).get("createdAt")),
    )


# ---------------------------------------------------------------------------
# EKS
# ---------------------------------------------------------------------------


def normalize_eks(
    payload: dict[str, Any],
    node_count: int = 0,
    region: str | None = None,
) -> ClusterRecord:
    """``eks.describe_cluster()['cluster']`` -> record.

    EKS reports no baseline version, so the record is always
    ``Up to date``. *node_count* is the managed node group total.
    """
    arn = payload.get("arn", "")
    return ClusterRecord(
        cluster_id=arn or payload["name"],
        name=payload["name"],
        provider=Provider.EKS,
        version=payload.get("version", ""),
        version_status=VersionStatus.UP_TO_DATE,
        region=region or region_from_arn(arn),
        status=map_status(Provider.EKS, payload.get("status")),
        nodes_total=node_count,
        nodes_ready=node_count,
        created_at=parse_timestamp(payload.get("createdAt")),
    )
