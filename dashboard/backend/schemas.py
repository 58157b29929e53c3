"""Pydantic response schemas for the dashboard API.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from nautilus.models import AuthSettings, CamelModel, ClusterEvent, NodeSummary
from nautilus.providers.base import ConnectionTestResult

# --- Generic ---


class HealthResponse(CamelModel):
    status: str = "ok"
    version: str
    clusters: int = 0
    scheduler: str = "disabled"
    next_sync: str | None = None


class StatusMessage(CamelModel):
    """``{success, message}`` result of a settings write or test."""

    success: bool
    message: str


# --- Clusters ---


class ClusterResponse(CamelModel):
    """A persisted cluster; ``id`` is the external cluster identifier."""

    id: str
    name: str
    provider: str
    version: str
    version_status: str
    region: str
    status: str
    nodes_total: int
    nodes_ready: int
    pods_total: int
    pods_running: int
    namespaces: int
    services: int
    deployments: int
    ingresses: int
    created_at: str
    events: list[ClusterEvent] = Field(default_factory=list)
    nodes: list[NodeSummary] = Field(default_factory=list)


class ResourceUsage(CamelModel):
    used: float = 0.0
    total: float = 0.0
    percentage: float = 0.0


class ClusterMetrics(CamelModel):
    """CPU in cores, memory and storage in GiB."""

    cpu: ResourceUsage
    memory: ResourceUsage
    storage: ResourceUsage


class NamespaceResponse(CamelModel):
    id: int
    cluster_id: str
    cluster_name: str
    name: str
    status: str
    age: str
    phase: str
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    pod_count: int = 0
    resource_quota: bool = False
    created_at: str


# --- Dependencies ---


class DependencyResponse(CamelModel):
    id: int
    cluster_id: str
    cluster_name: str = ""
    type: str
    name: str
    namespace: str
    version: str
    status: str
    detected_at: str
    metadata: dict[str, Any] = Field(default_factory=dict)


# --- Network ---


class IngressControllerResponse(CamelModel):
    id: int
    cluster_id: str
    name: str
    namespace: str
    type: str
    status: str
    version: str
    ip_address: str
    traffic_handled: str
    created_at: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class LoadBalancerResponse(CamelModel):
    id: int
    cluster_id: str
    name: str
    namespace: str
    type: str
    status: str
    ip_addresses: list[str] = Field(default_factory=list)
    traffic_handled: str
    created_at: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class RouteResponse(CamelModel):
    id: int
    cluster_id: str
    name: str
    source: str
    destination: str
    protocol: str
    status: str
    created_at: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class NetworkPolicyResponse(CamelModel):
    id: int
    cluster_id: str
    name: str
    namespace: str
    type: str
    direction: str
    status: str
    created_at: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class NetworkResourcesResponse(CamelModel):
    ingress_controllers: list[IngressControllerResponse] = Field(default_factory=list)
    load_balancers: list[LoadBalancerResponse] = Field(default_factory=list)
    routes: list[RouteResponse] = Field(default_factory=list)
    policies: list[NetworkPolicyResponse] = Field(default_factory=list)


# --- Overview ---


class OverviewStats(CamelModel):
    total_clusters: int = 0
    clusters_change: int = 0
    gke_clusters: int = 0
    aks_clusters: int = 0
    eks_clusters: int = 0
    total_nodes: int = 0
    nodes_change: int = 0
    total_pods: int = 0
    pods_change: int = 0
    running_pods: int = 0
    pending_pods: int = 0
    failed_pods: int = 0
    total_namespaces: int = 0
    namespaces_change: int = 0
    system_namespaces: int = 0
    user_namespaces: int = 0


class ServiceMetric(CamelModel):
    label: str
    value: str
    highlight_value: str | None = None


class ServiceHealth(CamelModel):
    name: str
    status: str
    description: str
    metrics: list[ServiceMetric] = Field(default_factory=list)


class EventItem(CamelModel):
    type: str
    title: str
    time: str
    description: str


class WorkloadSummary(CamelModel):
    cluster_type: str
    total: int = 0
    healthy: int = 0
    warning: int = 0
    failed: int = 0


class WorkloadBreakdown(CamelModel):
    deployments: list[WorkloadSummary] = Field(default_factory=list)
    stateful_sets: list[WorkloadSummary] = Field(default_factory=list)


class WorkloadDistribution(CamelModel):
    daemon_sets: dict[str, int] = Field(default_factory=dict)


class TopConsumer(CamelModel):
    id: str
    name: str
    cluster: str
    resources: dict[str, str] = Field(default_factory=dict)


class WorkloadResponse(CamelModel):
    summary: WorkloadBreakdown
    distribution: WorkloadDistribution
    top_consumers: list[TopConsumer] = Field(default_factory=list)


class UtilizationValues(CamelModel):
    cpu: float = 0.0
    memory: float = 0.0
    storage: float = 0.0


class UtilizationPoint(UtilizationValues):
    time: str


class UtilizationSeries(CamelModel):
    day: list[UtilizationPoint] = Field(default_factory=list)
    week: list[UtilizationPoint] = Field(default_factory=list)
    month: list[UtilizationPoint] = Field(default_factory=list)


class UtilizationResponse(CamelModel):
    current: UtilizationValues
    changes: UtilizationValues
    utilization: UtilizationSeries


# --- Settings ---


class AuthSettingsEnvelope(CamelModel):
    settings: AuthSettings


class AuthSettingsUpdate(StatusMessage):
    settings: AuthSettings


class CloudTestResponse(StatusMessage):
    results: dict[str, ConnectionTestResult] = Field(default_factory=dict)
