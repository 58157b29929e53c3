"""Dashboard overview aggregates derived from persisted cluster data.

Nothing here calls a cluster: every figure comes from the rows the last
reconciliation cycle wrote. Historical series and deltas need a metrics
backend and are reported as zero or empty.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from nautilus.enricher import format_age
from nautilus.models import ClusterStatus, Provider
from nautilus.normalizer import parse_timestamp
from dashboard.backend.clusters.service import ClusterService, capacity_metrics
from dashboard.backend.network.service import DependencyService, NetworkService
from dashboard.backend.schemas import (
    ClusterResponse,
    EventItem,
    OverviewStats,
    ServiceHealth,
    ServiceMetric,
    TopConsumer,
    UtilizationResponse,
    UtilizationSeries,
    UtilizationValues,
    WorkloadBreakdown,
    WorkloadDistribution,
    WorkloadResponse,
    WorkloadSummary,
)

MAX_EVENTS = 20
TOP_CONSUMERS = 5

# Kubernetes event type -> UI event type
EVENT_TYPES = {"Warning": "warning", "Normal": "info", "Error": "error"}

_STATUS_RANK = {"Healthy": 0, "Active": 0, "Warning": 1, "Critical": 2}


def is_system_namespace(name: str) -> bool:
    return name == "default" or name.startswith("kube-")


def worst_status(statuses: list[str]) -> str:
    """Most severe of *statuses*; ``Healthy`` when empty."""
    rank = max((_STATUS_RANK.get(s, 2) for s in statuses), default=0)
    return ("Healthy", "Warning", "Critical")[rank]


class OverviewService:
    """Builds the overview page payloads."""

    def __init__(
        self,
        clusters: ClusterService,
        network: NetworkService,
        dependencies: DependencyService,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._clusters = clusters
        self._network = network
        self._dependencies = dependencies
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def stats(self) -> OverviewStats:
        clusters = self._clusters.list_clusters()
        by_provider = {p: sum(1 for c in clusters if c.provider == p) for p in Provider}
        namespaces = self._clusters.list_namespaces()
        system = sum(1 for ns in namespaces if is_system_namespace(ns.name))
        total_pods = sum(c.pods_total for c in clusters)
        running = sum(c.pods_running for c in clusters)
        total_ns = sum(c.namespaces for c in clusters)
        return OverviewStats(
            total_clusters=len(clusters),
            gke_clusters=by_provider[Provider.GKE],
            aks_clusters=by_provider[Provider.AKS],
            eks_clusters=by_provider[Provider.EKS],
            total_nodes=sum(c.nodes_total for c in clusters),
            total_pods=total_pods,
            running_pods=running,
            pending_pods=max(total_pods - running, 0),
            total_namespaces=total_ns,
            system_namespaces=system,
            user_namespaces=max(total_ns - system, 0),
        )

    # ------------------------------------------------------------------
    # Service health
    # ------------------------------------------------------------------

    def services(self) -> list[ServiceHealth]:
        clusters = self._clusters.list_clusters()
        meshes = self._dependencies.list_dependencies(dep_type="service-mesh")
        controllers = self._network.list_resources("ingress-controllers")
        balancers = self._network.list_resources("load-balancers")
        healthy_clusters = sum(1 for c in clusters if c.status == ClusterStatus.HEALTHY)

        return [
            ServiceHealth(
                name="Service Mesh",
                status=worst_status([m.status for m in meshes]),
                description=f"{len({m.cluster_id for m in meshes})} Clusters, {len(meshes)} Installations",
                metrics=[
                    ServiceMetric(label="Installations", value=str(len(meshes))),
                    ServiceMetric(
                        label="Versions",
                        value=", ".join(sorted({m.version for m in meshes if m.version})) or "-",
                    ),
                ],
            ),
            ServiceHealth(
                name="Ingress Controllers",
                status=worst_status([c.status for c in controllers]),
                description=(
                    f"{len(controllers)} Controllers, "
                    f"{sum(c.ingresses for c in clusters)} Ingresses"
                ),
                metrics=[_healthy_metric(controllers)],
            ),
            ServiceHealth(
                name="Service Discovery",
                status=worst_status([c.status for c in clusters]),
                description=f"{sum(c.services for c in clusters)} Services, {len(clusters)} Clusters",
                metrics=[
                    ServiceMetric(label="Healthy Clusters", value=f"{healthy_clusters}/{len(clusters)}"),
                    _issues_metric(len(clusters) - healthy_clusters),
                ],
            ),
            ServiceHealth(
                name="Load Balancers",
                status=worst_status([b.status for b in balancers]),
                description=f"{len(balancers)} Load Balancers",
                metrics=[_healthy_metric(balancers)],
            ),
        ]

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def events(self) -> list[EventItem]:
        """Newest cluster events across all clusters."""
        now = self._clock()
        collected: list[tuple[datetime, EventItem]] = []
        for cluster in self._clusters.list_clusters():
            for ev in cluster.events:
                ts = parse_timestamp(ev.timestamp) or now
                if ts.tzinfo is None:
                    ts = ts.replace(tzinfo=UTC)
                collected.append((ts, EventItem(
                    type=EVENT_TYPES.get(ev.severity, "info"),
                    title=f"{cluster.name}: {ev.source}" if ev.source else cluster.name,
                    time=f"{format_age(ts, now)} ago",
                    description=ev.message,
                )))
        collected.sort(key=lambda pair: pair[0], reverse=True)
        return [item for _, item in collected[:MAX_EVENTS]]

    # ------------------------------------------------------------------
    # Workloads
    # ------------------------------------------------------------------

    def workloads(self) -> WorkloadResponse:
        """Deployment counts per provider, bucketed by cluster health.

        StatefulSets and DaemonSets are not collected and stay zero.
        """
        clusters = self._clusters.list_clusters()
        deployments = []
        for provider in Provider:
            summary = WorkloadSummary(cluster_type=provider.value)
            for c in clusters:
                if c.provider != provider:
                    continue
                summary.total += c.deployments
                if c.status == ClusterStatus.HEALTHY:
                    summary.healthy += c.deployments
                elif c.status == ClusterStatus.WARNING:
                    summary.warning += c.deployments
                else:
                    summary.failed += c.deployments
            deployments.append(summary)

        return WorkloadResponse(
            summary=WorkloadBreakdown(
                deployments=deployments,
                stateful_sets=[WorkloadSummary(cluster_type=p.value) for p in Provider],
            ),
            distribution=WorkloadDistribution(daemon_sets={p.value: 0 for p in Provider}),
            top_consumers=_top_consumers(clusters),
        )

    # ------------------------------------------------------------------
    # Utilization
    # ------------------------------------------------------------------

    def utilization(self) -> UtilizationResponse:
        metrics = capacity_metrics(self._clusters.list_clusters())
        return UtilizationResponse(
            current=UtilizationValues(
                cpu=metrics.cpu.percentage,
                memory=metrics.memory.percentage,
                storage=metrics.storage.percentage,
            ),
            changes=UtilizationValues(),
            utilization=UtilizationSeries(),
        )


def _healthy_metric(resources: list) -> ServiceMetric:
    healthy = sum(1 for r in resources if r.status in ("Healthy", "Active"))
    return ServiceMetric(label="Healthy", value=f"{healthy}/{len(resources)}")


def _issues_metric(issues: int) -> ServiceMetric:
    return ServiceMetric(
        label="Issues", value=str(issues), highlight_value="warning" if issues else None,
    )


def _top_consumers(clusters: list[ClusterResponse]) -> list[TopConsumer]:
    """Nodes with the largest CPU requests."""
    nodes = [(c.name, n) for c in clusters for n in c.nodes]
    nodes.sort(key=lambda pair: (pair[1].cpu_requested, pair[1].memory_requested_gib), reverse=True)
    return [
        TopConsumer(
            id=f"{cluster}/{node.name}",
            name=node.name,
            cluster=cluster,
            resources={
                "cpu": f"{node.cpu_requested:.1f} cores",
                "memory": f"{node.memory_requested_gib:.1f} GB",
            },
        )
        for cluster, node in nodes[:TOP_CONSUMERS]
    ]
