"""KubernetesEnricher: fills live counts from a cluster's own API server.

Uses the official ``kubernetes`` Python client with an ApiClient built
from the cluster's credential, never the process-wide default
configuration. Any failure abandons enrichment of that one cluster.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from nautilus.models import (
    ClusterCredential,
    ClusterEvent,
    ClusterRecord,
    EnrichmentResult,
    NamespaceRecord,
    NodeSummary,
)

logger = logging.getLogger(__name__)

DEFAULT_EVENT_LIMIT = 20
ROLE_LABEL_PREFIX = "node-role.kubernetes.io/"
GIB = 1024**3


def format_age(created: datetime | None, now: datetime) -> str:
    """Single-unit humanized age: ``{y}y``, ``{m}m``, ``{d}d`` or ``{h}h``.

    Years and months are approximated as 365 and 30 days.
    """
    if created is None:
        return ""
    if created.tzinfo is None:
        created = created.replace(tzinfo=UTC)
    elapsed = max(now - created, timedelta(0))
    days = elapsed // timedelta(days=1)
    if days > 365:
        return f"{days // 365}y"
    if days > 30:
        return f"{days // 30}m"
    if days > 0:
        return f"{days}d"
    return f"{elapsed // timedelta(hours=1)}h"


def is_node_ready(node: Any) -> bool:
    conditions = getattr(node.status, "conditions", None) or []
    return any(c.type == "Ready" and c.status == "True" for c in conditions)


class KubernetesEnricher:
    """Augments provider-level cluster records with live cluster data."""

    def __init__(
        self,
        clock: Callable[[], datetime] | None = None,
        event_limit: int = DEFAULT_EVENT_LIMIT,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._event_limit = event_limit

    def enrich(
        self, cluster: ClusterRecord, credential: ClusterCredential | None,
    ) -> EnrichmentResult:
        """Return an enriched copy of *cluster* and its namespaces.

        On failure the result carries the reason and no namespaces.
        """
        if credential is None:
            return EnrichmentResult(
                cluster_id=cluster.cluster_id, ok=False, error="No connection credential",
            )
        try:
            api_client = self._get_api_client(credential, cluster.name)
            try:
                return self._collect(cluster, api_client)
            finally:
                api_client.close()
        except Exception as exc:
            # Detect kubernetes ApiException by class name to avoid import
            if type(exc).__name__ == "ApiException":
                reason = f"Kubernetes API error {getattr(exc, 'status', '')}: {getattr(exc, 'reason', exc)}"
            else:
                reason = f"{type(exc).__name__}: {exc}"
            logger.warning("Enrichment failed for %s: %s", cluster.name, reason)
            return EnrichmentResult(cluster_id=cluster.cluster_id, ok=False, error=reason)

    # --- Private: client setup ---

    def _get_api_client(self, credential: ClusterCredential, name: str) -> Any:
        """Build an isolated ApiClient from the credential's kubeconfig."""
        from kubernetes import config

        return config.new_client_from_config_dict(credential.to_kubeconfig(_safe_name(name)))

    def _get_api_instance(self, api_class_name: str, api_client: Any) -> Any:
        """Instantiate the appropriate API class."""
        from kubernetes import client

        api_cls = getattr(client, api_class_name)
        return api_cls(api_client)

    # --- Private: collection ---

    def _collect(self, cluster: ClusterRecord, api_client: Any) -> EnrichmentResult:
        core = self._get_api_instance("CoreV1Api", api_client)
        apps = self._get_api_instance("AppsV1Api", api_client)
        networking = self._get_api_instance("NetworkingV1Api", api_client)

        namespaces = core.list_namespace().items
        pods = core.list_pod_for_all_namespaces().items
        nodes = core.list_node().items
        services = core.list_service_for_all_namespaces().items
        deployments = apps.list_deployment_for_all_namespaces().items
        ingresses = networking.list_ingress_for_all_namespaces().items
        quotas = core.list_resource_quota_for_all_namespaces().items
        events = core.list_event_for_all_namespaces().items

        now = self._clock()
        pods_per_ns = Counter(p.metadata.namespace for p in pods)
        quota_ns = {q.metadata.namespace for q in quotas}

        ns_records = [
            self._namespace_record(cluster.cluster_id, ns, pods_per_ns, quota_ns, now)
            for ns in namespaces
        ]

        enriched = cluster.model_copy(update={
            "nodes_total": len(nodes),
            "nodes_ready": sum(1 for n in nodes if is_node_ready(n)),
            "pods_total": len(pods),
            "pods_running": sum(1 for p in pods if p.status.phase == "Running"),
            "namespaces": len(namespaces),
            "services": len(services),
            "deployments": len(deployments),
            "ingresses": len(ingresses),
            "nodes": self._node_summaries(nodes, pods),
            "events": self._recent_events(events),
        })
        logger.info(
            "Enriched %s: %d nodes, %d pods, %d namespaces",
            cluster.name, enriched.nodes_total, enriched.pods_total, enriched.namespaces,
        )
        return EnrichmentResult(
            cluster_id=cluster.cluster_id, ok=True, cluster=enriched, namespaces=ns_records,
        )

    @staticmethod
    def _namespace_record(
        cluster_id: str,
        ns: Any,
        pods_per_ns: Counter,
        quota_ns: set[str],
        now: datetime,
    ) -> NamespaceRecord:
        name = ns.metadata.name
        phase = (ns.status.phase if ns.status else None) or "Active"
        created = ns.metadata.creation_timestamp
        return NamespaceRecord(
            cluster_id=cluster_id,
            name=name,
            status=phase,
            phase=phase,
            age=format_age(created, now),
            labels=dict(ns.metadata.labels or {}),
            annotations=dict(ns.metadata.annotations or {}),
            pod_count=pods_per_ns.get(name, 0),
            resource_quota=name in quota_ns,
            created_at=created,
        )

    @staticmethod
    def _node_summaries(nodes: list[Any], pods: list[Any]) -> list[NodeSummary]:
        from kubernetes.utils import parse_quantity

        requested_cpu: Counter = Counter()
        requested_mem: Counter = Counter()
        pods_on_node: Counter = Counter()
        for pod in pods:
            node_name = pod.spec.node_name if pod.spec else None
            if not node_name or pod.status.phase in ("Succeeded", "Failed"):
                continue
            pods_on_node[node_name] += 1
            for container in pod.spec.containers or []:
                requests = (container.resources.requests if container.resources else None) or {}
                if "cpu" in requests:
                    requested_cpu[node_name] += float(parse_quantity(requests["cpu"]))
                if "memory" in requests:
                    requested_mem[node_name] += float(parse_quantity(requests["memory"]))

        summaries: list[NodeSummary] = []
        for node in nodes:
            name = node.metadata.name
            allocatable = node.status.allocatable or node.status.capacity or {}
            cpu = float(parse_quantity(allocatable.get("cpu", "0")))
            mem = float(parse_quantity(allocatable.get("memory", "0")))
            roles = [
                label[len(ROLE_LABEL_PREFIX):]
                for label in (node.metadata.labels or {})
                if label.startswith(ROLE_LABEL_PREFIX)
            ]
            summaries.append(NodeSummary(
                name=name,
                status="Ready" if is_node_ready(node) else "NotReady",
                role=",".join(sorted(roles)) or "worker",
                cpu=_percent(requested_cpu[name], cpu),
                memory=_percent(requested_mem[name], mem),
                pods=f"{pods_on_node[name]}/{allocatable.get('pods', '0')}",
                cpu_cores=round(cpu, 2),
                cpu_requested=round(requested_cpu[name], 2),
                memory_gib=round(mem / GIB, 2),
                memory_requested_gib=round(requested_mem[name] / GIB, 2),
            ))
        return summaries

    def _recent_events(self, events: list[Any]) -> list[ClusterEvent]:
        def _when(ev: Any) -> datetime:
            ts = ev.last_timestamp or ev.event_time or ev.metadata.creation_timestamp
            if ts is None:
                return datetime.min.replace(tzinfo=UTC)
            return ts if ts.tzinfo else ts.replace(tzinfo=UTC)

        newest = sorted(events, key=_when, reverse=True)[: self._event_limit]
        return [
            ClusterEvent(
                timestamp=_when(ev).isoformat(),
                severity=ev.type or "Normal",
                message=ev.message or ev.reason or "",
                source=_event_source(ev),
            )
            for ev in newest
        ]


def _event_source(ev: Any) -> str:
    obj = ev.involved_object
    if obj is None:
        return ""
    return f"{obj.kind}/{obj.name}" if obj.kind else (obj.name or "")


def _percent(used: float, total: float) -> str:
    if total <= 0:
        return "0%"
    return f"{round(used / total * 100)}%"


def _safe_name(name: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_." else "-" for ch in name) or "cluster"
