"""Tests for KubernetesEnricher.

All kubernetes client calls are mocked; no real cluster needed.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from nautilus.enricher import KubernetesEnricher, format_age, is_node_ready
from nautilus.models import ClusterCredential, ClusterRecord, Provider

NOW = datetime(2024, 6, 2, 12, 0, tzinfo=UTC)

# --- Helpers ---


def _items(*objs: Any) -> SimpleNamespace:
    return SimpleNamespace(items=list(objs))


def _node(name: str, ready: bool = True, labels: dict | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        metadata=SimpleNamespace(name=name, labels=labels or {}),
        status=SimpleNamespace(
            conditions=[SimpleNamespace(type="Ready", status="True" if ready else "False")],
            allocatable={"cpu": "4", "memory": "16Gi", "pods": "110"},
            capacity=None,
        ),
    )


def _pod(namespace: str, node: str | None, phase: str = "Running") -> SimpleNamespace:
    container = SimpleNamespace(
        resources=SimpleNamespace(requests={"cpu": "500m", "memory": "2Gi"}),
    )
    return SimpleNamespace(
        metadata=SimpleNamespace(namespace=namespace),
        spec=SimpleNamespace(node_name=node, containers=[container]),
        status=SimpleNamespace(phase=phase),
    )


def _namespace(name: str, days_old: int, labels: dict | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        metadata=SimpleNamespace(
            name=name,
            labels=labels or {},
            annotations={},
            creation_timestamp=NOW - timedelta(days=days_old),
        ),
        status=SimpleNamespace(phase="Active"),
    )


def _event(message: str, minutes_ago: int, type_: str = "Normal") -> SimpleNamespace:
    return SimpleNamespace(
        last_timestamp=NOW - timedelta(minutes=minutes_ago),
        event_time=None,
        metadata=SimpleNamespace(creation_timestamp=None),
        type=type_,
        message=message,
        reason="Reason",
        involved_object=SimpleNamespace(kind="Pod", name="web-1"),
    )


def _cluster() -> ClusterRecord:
    return ClusterRecord(cluster_id="c-1", name="prod", provider=Provider.GKE, nodes_total=9)


CREDENTIAL = ClusterCredential(endpoint="https://10.0.0.1", ca_data="Q0E=", token="tok")


def _apis() -> dict[str, MagicMock]:
    core = MagicMock()
    core.list_namespace.return_value = _items(
        _namespace("default", 400), _namespace("apps", 5, {"team": "web"}),
    )
    core.list_pod_for_all_namespaces.return_value = _items(
        _pod("default", "node-a"),
        _pod("apps", "node-a"),
        _pod("apps", None, phase="Pending"),
    )
    core.list_node.return_value = _items(
        _node("node-a", labels={"node-role.kubernetes.io/control-plane": ""}),
        _node("node-b", ready=False),
    )
    core.list_service_for_all_namespaces.return_value = _items(object(), object())
    core.list_resource_quota_for_all_namespaces.return_value = _items(
        SimpleNamespace(metadata=SimpleNamespace(namespace="apps")),
    )
    core.list_event_for_all_namespaces.return_value = _items(
        _event("older", 30), _event("newest", 1, "Warning"),
    )
    apps = MagicMock()
    apps.list_deployment_for_all_namespaces.return_value = _items(object())
    networking = MagicMock()
    networking.list_ingress_for_all_namespaces.return_value = _items()
    return {"CoreV1Api": core, "AppsV1Api": apps, "NetworkingV1Api": networking}


def _run(
    enricher: KubernetesEnricher,
    apis: dict[str, MagicMock],
    api_client: MagicMock,
    cluster: ClusterRecord | None = None,
):
    with (
        patch.object(KubernetesEnricher, "_get_api_client", return_value=api_client),
        patch.object(
            KubernetesEnricher, "_get_api_instance",
            side_effect=lambda name, _client: apis[name],
        ),
    ):
        return enricher.enrich(cluster or _cluster(), CREDENTIAL)


# --- format_age ---


class TestFormatAge:
    @pytest.mark.parametrize(
        ("delta", "expected"),
        [
            (timedelta(days=400), "1y"),
            (timedelta(days=40), "1m"),
            (timedelta(days=5), "5d"),
            (timedelta(hours=3), "3h"),
            (timedelta(minutes=20), "0h"),
        ],
    )
    def test_units(self, delta: timedelta, expected: str) -> None:
        assert format_age(NOW - delta, NOW) == expected

    def test_none(self) -> None:
        assert format_age(None, NOW) == ""

    def test_naive_is_utc(self) -> None:
        created = (NOW - timedelta(days=2)).replace(tzinfo=None)
        assert format_age(created, NOW) == "2d"

    def test_future_clamps_to_zero(self) -> None:
        assert format_age(NOW + timedelta(days=1), NOW) == "0h"


class TestIsNodeReady:
    def test_ready(self) -> None:
        assert is_node_ready(_node("a"))

    def test_not_ready(self) -> None:
        assert not is_node_ready(_node("a", ready=False))

    def test_no_conditions(self) -> None:
        node = SimpleNamespace(status=SimpleNamespace(conditions=None))
        assert not is_node_ready(node)


# --- enrich ---


class TestEnrich:
    def test_counts(self) -> None:
        result = _run(KubernetesEnricher(clock=lambda: NOW), _apis(), MagicMock())
        assert result.ok
        cluster = result.cluster
        assert cluster is not None
        assert cluster.nodes_total == 2
        assert cluster.nodes_ready == 1
        assert cluster.pods_total == 3
        assert cluster.pods_running == 2
        assert cluster.namespaces == 2
        assert cluster.services == 2
        assert cluster.deployments == 1
        assert cluster.ingresses == 0

    def test_original_record_untouched(self) -> None:
        original = _cluster()
        _run(KubernetesEnricher(clock=lambda: NOW), _apis(), MagicMock(), original)
        assert original.nodes_total == 9
        assert original.pods_total == 0

    def test_namespaces(self) -> None:
        result = _run(KubernetesEnricher(clock=lambda: NOW), _apis(), MagicMock())
        by_name = {ns.name: ns for ns in result.namespaces}
        assert set(by_name) == {"default", "apps"}
        assert by_name["default"].age == "1y"
        assert by_name["default"].pod_count == 1
        assert by_name["default"].resource_quota is False
        assert by_name["apps"].age == "5d"
        assert by_name["apps"].pod_count == 2
        assert by_name["apps"].resource_quota is True
        assert by_name["apps"].labels == {"team": "web"}
        assert all(ns.cluster_id == "c-1" for ns in result.namespaces)

    def test_node_summaries(self) -> None:
        result = _run(KubernetesEnricher(clock=lambda: NOW), _apis(), MagicMock())
        nodes = {n.name: n for n in result.cluster.nodes}
        node_a = nodes["node-a"]
        assert node_a.status == "Ready"
        assert node_a.role == "control-plane"
        assert node_a.cpu == "25%"
        assert node_a.memory == "25%"
        assert node_a.pods == "2/110"
        assert node_a.cpu_cores == 4.0
        assert node_a.cpu_requested == 1.0
        assert node_a.memory_gib == 16.0
        assert node_a.memory_requested_gib == 4.0
        assert nodes["node-b"].status == "NotReady"
        assert nodes["node-b"].role == "worker"
        assert nodes["node-b"].cpu == "0%"

    def test_events_newest_first(self) -> None:
        result = _run(KubernetesEnricher(clock=lambda: NOW), _apis(), MagicMock())
        events = result.cluster.events
        assert [e.message for e in events] == ["newest", "older"]
        assert events[0].severity == "Warning"
        assert events[0].source == "Pod/web-1"

    def test_event_limit(self) -> None:
        enricher = KubernetesEnricher(clock=lambda: NOW, event_limit=1)
        result = _run(enricher, _apis(), MagicMock())
        assert [e.message for e in result.cluster.events] == ["newest"]

    def test_client_closed(self) -> None:
        api_client = MagicMock()
        _run(KubernetesEnricher(clock=lambda: NOW), _apis(), api_client)
        api_client.close.assert_called_once()


class TestEnrichFailures:
    def test_no_credential(self) -> None:
        result = KubernetesEnricher().enrich(_cluster(), None)
        assert not result.ok
        assert result.error == "No connection credential"
        assert result.namespaces == []

    def test_api_exception(self) -> None:
        class ApiException(Exception):  # noqa: N818
            status = 403
            reason = "Forbidden"

        apis = _apis()
        apis["CoreV1Api"].list_namespace.side_effect = ApiException()
        api_client = MagicMock()
        result = _run(KubernetesEnricher(clock=lambda: NOW), apis, api_client)
        assert not result.ok
        assert "403" in result.error
        assert "Forbidden" in result.error
        assert result.cluster is None
        api_client.close.assert_called_once()

    def test_connection_error(self) -> None:
        with patch.object(
            KubernetesEnricher, "_get_api_client", side_effect=ConnectionError("refused"),
        ):
            result = KubernetesEnricher().enrich(_cluster(), CREDENTIAL)
        assert not result.ok
        assert result.error == "ConnectionError: refused"
