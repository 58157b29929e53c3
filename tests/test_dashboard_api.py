"""Tests for dashboard API endpoints.

Uses FastAPI TestClient against a database seeded with the bundled
demo data.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

fastapi = pytest.importorskip("fastapi", reason="fastapi not installed")

from dashboard.backend.app import create_app  # noqa: E402
from dashboard.backend.auth.models import TokenClaims  # noqa: E402
from dashboard.backend.auth.service import OktaTokenVerifier  # noqa: E402
from dashboard.backend.config import DashboardConfig  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from nautilus.db.connection import Database  # noqa: E402
from nautilus.db.migrations import run_migrations  # noqa: E402
from nautilus.models import (  # noqa: E402
    MASKED_SECRET,
    AuthProviderKind,
    AuthSettings,
    CloudCredentials,
    ClusterRecord,
    Provider,
)
from nautilus.providers.base import ConnectionTestResult  # noqa: E402
from nautilus.reconciler import Reconciler  # noqa: E402
from nautilus.seed import seed_database  # noqa: E402
from nautilus.settings.store import SettingsStore  # noqa: E402

GKE_ID = "1a2b3c4d5e6f"
AKS_ID = "rg-prod-eastus/aks-prod-eastus"
EKS_ID = "arn:aws:eks:us-west-2:123456789012:cluster/eks-prod-uswest2"

ENV_VARS = (
    "GOOGLE_APPLICATION_CREDENTIALS", "GOOGLE_PROJECT_ID",
    "AZURE_TENANT_ID", "AZURE_CLIENT_ID", "AZURE_CLIENT_SECRET", "AZURE_SUBSCRIPTION_ID",
    "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_REGION",
)

# --- Helpers ---


class StubProvider:
    """Provider client whose connection test always succeeds."""

    def __init__(self, provider: Provider) -> None:
        self.provider = provider
        self.tested = 0

    def is_configured(self, creds: CloudCredentials) -> bool:
        return True

    def discover(self, creds: CloudCredentials):  # pragma: no cover
        raise NotImplementedError

    def test_connection(self, creds: CloudCredentials) -> ConnectionTestResult:
        self.tested += 1
        return ConnectionTestResult(success=True, message=f"{self.provider} ok")


@pytest.fixture()
def db_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    path = tmp_path / "nautilus.db"
    db = Database(str(path))
    run_migrations(db)
    seed_database(db)
    db.close()
    return path


@pytest.fixture()
def stubs() -> list[StubProvider]:
    return [StubProvider(Provider.GKE), StubProvider(Provider.AKS), StubProvider(Provider.EKS)]


def _make_client(db_path: Path, stubs: list[StubProvider], **config: object) -> TestClient:
    cfg = DashboardConfig(database_url=f"sqlite:///{db_path}", **config)
    return TestClient(create_app(cfg, clients=stubs))


@pytest.fixture()
def client(db_path: Path, stubs: list[StubProvider]) -> TestClient:
    return _make_client(db_path, stubs)


def _store(db_path: Path) -> SettingsStore:
    return SettingsStore(Database(str(db_path)))


# --- Health ---


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        resp = client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["clusters"] == 3
        assert data["scheduler"] == "disabled"
        assert data["nextSync"] is None


# --- Clusters ---


class TestClusters:
    def test_list(self, client: TestClient) -> None:
        resp = client.get("/api/clusters")
        assert resp.status_code == 200
        data = resp.json()
        assert {c["id"] for c in data} == {GKE_ID, AKS_ID, EKS_ID}
        gke = next(c for c in data if c["id"] == GKE_ID)
        assert gke["versionStatus"] == "Up to date"
        assert gke["nodesTotal"] == 12
        assert gke["nodes"][0]["cpuCores"] == 4.0
        assert gke["events"][0]["severity"] == "Normal"

    def test_get(self, client: TestClient) -> None:
        resp = client.get(f"/api/clusters/{GKE_ID}")
        assert resp.status_code == 200
        assert resp.json()["name"] == "gke-prod-cluster1"

    def test_get_id_with_slash(self, client: TestClient) -> None:
        resp = client.get(f"/api/clusters/{AKS_ID}")
        assert resp.status_code == 200
        assert resp.json()["name"] == "aks-prod-eastus"
        assert resp.json()["status"] == "Warning"

    def test_get_arn(self, client: TestClient) -> None:
        resp = client.get(f"/api/clusters/{EKS_ID}")
        assert resp.status_code == 200
        assert resp.json()["provider"] == "EKS"

    def test_not_found(self, client: TestClient) -> None:
        resp = client.get("/api/clusters/missing")
        assert resp.status_code == 404
        assert resp.json() == {"message": "Cluster not found"}

    def test_metrics(self, client: TestClient) -> None:
        resp = client.get(f"/api/clusters/{GKE_ID}/metrics")
        assert resp.status_code == 200
        data = resp.json()
        assert data["cpu"]["total"] == 8.0
        assert data["cpu"]["used"] == pytest.approx(4.4)
        assert data["cpu"]["percentage"] == pytest.approx(55.0)
        assert data["storage"] == {"used": 0.0, "total": 0.0, "percentage": 0.0}

    def test_metrics_not_found(self, client: TestClient) -> None:
        resp = client.get("/api/clusters/missing/metrics")
        assert resp.status_code == 404

    def test_id_ending_in_sub_resource_name(
        self, db_path: Path, stubs: list[StubProvider],
    ) -> None:
        db = Database(str(db_path))
        Reconciler(db).reconcile(
            [ClusterRecord(cluster_id="rg-a/namespaces", name="namespaces", provider=Provider.AKS)],
            [],
            set(),
        )
        db.close()
        client = _make_client(db_path, stubs)
        resp = client.get("/api/clusters/rg-a/namespaces")
        assert resp.status_code == 200
        assert resp.json()["id"] == "rg-a/namespaces"
        assert resp.json()["provider"] == "AKS"

    def test_unknown_sub_resource(self, client: TestClient) -> None:
        resp = client.get(f"/api/clusters/{GKE_ID}/bogus")
        assert resp.status_code == 404
        assert resp.json() == {"message": "Cluster not found"}


# --- Namespaces ---


class TestNamespaces:
    def test_list(self, client: TestClient) -> None:
        data = client.get("/api/namespaces").json()
        assert len(data) == 11
        assert all(ns["clusterName"] for ns in data)

    def test_by_cluster(self, client: TestClient) -> None:
        data = client.get(f"/api/clusters/{GKE_ID}/namespaces").json()
        assert {ns["name"] for ns in data} == {"default", "kube-system", "payments", "web"}

    def test_by_cluster_arn(self, client: TestClient) -> None:
        data = client.get(f"/api/clusters/{EKS_ID}/namespaces").json()
        assert {ns["name"] for ns in data} == {"default", "kube-system", "api"}

    def test_get(self, client: TestClient) -> None:
        first = client.get("/api/namespaces").json()[0]
        resp = client.get(f"/api/namespaces/{first['id']}")
        assert resp.status_code == 200
        assert resp.json()["name"] == first["name"]

    def test_invalid_id(self, client: TestClient) -> None:
        resp = client.get("/api/namespaces/abc")
        assert resp.status_code == 400
        assert resp.json() == {"message": "Invalid namespace ID"}

    def test_not_found(self, client: TestClient) -> None:
        resp = client.get("/api/namespaces/99999")
        assert resp.status_code == 404


# --- Dependencies ---


class TestDependencies:
    def test_list(self, client: TestClient) -> None:
        assert len(client.get("/api/dependencies").json()) == 6

    def test_by_type(self, client: TestClient) -> None:
        data = client.get("/api/dependencies/type/service-mesh").json()
        assert [d["name"] for d in data] == ["istio"]
        assert data[0]["clusterName"] == "gke-prod-cluster1"

    def test_by_cluster(self, client: TestClient) -> None:
        data = client.get(f"/api/clusters/{AKS_ID}/dependencies").json()
        assert {d["name"] for d in data} == {"prometheus", "cert-manager"}

    def test_invalid_id(self, client: TestClient) -> None:
        assert client.get("/api/dependencies/abc").status_code == 400

    def test_not_found(self, client: TestClient) -> None:
        assert client.get("/api/dependencies/99999").status_code == 404


# --- Network ---


class TestNetwork:
    def test_combined(self, client: TestClient) -> None:
        data = client.get("/api/network/resources").json()
        assert len(data["ingressControllers"]) == 2
        assert len(data["loadBalancers"]) == 2
        assert len(data["routes"]) == 2
        assert len(data["policies"]) == 2

    def test_combined_by_cluster(self, client: TestClient) -> None:
        data = client.get(f"/api/clusters/{GKE_ID}/network/resources").json()
        assert [r["name"] for r in data["routes"]] == ["web-to-payments"]

    def test_kind(self, client: TestClient) -> None:
        data = client.get("/api/network/load-balancers").json()
        web = next(lb for lb in data if lb["name"] == "web-lb")
        assert web["ipAddresses"] == ["34.120.10.4"]
        assert web["trafficHandled"] == "1.2K req/s"

    def test_kind_by_cluster(self, client: TestClient) -> None:
        data = client.get(f"/api/clusters/{AKS_ID}/network/policies").json()
        assert [p["name"] for p in data] == ["allow-app-to-db"]

    def test_unknown_kind_by_cluster(self, client: TestClient) -> None:
        resp = client.get(f"/api/clusters/{AKS_ID}/network/gateways")
        assert resp.status_code == 404
        assert resp.json() == {"message": "Unknown network resource kind: gateways"}

    def test_get_resource(self, client: TestClient) -> None:
        first = client.get("/api/network/routes").json()[0]
        resp = client.get(f"/api/network/routes/{first['id']}")
        assert resp.status_code == 200
        assert resp.json()["source"] == first["source"]

    def test_unknown_kind(self, client: TestClient) -> None:
        resp = client.get("/api/network/tunnels")
        assert resp.status_code == 404
        assert "tunnels" in resp.json()["message"]

    def test_resource_not_found(self, client: TestClient) -> None:
        assert client.get("/api/network/routes/99999").status_code == 404


# --- Overview ---


class TestOverview:
    def test_stats(self, client: TestClient) -> None:
        data = client.get("/api/stats").json()
        assert data["totalClusters"] == 3
        assert data["gkeClusters"] == 1
        assert data["aksClusters"] == 1
        assert data["eksClusters"] == 1
        assert data["totalNodes"] == 26
        assert data["totalPods"] == 321
        assert data["runningPods"] == 311
        assert data["pendingPods"] == 10
        assert data["totalNamespaces"] == 11
        assert data["systemNamespaces"] == 6
        assert data["userNamespaces"] == 5

    def test_services(self, client: TestClient) -> None:
        data = client.get("/api/services").json()
        assert [s["name"] for s in data] == [
            "Service Mesh", "Ingress Controllers", "Service Discovery", "Load Balancers",
        ]
        mesh = data[0]
        assert mesh["status"] == "Healthy"
        discovery = data[2]
        assert discovery["status"] == "Warning"

    def test_events_newest_first(self, client: TestClient) -> None:
        data = client.get("/api/events").json()
        assert [e["type"] for e in data] == ["info", "warning"]
        assert data[0]["time"].endswith(" ago")

    def test_workloads(self, client: TestClient) -> None:
        data = client.get("/api/workloads").json()
        by_type = {w["clusterType"]: w for w in data["summary"]["deployments"]}
        assert by_type["GKE"]["total"] == 41
        assert by_type["GKE"]["healthy"] == 41
        assert by_type["AKS"]["warning"] == 19
        assert data["topConsumers"][0]["cluster"] == "aks-prod-eastus"
        assert data["distribution"]["daemonSets"] == {"GKE": 0, "AKS": 0, "EKS": 0}

    def test_utilization(self, client: TestClient) -> None:
        data = client.get("/api/utilization").json()
        assert data["current"]["cpu"] == pytest.approx(45.3, abs=0.1)
        assert data["changes"] == {"cpu": 0.0, "memory": 0.0, "storage": 0.0}
        assert data["utilization"]["day"] == []


# --- Settings ---


class TestAppSettings:
    def test_defaults(self, client: TestClient) -> None:
        data = client.get("/api/settings/app").json()
        assert data["productName"] == "Nautilus"
        assert data["primaryColor"] == "#0ea5e9"

    def test_update(self, client: TestClient) -> None:
        resp = client.post("/api/settings/app", json={"productName": "Fleet View"})
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert client.get("/api/settings/app").json()["productName"] == "Fleet View"

    def test_empty_name_rejected(self, client: TestClient) -> None:
        resp = client.post("/api/settings/app", json={"productName": "  "})
        assert resp.status_code == 400
        assert "Product name" in resp.json()["message"]


class TestDatabaseSettings:
    def test_password_never_returned(self, client: TestClient, db_path: Path) -> None:
        client.post("/api/settings/database", json={"host": "pg", "port": 5433, "password": "s3cret"})
        data = client.get("/api/settings/database").json()
        assert data["host"] == "pg"
        assert data["port"] == "5433"
        assert data["password"] == ""
        assert _store(db_path).load_database_settings().password == "s3cret"

    def test_empty_password_keeps_stored(self, client: TestClient, db_path: Path) -> None:
        client.post("/api/settings/database", json={"host": "pg", "password": "s3cret"})
        client.post("/api/settings/database", json={"host": "pg2", "password": ""})
        stored = _store(db_path).load_database_settings()
        assert stored.host == "pg2"
        assert stored.password == "s3cret"

    def test_connection_test(self, client: TestClient) -> None:
        data = client.post("/api/settings/database/test").json()
        assert data["success"] is True


class TestAuthSettings:
    def test_defaults(self, client: TestClient) -> None:
        data = client.get("/api/settings/auth").json()
        assert data["settings"]["enabled"] is False
        assert data["settings"]["provider"] == "none"

    def test_update(self, client: TestClient) -> None:
        body = {
            "enabled": True,
            "provider": "okta",
            "oktaIssuer": "https://example.okta.com/oauth2/default",
            "oktaClientId": "0oa-app",
        }
        resp = client.post("/api/settings/auth", json=body)
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["settings"]["oktaClientId"] == "0oa-app"

    def test_okta_requires_issuer(self, client: TestClient) -> None:
        resp = client.post("/api/settings/auth", json={"enabled": True, "provider": "okta"})
        assert resp.status_code == 400
        assert "issuer" in resp.json()["message"]


class TestCloudCredentials:
    AWS_BODY = {
        "awsEnabled": True,
        "awsAccessKeyId": "AKIAEXAMPLE",
        "awsSecretAccessKey": "topsecret",
        "awsRegion": "eu-west-1",
        "updateSchedule": "0 3 * * *",
    }

    def test_secrets_masked(self, client: TestClient) -> None:
        assert client.post("/api/settings/cloud-credentials", json=self.AWS_BODY).status_code == 200
        data = client.get("/api/settings/cloud-credentials").json()
        assert data["awsSecretAccessKey"] == MASKED_SECRET
        assert data["awsAccessKeyId"] == "AKIAEXAMPLE"
        assert data["azureClientSecret"] == ""

    def test_masked_round_trip_keeps_secret(self, client: TestClient, db_path: Path) -> None:
        client.post("/api/settings/cloud-credentials", json=self.AWS_BODY)
        shown = client.get("/api/settings/cloud-credentials").json()
        shown["awsRegion"] = "us-east-1"
        assert client.post("/api/settings/cloud-credentials", json=shown).status_code == 200

        stored = _store(db_path).load_cloud_credentials()
        assert stored.aws_secret_access_key == "topsecret"
        assert stored.aws_region == "us-east-1"

    def test_invalid_schedule(self, client: TestClient) -> None:
        body = {**self.AWS_BODY, "updateSchedule": "every day"}
        resp = client.post("/api/settings/cloud-credentials", json=body)
        assert resp.status_code == 400
        assert "Invalid update schedule" in resp.json()["message"]

    def test_connection_test_nothing_enabled(
        self, client: TestClient, stubs: list[StubProvider],
    ) -> None:
        data = client.post("/api/settings/cloud-credentials/test").json()
        assert data["success"] is False
        assert data["results"]["gcp"]["message"] == "Not enabled"
        assert all(s.tested == 0 for s in stubs)

    def test_connection_test_stored(self, client: TestClient, stubs: list[StubProvider]) -> None:
        client.post("/api/settings/cloud-credentials", json=self.AWS_BODY)
        data = client.post("/api/settings/cloud-credentials/test").json()
        assert data["success"] is True
        assert data["results"]["aws"]["success"] is True
        assert data["results"]["azure"]["success"] is False
        assert stubs[2].tested == 1

    def test_connection_test_submitted(self, client: TestClient, stubs: list[StubProvider]) -> None:
        data = client.post("/api/settings/cloud-credentials/test", json=self.AWS_BODY).json()
        assert data["results"]["aws"]["message"] == "EKS ok"
        assert stubs[2].tested == 1


# --- Auth enforcement ---


class TestAuthEnforcement:
    @pytest.fixture()
    def secured(self, db_path: Path, stubs: list[StubProvider]) -> TestClient:
        _store(db_path).save_auth_settings(AuthSettings(
            enabled=True,
            provider=AuthProviderKind.OKTA,
            okta_issuer="https://example.okta.com/oauth2/default",
            okta_client_id="0oa-app",
        ))
        return _make_client(db_path, stubs, require_auth=True)

    def test_missing_token(self, secured: TestClient) -> None:
        resp = secured.get("/api/clusters")
        assert resp.status_code == 401
        assert resp.json() == {"message": "Authentication required"}

    def test_settings_write_protected(self, secured: TestClient) -> None:
        assert secured.post("/api/settings/app", json={"productName": "X"}).status_code == 401

    def test_public_endpoints(self, secured: TestClient) -> None:
        assert secured.get("/api/health").status_code == 200
        assert secured.get("/api/settings/auth").status_code == 200
        assert secured.get("/api/settings/app").status_code == 200

    def test_invalid_token(self, secured: TestClient) -> None:
        with patch.object(OktaTokenVerifier, "validate", return_value=None):
            resp = secured.get("/api/clusters", headers={"Authorization": "Bearer bad"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid or expired token"

    def test_valid_token(self, secured: TestClient) -> None:
        claims = TokenClaims(sub="ops", issuer="https://example.okta.com/oauth2/default")
        with patch.object(OktaTokenVerifier, "validate", return_value=claims):
            resp = secured.get("/api/clusters", headers={"Authorization": "Bearer good"})
        assert resp.status_code == 200

    def test_not_enforced_without_flag(self, db_path: Path, stubs: list[StubProvider]) -> None:
        _store(db_path).save_auth_settings(AuthSettings(
            enabled=True, provider=AuthProviderKind.OKTA, okta_issuer="https://x", okta_client_id="c",
        ))
        client = _make_client(db_path, stubs)
        assert client.get("/api/clusters").status_code == 200
