"""AksClient: discovers AKS clusters through Azure Resource Manager.

Acquires an app-only token with msal (client credentials flow) and
calls the ARM REST API with requests, following ``nextLink`` pages.
The connection credential for each cluster is its admin kubeconfig.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import requests
import yaml

from nautilus.models import CloudCredentials, ClusterCredential, Provider, ProviderResult
from nautilus.normalizer import normalize_aks
from nautilus.providers.base import ConnectionTestResult

logger = logging.getLogger(__name__)

LOGIN_URL = "https://login.microsoftonline.com"
RESOURCE_URL = "https://management.azure.com"
AKS_API_VERSION = "2024-02-01"
SUBSCRIPTIONS_API_VERSION = "2022-12-01"
REQUEST_TIMEOUT = 30


class AzureAuthError(Exception):
    """Raised when no access token could be acquired."""


class AksClient:
    """Lists AKS clusters for one service principal."""

    provider = Provider.AKS

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()

    def is_configured(self, creds: CloudCredentials) -> bool:
        return creds.azure_configured()

    def discover(self, creds: CloudCredentials) -> ProviderResult:
        headers = self._auth_headers(creds)

        result = ProviderResult(provider=self.provider)
        scan_all = creds.azure_scan_all_subscriptions
        for subscription in self._subscription_ids(creds, headers):
            payloads = self._list(
                f"{RESOURCE_URL}/subscriptions/{subscription}"
                "/providers/Microsoft.ContainerService/managedClusters",
                headers,
                AKS_API_VERSION,
            )
            for payload in payloads:
                cluster = normalize_aks(payload, subscription if scan_all else None)
                result.clusters.append(cluster)
                try:
                    result.credentials[cluster.cluster_id] = self._cluster_credential(
                        payload["id"], headers,
                    )
                except (requests.RequestException, KeyError, ValueError, yaml.YAMLError) as exc:
                    # Without a kubeconfig the cluster is stored un-enriched
                    logger.warning("No admin credential for AKS cluster %s: %s", cluster.name, exc)
            logger.info("Azure subscription %s: %d cluster(s)", subscription, len(payloads))
        return result

    def test_connection(self, creds: CloudCredentials) -> ConnectionTestResult:
        if not self.is_configured(creds):
            return ConnectionTestResult(success=False, message="Azure is not enabled or configured")
        try:
            headers = self._auth_headers(creds)
            clusters = self._list(
                f"{RESOURCE_URL}/subscriptions/{creds.azure_subscription_id}"
                "/providers/Microsoft.ContainerService/managedClusters",
                headers,
                AKS_API_VERSION,
            )
        except (AzureAuthError, requests.RequestException) as exc:
            return ConnectionTestResult(success=False, message=f"Azure connection failed: {exc}")
        return ConnectionTestResult(
            success=True,
            message=(
                f"Connected to subscription {creds.azure_subscription_id}, "
                f"found {len(clusters)} cluster(s)"
            ),
        )

    # --- Private: auth ---

    def _auth_headers(self, creds: CloudCredentials) -> dict[str, str]:
        import msal

        client_app = msal.ConfidentialClientApplication(
            creds.azure_client_id,
            client_credential=creds.azure_client_secret,
            authority=f"{LOGIN_URL}/{creds.azure_tenant_id}",
        )
        token = client_app.acquire_token_for_client(scopes=[RESOURCE_URL + "/.default"])
        if "access_token" not in token:
            msg = token.get("error_description") or token.get("error") or "token request failed"
            raise AzureAuthError(msg)
        return {
            "Authorization": f"Bearer {token['access_token']}",
            "Content-Type": "application/json",
        }

    # --- Private: ARM requests ---

    def _list(
        self, url: str, headers: dict[str, str], api_version: str,
    ) -> list[dict[str, Any]]:
        """GET a collection, following ``nextLink`` pages."""
        items: list[dict[str, Any]] = []
        params: dict[str, str] | None = {"api-version": api_version}
        next_link: str | None = url
        while next_link:
            response = self._session.get(
                next_link, headers=headers, params=params, timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            data = response.json()
            items.extend(data.get("value", []))
            next_link = data.get("nextLink")
            params = None  # nextLink already carries the query string
        return items

    def _subscription_ids(self, creds: CloudCredentials, headers: dict[str, str]) -> list[str]:
        if not creds.azure_scan_all_subscriptions:
            return [creds.azure_subscription_id]
        subs = self._list(f"{RESOURCE_URL}/subscriptions", headers, SUBSCRIPTIONS_API_VERSION)
        ids = [s["subscriptionId"] for s in subs if s.get("state", "Enabled") == "Enabled"]
        return ids or [creds.azure_subscription_id]

    def _cluster_credential(self, resource_id: str, headers: dict[str, str]) -> ClusterCredential:
        response = self._session.post(
            f"{RESOURCE_URL}{resource_id}/listClusterAdminCredential",
            headers=headers,
            params={"api-version": AKS_API_VERSION},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        encoded = response.json()["kubeconfigs"][0]["value"]
        kubeconfig = yaml.safe_load(base64.b64decode(encoded))
        if not isinstance(kubeconfig, dict):
            msg = "admin kubeconfig is not a mapping"
            raise ValueError(msg)
        return ClusterCredential(kubeconfig=kubeconfig)
