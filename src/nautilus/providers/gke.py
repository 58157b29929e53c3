"""GkeClient: discovers GKE clusters through the Container API.

Authenticates with a service-account JSON key (google-auth) and calls
the ``container`` v1 API through google-api-python-client. With
``gcpScanAllProjects`` every active project visible through Cloud
Resource Manager is scanned; otherwise only the configured project.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from nautilus.models import CloudCredentials, ClusterCredential, Provider, ProviderResult
from nautilus.normalizer import normalize_gke
from nautilus.providers.base import ConnectionTestResult

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


class GkeClient:
    """Lists GKE clusters for one service account."""

    provider = Provider.GKE

    def is_configured(self, creds: CloudCredentials) -> bool:
        return creds.gcp_configured()

    def discover(self, creds: CloudCredentials) -> ProviderResult:
        credentials = self._get_credentials(creds)
        token = self._access_token(credentials)
        container = self._build_service("container", "v1", credentials)

        result = ProviderResult(provider=self.provider)
        for project in self._project_ids(creds, credentials):
            try:
                payloads = self._list_clusters(container, project)
            except Exception as exc:
                if not creds.gcp_scan_all_projects:
                    raise
                # One inaccessible project must not hide the others
                logger.warning("Skipping GCP project %s: %s", project, exc)
                continue

            for payload in payloads:
                cluster = normalize_gke(payload)
                result.clusters.append(cluster)
                endpoint = payload.get("endpoint")
                if endpoint:
                    result.credentials[cluster.cluster_id] = ClusterCredential(
                        endpoint=f"https://{endpoint}",
                        ca_data=payload.get("masterAuth", {}).get("clusterCaCertificate"),
                        token=token,
                    )
            logger.info("GCP project %s: %d cluster(s)", project, len(payloads))
        return result

    def test_connection(self, creds: CloudCredentials) -> ConnectionTestResult:
        if not self.is_configured(creds):
            return ConnectionTestResult(success=False, message="GCP is not enabled or configured")
        try:
            credentials = self._get_credentials(creds)
            container = self._build_service("container", "v1", credentials)
            clusters = self._list_clusters(container, creds.gcp_project_id)
        except Exception as exc:
            return ConnectionTestResult(success=False, message=f"GCP connection failed: {exc}")
        return ConnectionTestResult(
            success=True,
            message=f"Connected to project {creds.gcp_project_id}, found {len(clusters)} cluster(s)",
        )

    # --- Private: google client setup ---

    def _get_credentials(self, creds: CloudCredentials) -> Any:
        from google.oauth2 import service_account

        info = json.loads(creds.gcp_credentials_json)
        credentials = service_account.Credentials.from_service_account_info(info)
        return credentials.with_scopes(SCOPES)

    def _access_token(self, credentials: Any) -> str:
        import google.auth.transport.requests

        credentials.refresh(google.auth.transport.requests.Request())
        return credentials.token

    def _build_service(self, name: str, version: str, credentials: Any) -> Any:
        from googleapiclient.discovery import build

        return build(name, version, credentials=credentials, cache_discovery=False)

    # --- Private: listing ---

    def _project_ids(self, creds: CloudCredentials, credentials: Any) -> list[str]:
        if not creds.gcp_scan_all_projects:
            return [creds.gcp_project_id]

        crm = self._build_service("cloudresourcemanager", "v1", credentials)
        projects: list[str] = []
        request = crm.projects().list(filter="lifecycleState:ACTIVE")
        while request is not None:
            response = request.execute()
            projects.extend(p["projectId"] for p in response.get("projects", []))
            request = crm.projects().list_next(
                previous_request=request, previous_response=response,
            )
        if creds.gcp_project_id and creds.gcp_project_id not in projects:
            projects.insert(0, creds.gcp_project_id)
        return projects

    def _list_clusters(self, container: Any, project: str) -> list[dict[str, Any]]:
        parent = f"projects/{project}/locations/-"
        response = container.projects().locations().clusters().list(parent=parent).execute()
        return response.get("clusters", [])
