"""EksClient: discovers EKS clusters via boto3.

Uses an access key pair from the cloud credentials. With
``awsScanAllRegions`` every region returned by EC2 ``describe_regions``
is scanned. The bearer token for each cluster is a presigned STS
``GetCallerIdentity`` URL, the same format ``aws eks get-token`` emits.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

from nautilus.models import CloudCredentials, ClusterCredential, Provider, ProviderResult
from nautilus.normalizer import normalize_eks
from nautilus.providers.base import ConnectionTestResult

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "k8s-aws-v1."
TOKEN_EXPIRES_IN = 60
CLUSTER_NAME_HEADER = "x-k8s-aws-id"


class EksClient:
    """Lists EKS clusters for one access key pair."""

    provider = Provider.EKS

    def is_configured(self, creds: CloudCredentials) -> bool:
        return creds.aws_configured()

    def discover(self, creds: CloudCredentials) -> ProviderResult:
        result = ProviderResult(provider=self.provider)
        for region in self._regions(creds):
            session = self._get_boto3_session(creds, region)
            eks = session.client("eks")
            names = self._list_cluster_names(eks)
            for name in names:
                info = eks.describe_cluster(name=name)["cluster"]
                cluster = normalize_eks(info, self._node_count(eks, name), region)
                result.clusters.append(cluster)
                endpoint = info.get("endpoint")
                if endpoint:
                    result.credentials[cluster.cluster_id] = ClusterCredential(
                        endpoint=endpoint,
                        ca_data=info.get("certificateAuthority", {}).get("data"),
                        token=self.get_token(session, name, region),
                    )
            logger.info("AWS region %s: %d cluster(s)", region, len(names))
        return result

    def test_connection(self, creds: CloudCredentials) -> ConnectionTestResult:
        if not self.is_configured(creds):
            return ConnectionTestResult(success=False, message="AWS is not enabled or configured")
        try:
            session = self._get_boto3_session(creds, creds.aws_region)
            identity = session.client("sts").get_caller_identity()
            names = self._list_cluster_names(session.client("eks"))
        except Exception as exc:
            return ConnectionTestResult(success=False, message=f"AWS connection failed: {exc}")
        return ConnectionTestResult(
            success=True,
            message=(
                f"Connected as {identity.get('Arn', 'unknown')}, "
                f"found {len(names)} cluster(s) in {creds.aws_region}"
            ),
        )

    # --- Private: boto3 setup ---

    def _get_boto3_session(self, creds: CloudCredentials, region: str) -> Any:
        """Build a boto3 Session from the stored access key pair."""
        import boto3

        return boto3.Session(
            aws_access_key_id=creds.aws_access_key_id,
            aws_secret_access_key=creds.aws_secret_access_key,
            region_name=region,
        )

    def _regions(self, creds: CloudCredentials) -> list[str]:
        if not creds.aws_scan_all_regions:
            return [creds.aws_region]
        ec2 = self._get_boto3_session(creds, creds.aws_region).client("ec2")
        return sorted(r["RegionName"] for r in ec2.describe_regions()["Regions"])

    # --- Private: listing ---

    def _list_cluster_names(self, eks: Any) -> list[str]:
        names: list[str] = []
        for page in eks.get_paginator("list_clusters").paginate():
            names.extend(page.get("clusters", []))
        return names

    def _node_count(self, eks: Any, cluster_name: str) -> int:
        """Sum of desired sizes across the cluster's managed node groups."""
        total = 0
        for page in eks.get_paginator("list_nodegroups").paginate(clusterName=cluster_name):
            for group in page.get("nodegroups", []):
                info = eks.describe_nodegroup(clusterName=cluster_name, nodegroupName=group)
                total += int(info["nodegroup"].get("scalingConfig", {}).get("desiredSize", 0))
        return total

    # --- Token ---

    @staticmethod
    def get_token(session: Any, cluster_name: str, region: str) -> str:
        """Presign an STS GetCallerIdentity call bound to *cluster_name*."""
        from botocore.signers import RequestSigner

        sts = session.client("sts", region_name=region)
        signer = RequestSigner(
            sts.meta.service_model.service_id,
            region,
            "sts",
            "v4",
            session.get_credentials(),
            session.events,
        )
        params = {
            "method": "GET",
            "url": (
                f"https://sts.{region}.amazonaws.com/"
                "?Action=GetCallerIdentity&Version=2011-06-15"
            ),
            "body": {},
            "headers": {CLUSTER_NAME_HEADER: cluster_name},
            "context": {},
        }
        url = signer.generate_presigned_url(
            params, region_name=region, expires_in=TOKEN_EXPIRES_IN, operation_name="",
        )
        encoded = base64.urlsafe_b64encode(url.encode("utf-8")).decode("utf-8")
        return TOKEN_PREFIX + encoded.rstrip("=")
