"""SyncPipeline: one discover, normalize, enrich and persist cycle.

Cloud credentials are loaded once per run and passed explicitly to each
stage. Providers are discovered one after another and clusters are
enriched one at a time. A failing provider or cluster is recorded in
the ``CycleReport`` and the cycle carries on; only a persistence
failure aborts it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from nautilus.db.connection import Database
from nautilus.enricher import KubernetesEnricher
from nautilus.models import CloudCredentials, CycleReport, ProviderResult
from nautilus.providers import ProviderClient, default_clients
from nautilus.reconciler import Reconciler
from nautilus.settings.store import SettingsStore

logger = logging.getLogger(__name__)


class SyncPipeline:
    """Runs reconciliation cycles against one database."""

    def __init__(
        self,
        db: Database,
        clients: list[ProviderClient] | None = None,
        enricher: KubernetesEnricher | None = None,
        reconciler: Reconciler | None = None,
        store: SettingsStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._clients = clients if clients is not None else default_clients()
        self._enricher = enricher or KubernetesEnricher(clock=self._clock)
        self._reconciler = reconciler or Reconciler(db, clock=self._clock)
        self._store = store or SettingsStore(db)

    def run(
        self,
        credentials: CloudCredentials | None = None,
        *,
        persist: bool = True,
    ) -> CycleReport:
        """Run one cycle and return its report.

        With ``persist=False`` nothing is written (dry run). Raises
        ``ReconcileError`` if the database writes were rolled back.
        """
        creds = credentials or self._store.load_cloud_credentials()
        report = CycleReport(started_at=self._clock())

        for client in self._clients:
            report.providers.append(self._discover(client, creds))

        for result in report.providers:
            for cluster in result.clusters:
                report.enrichments.append(
                    self._enricher.enrich(cluster, result.credentials.get(cluster.cluster_id)),
                )

        if persist:
            namespaces = [ns for e in report.enrichments if e.ok for ns in e.namespaces]
            report.summary = self._reconciler.reconcile(
                report.clusters, namespaces, report.enriched_cluster_ids,
            )

        report.finished_at = self._clock()
        failed = sum(1 for e in report.enrichments if not e.ok)
        logger.info(
            "Cycle finished: %d cluster(s), %d enrichment failure(s), %d provider failure(s)",
            len(report.clusters), failed, len(report.failed_providers),
        )
        return report

    def _discover(self, client: ProviderClient, creds: CloudCredentials) -> ProviderResult:
        if not client.is_configured(creds):
            logger.debug("%s not configured, skipping", client.provider)
            return ProviderResult(provider=client.provider, skipped=True)
        try:
            result = client.discover(creds)
        except Exception as exc:
            logger.error("%s discovery failed: %s", client.provider, exc)
            return ProviderResult(provider=client.provider, ok=False, error=str(exc))
        logger.info("%s discovered %d cluster(s)", client.provider, len(result.clusters))
        return result
