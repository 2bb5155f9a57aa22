"""Run orchestrator.

Wires settings into one shared transport, then executes a single operating
mode and assembles the run report. Per-item failures become report
annotations; only an unknown mode or an unreachable catalog fail the run.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field

from datasentinel.config import MODES, Settings
from datasentinel.domain.models import (
    AcquisitionResult,
    Dataset,
    GovernanceVerdict,
    ItemError,
    RunReport,
    SearchFilters,
    utcnow,
)
from datasentinel.domain.services import DatasetAnalysisService
from datasentinel.errors import ConnectionFailedError, ErrorKind, UnknownModeError
from datasentinel.governance.gate import GovernanceGate
from datasentinel.network.cancellation import CancellationToken
from datasentinel.network.transport import QuotaLimitedTransport
from datasentinel.operations.catalog import CatalogClient
from datasentinel.orchestrators.acquisition import AcquireOptions, Acquisition
from datasentinel.orchestrators.discovery import Discovery
from datasentinel.ui import PipelineReporter

logger = logging.getLogger(__name__)

MONITOR_PREVIEW = 20
MONITOR_ORGANIZATIONS = 50
MONITOR_TAGS = 30


class RunRequest(BaseModel):
    """What one run should do."""

    mode: str = "search"
    query: str | None = None
    filters: SearchFilters = Field(default_factory=SearchFilters)
    dataset_ids: list[str] = Field(default_factory=list)
    max_results: int = Field(default=50, ge=1)
    include_resources: bool = False

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "RunRequest":
        """Build a request from settings, letting explicit values win."""
        values: dict[str, Any] = {
            "mode": settings.mode,
            "query": settings.query,
            "max_results": settings.max_results,
            "include_resources": settings.include_resources,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class SentinelRun:
    """Orchestrates one top-level run.

    Settings -> transport -> client -> discovery/acquisition, with one
    governance gate vetting everything that reaches the report.
    """

    def __init__(
        self,
        config: Settings | None = None,
        client: CatalogClient | None = None,
        gate: GovernanceGate | None = None,
    ):
        """Initialize the run orchestrator.

        Args:
            config: Pipeline configuration. If None, creates new Settings() from environment.
            client: Catalog client. If None, one is built from ``config`` and closed by :meth:`close`.
            gate: Governance gate. If None, one is built from ``config``.
        """
        self.config = config if config is not None else Settings()
        self._owned_transport: QuotaLimitedTransport | None = None
        if client is None:
            self._owned_transport = QuotaLimitedTransport.from_settings(self.config)
            client = CatalogClient(self._owned_transport, self.config.portal_url)
        self.client = client
        self.gate = gate if gate is not None else GovernanceGate.from_settings(self.config)
        self.discovery = Discovery(self.client, self.config)
        self.acquisition = Acquisition(self.client, self.gate)

    def run(
        self,
        request: RunRequest,
        reporter: PipelineReporter | None = None,
        cancel: CancellationToken | None = None,
    ) -> RunReport:
        """Execute one run.

        Args:
            request: Mode, query, filters and ids
            reporter: Optional reporter for progress. Defaults to a silent one.
            cancel: Optional cancellation token for every remote call

        Returns:
            The run report

        Raises:
            UnknownModeError: If ``request.mode`` names no known mode
            ConnectionFailedError: If the catalog cannot be reached
        """
        mode = request.mode.strip().lower()
        if mode not in MODES:
            raise UnknownModeError(request.mode)
        logger.info("Starting %s run", mode)
        if reporter is None:
            reporter = PipelineReporter(silent=True)

        reporter.report_mode(mode, request.query)
        report = RunReport(
            mode=mode,
            query=request.query,
            filters=request.filters,
            dataset_ids=list(request.dataset_ids),
        )

        connected = self.client.test_connection()
        reporter.report_connection(connected)
        if not connected:
            raise ConnectionFailedError(
                "Failed to connect to the catalog API. Check network and credentials."
            )

        handler = getattr(self, f"_run_{mode}")
        handler(request, report, reporter, cancel)

        self.gate.log_activity(
            f"{mode} run", {"results": len(report.results), "errors": len(report.errors)}
        )
        self._finish(report)
        reporter.report_summary(report)
        return report

    def _run_search(
        self,
        request: RunRequest,
        report: RunReport,
        reporter: PipelineReporter,
        cancel: CancellationToken | None,
    ) -> None:
        result = self.discovery.search(request.query, request.filters, request.max_results, cancel)
        reporter.report_search(result)

        for dataset, verdict in self._governed(result.datasets, report, reporter):
            report.results.append(self._record(dataset, verdict))

        report.statistics.update(
            {
                "total_available": result.total_available,
                "pages_fetched": result.pages_fetched,
                "processed_query": result.processed_query,
                "filter_query": result.filter_query,
                "facets": result.facets.model_dump(mode="json"),
            }
        )

    def _run_retrieve(
        self,
        request: RunRequest,
        report: RunReport,
        reporter: PipelineReporter,
        cancel: CancellationToken | None,
    ) -> None:
        for dataset, verdict, acquired in self._retrieve(
            request, report, reporter, cancel, request.include_resources
        ):
            record = self._record(dataset, verdict, attribution=True)
            if acquired is not None:
                record["resources"] = [o.model_dump(mode="json") for o in acquired.resources]
            report.results.append(record)

    def _run_analyze(
        self,
        request: RunRequest,
        report: RunReport,
        reporter: PipelineReporter,
        cancel: CancellationToken | None,
    ) -> None:
        for dataset, verdict, acquired in self._retrieve(request, report, reporter, cancel, True):
            record = self._record(dataset, verdict, attribution=True)
            analyzed = acquired or AcquisitionResult(
                dataset_id=dataset.id, success=False, dataset=dataset
            )
            record["resources"] = [o.model_dump(mode="json") for o in analyzed.resources]
            record["analysis"] = DatasetAnalysisService.analyze(analyzed)
            record["pii_scan"] = self.gate.scan_for_pii(dataset).model_dump(mode="json")
            report.results.append(record)

    def _run_monitor(
        self,
        request: RunRequest,
        report: RunReport,
        reporter: PipelineReporter,
        cancel: CancellationToken | None,
    ) -> None:
        recent = self._governed(
            self.discovery.discover_recent(request.max_results), report, reporter
        )
        trending = self._governed(
            self.discovery.discover_trending(request.max_results), report, reporter
        )
        organizations = self.discovery.organizations()
        tags = self.discovery.popular_tags(MONITOR_TAGS)

        report.results.extend(
            [
                {
                    "type": "recent_datasets",
                    "count": len(recent),
                    "datasets": [self._dataset_dump(d) for d, _ in recent[:MONITOR_PREVIEW]],
                },
                {
                    "type": "trending_datasets",
                    "count": len(trending),
                    "datasets": [self._dataset_dump(d) for d, _ in trending[:MONITOR_PREVIEW]],
                },
                {
                    "type": "organizations",
                    "count": len(organizations),
                    "organizations": [
                        o.model_dump(mode="json") for o in organizations[:MONITOR_ORGANIZATIONS]
                    ],
                },
                {
                    "type": "popular_tags",
                    "count": len(tags),
                    "tags": [t.model_dump(mode="json") for t in tags],
                },
            ]
        )

    def _retrieve(
        self,
        request: RunRequest,
        report: RunReport,
        reporter: PipelineReporter,
        cancel: CancellationToken | None,
        include_resources: bool,
    ) -> list[tuple[Dataset, GovernanceVerdict, AcquisitionResult | None]]:
        """Resolve datasets by id or search, gate them, optionally acquire resources."""
        if request.dataset_ids:
            with reporter.progress_context("Looking up datasets"):
                lookups = self.discovery.search_by_ids(
                    request.dataset_ids,
                    cancel=cancel,
                    progress_hook=reporter.create_batch_progress_hook(),
                )
            datasets = []
            for lookup in lookups:
                if lookup.dataset is None:
                    report.errors.append(
                        ItemError(
                            id=lookup.id,
                            error=lookup.error or "Lookup failed",
                            error_kind=lookup.error_kind or ErrorKind.UNKNOWN,
                        )
                    )
                else:
                    datasets.append(lookup.dataset)
        else:
            result = self.discovery.search(
                request.query, request.filters, request.max_results, cancel
            )
            reporter.report_search(result)
            datasets = result.datasets

        allowed = self._governed(datasets, report, reporter)
        if not include_resources:
            return [(dataset, verdict, None) for dataset, verdict in allowed]

        options = AcquireOptions.from_settings(self.config)
        with reporter.progress_context("Acquiring resources"):
            acquired = self.acquisition.batch_acquire(
                [dataset for dataset, _ in allowed],
                options,
                max_workers=self.config.batch_workers,
                cancel=cancel,
                progress_hook=reporter.create_batch_progress_hook(),
            )

        return [(dataset, verdict, result) for (dataset, verdict), result in zip(allowed, acquired)]

    def _governed(
        self,
        datasets: list[Dataset],
        report: RunReport,
        reporter: PipelineReporter,
    ) -> list[tuple[Dataset, GovernanceVerdict]]:
        """Validate access; blocked datasets are withheld and annotated."""
        allowed = []
        for dataset in datasets:
            verdict = self.gate.validate_access(dataset)
            if verdict.allowed:
                allowed.append((dataset, verdict))
                continue
            reporter.report_blocked(dataset, verdict.errors)
            report.errors.append(
                ItemError(
                    id=dataset.id,
                    title=dataset.title,
                    error="; ".join(verdict.errors),
                    error_kind=ErrorKind.GOVERNANCE_BLOCKED,
                )
            )
        return allowed

    def _dataset_dump(self, dataset: Dataset) -> dict[str, Any]:
        data = dataset.model_dump(mode="json")
        data["description"] = self.gate.redact_content(dataset.description)
        return data

    def _record(
        self,
        dataset: Dataset,
        verdict: GovernanceVerdict,
        attribution: bool = False,
    ) -> dict[str, Any]:
        governance: dict[str, Any] = {
            "allowed": verdict.allowed,
            "state": verdict.state.value,
            "warnings": list(verdict.warnings),
            "checks": verdict.checks.model_dump(),
        }
        if attribution:
            governance["attribution"] = self.gate.generate_attribution(dataset)
        return {"dataset": self._dataset_dump(dataset), "governance": governance}

    def _finish(self, report: RunReport) -> None:
        stats = self.client.stats()
        report.statistics.update(
            {
                "results_count": len(report.results),
                "error_count": len(report.errors),
                "api_requests": stats.total,
                "successful_requests": stats.successful,
                "failed_requests": stats.failed,
                "retries": stats.retries,
                "success_rate": stats.success_rate,
                "quota": self.client.rate_limit_status().model_dump(),
            }
        )
        report.compliance = self.gate.compliance_report()
        report.attribution = self._attribution(report)
        report.finished_at = utcnow()

    def _attribution(self, report: RunReport) -> str:
        if report.mode != "monitor":
            for record in report.results:
                dataset = record.get("dataset")
                if dataset:
                    return self.gate.generate_attribution(Dataset.model_validate(dataset))
        return f"Data sourced from the open data catalog at {self.config.portal_url}"

    def close(self) -> None:
        """Close the transport if this run created it."""
        if self._owned_transport is not None:
            self._owned_transport.close()

    def __enter__(self) -> "SentinelRun":
        return self

    def __exit__(self, exc_type, _exc_value, _traceback) -> bool:
        self.close()
        return False
