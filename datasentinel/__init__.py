"""DataSentinel SDK.

A Python library for governed discovery and acquisition of datasets from
CKAN-style open-data catalogs such as data.gov.in.

Quick Start (High-Level API):
    >>> from datasentinel import search_catalog
    >>> report = search_catalog("rainfall")
    >>> [record["dataset"]["title"] for record in report.results]

Quick Start (SDK API):
    >>> from datasentinel import RunRequest, SentinelRun, Settings
    >>> config = Settings(requests_per_hour=600)
    >>> with SentinelRun(config) as sentinel:
    ...     report = sentinel.run(RunRequest(mode="retrieve", dataset_ids=["some-id"]))

Configuration:
    >>> import os
    >>> os.environ["SENTINEL_API_KEY"] = "..."
    >>> config = Settings()  # Loads from environment

Public API:
    High-level functions:
        - search_catalog: Search and gate datasets
        - retrieve_datasets: Fetch datasets by id, with resources

    Orchestrators:
        - SentinelRun: One top-level run in a selected mode
        - Discovery: Paginated search and listings
        - Acquisition: Descriptor and resource acquisition

    Building blocks:
        - QuotaLimitedTransport: Rate-limited, retrying HTTP transport
        - CatalogClient: Typed catalog actions
        - GovernanceGate: Restriction, license, PII and download checks

    Configuration:
        - Settings: Configuration model

    Reporters (for custom UIs):
        - PipelineReporter: Progress reporter (use silent=True for headless mode)
"""

# Configuration
from datasentinel.config import Settings

# Domain models
from datasentinel.domain import (
    AcquisitionResult,
    Dataset,
    Resource,
    ResourceOutcome,
    RunReport,
    SearchFilters,
    SearchResult,
)

# Building blocks
from datasentinel.governance import GovernanceGate, GovernancePolicy
from datasentinel.network import CancellationToken, QuotaLimitedTransport
from datasentinel.operations import CatalogClient

# Orchestrators
from datasentinel.orchestrators import (
    AcquireOptions,
    Acquisition,
    Discovery,
    RunRequest,
    SentinelRun,
)

# UI Reporters
from datasentinel.ui import PipelineReporter

__all__ = [
    # High-level functions
    "search_catalog",
    "retrieve_datasets",
    # Orchestrators
    "SentinelRun",
    "RunRequest",
    "Discovery",
    "Acquisition",
    "AcquireOptions",
    # Building blocks
    "QuotaLimitedTransport",
    "CancellationToken",
    "CatalogClient",
    "GovernanceGate",
    "GovernancePolicy",
    # Configuration
    "Settings",
    # Domain models
    "Dataset",
    "Resource",
    "ResourceOutcome",
    "AcquisitionResult",
    "SearchFilters",
    "SearchResult",
    "RunReport",
    # Reporters
    "PipelineReporter",
]

# Version
__version__ = "0.1.0"


# High-level convenience functions
def search_catalog(
    query: str | None = None,
    filters: SearchFilters | None = None,
    config: Settings | None = None,
    reporter: PipelineReporter | None = None,
) -> RunReport:
    """Search the catalog and gate the results (high-level convenience function).

    Args:
        query: Free-text query; None searches everything
        filters: Structured filters
        config: Pipeline configuration. If None, uses Settings() from environment.
        reporter: Progress reporter. If None, runs silently.

    Returns:
        Run report with one record per allowed dataset

    Example:
        >>> from datasentinel import search_catalog, SearchFilters
        >>> report = search_catalog("census", SearchFilters(formats=["CSV"]))
    """
    config = config if config is not None else Settings()
    request = RunRequest.from_settings(
        config, mode="search", query=query, filters=filters or SearchFilters()
    )
    with SentinelRun(config) as sentinel:
        return sentinel.run(request, reporter)


def retrieve_datasets(
    dataset_ids: list[str],
    config: Settings | None = None,
    include_resources: bool = True,
    reporter: PipelineReporter | None = None,
) -> RunReport:
    """Fetch datasets by id and acquire their resources (high-level convenience function).

    Args:
        dataset_ids: Dataset ids or names
        config: Pipeline configuration. If None, uses Settings() from environment.
        include_resources: Download and preview resources
        reporter: Progress reporter. If None, runs silently.

    Returns:
        Run report; failed lookups appear in ``report.errors``
    """
    config = config if config is not None else Settings()
    request = RunRequest.from_settings(
        config,
        mode="retrieve",
        dataset_ids=list(dataset_ids),
        include_resources=include_resources,
    )
    with SentinelRun(config) as sentinel:
        return sentinel.run(request, reporter)
