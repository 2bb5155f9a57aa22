"""Example: Using datasentinel as an SDK.

This example demonstrates how to use datasentinel programmatically
as a Python library (SDK) rather than via the CLI.
"""

import os
from datetime import date

from datasentinel import (
    AcquireOptions,
    Acquisition,
    CatalogClient,
    Discovery,
    GovernanceGate,
    PipelineReporter,
    QuotaLimitedTransport,
    RunRequest,
    SearchFilters,
    SentinelRun,
    Settings,
    search_catalog,
)


def example_simple_usage():
    """Simplest usage - search with defaults."""
    print("=" * 60)
    print("Example 1: Simple Search")
    print("=" * 60)

    report = search_catalog("rainfall")
    for record in report.results:
        print(f"  - {record['dataset']['title']} ({record['governance']['state']})")


def example_with_environment_config():
    """Load configuration from environment variables."""
    print("\n" + "=" * 60)
    print("Example 2: Environment Configuration")
    print("=" * 60)

    os.environ["SENTINEL_REQUESTS_PER_HOUR"] = "600"
    os.environ["SENTINEL_MAX_RESULTS"] = "20"

    settings = Settings()
    print(f"Loaded config: rate={settings.requests_per_hour}/h, cap={settings.max_results}")

    report = search_catalog("census", config=settings)
    print(f"Found {len(report.results)} datasets")


def example_filtered_search():
    """Structured filters compile into one filter expression."""
    print("\n" + "=" * 60)
    print("Example 3: Filtered Search")
    print("=" * 60)

    filters = SearchFilters(
        sector="Agriculture",
        formats=["CSV", "JSON"],
        date_from=date(2024, 1, 1),
    )
    report = search_catalog("crop production", filters=filters, reporter=PipelineReporter())
    print(f"Filter query: {report.statistics['filter_query']}")


def example_building_blocks():
    """Wire transport, client, gate and engines by hand for more control."""
    print("\n" + "=" * 60)
    print("Example 4: Building Blocks")
    print("=" * 60)

    settings = Settings(requests_per_hour=300, concurrent_requests=2)
    gate = GovernanceGate.from_settings(settings)

    with QuotaLimitedTransport.from_settings(settings) as transport:
        client = CatalogClient(transport, settings.portal_url)
        discovery = Discovery(client, settings)
        acquisition = Acquisition(client, gate)

        result = discovery.search("air quality", max_results=5)
        for dataset in result.datasets:
            verdict = gate.validate_access(dataset)
            if not verdict.allowed:
                print(f"  Blocked: {dataset.title}")
                continue

            acquired = acquisition.acquire(dataset.id, AcquireOptions(resource_limit=1))
            for outcome in acquired.resources:
                rows = outcome.preview.row_count if outcome.preview else None
                print(f"  {dataset.title}: acquired={outcome.acquired} rows={rows}")

        print(f"Quota: {transport.quota_status().remaining} requests left this hour")


def example_headless_run():
    """Run a mode silently and inspect the report (cron jobs, servers)."""
    print("\n" + "=" * 60)
    print("Example 5: Headless Run")
    print("=" * 60)

    with SentinelRun(Settings()) as sentinel:
        report = sentinel.run(RunRequest(mode="monitor", max_results=10))

    for section in report.results:
        print(f"  {section['type']}: {section['count']}")
    print(f"Compliance: {report.compliance['summary']}")


if __name__ == "__main__":
    print("\n" + "=" * 60)
    print("DataSentinel SDK Examples")
    print("=" * 60)
    print("\nThese examples show different ways to use datasentinel")
    print("as a Python library (SDK) in your own code.\n")

    # Uncomment the examples you want to run:

    # example_simple_usage()
    # example_with_environment_config()
    # example_filtered_search()
    # example_building_blocks()
    # example_headless_run()

    print("\nTo run an example, uncomment it in the __main__ section.")
