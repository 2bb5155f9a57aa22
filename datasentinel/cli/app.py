"""Typer-based CLI for datasentinel."""

import logging
from datetime import datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from datasentinel.config import Settings
from datasentinel.domain.models import RunReport, SearchFilters
from datasentinel.errors import SentinelError
from datasentinel.orchestrators import RunRequest, SentinelRun
from datasentinel.report import dump_report, write_report
from datasentinel.ui import PipelineReporter
from datasentinel.ui.tables import (
    create_dataset_table,
    create_entry_table,
    create_facet_table,
    create_resource_table,
    format_state_summary,
)

app = typer.Typer(help="Governed discovery and acquisition for open-data catalogs")

QUERY_OPTION = typer.Option(None, "--query", "-q", help="Free-text search query")
ORGANIZATION_OPTION = typer.Option(None, "--organization", help="Filter by organization")
SECTOR_OPTION = typer.Option(None, "--sector", help="Filter by sector (catalog group)")
TAG_OPTION = typer.Option(None, "--tag", help="Filter by tag (repeatable, OR-combined)")
FORMAT_OPTION = typer.Option(None, "--format", help="Filter by resource format (repeatable)")
KEYWORD_OPTION = typer.Option(None, "--keyword", help="Match keyword in dataset text")
DATE_FROM_OPTION = typer.Option(None, "--from", help="Modified on or after (YYYY-MM-DD)")
DATE_TO_OPTION = typer.Option(None, "--to", help="Modified on or before (YYYY-MM-DD)")
MAX_RESULTS_OPTION = typer.Option(None, "--max-results", "-n", help="Result cap")
OUTPUT_OPTION = typer.Option(None, "--output", "-o", help="Write the report as JSON")
JSON_OPTION = typer.Option(False, "--json", help="Print the report as JSON to stdout")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Show help when no subcommand is provided."""
    ctx.obj = {"verbose": verbose}
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    """Route log records through rich on stderr; debug when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[
            RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
        ],
        force=True,
    )


def _build_filters(
    organization: str | None,
    sector: str | None,
    tags: list[str] | None,
    formats: list[str] | None,
    keyword: str | None,
    date_from: datetime | None,
    date_to: datetime | None,
) -> SearchFilters:
    return SearchFilters(
        organization=organization,
        sector=sector,
        tags=tags or [],
        formats=formats or [],
        keyword=keyword,
        date_from=date_from.date() if date_from else None,
        date_to=date_to.date() if date_to else None,
    )


def _render(report: RunReport, reporter: PipelineReporter) -> None:
    """Print result tables for the report's mode."""
    if report.mode == "monitor":
        for section in report.results:
            if section["type"] in ("recent_datasets", "trending_datasets"):
                records = [{"dataset": d} for d in section["datasets"]]
                title = section["type"].replace("_", " ").title()
                reporter.console.print(create_dataset_table(records, f" - {title}"))
            elif section["type"] == "organizations":
                reporter.console.print(create_entry_table(section["organizations"], "Organizations"))
            elif section["type"] == "popular_tags":
                reporter.console.print(create_entry_table(section["tags"], "Popular tags"))
        return

    if not report.results:
        reporter.console.print("[dim]No datasets passed governance checks[/dim]")
        return

    reporter.console.print(create_dataset_table(report.results))
    if any(record.get("resources") for record in report.results):
        reporter.console.print(create_resource_table(report.results))
    facets = report.statistics.get("facets")
    if facets and any(facets.values()):
        reporter.console.print(create_facet_table(facets))
    reporter.console.print(f"\n[bold]Governance:[/bold] {format_state_summary(report.results)}")


def _execute(
    ctx: typer.Context,
    config: Settings,
    request: RunRequest,
    output: Path | None,
    as_json: bool,
) -> None:
    """Run one request and emit the report."""
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    _setup_logging(verbose or config.debug)
    reporter = PipelineReporter(silent=as_json)

    try:
        with SentinelRun(config) as sentinel:
            report = sentinel.run(request, reporter)
    except SentinelError as e:
        reporter.report_error(str(e))
        raise typer.Exit(1) from e

    _render(report, reporter)
    if report.attribution:
        reporter.console.print(f"\n[dim]{report.attribution}[/dim]")

    if output is not None:
        path = write_report(report, output)
        reporter.console.print(f"Report written to {path}")
    if as_json:
        typer.echo(dump_report(report).decode())


@app.command()
def search(
    ctx: typer.Context,
    query: str = typer.Argument(None, help="Free-text search query"),
    organization: str = ORGANIZATION_OPTION,
    sector: str = SECTOR_OPTION,
    tag: list[str] = TAG_OPTION,
    fmt: list[str] = FORMAT_OPTION,
    keyword: str = KEYWORD_OPTION,
    date_from: datetime = DATE_FROM_OPTION,
    date_to: datetime = DATE_TO_OPTION,
    max_results: int = MAX_RESULTS_OPTION,
    output: Path = OUTPUT_OPTION,
    as_json: bool = JSON_OPTION,
):
    """Search the catalog and gate the results."""
    config = Settings()
    request = RunRequest.from_settings(
        config,
        mode="search",
        query=query,
        filters=_build_filters(organization, sector, tag, fmt, keyword, date_from, date_to),
        max_results=max_results,
    )
    _execute(ctx, config, request, output, as_json)


@app.command()
def retrieve(
    ctx: typer.Context,
    dataset_ids: list[str] = typer.Argument(None, help="Dataset ids; search when omitted"),
    query: str = QUERY_OPTION,
    organization: str = ORGANIZATION_OPTION,
    sector: str = SECTOR_OPTION,
    tag: list[str] = TAG_OPTION,
    fmt: list[str] = FORMAT_OPTION,
    max_results: int = MAX_RESULTS_OPTION,
    include_resources: bool = typer.Option(
        None, "--include-resources/--no-resources", help="Download and preview resources"
    ),
    output: Path = OUTPUT_OPTION,
    as_json: bool = JSON_OPTION,
):
    """Retrieve datasets by id or search, optionally with resources."""
    config = Settings()
    request = RunRequest.from_settings(
        config,
        mode="retrieve",
        query=query,
        filters=_build_filters(organization, sector, tag, fmt, None, None, None),
        dataset_ids=dataset_ids or None,
        max_results=max_results,
        include_resources=include_resources,
    )
    _execute(ctx, config, request, output, as_json)


@app.command()
def analyze(
    ctx: typer.Context,
    dataset_ids: list[str] = typer.Argument(None, help="Dataset ids; search when omitted"),
    query: str = QUERY_OPTION,
    organization: str = ORGANIZATION_OPTION,
    sector: str = SECTOR_OPTION,
    max_results: int = MAX_RESULTS_OPTION,
    output: Path = OUTPUT_OPTION,
    as_json: bool = JSON_OPTION,
):
    """Retrieve with resources, then score metadata and scan for PII."""
    config = Settings()
    request = RunRequest.from_settings(
        config,
        mode="analyze",
        query=query,
        filters=_build_filters(organization, sector, None, None, None, None, None),
        dataset_ids=dataset_ids or None,
        max_results=max_results,
    )
    _execute(ctx, config, request, output, as_json)


@app.command()
def monitor(
    ctx: typer.Context,
    max_results: int = MAX_RESULTS_OPTION,
    output: Path = OUTPUT_OPTION,
    as_json: bool = JSON_OPTION,
):
    """Show recent and trending datasets, organizations and popular tags."""
    config = Settings()
    request = RunRequest.from_settings(config, mode="monitor", max_results=max_results)
    _execute(ctx, config, request, output, as_json)


@app.command()
def run(
    ctx: typer.Context,
    mode: str = typer.Option(None, "--mode", "-m", help="search, retrieve, analyze or monitor"),
    query: str = QUERY_OPTION,
    dataset_id: list[str] = typer.Option(None, "--id", help="Dataset id (repeatable)"),
    output: Path = OUTPUT_OPTION,
    as_json: bool = JSON_OPTION,
):
    """Run the mode selected by --mode or SENTINEL_MODE."""
    config = Settings()
    request = RunRequest.from_settings(
        config, mode=mode, query=query, dataset_ids=dataset_id or None
    )
    _execute(ctx, config, request, output, as_json)


if __name__ == "__main__":
    app()
