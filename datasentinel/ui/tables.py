"""Table rendering utilities for CLI output."""

from collections import Counter

from rich.table import Table

STATE_COLORS = {
    "allowed": "green",
    "warned": "yellow",
    "blocked": "red",
    "unchecked": "dim",
}


def _truncate(text: str | None, width: int) -> str:
    if not text:
        return "-"
    return text if len(text) <= width else text[: width - 1] + "…"


def create_dataset_table(records: list[dict], title_suffix: str = "") -> Table:
    """Create a table of datasets from run report records.

    Args:
        records: Report records with ``dataset`` and ``governance`` entries
        title_suffix: Optional suffix for table title

    Returns:
        Rich Table object ready for display
    """
    table = Table(title=f"Datasets ({len(records)} total){title_suffix}")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Organization", style="dim")
    table.add_column("License", style="dim")
    table.add_column("Resources", justify="right")
    table.add_column("Governance", style="yellow")

    for record in records:
        dataset = record.get("dataset") or {}
        governance = record.get("governance") or {}
        state = governance.get("state", "unchecked")
        color = STATE_COLORS.get(state, "white")
        table.add_row(
            _truncate(dataset.get("id"), 24),
            _truncate(dataset.get("title"), 60),
            _truncate(dataset.get("organization"), 30),
            _truncate(dataset.get("license"), 24),
            str(dataset.get("num_resources", 0)),
            f"[{color}]{state}[/{color}]",
        )

    return table


def create_resource_table(records: list[dict]) -> Table:
    """Create a table of resource outcomes across every record.

    Args:
        records: Report records carrying ``resources`` outcome lists

    Returns:
        Rich Table object ready for display
    """
    table = Table(title="Resources")
    table.add_column("Dataset", style="cyan", no_wrap=True)
    table.add_column("Resource", style="white")
    table.add_column("Format", style="dim")
    table.add_column("Acquired")
    table.add_column("Size", justify="right", style="dim")
    table.add_column("Note", style="dim")

    for record in records:
        dataset_id = (record.get("dataset") or {}).get("id")
        for outcome in record.get("resources") or []:
            resource = outcome.get("resource") or {}
            size = outcome.get("measured_size") or resource.get("size")
            table.add_row(
                _truncate(dataset_id, 24),
                _truncate(resource.get("name") or resource.get("id"), 40),
                resource.get("format") or "-",
                "[green]yes[/green]" if outcome.get("acquired") else "[red]no[/red]",
                f"{size:,} B" if size is not None else "-",
                _truncate(outcome.get("reason") or outcome.get("error"), 50),
            )

    return table


def create_entry_table(entries: list[dict], title: str) -> Table:
    """Create a table of organizations, sectors or tags with dataset counts."""
    table = Table(title=f"{title} ({len(entries)})")
    table.add_column("Name", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Datasets", justify="right")

    for entry in entries:
        table.add_row(
            entry.get("name") or "-",
            _truncate(entry.get("title"), 50),
            str(entry.get("dataset_count", 0)),
        )

    return table


def create_facet_table(facets: dict[str, list[dict]]) -> Table:
    """Create a table of the top facet values per field.

    Args:
        facets: Facet field name mapped to ``{"name", "count"}`` items

    Returns:
        Rich Table object ready for display
    """
    table = Table(title="Facets")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_column("Count", justify="right")

    for field, items in facets.items():
        for index, item in enumerate(items):
            table.add_row(field if index == 0 else "", item["name"], str(item["count"]))
        if items:
            table.add_section()

    return table


def format_state_summary(records: list[dict]) -> str:
    """Create a summary string of governance states.

    Args:
        records: Report records with a ``governance.state`` entry

    Returns:
        Formatted summary string like "3 allowed, 2 warned"
    """
    states = Counter((r.get("governance") or {}).get("state", "unchecked") for r in records)
    return ", ".join(f"{count} {state}" for state, count in sorted(states.items()))
