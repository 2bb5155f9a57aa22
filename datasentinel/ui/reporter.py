"""Reporter for pipeline output and progress tracking."""

from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn, TimeRemainingColumn

from datasentinel.domain.models import Dataset, RunReport, SearchResult
from datasentinel.domain.types import BatchProgressHook


class PipelineReporter:
    """Pipeline reporter with rich progress bars and formatted output."""

    def __init__(self, silent: bool = False) -> None:
        """Initialize reporter.

        Args:
            silent: If True, suppress all output (for testing/automation).
        """
        self.silent = silent
        self.console = Console(quiet=silent, stderr=True)
        self._progress: Progress | None = None

    def report_mode(self, mode: str, query: str | None) -> None:
        """Report the selected mode and query."""
        if not self.silent:
            self.console.print(f"[bold]Mode:[/bold] {mode}  [bold]Query:[/bold] {query or '-'}")

    def report_connection(self, ok: bool) -> None:
        """Report the outcome of the connection test."""
        if self.silent:
            return
        if ok:
            self.console.print("[green]✓[/green] API connection successful")
        else:
            self.report_error("Failed to connect to the catalog API")

    def report_search(self, result: SearchResult) -> None:
        """Report how many datasets a search found."""
        if not self.silent:
            self.console.print(
                f"Found {result.count} datasets "
                f"({result.total_available} available, {result.pages_fetched} pages)"
            )

    def report_blocked(self, dataset: Dataset, errors: list[str]) -> None:
        """Report a dataset withheld by governance."""
        if not self.silent:
            self.console.print(
                f"[red]✗[/red] Blocked [bold]{dataset.title or dataset.id}[/bold]: {'; '.join(errors)}"
            )

    def progress_context(self, description: str):
        """Context manager for batch progress display."""
        if self.silent:

            class NoOpContext:
                def __enter__(self):
                    return self

                def __exit__(self, *args):
                    pass

            return NoOpContext()

        class BatchContext:
            def __init__(ctx_self, reporter):
                ctx_self.reporter = reporter

            def __enter__(ctx_self):
                ctx_self.reporter._progress = Progress(
                    TextColumn("[bold blue]{task.description}"),
                    BarColumn(),
                    TextColumn("{task.completed}/{task.total}"),
                    TimeRemainingColumn(),
                    console=ctx_self.reporter.console,
                )
                ctx_self.reporter._progress.__enter__()
                ctx_self.reporter._progress.add_task(description, total=None)
                return ctx_self.reporter._progress

            def __exit__(ctx_self, *args):
                if ctx_self.reporter._progress:
                    ctx_self.reporter._progress.__exit__(*args)
                    ctx_self.reporter._progress = None

        return BatchContext(self)

    def create_batch_progress_hook(self) -> BatchProgressHook:
        """Create a progress hook for the active batch."""
        if self.silent:

            def hook(item_id: str, current: int, total: int) -> None:
                pass

            return hook

        if self._progress is None:
            raise RuntimeError("Must be called within progress_context")

        def hook(item_id: str, current: int, total: int) -> None:
            if self._progress is None or not self._progress.tasks:
                return
            task = self._progress.tasks[0]
            self._progress.update(task.id, total=total, completed=current)

        return hook

    def report_summary(self, report: RunReport) -> None:
        """Report result counts, request statistics and compliance counters."""
        if self.silent:
            return

        stats = report.statistics
        summary = report.compliance.get("summary", {})
        self.console.print(f"\n[bold]Results:[/bold] {stats.get('results_count', 0)} items")
        self.console.print(
            f"[bold]API requests:[/bold] {stats.get('api_requests', 0)} "
            f"({stats.get('success_rate', '0%')} success rate)"
        )
        if summary:
            self.console.print(f"[bold]Blocked datasets:[/bold] {summary.get('blocked_datasets', 0)}")
            self.console.print(f"[bold]License warnings:[/bold] {summary.get('license_warnings', 0)}")
        for item in report.errors:
            self.report_warning(f"{item.title or item.id}: {item.error}")

    def report_warning(self, message: str) -> None:
        """Report a warning message."""
        if not self.silent:
            self.console.print(f"[yellow]Warning:[/yellow] {message}")

    def report_error(self, message: str) -> None:
        """Report an error message."""
        if not self.silent:
            self.console.print(f"\n[red]Error:[/red] {message}")
