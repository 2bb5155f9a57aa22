"""Unit tests for run report serialization."""

import orjson

from datasentinel.domain.models import ItemError, RunReport, SearchFilters
from datasentinel.errors import ErrorKind
from datasentinel.report import dump_report, read_report, write_report


class TestReportFiles:
    """Test writing and reading run reports."""

    def test_dump_is_json(self):
        """Enum values and timestamps serialize as plain JSON."""
        report = RunReport(
            mode="search",
            errors=[ItemError(id="x", error="nope", error_kind=ErrorKind.GOVERNANCE_BLOCKED)],
        )

        payload = orjson.loads(dump_report(report))

        assert payload["mode"] == "search"
        assert payload["errors"][0]["error_kind"] == "governance_blocked"
        assert isinstance(payload["started_at"], str)

    def test_write_creates_parents(self, tmp_path):
        """Parent directories are created and the file ends with a newline."""
        target = tmp_path / "out" / "nested" / "report.json"

        written = write_report(RunReport(mode="monitor"), target)

        assert written == target
        assert target.read_bytes().endswith(b"\n")

    def test_overwrite_and_read_back(self, tmp_path):
        """Existing reports are replaced and read back intact."""
        target = tmp_path / "report.json"
        write_report(RunReport(mode="search"), target)

        write_report(
            RunReport(mode="retrieve", query="rain", filters=SearchFilters(tags=["a"])), target
        )
        report = read_report(target)

        assert report.mode == "retrieve"
        assert report.query == "rain"
        assert report.filters.tags == ["a"]
