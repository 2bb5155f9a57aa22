"""Integration tests for CLI commands."""

from unittest.mock import patch

import orjson
import pytest
from typer.testing import CliRunner

from datasentinel.cli.app import app
from datasentinel.orchestrators.run import SentinelRun
from datasentinel.report import read_report

CSV = b"district,rainfall_mm\nPune,12\nNagpur,30\n"


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def catalog(fake_catalog, make_dataset, make_resource):
    """Catalog with one open dataset and one restricted dataset."""
    return fake_catalog(
        [
            make_dataset("rainfall", resources=[make_resource("daily")]),
            make_dataset("budget-memo", title="Confidential budget memo"),
        ],
        {"https://files.example.org/daily.csv": CSV},
    )


@pytest.fixture
def sentinel_factory(catalog, make_client, tmp_path, monkeypatch):
    """Patch the CLI so runs use the fake catalog; returns the recorded configs."""
    monkeypatch.chdir(tmp_path)
    configs = []

    def factory(config):
        configs.append(config)
        return SentinelRun(config, client=make_client(catalog))

    with patch("datasentinel.cli.app.SentinelRun", side_effect=factory):
        yield configs


class TestHelp:
    """Test the top-level command."""

    def test_no_command_shows_help(self, cli_runner):
        """Running without a subcommand prints usage."""
        result = cli_runner.invoke(app, [])

        assert result.exit_code == 0
        assert "search" in result.output
        assert "monitor" in result.output


class TestSearchCommand:
    """Test 'sentinel search'."""

    def test_search_table(self, cli_runner, sentinel_factory):
        """Search renders a dataset table and governance summary."""
        result = cli_runner.invoke(app, ["search", "rain"])

        assert result.exit_code == 0
        assert "Datasets (1 total)" in result.output
        assert "rainfall" in result.output
        assert "Governance:" in result.output

    def test_search_json(self, cli_runner, sentinel_factory):
        """--json prints the report and nothing else on stdout."""
        result = cli_runner.invoke(app, ["search", "rain", "--tag", "weather", "-n", "5", "--json"])

        assert result.exit_code == 0
        report = orjson.loads(result.stdout)
        assert report["mode"] == "search"
        assert report["query"] == "rain"
        assert report["filters"]["tags"] == ["weather"]
        assert [r["dataset"]["id"] for r in report["results"]] == ["rainfall"]
        assert report["errors"][0]["error_kind"] == "governance_blocked"

    def test_search_writes_report(self, cli_runner, sentinel_factory, tmp_path):
        """--output writes the report file."""
        target = tmp_path / "reports" / "search.json"

        result = cli_runner.invoke(app, ["search", "rain", "--output", str(target)])

        assert result.exit_code == 0
        assert read_report(target).statistics["results_count"] == 1

    def test_date_filters(self, cli_runner, sentinel_factory, catalog):
        """Date options compile into a modified-date range."""
        result = cli_runner.invoke(app, ["search", "--from", "2024-01-01", "--to", "2024-02-01"])

        assert result.exit_code == 0
        fq = catalog.requests[1].url.params["fq"]
        assert fq == "metadata_modified:[2024-01-01T00:00:00Z TO 2024-02-01T23:59:59.999Z]"


class TestRetrieveCommand:
    """Test 'sentinel retrieve'."""

    def test_retrieve_with_resources(self, cli_runner, sentinel_factory, catalog):
        """Resources are downloaded and listed."""
        result = cli_runner.invoke(app, ["retrieve", "rainfall", "--include-resources"])

        assert result.exit_code == 0
        assert "Resources" in result.output
        assert catalog.downloads() == ["https://files.example.org/daily.csv"]

    def test_retrieve_respects_env_defaults(self, cli_runner, sentinel_factory, monkeypatch):
        """Settings come from SENTINEL_* variables."""
        monkeypatch.setenv("SENTINEL_RESOURCE_LIMIT", "1")

        result = cli_runner.invoke(app, ["retrieve", "rainfall"])

        assert result.exit_code == 0
        assert sentinel_factory[0].resource_limit == 1


class TestOtherCommands:
    """Test analyze, monitor and run."""

    def test_analyze(self, cli_runner, sentinel_factory):
        """Analyze succeeds and reports resources."""
        result = cli_runner.invoke(app, ["analyze", "rainfall", "--json"])

        assert result.exit_code == 0
        report = orjson.loads(result.stdout)
        assert report["results"][0]["analysis"]["resources"]["acquired"] == 1

    def test_monitor(self, cli_runner, sentinel_factory):
        """Monitor renders its sections."""
        result = cli_runner.invoke(app, ["monitor", "-n", "5"])

        assert result.exit_code == 0
        assert "Organizations (2)" in result.output
        assert "Popular tags (2)" in result.output

    def test_run_unknown_mode(self, cli_runner, sentinel_factory):
        """Unknown modes exit with status 1."""
        result = cli_runner.invoke(app, ["run", "--mode", "harvest"])

        assert result.exit_code == 1
        assert "Unknown mode: harvest" in result.output

    def test_run_connection_failure(self, cli_runner, sentinel_factory, catalog):
        """An unreachable catalog exits with status 1."""
        catalog.fail_next["package_search"] = [500, 500, 500]

        result = cli_runner.invoke(app, ["run", "--mode", "search"])

        assert result.exit_code == 1
        assert "Failed to connect" in result.output
