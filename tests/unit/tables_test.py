"""Unit tests for table rendering utilities."""

from datasentinel.ui.tables import (
    create_dataset_table,
    create_entry_table,
    create_facet_table,
    create_resource_table,
    format_state_summary,
)


def _record(dataset_id: str, state: str = "allowed", **dataset) -> dict:
    return {
        "dataset": {"id": dataset_id, "title": dataset_id.title(), "num_resources": 2, **dataset},
        "governance": {"allowed": state != "blocked", "state": state, "warnings": []},
    }


class TestDatasetTable:
    """Test dataset table creation."""

    def test_creates_table_with_correct_columns(self):
        """Table should have all required columns."""
        table = create_dataset_table([_record("rain")])

        column_headers = [col.header for col in table.columns]
        assert column_headers == [
            "ID",
            "Title",
            "Organization",
            "License",
            "Resources",
            "Governance",
        ]

    def test_table_title_includes_count(self):
        """Table title should include dataset count and suffix."""
        table = create_dataset_table([_record("a"), _record("b")], " - rain")

        assert table.title == "Datasets (2 total) - rain"
        assert table.row_count == 2

    def test_empty_records(self):
        """Empty input renders an empty table."""
        table = create_dataset_table([])

        assert table.row_count == 0
        assert table.title == "Datasets (0 total)"


class TestResourceTable:
    """Test resource outcome table creation."""

    def test_one_row_per_outcome(self):
        """Every outcome of every record gets a row."""
        record = _record("rain")
        record["resources"] = [
            {"resource": {"name": "daily", "format": "csv", "size": 100}, "acquired": True},
            {
                "resource": {"name": "scan", "format": "pdf"},
                "acquired": False,
                "reason": "Unsupported format 'pdf'",
            },
        ]

        table = create_resource_table([record, _record("empty")])

        assert table.row_count == 2
        assert [col.header for col in table.columns][-1] == "Note"


class TestEntryAndFacetTables:
    """Test enumeration and facet tables."""

    def test_entry_table(self):
        """Entries list name, title and count."""
        table = create_entry_table(
            [{"name": "imd", "title": "IMD", "dataset_count": 40}], "Organizations"
        )

        assert table.title == "Organizations (1)"
        assert table.row_count == 1

    def test_facet_table(self):
        """Each facet value gets a row."""
        facets = {
            "organizations": [{"name": "imd", "count": 7}, {"name": "moa", "count": 3}],
            "tags": [],
            "formats": [{"name": "CSV", "count": 10}],
        }

        table = create_facet_table(facets)

        assert table.row_count == 3


class TestFormatStateSummary:
    """Test governance state summary formatting."""

    def test_formats_states(self):
        """Counts are grouped by state in sorted order."""
        records = [_record("a"), _record("b", "warned"), _record("c", "warned")]

        assert format_state_summary(records) == "1 allowed, 2 warned"

    def test_missing_governance(self):
        """Records without governance count as unchecked."""
        assert format_state_summary([{"dataset": {"id": "x"}}]) == "1 unchecked"

    def test_empty(self):
        """Empty input gives an empty string."""
        assert format_state_summary([]) == ""
