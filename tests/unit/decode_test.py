"""Unit tests for resource decoding."""

import io

import orjson
import pandas as pd

from datasentinel.operations.decode import PREVIEW_ROWS, decode, is_supported


class TestSupport:
    """Test format support checks."""

    def test_supported_formats(self):
        """Known formats are supported regardless of case."""
        assert is_supported("CSV")
        assert is_supported("xlsx")
        assert not is_supported("pdf")
        assert not is_supported("")
        assert not is_supported(None)


class TestTabular:
    """Test delimited and spreadsheet decoding."""

    def test_csv_preview_and_stats(self):
        """CSV yields rows, columns and per-column stats."""
        data = b"district,rainfall_mm\nPune,12.5\nNagpur,\nMumbai,40\n"

        preview = decode(data, "CSV")

        assert preview.parsed
        assert preview.format == "csv"
        assert preview.row_count == 3
        assert preview.columns == ["district", "rainfall_mm"]
        assert preview.rows[1] == {"district": "Nagpur", "rainfall_mm": None}
        assert preview.field_stats["rainfall_mm"]["null"] == 1
        assert preview.field_stats["rainfall_mm"]["is_numeric"] is True
        assert preview.field_stats["district"]["completeness"] == "100.00%"

    def test_tsv(self):
        """Tab-separated data uses the tab delimiter."""
        preview = decode(b"a\tb\n1\t2\n", "tsv")

        assert preview.columns == ["a", "b"]
        assert preview.row_count == 1

    def test_latin1_csv(self):
        """Non-UTF-8 bytes are decoded with a fallback encoding."""
        preview = decode("city\nSão Paulo\n".encode("latin-1"), "csv")

        assert preview.parsed
        assert preview.rows == [{"city": "São Paulo"}]

    def test_preview_is_bounded(self):
        """Only the first rows are kept; the total is still reported."""
        body = "n\n" + "\n".join(str(i) for i in range(PREVIEW_ROWS + 5)) + "\n"

        preview = decode(body.encode(), "csv")

        assert preview.row_count == PREVIEW_ROWS + 5
        assert len(preview.rows) == PREVIEW_ROWS
        assert preview.has_more

    def test_xlsx(self):
        """Workbooks report every sheet and preview the first."""
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            pd.DataFrame({"crop": ["rice", "wheat"], "tonnes": [10, 20]}).to_excel(
                writer, sheet_name="production", index=False
            )
            pd.DataFrame({"year": [2024]}).to_excel(writer, sheet_name="meta", index=False)

        preview = decode(buffer.getvalue(), "xlsx")

        assert preview.parsed
        assert preview.row_count == 2
        assert preview.columns == ["crop", "tonnes"]
        assert preview.details["sheet_names"] == ["production", "meta"]
        assert preview.details["sheets"]["meta"]["row_count"] == 1


class TestStructured:
    """Test JSON, XML and text decoding."""

    def test_json_array(self):
        """Arrays preview as records."""
        preview = decode(orjson.dumps([{"a": 1}, {"a": 2}]), "json")

        assert preview.row_count == 2
        assert preview.columns == ["a"]
        assert preview.details == {"type": "array"}

    def test_json_object(self):
        """Objects report keys and nesting depth."""
        preview = decode(orjson.dumps({"meta": {"source": {"name": "imd"}}, "rows": []}), "json")

        assert preview.columns == ["meta", "rows"]
        assert preview.details["depth"] == 3
        assert preview.data["meta"]["source"]["name"] == "imd"

    def test_xml(self):
        """XML reports element counts and unique tags."""
        preview = decode(b"<root><row id='1'/><row id='2'/></root>", "xml")

        assert preview.parsed
        assert preview.details["element_count"] == 3
        assert preview.details["unique_tags"] == ["root", "row"]

    def test_text(self):
        """Text previews lines."""
        preview = decode(b"line one\nline two\n", "txt")

        assert preview.row_count == 2
        assert preview.text == "line one\nline two"


class TestFailures:
    """Test that decoding failures are reported, not raised."""

    def test_broken_json(self):
        """Invalid JSON gives an unparsed preview with an error."""
        preview = decode(b"{not json", "json")

        assert not preview.parsed
        assert preview.error

    def test_xml_without_elements(self):
        """Text without markup is not XML."""
        preview = decode(b"just words", "xml")

        assert not preview.parsed
        assert preview.error == "No XML elements found"

    def test_unknown_format(self):
        """Formats without a decoder keep a raw text sample."""
        preview = decode(b"%PDF-1.4", "pdf")

        assert not preview.parsed
        assert preview.text == "%PDF-1.4"
        assert "pdf" in preview.error
