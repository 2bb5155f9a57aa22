"""Resource decoding into bounded previews.

The acquisition engine hands downloaded bytes plus the declared format to
:func:`decode`. Tabular formats go through pandas, JSON through orjson, XML
gets a structural scan, text a line preview. Decoding never raises: failures
come back as a :class:`Preview` with ``parsed=False`` and ``error`` set.
"""

import io
import logging
import re
from collections.abc import Callable
from typing import Any

import orjson
import pandas as pd

from datasentinel.domain.models import Preview

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = frozenset({"csv", "tsv", "json", "xml", "xls", "xlsx", "txt"})
PREVIEW_ROWS = 100
PREVIEW_CHARS = 2000
STATS_SAMPLE = 1000

_XML_TAG = re.compile(rb"<([A-Za-z_][\w.\-]*)[^>]*>")


def _detect_encoding(sample: bytes) -> str:
    """Return the first of a few common encodings that decodes ``sample``."""
    for encoding in ("utf-8-sig", "ISO-8859-1"):
        try:
            sample.decode(encoding)
        except UnicodeDecodeError:
            continue
        return encoding
    return "utf-8"


def _as_text(data: bytes) -> str:
    return data.decode(_detect_encoding(data[:4096]), errors="replace")


def _records(frame: pd.DataFrame) -> list[dict[str, Any]]:
    # to_json turns NaN/NaT into null
    return orjson.loads(frame.head(PREVIEW_ROWS).to_json(orient="records", date_format="iso"))


def column_stats(frame: pd.DataFrame) -> dict[str, dict[str, Any]]:
    """Completeness and type hints for each column of a sample."""
    sample = frame.head(STATS_SAMPLE)
    stats = {}
    for column in sample.columns:
        values = sample[column]
        present = values[values.notna() & (values.astype(str).str.strip() != "")]
        numeric = pd.to_numeric(present, errors="coerce").notna().sum()
        total = len(sample)
        stats[str(column)] = {
            "non_null": int(len(present)),
            "null": int(total - len(present)),
            "completeness": f"{(len(present) / total * 100) if total else 0:.2f}%",
            "is_numeric": bool(len(present) and numeric > len(present) * 0.8),
            "unique_values": int(present.nunique()),
        }
    return stats


def _decode_delimited(data: bytes, fmt: str) -> Preview:
    frame = pd.read_csv(
        io.BytesIO(data),
        sep="\t" if fmt == "tsv" else ",",
        encoding=_detect_encoding(data[:4096]),
        on_bad_lines="skip",
        skip_blank_lines=True,
    )
    return Preview(
        format=fmt,
        row_count=len(frame),
        columns=[str(c) for c in frame.columns],
        rows=_records(frame),
        has_more=len(frame) > PREVIEW_ROWS,
        field_stats=column_stats(frame),
    )


def _decode_excel(data: bytes, fmt: str) -> Preview:
    sheets = pd.read_excel(io.BytesIO(data), sheet_name=None)
    names = list(sheets)
    first = sheets[names[0]] if names else pd.DataFrame()
    return Preview(
        format=fmt,
        row_count=len(first),
        columns=[str(c) for c in first.columns],
        rows=_records(first),
        has_more=len(first) > PREVIEW_ROWS,
        field_stats=column_stats(first),
        details={
            "sheet_names": names,
            "sheets": {
                name: {"row_count": len(frame), "columns": [str(c) for c in frame.columns]}
                for name, frame in sheets.items()
            },
        },
    )


def _depth(value: Any) -> int:
    if isinstance(value, dict):
        return 1 + max((_depth(v) for v in value.values()), default=0)
    if isinstance(value, list):
        return 1 + max((_depth(v) for v in value), default=0)
    return 0


def _decode_json(data: bytes, fmt: str) -> Preview:
    payload = orjson.loads(data)
    if isinstance(payload, list):
        first = payload[0] if payload else None
        return Preview(
            format=fmt,
            row_count=len(payload),
            columns=list(first.keys()) if isinstance(first, dict) else [],
            rows=payload[:PREVIEW_ROWS],
            has_more=len(payload) > PREVIEW_ROWS,
            details={"type": "array"},
        )
    return Preview(
        format=fmt,
        row_count=1,
        columns=list(payload.keys()) if isinstance(payload, dict) else [],
        data=payload,
        details={"type": type(payload).__name__, "depth": _depth(payload)},
    )


def _decode_xml(data: bytes, fmt: str) -> Preview:
    tags = [match.decode("utf-8", errors="replace") for match in _XML_TAG.findall(data)]
    if not tags:
        raise ValueError("No XML elements found")
    text = _as_text(data)
    return Preview(
        format=fmt,
        text=text[:PREVIEW_CHARS],
        has_more=len(text) > PREVIEW_CHARS,
        details={"element_count": len(tags), "unique_tags": list(dict.fromkeys(tags))[:50]},
    )


def _decode_text(data: bytes, fmt: str) -> Preview:
    text = _as_text(data)
    lines = text.splitlines()
    return Preview(
        format=fmt,
        row_count=len(lines),
        text="\n".join(lines[:PREVIEW_ROWS]),
        has_more=len(lines) > PREVIEW_ROWS,
        details={"character_count": len(text)},
    )


_DECODERS: dict[str, Callable[[bytes, str], Preview]] = {
    "csv": _decode_delimited,
    "tsv": _decode_delimited,
    "xls": _decode_excel,
    "xlsx": _decode_excel,
    "json": _decode_json,
    "xml": _decode_xml,
    "txt": _decode_text,
}


def is_supported(fmt: str | None) -> bool:
    """Return True if ``fmt`` has a decoder."""
    return bool(fmt) and fmt.lower() in SUPPORTED_FORMATS


def decode(data: bytes, fmt: str) -> Preview:
    """Decode resource bytes into a preview.

    Args:
        data: Raw resource bytes
        fmt: Declared format (case-insensitive)

    Returns:
        Preview; ``parsed=False`` with ``error`` set when decoding failed
    """
    fmt = (fmt or "").lower()
    decoder = _DECODERS.get(fmt)
    if decoder is None:
        return Preview(
            format=fmt,
            parsed=False,
            text=_as_text(data)[:1000],
            error=f"No decoder for format '{fmt}'",
        )
    try:
        return decoder(data, fmt)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to decode %s resource: %s", fmt, exc)
        return Preview(format=fmt, parsed=False, error=str(exc) or type(exc).__name__)
