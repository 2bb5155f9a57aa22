"""Run report serialization."""

import logging
from pathlib import Path

import orjson
from atomicwrites import atomic_write

from datasentinel.domain.models import RunReport

logger = logging.getLogger(__name__)


def dump_report(report: RunReport) -> bytes:
    """Serialize a report as indented JSON."""
    return orjson.dumps(report.model_dump(mode="json"), option=orjson.OPT_INDENT_2)


def write_report(report: RunReport, path: str | Path) -> Path:
    """Write a report atomically, creating parent directories.

    Args:
        report: Finished run report
        path: Destination file

    Returns:
        The path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with atomic_write(path, mode="wb", overwrite=True) as f:
            f.write(dump_report(report))
            f.write(b"\n")
    except OSError as e:
        logger.error("Failed to write report %s: %s", path, e)
        raise
    return path


def read_report(path: str | Path) -> RunReport:
    """Load a report written by :func:`write_report`."""
    return RunReport.model_validate(orjson.loads(Path(path).read_bytes()))
