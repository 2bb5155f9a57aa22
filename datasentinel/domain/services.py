"""Business logic services for discovery and reporting."""

import re
from datetime import date, datetime, timezone
from typing import Any

from datasentinel.domain.models import (
    AcquisitionResult,
    Dataset,
    FacetItem,
    Facets,
    ResourceOutcome,
    SearchFilters,
    utcnow,
)

MAX_QUERY_LENGTH = 500
FACET_LIMIT = 20

# Catalog facet field -> Facets attribute
FACET_FIELDS = {
    "organization": "organizations",
    "groups": "sectors",
    "tags": "tags",
    "res_format": "formats",
}

_DISALLOWED_QUERY_CHARS = re.compile(r"[^\w\s\-.]")
_WHITESPACE = re.compile(r"\s+")


class QueryService:
    """Service for turning user input into catalog query expressions."""

    @staticmethod
    def sanitize_query(query: str | None) -> str:
        """Normalize free text for the search endpoint.

        Strips characters other than word characters, whitespace, ``-`` and
        ``.``, collapses whitespace, and caps the length.

        Args:
            query: Raw user query

        Returns:
            Sanitized query, empty string when nothing usable remains
        """
        if not query:
            return ""
        cleaned = _DISALLOWED_QUERY_CHARS.sub(" ", query)
        cleaned = _WHITESPACE.sub(" ", cleaned).strip()
        return cleaned[:MAX_QUERY_LENGTH].strip()

    @staticmethod
    def build_filter_query(filters: SearchFilters | None) -> str | None:
        """Compile structured filters into one filter expression.

        Args:
            filters: Structured filters

        Returns:
            Conditions joined with AND, or None when no filter is set
        """
        if filters is None or filters.is_empty:
            return None

        conditions = []
        if filters.organization:
            conditions.append(f'organization:"{_escape(filters.organization)}"')
        if filters.sector:
            conditions.append(f'groups:"{_escape(filters.sector)}"')
        if filters.tags:
            conditions.append(_any_of("tags", filters.tags))
        if filters.formats:
            conditions.append(_any_of("res_format", filters.formats))
        if filters.keyword:
            conditions.append(f'text:"{_escape(filters.keyword)}"')
        if filters.date_from or filters.date_to:
            start = _day_start(filters.date_from) if filters.date_from else "*"
            end = _day_end(filters.date_to) if filters.date_to else "*"
            conditions.append(f"metadata_modified:[{start} TO {end}]")

        return " AND ".join(conditions)


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _any_of(field: str, values: list[str]) -> str:
    joined = " OR ".join(f'{field}:"{_escape(v)}"' for v in values)
    return f"({joined})"


def _day_start(day: date) -> str:
    return f"{day.isoformat()}T00:00:00Z"


def _day_end(day: date) -> str:
    return f"{day.isoformat()}T23:59:59.999Z"


class FacetService:
    """Service for reducing raw facet payloads."""

    @staticmethod
    def top_items(raw: Any, limit: int = FACET_LIMIT) -> list[FacetItem]:
        """Return the top facet values by descending count.

        Accepts both ``search_facets`` shape (``{"items": [...]}``) and the
        flat ``facets`` shape (``{name: count}``). Ties keep their original order.
        """
        if isinstance(raw, dict) and isinstance(raw.get("items"), list):
            items = [
                FacetItem(name=str(item.get("name", "")), count=int(item.get("count") or 0))
                for item in raw["items"]
                if isinstance(item, dict)
            ]
        elif isinstance(raw, dict):
            items = [FacetItem(name=str(name), count=int(count or 0)) for name, count in raw.items()]
        else:
            return []

        return sorted(items, key=lambda item: item.count, reverse=True)[:limit]

    @classmethod
    def reduce(cls, raw_facets: dict[str, Any] | None, limit: int = FACET_LIMIT) -> Facets:
        """Reduce every known facet field to its top entries."""
        facets = Facets()
        if not raw_facets:
            return facets
        for field, attribute in FACET_FIELDS.items():
            if field in raw_facets:
                setattr(facets, attribute, cls.top_items(raw_facets[field], limit))
        return facets


class MetadataQualityService:
    """Service for scoring descriptor completeness."""

    WEIGHTS = {
        "title": 10,
        "description": 15,
        "resources": 25,
        "organization": 10,
        "tags": 10,
        "created": 5,
        "modified": 5,
        "license": 10,
        "sector": 10,
    }

    @classmethod
    def score(cls, dataset: Dataset) -> int:
        """Return a 0-100 completeness score."""
        total = 0
        for field, weight in cls.WEIGHTS.items():
            value = getattr(dataset, field)
            if isinstance(value, str):
                present = bool(value.strip())
            else:
                present = bool(value)
            if present:
                total += weight
        return total

    @staticmethod
    def rating(score: int) -> str:
        """Bucket a score into a label."""
        if score >= 80:
            return "excellent"
        if score >= 60:
            return "good"
        if score >= 40:
            return "fair"
        return "poor"

    @staticmethod
    def issues(dataset: Dataset) -> list[str]:
        """List missing metadata that hurts discoverability."""
        issues = []
        if not dataset.description.strip():
            issues.append("Missing description")
        if not dataset.license:
            issues.append("No license specified")
        if not dataset.resources:
            issues.append("No resources available")
        if not dataset.organization:
            issues.append("No organization information")
        if not dataset.tags:
            issues.append("No tags for discoverability")
        return issues


class DatasetAnalysisService:
    """Service for summarizing an acquired dataset."""

    @staticmethod
    def resource_summary(outcomes: list[ResourceOutcome]) -> dict[str, Any]:
        """Format counts and parse rate over resource outcomes."""
        formats: dict[str, int] = {}
        for outcome in outcomes:
            fmt = outcome.resource.format or "unknown"
            formats[fmt] = formats.get(fmt, 0) + 1
        acquired = sum(1 for o in outcomes if o.acquired)
        failed = sum(1 for o in outcomes if o.error)
        return {
            "count": len(outcomes),
            "formats": [{"format": f, "count": c} for f, c in formats.items()],
            "acquired": acquired,
            "failed": failed,
            "parse_rate": f"{acquired / len(outcomes) * 100:.2f}%" if outcomes else "0%",
            "bytes": sum(o.measured_size or 0 for o in outcomes),
        }

    @staticmethod
    def days_since_update(dataset: Dataset, now: datetime | None = None) -> int | None:
        """Whole days since the descriptor was last modified."""
        if dataset.modified is None:
            return None
        modified = dataset.modified
        if modified.tzinfo is None:
            modified = modified.replace(tzinfo=timezone.utc)
        return ((now or utcnow()) - modified).days

    @classmethod
    def analyze(cls, result: AcquisitionResult, now: datetime | None = None) -> dict[str, Any]:
        """Quality score, resource summary, freshness and readable insights."""
        dataset = result.dataset
        if dataset is None:
            return {"error": result.error or "Dataset not acquired"}

        score = MetadataQualityService.score(dataset)
        rating = MetadataQualityService.rating(score)
        resources = cls.resource_summary(result.resources)
        days = cls.days_since_update(dataset, now)

        insights = [
            f"Metadata quality is {rating} (score: {score}/100)",
            f"Contains {resources['count']} selected resource(s) in "
            f"{len(resources['formats'])} format(s) with {resources['parse_rate']} parse success rate",
        ]
        if days is not None:
            if days <= 30:
                insights.append(f"Recently updated ({days} days ago)")
            elif days <= 365:
                insights.append(f"Updated {days} days ago")
            else:
                insights.append(f"Not updated in over a year ({days} days)")

        return {
            "quality": {
                "score": score,
                "rating": rating,
                "issues": MetadataQualityService.issues(dataset),
            },
            "resources": resources,
            "days_since_update": days,
            "insights": insights,
        }
