"""Domain models for the acquisition pipeline."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from datasentinel.errors import ErrorKind


def utcnow() -> datetime:
    """Return an aware UTC timestamp."""
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def _parse_size(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        size = int(float(value))
    except (TypeError, ValueError):
        return None
    return size if size >= 0 else None


def _text(value: Any) -> str | None:
    """Coerce a scalar payload field to text; empty and missing become None."""
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)


def _named(value: Any) -> str | None:
    """Return a display name for ``{"title": ..., "name": ...}`` shaped payloads."""
    if isinstance(value, dict):
        return _text(value.get("title") or value.get("name"))
    if isinstance(value, str):
        return value or None
    return None


class Resource(BaseModel):
    """Downloadable file attached to a dataset."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    name: str | None = None
    description: str | None = None
    format: str = ""  # Lower-cased declared format, "" when undeclared
    size: int | None = None  # Declared size in bytes
    url: str | None = None
    created: datetime | None = None
    modified: datetime | None = None
    mimetype: str | None = None

    @field_validator("created", "modified", mode="before")
    @classmethod
    def parse_timestamp(cls, v: Any) -> datetime | None:
        """Treat unparseable timestamps as absent."""
        return _parse_timestamp(v)

    @field_validator("size", mode="before")
    @classmethod
    def parse_size(cls, v: Any) -> int | None:
        """Catalogs report sizes as strings, floats or garbage."""
        return _parse_size(v)

    @field_validator("format", mode="before")
    @classmethod
    def normalize_format(cls, v: Any) -> str:
        """Lower-case and strip a leading dot."""
        if not v:
            return ""
        return str(v).strip().lower().lstrip(".")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Resource":
        """Normalize a raw catalog resource record."""
        return cls(
            id=payload.get("id"),
            name=payload.get("name"),
            description=payload.get("description"),
            format=payload.get("format"),
            size=payload.get("size"),
            url=payload.get("url"),
            created=payload.get("created"),
            modified=payload.get("last_modified") or payload.get("modified"),
            mimetype=payload.get("mimetype"),
        )


class Dataset(BaseModel):
    """Catalog dataset descriptor.

    Immutable within a run; re-fetch instead of patching.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str | None = None
    title: str = ""
    description: str = ""
    organization: str | None = None
    sector: str | None = None
    tags: list[str] = Field(default_factory=list)
    license: str | None = None  # None when the catalog declares no license
    created: datetime | None = None
    modified: datetime | None = None
    resources: list[Resource] = Field(default_factory=list)
    num_resources: int = 0
    score: float | None = None  # Only present on search results
    url: str | None = None

    @field_validator("created", "modified", mode="before")
    @classmethod
    def parse_timestamp(cls, v: Any) -> datetime | None:
        """Treat unparseable timestamps as absent."""
        return _parse_timestamp(v)

    @property
    def relevance(self) -> float:
        """Relevance score; unscored datasets count as fully relevant."""
        return 1.0 if self.score is None else self.score

    @classmethod
    def from_payload(cls, payload: dict[str, Any], portal_url: str | None = None) -> "Dataset":
        """Normalize a raw ``package_show``/``package_search`` record."""
        name = _text(payload.get("name"))
        identifier = _text(payload.get("id")) or name or ""

        tags = []
        for tag in payload.get("tags") or []:
            tag_name = _text(tag.get("name")) if isinstance(tag, dict) else _named(tag)
            if tag_name:
                tags.append(tag_name)

        groups = payload.get("groups")
        sector = _text(payload.get("sector")) or (
            _named(groups[0]) if isinstance(groups, list) and groups else None
        )

        license_label = _text(payload.get("license_title")) or _text(payload.get("license_id"))
        if license_label and license_label.strip().lower() == "not specified":
            license_label = None

        resources = [
            Resource.from_payload(resource)
            for resource in payload.get("resources") or []
            if isinstance(resource, dict)
        ]

        score = payload.get("score")
        try:
            score = float(score) if score is not None else None
        except (TypeError, ValueError):
            score = None

        url = _text(payload.get("url"))
        if not url and portal_url and name:
            url = f"{portal_url.rstrip('/')}/{name}"

        return cls(
            id=identifier,
            name=name,
            title=_text(payload.get("title")) or "",
            description=_text(payload.get("notes")) or _text(payload.get("description")) or "",
            organization=_named(payload.get("organization")),
            sector=sector,
            tags=tags,
            license=license_label,
            created=payload.get("metadata_created"),
            modified=payload.get("metadata_modified"),
            resources=resources,
            num_resources=payload.get("num_resources") or len(resources),
            score=score,
            url=url,
        )


class CatalogEntry(BaseModel):
    """Organization, group, or tag with its dataset count."""

    name: str
    title: str | None = None
    description: str | None = None
    dataset_count: int = 0

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | str) -> "CatalogEntry":
        """Normalize an enumeration entry; ``tag_list`` may return bare names."""
        if isinstance(payload, str):
            return cls(name=payload)
        return cls(
            name=payload.get("name") or "",
            title=payload.get("title") or payload.get("display_name"),
            description=payload.get("description"),
            dataset_count=payload.get("package_count") or 0,
        )


class SearchFilters(BaseModel):
    """Structured filters compiled into a single filter expression."""

    organization: str | None = None
    sector: str | None = None
    tags: list[str] = Field(default_factory=list)
    formats: list[str] = Field(default_factory=list)
    keyword: str | None = None
    date_from: date | None = None
    date_to: date | None = None

    @property
    def is_empty(self) -> bool:
        """Return True if no filter is set."""
        return not (
            self.organization
            or self.sector
            or self.tags
            or self.formats
            or self.keyword
            or self.date_from
            or self.date_to
        )


class FacetItem(BaseModel):
    """Count of datasets sharing one facet value."""

    name: str
    count: int


class Facets(BaseModel):
    """Top facet values per field."""

    organizations: list[FacetItem] = Field(default_factory=list)
    sectors: list[FacetItem] = Field(default_factory=list)
    tags: list[FacetItem] = Field(default_factory=list)
    formats: list[FacetItem] = Field(default_factory=list)


class SearchPage(BaseModel):
    """One ``package_search`` response."""

    datasets: list[Dataset] = Field(default_factory=list)
    count: int = 0
    facets: dict[str, Any] = Field(default_factory=dict)


class SearchResult(BaseModel):
    """Aggregated, relevance-filtered search over one or more pages."""

    query: str | None = None
    processed_query: str = "*:*"
    filter_query: str | None = None
    filters: SearchFilters = Field(default_factory=SearchFilters)
    datasets: list[Dataset] = Field(default_factory=list)
    total_available: int = 0
    facets: Facets = Field(default_factory=Facets)
    pages_fetched: int = 0
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def count(self) -> int:
        """Number of datasets returned."""
        return len(self.datasets)


class DatasetLookup(BaseModel):
    """Per-id slot of a batch lookup: a descriptor or an error, never both."""

    id: str
    dataset: Dataset | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @property
    def success(self) -> bool:
        """Return True if the descriptor was fetched."""
        return self.dataset is not None


class Preview(BaseModel):
    """Decoded preview of resource bytes."""

    format: str
    parsed: bool = True
    row_count: int | None = None
    columns: list[str] = Field(default_factory=list)
    rows: list[Any] = Field(default_factory=list)
    data: Any = None
    has_more: bool = False
    text: str | None = None
    field_stats: dict[str, dict[str, Any]] = Field(default_factory=dict)
    details: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None


class VerdictState(str, Enum):
    """Governance state of an item after validation."""

    UNCHECKED = "unchecked"
    ALLOWED = "allowed"
    WARNED = "warned"  # Allowed, with warnings
    BLOCKED = "blocked"


class ComplianceChecks(BaseModel):
    """Per-check outcomes; a disabled check counts as passed."""

    restriction: bool = True
    license: bool = True
    pii: bool = True


class GovernanceVerdict(BaseModel):
    """Access decision for one dataset."""

    allowed: bool = True
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    checks: ComplianceChecks = Field(default_factory=ComplianceChecks)
    matched_keyword: str | None = None

    @property
    def state(self) -> VerdictState:
        """Collapse the verdict into its lifecycle state."""
        if not self.allowed:
            return VerdictState.BLOCKED
        if self.warnings:
            return VerdictState.WARNED
        return VerdictState.ALLOWED


class DownloadVerdict(BaseModel):
    """Download decision for one resource."""

    allowed: bool = True
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class PIIScanResult(BaseModel):
    """Outcome of a PII heuristic scan; never blocks access."""

    scanned: bool
    pii_detected: bool = False
    matched_patterns: list[str] = Field(default_factory=list)
    warning: str | None = None
    recommendation: str | None = None
    reason: str | None = None


class AuditAction(str, Enum):
    """Kinds of audited governance events."""

    ACCESS_ATTEMPT = "access_attempt"
    DOWNLOAD_CHECK = "download_check"
    ACTIVITY = "activity"


class AuditEntry(BaseModel):
    """Immutable audit trail record."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    action: AuditAction
    dataset_id: str | None = None
    dataset_title: str | None = None
    allowed: bool | None = None
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    checks: ComplianceChecks | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class ResourceOutcome(BaseModel):
    """Acquisition outcome for one selected resource."""

    resource: Resource
    acquired: bool = False
    reason: str | None = None  # Why the resource was skipped
    error: str | None = None  # Download or decode failure
    error_kind: ErrorKind | None = None
    measured_size: int | None = None
    preview: Preview | None = None
    governance: DownloadVerdict | None = None


class AcquisitionResult(BaseModel):
    """Descriptor plus one outcome per selected resource."""

    dataset_id: str
    success: bool
    dataset: Dataset | None = None
    resources: list[ResourceOutcome] = Field(default_factory=list)
    error: str | None = None
    error_kind: ErrorKind | None = None
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def resource_count(self) -> int:
        """Number of resource outcomes."""
        return len(self.resources)


class QuotaSnapshot(BaseModel):
    """Point-in-time read of the quota state."""

    remaining: int
    hourly_rate: int
    running: int
    queued: int
    max_concurrent: int
    resets_in: float


class TransportStats(BaseModel):
    """Request counters kept by the transport."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    retries: int = 0

    @property
    def success_rate(self) -> str:
        """Successful attempts as a percentage string."""
        if self.total == 0:
            return "0%"
        return f"{self.successful / self.total * 100:.2f}%"


class ItemError(BaseModel):
    """Per-item annotation attached to the run report."""

    id: str | None = None
    title: str | None = None
    error: str
    error_kind: ErrorKind = ErrorKind.UNKNOWN


class RunReport(BaseModel):
    """Single report produced by one top-level run."""

    mode: str
    success: bool = True
    query: str | None = None
    filters: SearchFilters = Field(default_factory=SearchFilters)
    dataset_ids: list[str] = Field(default_factory=list)
    results: list[dict[str, Any]] = Field(default_factory=list)
    errors: list[ItemError] = Field(default_factory=list)
    statistics: dict[str, Any] = Field(default_factory=dict)
    compliance: dict[str, Any] = Field(default_factory=dict)
    attribution: str | None = None
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = None
