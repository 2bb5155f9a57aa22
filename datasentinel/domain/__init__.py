"""Domain models and business logic."""

from datasentinel.domain.models import (
    AcquisitionResult,
    CatalogEntry,
    Dataset,
    DatasetLookup,
    Facets,
    GovernanceVerdict,
    Preview,
    Resource,
    ResourceOutcome,
    RunReport,
    SearchFilters,
    SearchResult,
    VerdictState,
)
from datasentinel.domain.types import BatchProgressHook, Decoder

__all__ = [
    "AcquisitionResult",
    "CatalogEntry",
    "Dataset",
    "DatasetLookup",
    "Facets",
    "GovernanceVerdict",
    "Preview",
    "Resource",
    "ResourceOutcome",
    "RunReport",
    "SearchFilters",
    "SearchResult",
    "VerdictState",
    "BatchProgressHook",
    "Decoder",
]
