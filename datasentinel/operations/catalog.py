"""Typed client for the catalog action API.

Thin facade over :class:`QuotaLimitedTransport`; every method is exactly one
throttled call (or one per attempt when retried).
"""

import logging
from typing import Any

from pydantic import ValidationError

from datasentinel.domain.models import (
    CatalogEntry,
    Dataset,
    QuotaSnapshot,
    SearchPage,
    TransportStats,
)
from datasentinel.errors import MalformedResponseError, SentinelError
from datasentinel.network.cancellation import CancellationToken
from datasentinel.network.transport import QuotaLimitedTransport, UrlGuard

logger = logging.getLogger(__name__)

DEFAULT_FACET_FIELDS = ["organization", "groups", "tags"]


class CatalogClient:
    """Catalog operations: search, show, enumerate, download."""

    def __init__(self, transport: QuotaLimitedTransport, portal_url: str | None = None):
        """Initialize the client.

        Args:
            transport: Shared quota-limited transport
            portal_url: Base of human-facing dataset pages, used to fill missing URLs
        """
        self.transport = transport
        self.portal_url = portal_url

    def package_search(
        self,
        query: str = "*:*",
        *,
        rows: int = 10,
        start: int = 0,
        sort: str = "metadata_modified desc",
        filter_query: str | None = None,
        facet_fields: list[str] | None = None,
        cancel: CancellationToken | None = None,
    ) -> SearchPage:
        """Fetch one page of search results.

        Args:
            query: Free-text query, ``*:*`` for everything
            rows: Page size
            start: Offset of the first row
            sort: Sort expression
            filter_query: Optional filter expression
            facet_fields: Facet fields to aggregate; None disables facets

        Returns:
            Normalized datasets, declared total, and raw facet data
        """
        params: dict[str, Any] = {
            "q": query or "*:*",
            "rows": rows,
            "start": start,
            "sort": sort,
            "fq": filter_query,
        }
        if facet_fields:
            params["facet"] = True
            params["facet.field"] = facet_fields
            params["facet.limit"] = -1

        result = self.transport.call_action("package_search", params, cancel=cancel)
        if not isinstance(result, dict):
            raise MalformedResponseError("package_search returned no result object")

        datasets = []
        for item in result.get("results") or []:
            try:
                datasets.append(self._parse_dataset(item))
            except MalformedResponseError as exc:
                logger.warning("Skipping malformed search result: %s", exc)
        facets = result.get("search_facets") or result.get("facets") or {}
        try:
            count = int(result.get("count") or 0)
        except (TypeError, ValueError) as exc:
            raise MalformedResponseError(f"package_search returned a bad count: {exc}") from exc
        return SearchPage(datasets=datasets, count=count, facets=facets)

    def package_show(self, dataset_id: str, cancel: CancellationToken | None = None) -> Dataset:
        """Fetch one dataset descriptor.

        Raises:
            NotFoundError: If the dataset does not exist
        """
        result = self.transport.call_action("package_show", {"id": dataset_id}, cancel=cancel)
        return self._parse_dataset(result)

    def _parse_dataset(self, payload: Any) -> Dataset:
        """Normalize one dataset record, raising MalformedResponseError when it cannot be."""
        if not isinstance(payload, dict):
            raise MalformedResponseError("Dataset record is not an object")
        try:
            return Dataset.from_payload(payload, self.portal_url)
        except (ValidationError, TypeError, AttributeError, KeyError) as exc:
            label = payload.get("id") or payload.get("name") or "unknown"
            raise MalformedResponseError(f"Malformed dataset {label}: {exc}") from exc

    def organization_list(self, limit: int = 100, offset: int = 0) -> list[CatalogEntry]:
        """List organizations with dataset counts."""
        return self._enumerate(
            "organization_list", {"all_fields": True, "limit": limit, "offset": offset}
        )

    def group_list(self, limit: int = 100, offset: int = 0) -> list[CatalogEntry]:
        """List groups (sectors) with dataset counts."""
        return self._enumerate("group_list", {"all_fields": True, "limit": limit, "offset": offset})

    def tag_list(self) -> list[CatalogEntry]:
        """List tags; counts are zero when the catalog only returns names."""
        return self._enumerate("tag_list", {"all_fields": True})

    def _enumerate(self, action: str, params: dict[str, Any]) -> list[CatalogEntry]:
        result = self.transport.call_action(action, params)
        if not isinstance(result, list):
            raise MalformedResponseError(f"{action} did not return a list")
        return [
            CatalogEntry.from_payload(entry)
            for entry in result
            if isinstance(entry, (dict, str))
        ]

    def download(
        self,
        url: str,
        max_bytes: int,
        cancel: CancellationToken | None = None,
        url_guard: UrlGuard | None = None,
    ) -> bytes:
        """Download resource bytes up to ``max_bytes``, vetting redirects with ``url_guard``."""
        return self.transport.download(url, max_bytes, cancel=cancel, url_guard=url_guard)

    def test_connection(self) -> bool:
        """Return True if a one-row search succeeds."""
        try:
            self.package_search("test", rows=1)
        except SentinelError as exc:
            logger.error("API connection test failed: %s", exc)
            return False
        return True

    def stats(self) -> TransportStats:
        """Return transport request counters."""
        return self.transport.stats()

    def rate_limit_status(self) -> QuotaSnapshot:
        """Return the shared quota snapshot."""
        return self.transport.quota_status()
