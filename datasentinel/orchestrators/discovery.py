"""Discovery orchestrator.

Turns a free-text query plus structured filters into paginated catalog
searches, and provides single-page trending/recent/filtered listings.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from datasentinel.config import Settings
from datasentinel.domain.models import (
    CatalogEntry,
    Dataset,
    DatasetLookup,
    SearchFilters,
    SearchResult,
)
from datasentinel.domain.services import FacetService, QueryService
from datasentinel.domain.types import BatchProgressHook
from datasentinel.errors import SentinelError, error_kind
from datasentinel.network.cancellation import CancellationToken
from datasentinel.operations.catalog import CatalogClient

logger = logging.getLogger(__name__)

SEARCH_SORT = "score desc, metadata_modified desc"
TRENDING_SORT = "views_recent desc, metadata_modified desc"
RECENT_SORT = "metadata_modified desc"
SEARCH_FACETS = ["organization", "groups", "tags", "res_format"]


class Discovery:
    """Orchestrates catalog search and listing.

    Pagination is sequential: the offset of each page depends on the rows
    the previous page returned.
    """

    def __init__(self, client: CatalogClient, config: Settings | None = None):
        """Initialize the discovery orchestrator.

        Args:
            client: Catalog client sharing the run's transport
            config: Pipeline configuration. If None, creates new Settings() from environment.
        """
        self.client = client
        self.config = config if config is not None else Settings()
        self.query_service = QueryService()
        self.facet_service = FacetService()

    def search(
        self,
        query: str | None,
        filters: SearchFilters | None = None,
        max_results: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> SearchResult:
        """Search the catalog, following pages until the cap or exhaustion.

        Args:
            query: Free-text query; empty searches everything
            filters: Structured filters
            max_results: Result cap. Defaults to ``config.max_results``.
            cancel: Optional cancellation token for every page request

        Returns:
            Relevance-filtered datasets with facets from the last page

        Raises:
            SentinelError: If any page request fails
        """
        filters = filters or SearchFilters()
        limit = max_results if max_results is not None else self.config.max_results
        processed = self.query_service.sanitize_query(query)
        filter_query = self.query_service.build_filter_query(filters)
        threshold = self.config.relevance_threshold

        datasets: list[Dataset] = []
        total = 0
        start = 0
        pages = 0
        raw_facets: dict = {}

        while len(datasets) < limit:
            rows = min(self.config.page_size, limit - len(datasets))
            page = self.client.package_search(
                processed or "*:*",
                rows=rows,
                start=start,
                sort=SEARCH_SORT,
                filter_query=filter_query,
                facet_fields=SEARCH_FACETS,
                cancel=cancel,
            )
            pages += 1
            total = page.count
            raw_facets = page.facets

            datasets.extend(d for d in page.datasets if d.relevance >= threshold)

            start += len(page.datasets)
            if len(page.datasets) < rows or start >= total:
                break

        logger.debug(
            "Search %r fetched %d pages, kept %d of %d", processed, pages, len(datasets), total
        )
        return SearchResult(
            query=query,
            processed_query=processed or "*:*",
            filter_query=filter_query,
            filters=filters,
            datasets=datasets[:limit],
            total_available=total,
            facets=self.facet_service.reduce(raw_facets),
            pages_fetched=pages,
        )

    def search_by_ids(
        self,
        dataset_ids: list[str],
        max_workers: int | None = None,
        cancel: CancellationToken | None = None,
        progress_hook: BatchProgressHook | None = None,
    ) -> list[DatasetLookup]:
        """Fetch each dataset independently; one failure never aborts the batch.

        Args:
            dataset_ids: Dataset ids or names
            max_workers: Concurrent lookups. Defaults to ``config.batch_workers``.
            cancel: Optional cancellation token
            progress_hook: Called with (id, completed, total) after each lookup

        Returns:
            One lookup per id, in input order
        """
        workers = max_workers or self.config.batch_workers
        total = len(dataset_ids)

        def lookup(dataset_id: str) -> DatasetLookup:
            try:
                return DatasetLookup(
                    id=dataset_id, dataset=self.client.package_show(dataset_id, cancel=cancel)
                )
            except SentinelError as e:
                logger.warning("Lookup of %s failed: %s", dataset_id, e)
                return DatasetLookup(id=dataset_id, error=str(e), error_kind=error_kind(e))

        if workers <= 1 or total <= 1:
            results = []
            for index, dataset_id in enumerate(dataset_ids, start=1):
                results.append(lookup(dataset_id))
                if progress_hook:
                    progress_hook(dataset_id, index, total)
            return results

        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = []
            for index, result in enumerate(executor.map(lookup, dataset_ids), start=1):
                results.append(result)
                if progress_hook:
                    progress_hook(result.id, index, total)
            return results

    def discover_trending(self, limit: int = 20) -> list[Dataset]:
        """Most viewed recently."""
        return self._single_page(TRENDING_SORT, limit)

    def discover_recent(self, limit: int = 20) -> list[Dataset]:
        """Most recently modified."""
        return self._single_page(RECENT_SORT, limit)

    def discover_by_organization(self, organization: str, limit: int = 50) -> list[Dataset]:
        """Datasets owned by one organization."""
        filter_query = self.query_service.build_filter_query(SearchFilters(organization=organization))
        return self._single_page(RECENT_SORT, limit, filter_query)

    def discover_by_sector(self, sector: str, limit: int = 50) -> list[Dataset]:
        """Datasets in one sector (catalog group)."""
        filter_query = self.query_service.build_filter_query(SearchFilters(sector=sector))
        return self._single_page(RECENT_SORT, limit, filter_query)

    def _single_page(self, sort: str, limit: int, filter_query: str | None = None) -> list[Dataset]:
        page = self.client.package_search("*:*", rows=limit, sort=sort, filter_query=filter_query)
        return page.datasets

    def organizations(self) -> list[CatalogEntry]:
        """All organizations with dataset counts."""
        return self.client.organization_list()

    def sectors(self) -> list[CatalogEntry]:
        """All sectors (catalog groups) with dataset counts."""
        return self.client.group_list()

    def popular_tags(self, limit: int = 50) -> list[CatalogEntry]:
        """Tags sorted by descending dataset count."""
        tags = self.client.tag_list()
        return sorted(tags, key=lambda tag: tag.dataset_count, reverse=True)[:limit]
