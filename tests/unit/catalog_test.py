"""Unit tests for the catalog client."""

import orjson
import pytest

from datasentinel.errors import MalformedResponseError, NotFoundError


class TestSearch:
    """Test package_search."""

    def test_page_parameters(self, fake_catalog, make_dataset, make_client):
        """Query, paging, sort and facets are sent as action parameters."""
        catalog = fake_catalog([make_dataset(f"d{i}") for i in range(5)])
        client = make_client(catalog)

        page = client.package_search(
            "rainfall",
            rows=2,
            start=2,
            filter_query='tags:"rain"',
            facet_fields=["organization", "tags"],
        )

        params = catalog.requests[0].url.params
        assert params["q"] == "rainfall"
        assert params["rows"] == "2"
        assert params["start"] == "2"
        assert params["fq"] == 'tags:"rain"'
        assert params["facet"] == "true"
        assert orjson.loads(params["facet.field"]) == ["organization", "tags"]
        assert [d.id for d in page.datasets] == ["d2", "d3"]
        assert page.count == 5
        assert "organization" in page.facets

    def test_empty_query_matches_everything(self, fake_catalog, make_client):
        """A blank query becomes the match-all expression; no facets by default."""
        catalog = fake_catalog()
        client = make_client(catalog)

        client.package_search("")

        params = catalog.requests[0].url.params
        assert params["q"] == "*:*"
        assert "fq" not in params
        assert "facet" not in params

    def test_malformed_rows_skipped(self, fake_catalog, make_dataset, make_client):
        """Rows that cannot be normalized are dropped; the page survives."""
        catalog = fake_catalog(
            [make_dataset("good"), {"id": "bad", "num_resources": "several"}, make_dataset("fine")]
        )

        page = make_client(catalog).package_search()

        assert [d.id for d in page.datasets] == ["good", "fine"]
        assert page.count == 3


class TestShowAndEnumerate:
    """Test single lookups and enumerations."""

    def test_package_show(self, fake_catalog, make_dataset, make_client):
        """Descriptors are normalized with the portal URL."""
        client = make_client(fake_catalog([make_dataset("rain")]))

        dataset = client.package_show("rain")

        assert dataset.id == "rain"
        assert dataset.url == "https://catalog.example.org/dataset/rain"

    def test_package_show_malformed(self, fake_catalog, make_client):
        """Descriptors with wrong-typed fields raise MalformedResponseError."""
        client = make_client(fake_catalog([{"id": "bad", "num_resources": {"n": 1}}]))

        with pytest.raises(MalformedResponseError, match="Malformed dataset bad"):
            client.package_show("bad")

    def test_package_show_missing(self, fake_catalog, make_client):
        """Missing datasets raise NotFoundError without retrying."""
        catalog = fake_catalog()
        client = make_client(catalog)

        with pytest.raises(NotFoundError):
            client.package_show("nope")
        assert catalog.actions() == ["package_show"]

    def test_enumerations(self, fake_catalog, make_client):
        """Organizations, groups and tags carry dataset counts."""
        client = make_client(fake_catalog())

        organizations = client.organization_list()
        groups = client.group_list()
        tags = client.tag_list()

        assert [(o.name, o.dataset_count) for o in organizations] == [("moa", 12), ("imd", 40)]
        assert groups[0].title == "Agriculture"
        assert {t.name for t in tags} == {"rainfall", "crops"}


class TestConnectivity:
    """Test connection checks and counters."""

    def test_connection_ok(self, fake_catalog, make_client):
        """A one-row search proves connectivity."""
        catalog = fake_catalog()
        client = make_client(catalog)

        assert client.test_connection()
        assert catalog.requests[0].url.params["rows"] == "1"

    def test_connection_failure(self, fake_catalog, make_client):
        """Persistent server errors report False."""
        catalog = fake_catalog()
        catalog.fail_next["package_search"] = [500, 500, 500]
        client = make_client(catalog)

        assert not client.test_connection()
        assert client.stats().failed == 3

    def test_rate_limit_status(self, fake_catalog, make_client):
        """The quota snapshot reflects consumed budget."""
        client = make_client(fake_catalog())
        client.tag_list()

        status = client.rate_limit_status()

        assert status.remaining == 999
        assert status.hourly_rate == 1000
