"""Configure tests."""

import httpx
import orjson
import pytest

from datasentinel.config import Settings
from datasentinel.network.quota import FixedWindowQuota
from datasentinel.network.transport import QuotaLimitedTransport
from datasentinel.operations.catalog import CatalogClient

API_URL = "https://catalog.example.org/api/3/action"
FILES_HOST = "files.example.org"


def envelope(result) -> httpx.Response:
    """Successful action envelope."""
    return httpx.Response(200, content=orjson.dumps({"success": True, "result": result}))


def failure(status: int, message: str = "boom", error_type: str = "Internal Error") -> httpx.Response:
    """Unsuccessful action envelope with an HTTP status."""
    body = {"success": False, "error": {"__type": error_type, "message": message}}
    return httpx.Response(status, content=orjson.dumps(body))


class FakeCatalog:
    """In-memory catalog served through ``httpx.MockTransport``.

    Datasets are raw action payloads; files map resource URLs to bytes.
    ``fail_next`` queues HTTP statuses returned before the real answer;
    ``redirects`` maps a URL to the ``Location`` it answers with a 302.
    """

    def __init__(self, datasets: list[dict] | None = None, files: dict[str, bytes] | None = None):
        self.datasets = {d["id"]: d for d in datasets or []}
        self.files = files or {}
        self.requests: list[httpx.Request] = []
        self.fail_next: dict[str, list[int]] = {}
        self.redirects: dict[str, str] = {}
        self.organizations = [
            {"name": "moa", "title": "Ministry of Agriculture", "package_count": 12},
            {"name": "imd", "title": "India Meteorological Department", "package_count": 40},
        ]
        self.groups = [{"name": "agriculture", "title": "Agriculture", "package_count": 30}]
        self.tags = [
            {"name": "rainfall", "package_count": 9},
            {"name": "crops", "package_count": 25},
        ]

    def actions(self) -> list[str]:
        """Action names requested so far, in order."""
        return [r.url.path.rsplit("/", 1)[-1] for r in self.requests if r.url.host != FILES_HOST]

    def downloads(self) -> list[str]:
        """File URLs requested so far, in order."""
        return [str(r.url) for r in self.requests if r.url.host == FILES_HOST]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        location = self.redirects.get(str(request.url))
        if location is not None:
            return httpx.Response(302, headers={"Location": location})
        if request.url.host == FILES_HOST:
            content = self.files.get(str(request.url))
            if content is None:
                return httpx.Response(404)
            return httpx.Response(200, content=content)

        action = request.url.path.rsplit("/", 1)[-1]
        queued = self.fail_next.get(action)
        if queued:
            return failure(queued.pop(0))

        params = request.url.params
        if action == "package_search":
            rows = int(params.get("rows", 10))
            start = int(params.get("start", 0))
            everything = list(self.datasets.values())
            return envelope(
                {
                    "count": len(everything),
                    "results": everything[start : start + rows],
                    "search_facets": {
                        "organization": {
                            "items": [
                                {"name": "moa", "count": 3},
                                {"name": "imd", "count": 7},
                            ]
                        }
                    },
                }
            )
        if action == "package_show":
            dataset = self.datasets.get(params.get("id"))
            if dataset is None:
                return failure(404, "Not found", "Not Found Error")
            return envelope(dataset)
        if action == "organization_list":
            return envelope(self.organizations)
        if action == "group_list":
            return envelope(self.groups)
        if action == "tag_list":
            return envelope(self.tags)
        return failure(400, f"Unknown action {action}", "Validation Error")

    def http_client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


def _dataset(
    dataset_id: str,
    title: str | None = None,
    notes: str = "Monthly observations published by the department.",
    license_title: str | None = "Creative Commons Attribution 4.0",
    tags: list[str] | None = None,
    resources: list[dict] | None = None,
    score: float | None = None,
) -> dict:
    payload = {
        "id": dataset_id,
        "name": dataset_id,
        "title": title or dataset_id.replace("-", " ").title(),
        "notes": notes,
        "organization": {"name": "imd", "title": "India Meteorological Department"},
        "groups": [{"name": "environment", "title": "Environment"}],
        "tags": [{"name": t} for t in (tags or ["weather"])],
        "license_title": license_title,
        "metadata_created": "2023-01-01T00:00:00",
        "metadata_modified": "2024-06-01T00:00:00",
        "resources": resources or [],
    }
    if score is not None:
        payload["score"] = score
    return payload


def _resource(name: str, fmt: str = "CSV", size: int | None = 100, url: str | None = None) -> dict:
    return {
        "id": f"res-{name}",
        "name": name,
        "format": fmt,
        "size": size,
        "url": url or f"https://{FILES_HOST}/{name}.{fmt.lower()}",
    }


@pytest.fixture
def make_dataset():
    """Factory for raw dataset payloads."""
    return _dataset


@pytest.fixture
def make_resource():
    """Factory for raw resource payloads."""
    return _resource


@pytest.fixture
def fake_catalog():
    """Factory for in-memory catalogs."""
    return FakeCatalog


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Settings isolated from the developer's environment and .env file."""
    monkeypatch.chdir(tmp_path)
    return Settings(api_url=API_URL, portal_url="https://catalog.example.org/dataset")


@pytest.fixture
def make_transport():
    """Build a transport over a fake catalog with instant backoff."""

    def factory(catalog: FakeCatalog, **overrides) -> QuotaLimitedTransport:
        quota = overrides.pop("quota", None) or FixedWindowQuota(hourly_rate=1000, max_concurrent=5)
        options = {"retry_attempts": 3, "sleep": lambda _seconds: None, "rng": lambda: 0.5}
        options.update(overrides)
        return QuotaLimitedTransport(API_URL, quota, http_client=catalog.http_client(), **options)

    return factory


@pytest.fixture
def make_client(make_transport):
    """Build a catalog client over a fake catalog."""

    def factory(catalog: FakeCatalog, **overrides) -> CatalogClient:
        return CatalogClient(make_transport(catalog, **overrides), "https://catalog.example.org/dataset")

    return factory
