"""Quota-limited HTTP transport for the catalog API.

Every outbound call, whether an API action or a resource download, passes
through :meth:`QuotaLimitedTransport.execute`: it waits for admission from the
shared :class:`FixedWindowQuota`, runs with a per-call timeout, and retries
transient failures with jittered exponential backoff. No other module talks
to the network.
"""

import logging
import random
import threading
import time
from collections.abc import Callable
from typing import Any

import httpx
import orjson

from datasentinel.config import Settings
from datasentinel.domain.models import QuotaSnapshot, TransportStats
from datasentinel.domain.types import Operation, T
from datasentinel.errors import (
    ApiError,
    AuthenticationError,
    ClientError,
    DownloadTimeoutError,
    GovernanceBlockedError,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    ServerError,
    SizeExceededError,
)
from datasentinel.network.cancellation import CancellationToken
from datasentinel.network.quota import FixedWindowQuota
from datasentinel.network.retry import create_retry_policy

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
MAX_REDIRECTS = 5

UrlGuard = Callable[[str], str | None]


def raise_for_status(response: httpx.Response) -> None:
    """Map an HTTP status onto the error taxonomy.

    Raises:
        NotFoundError: 404
        AuthenticationError: 401 or 403
        RateLimitedError: 429 (transient)
        ServerError: 5xx (transient)
        ClientError: Any other 4xx
    """
    status = response.status_code
    url = _request_url(response)
    if status < 400:
        return
    if status == 404:
        raise NotFoundError("Resource not found.", status_code=status, url=url)
    if status in (401, 403):
        raise AuthenticationError(
            "Access forbidden. Check API credentials.", status_code=status, url=url
        )
    if status == 429:
        raise RateLimitedError("Rate limit exceeded.", status_code=status, url=url)
    if status >= 500:
        raise ServerError(f"Server error (HTTP {status}).", status_code=status, url=url)
    raise ClientError(f"Request rejected (HTTP {status}).", status_code=status, url=url)


def unwrap_envelope(payload: Any, url: str | None = None) -> Any:
    """Return ``result`` from a catalog action envelope.

    Raises:
        MalformedResponseError: If the payload is not an action envelope
        NotFoundError: If the catalog reports a not-found error
        RateLimitedError: If the catalog reports rate limiting
        ApiError: For any other unsuccessful envelope
    """
    if not isinstance(payload, dict) or "success" not in payload:
        raise MalformedResponseError("Response is not a catalog action envelope", url=url)
    if payload["success"] is True:
        return payload.get("result")

    error = payload.get("error") or {}
    message = str(error.get("message") or "API returned unsuccessful response")
    error_type = str(error.get("__type") or "")
    if "not found" in error_type.lower() or message.lower() == "not found":
        raise NotFoundError(message, url=url)
    if "rate limit" in message.lower():
        raise RateLimitedError(message, url=url)
    raise ApiError(message, url=url)


class QuotaLimitedTransport:
    """Rate-limited, retrying HTTP transport shared by all components.

    Example:
        >>> transport = QuotaLimitedTransport.from_settings(Settings())
        >>> result = transport.call_action("package_show", {"id": "some-dataset"})
    """

    def __init__(
        self,
        base_url: str,
        quota: FixedWindowQuota,
        *,
        retry_attempts: int = 5,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
        timeout: float = 30.0,
        download_timeout: float = 60.0,
        api_key: str | None = None,
        oauth_token: str | None = None,
        user_agent: str = "DataSentinel/1.0",
        http_client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        """Initialize the transport.

        Args:
            base_url: Catalog action API root
            quota: Shared quota; inject the same instance everywhere
            retry_attempts: Total attempts per call
            backoff_base: First retry delay before jitter
            backoff_max: Retry delay cap
            timeout: Per-call timeout for API actions
            download_timeout: Per-call timeout for resource downloads
            api_key: Sent as ``X-API-Key`` when no bearer token is configured
            oauth_token: Sent as ``Authorization: Bearer``; wins over ``api_key``
            user_agent: User-Agent header
            http_client: Optional preconfigured httpx client
            sleep: Sleep function for backoff when no cancellation token is given
            rng: Jitter source
        """
        self.base_url = base_url.rstrip("/")
        self.quota = quota
        self.retry_attempts = retry_attempts
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.timeout = timeout
        self.download_timeout = download_timeout
        self.api_key = api_key
        self.oauth_token = oauth_token
        self.user_agent = user_agent
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client()
        self._sleep = sleep
        self._rng = rng
        self._stats = TransportStats()
        self._stats_lock = threading.Lock()

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.Client | None = None
    ) -> "QuotaLimitedTransport":
        """Build a transport and its quota from settings."""
        quota = FixedWindowQuota(
            hourly_rate=settings.requests_per_hour,
            max_concurrent=settings.concurrent_requests,
        )
        return cls(
            settings.api_url,
            quota,
            retry_attempts=settings.retry_attempts,
            backoff_base=settings.backoff_base,
            backoff_max=settings.backoff_max,
            timeout=settings.api_timeout,
            download_timeout=settings.download_timeout,
            api_key=settings.api_key,
            oauth_token=settings.oauth_token,
            user_agent=settings.user_agent,
            http_client=http_client,
        )

    def auth_headers(self) -> dict[str, str]:
        """Return request headers, with at most one credential."""
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        if self.oauth_token:
            headers["Authorization"] = f"Bearer {self.oauth_token}"
        elif self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers

    def execute(
        self,
        operation: Operation[T],
        *,
        timeout: float | None = None,
        cancel: CancellationToken | None = None,
    ) -> T:
        """Run one remote call under quota, timeout, and retry policy.

        Each attempt waits for admission and consumes one budget unit.

        Args:
            operation: Callable receiving the per-call timeout in seconds
            timeout: Per-call timeout, defaults to the API timeout
            cancel: Optional cancellation token / deadline

        Returns:
            Whatever ``operation`` returns

        Raises:
            TransientRemoteError: When retries are exhausted
            NonTransientRemoteError: Immediately, without retry
            OperationCancelled: When ``cancel`` fires
        """
        call_timeout = timeout if timeout is not None else self.timeout
        policy = create_retry_policy(
            max_attempts=self.retry_attempts,
            base=self.backoff_base,
            cap=self.backoff_max,
            sleep=cancel.sleep if cancel is not None else self._sleep,
            rng=self._rng,
            on_retry=lambda _state: self._count("retries"),
        )
        return policy(self._attempt, operation, call_timeout, cancel)

    def _attempt(
        self,
        operation: Operation[T],
        timeout: float,
        cancel: CancellationToken | None,
    ) -> T:
        with self.quota.slot(cancel):
            self._count("total")
            try:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                    timeout = cancel.bound(timeout)
                result = operation(timeout)
            except Exception:
                self._count("failed")
                raise
            self._count("successful")
            return result

    def call_action(
        self,
        action: str,
        params: dict[str, Any] | None = None,
        cancel: CancellationToken | None = None,
    ) -> Any:
        """Call a catalog action and return its ``result``."""
        url = f"{self.base_url}/{action}"
        query = _encode_params(params or {})

        def operation(timeout: float) -> Any:
            logger.debug("API request %s %s", action, query)
            try:
                response = self._http.get(
                    url, params=query, headers=self.auth_headers(), timeout=timeout
                )
            except httpx.TimeoutException as exc:
                raise NetworkError(f"Request to {action} timed out", url=url) from exc
            except httpx.TransportError as exc:
                raise NetworkError(f"Request to {action} failed: {exc}", url=url) from exc

            if response.status_code >= 400:
                # Catalog error envelopes carry a more precise message
                _raise_envelope_error(response, url)
            try:
                payload = orjson.loads(response.content)
            except orjson.JSONDecodeError as exc:
                raise MalformedResponseError(f"Non-JSON response from {action}", url=url) from exc
            return unwrap_envelope(payload, url)

        return self.execute(operation, cancel=cancel)

    def download(
        self,
        url: str,
        max_bytes: int,
        cancel: CancellationToken | None = None,
        url_guard: UrlGuard | None = None,
    ) -> bytes:
        """Download resource bytes, aborting once ``max_bytes`` is exceeded.

        Redirects are followed by hand, at most ``MAX_REDIRECTS`` hops, and
        every ``Location`` is passed to ``url_guard`` before it is requested.

        Raises:
            SizeExceededError: Declared or streamed length is over ``max_bytes``
            DownloadTimeoutError: Transfer exceeded the download timeout
            NotFoundError: The file does not exist
            GovernanceBlockedError: ``url_guard`` rejected a redirect target
            ClientError: Too many redirects
        """

        def operation(timeout: float) -> bytes:
            headers = {"User-Agent": self.user_agent}
            target = url
            try:
                for _ in range(MAX_REDIRECTS + 1):
                    with self._http.stream(
                        "GET", target, headers=headers, timeout=timeout, follow_redirects=False
                    ) as response:
                        if response.is_redirect:
                            target = str(response.url.join(response.headers["location"]))
                            _guard_redirect(target, url_guard)
                            continue
                        return _read_capped(response, max_bytes)
            except httpx.TimeoutException as exc:
                raise DownloadTimeoutError("Download timeout exceeded", url=url) from exc
            except httpx.TransportError as exc:
                raise NetworkError(f"Download failed: {exc}", url=url) from exc
            raise ClientError(f"Too many redirects (over {MAX_REDIRECTS})", url=url)

        return self.execute(operation, timeout=self.download_timeout, cancel=cancel)

    def _count(self, field: str) -> None:
        with self._stats_lock:
            setattr(self._stats, field, getattr(self._stats, field) + 1)

    def stats(self) -> TransportStats:
        """Return a copy of the request counters."""
        with self._stats_lock:
            return self._stats.model_copy()

    def reset_stats(self) -> None:
        """Zero the request counters."""
        with self._stats_lock:
            self._stats = TransportStats()

    def quota_status(self) -> QuotaSnapshot:
        """Return the current quota snapshot."""
        return self.quota.snapshot()

    def close(self) -> None:
        """Close the underlying HTTP client if this transport created it."""
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "QuotaLimitedTransport":
        return self

    def __exit__(self, exc_type, _exc_value, _traceback) -> bool:
        self.close()
        return False


def _encode_params(params: dict[str, Any]) -> dict[str, str]:
    """Encode query parameters the way the action API expects them."""
    encoded = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            encoded[key] = orjson.dumps(list(value)).decode()
        else:
            encoded[key] = str(value)
    return encoded


def _raise_envelope_error(response: httpx.Response, url: str) -> None:
    status = response.status_code
    if status in (400, 409, 422):
        try:
            payload = orjson.loads(response.content)
        except orjson.JSONDecodeError:
            payload = None
        if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
            message = payload["error"].get("message")
            if message:
                raise ClientError(str(message), status_code=status, url=url)
    raise_for_status(response)


def _request_url(response: httpx.Response) -> str | None:
    try:
        return str(response.request.url)
    except RuntimeError:
        return None


def _content_length(response: httpx.Response) -> int | None:
    value = response.headers.get("Content-Length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _guard_redirect(target: str, url_guard: UrlGuard | None) -> None:
    if url_guard is None:
        return
    reason = url_guard(target)
    if reason:
        raise GovernanceBlockedError(f"Redirect to {target} blocked: {reason}")


def _read_capped(response: httpx.Response, max_bytes: int) -> bytes:
    """Read a streamed body, raising once it grows past ``max_bytes``."""
    raise_for_status(response)
    declared = _content_length(response)
    if declared is not None and declared > max_bytes:
        raise SizeExceededError(
            f"Declared size {declared} exceeds limit {max_bytes}",
            limit=max_bytes,
            size=declared,
        )
    buffer = bytearray()
    for chunk in response.iter_bytes(chunk_size=CHUNK_SIZE):
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            raise SizeExceededError(
                f"Download exceeded limit {max_bytes}",
                limit=max_bytes,
                size=len(buffer),
            )
    return bytes(buffer)
