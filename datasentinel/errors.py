"""Exception hierarchy for catalog access, acquisition, and governance.

Failures are grouped so callers can react to categories (transient remote
errors are retried by the transport, non-transient ones surface at once) while
per-item code records an :class:`ErrorKind` label instead of aborting a batch.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Label attached to per-item and per-resource failure records."""

    TRANSIENT_REMOTE = "transient_remote"
    NON_TRANSIENT_REMOTE = "non_transient_remote"
    NOT_FOUND = "not_found"
    QUOTA_EXHAUSTED = "quota_exhausted"
    SIZE_EXCEEDED = "size_exceeded"
    UNSUPPORTED_FORMAT = "unsupported_format"
    GOVERNANCE_BLOCKED = "governance_blocked"
    MALFORMED_RESPONSE = "malformed_response"
    DECODE_FAILED = "decode_failed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class SentinelError(RuntimeError):
    """Base exception for all datasentinel failures."""

    kind: ErrorKind = ErrorKind.UNKNOWN


class ConfigurationError(SentinelError):
    """Raised when run configuration is invalid."""


class UnknownModeError(ConfigurationError):
    """Raised when the operating mode selector names no known mode."""

    def __init__(self, mode: str) -> None:
        super().__init__(f"Unknown mode: {mode}")
        self.mode = mode


class ConnectionFailedError(SentinelError):
    """Raised when the catalog cannot be reached before any item is known."""

    kind = ErrorKind.TRANSIENT_REMOTE


class RemoteError(SentinelError):
    """Raised when the remote catalog call fails."""

    def __init__(self, message: str, *, status_code: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class TransientRemoteError(RemoteError):
    """Remote failure worth retrying (network errors, 5xx, 429)."""

    kind = ErrorKind.TRANSIENT_REMOTE


class NetworkError(TransientRemoteError):
    """Connection or read failure below the HTTP layer."""


class ServerError(TransientRemoteError):
    """HTTP 5xx response."""


class RateLimitedError(TransientRemoteError):
    """HTTP 429 response."""


class DownloadTimeoutError(TransientRemoteError):
    """Resource transfer did not finish within the download timeout."""


class NonTransientRemoteError(RemoteError):
    """Remote failure that retrying cannot fix."""

    kind = ErrorKind.NON_TRANSIENT_REMOTE


class ClientError(NonTransientRemoteError):
    """HTTP 4xx response other than 401, 403, 404 and 429."""


class AuthenticationError(NonTransientRemoteError):
    """HTTP 401/403 response: credentials missing or rejected."""


class NotFoundError(NonTransientRemoteError):
    """The requested dataset, resource, or file does not exist."""

    kind = ErrorKind.NOT_FOUND


class MalformedResponseError(NonTransientRemoteError):
    """The remote payload could not be parsed."""

    kind = ErrorKind.MALFORMED_RESPONSE


class ApiError(NonTransientRemoteError):
    """The catalog answered with an unsuccessful action envelope."""


class SizeExceededError(SentinelError):
    """Declared or measured byte size is over the configured ceiling."""

    kind = ErrorKind.SIZE_EXCEEDED

    def __init__(self, message: str, *, limit: int, size: int | None = None) -> None:
        super().__init__(message)
        self.limit = limit
        self.size = size


class UnsupportedFormatError(SentinelError):
    """Declared format is outside the supported decode set."""

    kind = ErrorKind.UNSUPPORTED_FORMAT


class GovernanceBlockedError(SentinelError):
    """A governance check withheld an item or resource."""

    kind = ErrorKind.GOVERNANCE_BLOCKED


class OperationCancelled(SentinelError):
    """The caller's deadline elapsed or cancellation was requested."""

    kind = ErrorKind.CANCELLED


def error_kind(exc: BaseException) -> ErrorKind:
    """Return the :class:`ErrorKind` label for ``exc``."""
    if isinstance(exc, SentinelError):
        return exc.kind
    return ErrorKind.UNKNOWN
