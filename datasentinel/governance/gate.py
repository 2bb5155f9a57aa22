"""Governance gate: restriction, license, PII and download checks.

Every item leaving discovery or acquisition passes :meth:`GovernanceGate.validate_access`.
Restriction matches block; license problems and PII only warn. Resource URLs
are vetted by :meth:`GovernanceGate.validate_resource_download` before any
bytes are requested.
"""

import ipaddress
import logging
import socket
import threading
from datetime import date
from typing import Any
from urllib.parse import urlsplit

import orjson
from pydantic import BaseModel

from datasentinel.config import Settings
from datasentinel.domain.models import (
    AuditAction,
    AuditEntry,
    Dataset,
    DownloadVerdict,
    GovernanceVerdict,
    PIIScanResult,
    Resource,
    utcnow,
)
from datasentinel.governance.audit import AuditLog
from datasentinel.governance.pii import find_pii, redact_pii

logger = logging.getLogger(__name__)

RESTRICTED_KEYWORDS = (
    "internal-use",
    "restricted",
    "confidential",
    "classified",
    "private",
    "sensitive",
    "secret",
)

OPEN_LICENSES = (
    "cc-by",
    "cc-by-4.0",
    "creative commons attribution",
    "cc0",
    "public domain",
    "odc-by",
    "odbl",
    "open government license",
    "government open data license",
)

LARGE_FILE_BYTES = 500 * 1024 * 1024
ALLOWED_SCHEMES = ("http", "https")
BLOCKED_HOSTS = frozenset({"localhost", "metadata", "metadata.google.internal"})


class GovernancePolicy(BaseModel):
    """Feature flags for the gate."""

    respect_licenses: bool = True
    block_restricted_data: bool = True
    enable_audit_log: bool = True
    pii_detection: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "GovernancePolicy":
        """Read governance flags from settings."""
        return cls(
            respect_licenses=settings.respect_licenses,
            block_restricted_data=settings.block_restricted_data,
            enable_audit_log=settings.enable_audit_log,
            pii_detection=settings.pii_detection,
        )


def check_url(url: str | None) -> str | None:
    """Return why ``url`` is unsafe to fetch, or None if it is acceptable."""
    if not url:
        return "Resource has no URL."
    try:
        parts = urlsplit(url)
        host = (parts.hostname or "").lower().rstrip(".")
    except ValueError as exc:
        return f"Invalid URL: {exc}"

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        return f"Unsafe protocol: {parts.scheme or 'none'}. Only HTTP/HTTPS allowed."
    if not host:
        return "Invalid URL: missing host."
    if host in BLOCKED_HOSTS or host.endswith(".localhost"):
        return "Cannot access internal/localhost URLs for security reasons."

    address = _parse_address(host)
    if address is None:
        return None
    if address.is_loopback or address.is_link_local or address.is_unspecified:
        return "Cannot access internal/localhost URLs for security reasons."
    return None


def _parse_address(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """Parse ``host`` the way a resolver would, or return None for a hostname.

    Decimal, hex, octal and shortened IPv4 forms (``2130706433``, ``0x7f000001``,
    ``127.1``) are widened to dotted quads; IPv4-mapped IPv6 is unwrapped.
    """
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        try:
            address = ipaddress.IPv4Address(socket.inet_aton(host))
        except (OSError, ValueError):
            return None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


class GovernanceGate:
    """Decides whether items and resources may leave the pipeline.

    Example:
        >>> gate = GovernanceGate(GovernancePolicy())
        >>> verdict = gate.validate_access(dataset)
        >>> if not verdict.allowed:
        ...     print(verdict.errors)
    """

    def __init__(
        self,
        policy: GovernancePolicy | None = None,
        audit_log: AuditLog | None = None,
    ) -> None:
        """Initialize the gate.

        Args:
            policy: Feature flags; all checks enabled by default
            audit_log: Audit trail owned by this gate; created if omitted
        """
        self.policy = policy or GovernancePolicy()
        self.audit_log = audit_log if audit_log is not None else AuditLog()
        self._lock = threading.Lock()
        self._blocked: set[str] = set()
        self._license_warnings: set[str] = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> "GovernanceGate":
        """Build a gate and its audit log from settings."""
        return cls(GovernancePolicy.from_settings(settings), AuditLog(settings.audit_log_capacity))

    def validate_access(self, dataset: Dataset) -> GovernanceVerdict:
        """Run restriction and license checks on one dataset.

        Both checks run independently when enabled; all warnings are kept
        even when the restriction check blocks.
        """
        verdict = GovernanceVerdict()

        if self.policy.block_restricted_data:
            keyword = self.find_restricted_keyword(dataset)
            if keyword is not None:
                verdict.allowed = False
                verdict.matched_keyword = keyword
                verdict.checks.restriction = False
                verdict.errors.append(
                    f"Dataset contains restricted content (keyword: '{keyword}'). "
                    "Access blocked per governance policy."
                )
                with self._lock:
                    self._blocked.add(dataset.id)

        if self.policy.respect_licenses:
            warning = self.check_license(dataset)
            if warning is not None:
                verdict.warnings.append(warning)
                verdict.checks.license = False
                with self._lock:
                    self._license_warnings.add(dataset.id)

        self._audit(
            AuditAction.ACCESS_ATTEMPT,
            dataset_id=dataset.id,
            dataset_title=dataset.title,
            allowed=verdict.allowed,
            warnings=list(verdict.warnings),
            errors=list(verdict.errors),
            checks=verdict.checks.model_copy(),
        )
        if not verdict.allowed:
            logger.info("Blocked dataset %s: %s", dataset.id, verdict.matched_keyword)
        return verdict

    @staticmethod
    def find_restricted_keyword(dataset: Dataset) -> str | None:
        """Return the first restricted keyword found in title, description or tags."""
        text = " ".join([dataset.title, dataset.description, " ".join(dataset.tags)]).lower()
        for keyword in RESTRICTED_KEYWORDS:
            if keyword in text:
                return keyword
        return None

    @staticmethod
    def check_license(dataset: Dataset) -> str | None:
        """Return a license warning, or None when the license is known-open."""
        license_label = (dataset.license or "").strip()
        if not license_label:
            return "No license specified. Use with caution. Attribution recommended."
        lowered = license_label.lower()
        if not any(open_license in lowered for open_license in OPEN_LICENSES):
            return f"License '{license_label}' may have restrictions. Review terms before use."
        return None

    def scan_for_pii(self, dataset: Dataset) -> PIIScanResult:
        """Flag PII-shaped text in the descriptor. Never blocks."""
        if not self.policy.pii_detection:
            return PIIScanResult(scanned=False, reason="PII detection disabled")

        resources = orjson.dumps([r.model_dump(mode="json") for r in dataset.resources]).decode()
        matches = find_pii(" ".join([dataset.title, dataset.description, resources]))
        if matches:
            return PIIScanResult(
                scanned=True,
                pii_detected=True,
                matched_patterns=matches,
                warning="Potential PII detected. Review data carefully before processing.",
                recommendation="Consider redacting or anonymizing personal data before analysis.",
            )
        return PIIScanResult(
            scanned=True,
            warning=None,
            recommendation="No obvious PII patterns detected.",
        )

    @staticmethod
    def redact(text: str | None) -> str | None:
        """Replace PII substrings with placeholders (idempotent)."""
        return redact_pii(text)

    def redact_content(self, text: str | None) -> str | None:
        """Redact only when PII detection is enabled."""
        if not self.policy.pii_detection:
            return text
        return redact_pii(text)

    def validate_resource_download(self, resource: Resource) -> DownloadVerdict:
        """Vet a resource before download: size warning, URL safety block."""
        verdict = DownloadVerdict()
        if resource.size is not None and resource.size > LARGE_FILE_BYTES:
            verdict.warnings.append(
                f"Large file size ({resource.size} bytes). Consider streaming or chunked download."
            )
        reason = check_url(resource.url)
        if reason is not None:
            verdict.allowed = False
            verdict.errors.append(reason)

        self._audit(
            AuditAction.DOWNLOAD_CHECK,
            dataset_id=resource.id,
            dataset_title=resource.name,
            allowed=verdict.allowed,
            warnings=list(verdict.warnings),
            errors=list(verdict.errors),
            details={"url": resource.url},
        )
        return verdict

    def generate_attribution(self, dataset: Dataset) -> str:
        """Return an attribution line for ``dataset``."""
        title = dataset.title or "Untitled Dataset"
        organization = dataset.organization or "Unknown Organization"
        license_label = dataset.license or "License not specified"
        source = dataset.url or dataset.id
        return (
            f'Data Source: "{title}" by {organization}. '
            f"Retrieved from {source} on {date.today().isoformat()}. "
            f"License: {license_label}."
        )

    def log_activity(self, activity: str, details: dict[str, Any] | None = None) -> None:
        """Record a free-form processing activity."""
        self._audit(AuditAction.ACTIVITY, details={"activity": activity, **(details or {})})

    def _audit(self, action: AuditAction, **fields: Any) -> None:
        if not self.policy.enable_audit_log:
            return
        entry = AuditEntry(action=action, **fields)
        self.audit_log.append(entry)
        logger.debug("Audit entry: %s", entry.model_dump(mode="json"))

    def audit_entries(self, limit: int = 100) -> tuple[AuditEntry, ...]:
        """Return the most recent audit entries."""
        return self.audit_log.entries(limit)

    def compliance_summary(self) -> dict[str, Any]:
        """Return counters and active policy flags."""
        with self._lock:
            blocked = len(self._blocked)
            license_warnings = len(self._license_warnings)
        return {
            "total_access_attempts": self.audit_log.count(AuditAction.ACCESS_ATTEMPT),
            "blocked_datasets": blocked,
            "license_warnings": license_warnings,
            "policies": self.policy.model_dump(),
        }

    def compliance_report(self) -> dict[str, Any]:
        """Return the summary plus recent audit activity."""
        recent = self.audit_entries(50)
        attempts = [e for e in recent if e.action == AuditAction.ACCESS_ATTEMPT]
        blocked = sum(1 for e in attempts if not e.allowed)
        return {
            "summary": self.compliance_summary(),
            "statistics": {
                "total_logs": len(self.audit_log),
                "recent_access_attempts": len(attempts),
                "recent_blocked_attempts": blocked,
                "block_rate": f"{blocked / len(attempts) * 100:.2f}%" if attempts else "0%",
            },
            "recent_activity": [e.model_dump(mode="json") for e in recent[-10:]],
            "generated_at": utcnow().isoformat(),
        }

    def reset(self) -> None:
        """Clear the audit trail and counters."""
        self.audit_log.clear()
        with self._lock:
            self._blocked.clear()
            self._license_warnings.clear()
