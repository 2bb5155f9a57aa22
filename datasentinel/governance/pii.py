"""PII heuristics: detection and deterministic redaction."""

import re

# Name -> pattern; detection only, order is reporting order
PII_PATTERNS: dict[str, re.Pattern[str]] = {
    "national_id": re.compile(r"\b\d{12}\b"),  # Aadhaar-like
    "tax_id": re.compile(r"\b[A-Z]{5}\d{4}[A-Z]\b"),  # PAN-like
    "email": re.compile(r"\b[\w.\-]+@[\w.\-]+\.\w+\b"),
    "phone": re.compile(r"\b\d{10}\b"),
    "ssn": re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
}

REDACTED_NATIONAL_ID = "X" * 12
REDACTED_EMAIL = "email@redacted.com"
REDACTED_PHONE = "X" * 10

# Redaction order matters: 12-digit runs before 10-digit runs
_REDACTIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (PII_PATTERNS["national_id"], REDACTED_NATIONAL_ID),
    (PII_PATTERNS["email"], REDACTED_EMAIL),
    (PII_PATTERNS["phone"], REDACTED_PHONE),
)


def find_pii(text: str | None) -> list[str]:
    """Return the names of PII patterns found in ``text``."""
    if not text:
        return []
    return [name for name, pattern in PII_PATTERNS.items() if pattern.search(text)]


def detect_pii(text: str | None) -> bool:
    """Return True if any PII pattern matches."""
    return bool(find_pii(text))


def redact_pii(text: str | None) -> str | None:
    """Replace national IDs, e-mails and phone numbers with placeholders.

    Placeholders never match the patterns again, so redaction is idempotent.
    """
    if not text:
        return text
    for pattern, placeholder in _REDACTIONS:
        text = pattern.sub(placeholder, text)
    return text
