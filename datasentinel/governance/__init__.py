"""Governance: access, license, PII and download checks with an audit trail."""

from datasentinel.governance.audit import AuditLog
from datasentinel.governance.gate import GovernanceGate, GovernancePolicy, check_url
from datasentinel.governance.pii import detect_pii, find_pii, redact_pii

__all__ = [
    "AuditLog",
    "GovernanceGate",
    "GovernancePolicy",
    "check_url",
    "detect_pii",
    "find_pii",
    "redact_pii",
]
