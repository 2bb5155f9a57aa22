"""Quota-limited access to the catalog."""

from datasentinel.network.cancellation import CancellationToken
from datasentinel.network.quota import FixedWindowQuota
from datasentinel.network.transport import QuotaLimitedTransport

__all__ = ["CancellationToken", "FixedWindowQuota", "QuotaLimitedTransport"]
