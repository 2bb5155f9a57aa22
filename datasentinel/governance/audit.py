"""Bounded, append-only audit trail."""

import threading
from collections import deque

from datasentinel.domain.models import AuditAction, AuditEntry

DEFAULT_CAPACITY = 1000


class AuditLog:
    """Ring buffer of audit entries; the oldest entry is dropped on overflow."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: deque[AuditEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, entry: AuditEntry) -> None:
        """Record one entry."""
        with self._lock:
            self._entries.append(entry)

    def entries(self, limit: int | None = None) -> tuple[AuditEntry, ...]:
        """Return the most recent ``limit`` entries, oldest first."""
        with self._lock:
            snapshot = tuple(self._entries)
        if limit is None:
            return snapshot
        return snapshot[-limit:] if limit > 0 else ()

    def count(self, action: AuditAction | None = None) -> int:
        """Count entries, optionally for one action kind."""
        with self._lock:
            if action is None:
                return len(self._entries)
            return sum(1 for entry in self._entries if entry.action == action)

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return self.count()
