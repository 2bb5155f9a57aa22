"""Shared type definitions."""

from collections.abc import Callable
from typing import TypeVar

from datasentinel.domain.models import Preview

T = TypeVar("T")

# One remote call; receives the per-call timeout in seconds
Operation = Callable[[float], T]

# Decoding collaborator (raw bytes, declared format) -> preview
Decoder = Callable[[bytes, str], Preview]

# Monotonic clock returning seconds
Clock = Callable[[], float]

# Progress hook for batch operations (item id, current count, total count)
BatchProgressHook = Callable[[str, int, int], None]
