"""Orchestration layer.

This module contains high-level workflow orchestrators that coordinate
discovery, acquisition and governance over one shared transport.
"""

from datasentinel.orchestrators.acquisition import AcquireOptions, Acquisition
from datasentinel.orchestrators.discovery import Discovery
from datasentinel.orchestrators.run import RunRequest, SentinelRun

__all__ = [
    "AcquireOptions",
    "Acquisition",
    "Discovery",
    "RunRequest",
    "SentinelRun",
]
