"""Acquisition orchestrator.

Fetches a dataset descriptor, selects a bounded number of resources, and
downloads and decodes each one. Only a descriptor failure fails the whole
call; every other failure is recorded on the resource it belongs to.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from pydantic import BaseModel, Field

from datasentinel.config import Settings
from datasentinel.domain.models import AcquisitionResult, Dataset, Resource, ResourceOutcome
from datasentinel.domain.types import BatchProgressHook, Decoder
from datasentinel.errors import ErrorKind, SentinelError, error_kind
from datasentinel.governance.gate import GovernanceGate, check_url
from datasentinel.network.cancellation import CancellationToken
from datasentinel.operations.catalog import CatalogClient
from datasentinel.operations.decode import SUPPORTED_FORMATS, decode, is_supported

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 50 * 1024 * 1024
NOT_REQUESTED = "download not requested"


class AcquireOptions(BaseModel):
    """Per-call acquisition options."""

    include_data: bool = True
    resource_limit: int = Field(default=3, ge=0)
    max_bytes: int = Field(default=DEFAULT_MAX_BYTES, ge=1)

    @classmethod
    def from_settings(cls, settings: Settings, include_data: bool = True) -> "AcquireOptions":
        """Build options from the run configuration."""
        return cls(
            include_data=include_data,
            resource_limit=settings.resource_limit,
            max_bytes=settings.max_file_size_bytes,
        )


class Acquisition:
    """Orchestrates descriptor retrieval, resource download and decoding.

    Example:
        >>> acquisition = Acquisition(client, gate)
        >>> result = acquisition.acquire("district-rainfall", AcquireOptions(resource_limit=2))
        >>> [outcome.acquired for outcome in result.resources]
    """

    def __init__(
        self,
        client: CatalogClient,
        gate: GovernanceGate | None = None,
        decoder: Decoder = decode,
    ):
        """Initialize the acquisition orchestrator.

        Args:
            client: Catalog client sharing the run's transport
            gate: Governance gate vetting resource URLs; None skips the check
            decoder: Turns downloaded bytes into a preview
        """
        self.client = client
        self.gate = gate
        self.decoder = decoder

    def acquire(
        self,
        dataset_id: str,
        options: AcquireOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> AcquisitionResult:
        """Acquire one dataset and up to ``options.resource_limit`` resources.

        Args:
            dataset_id: Dataset id or name
            options: Acquisition options
            cancel: Optional cancellation token for every remote call

        Returns:
            Descriptor plus one outcome per selected resource, or a failed
            result when the descriptor itself could not be fetched
        """
        options = options or AcquireOptions()
        try:
            dataset = self.client.package_show(dataset_id, cancel=cancel)
        except SentinelError as e:
            logger.warning("Could not fetch descriptor %s: %s", dataset_id, e)
            return AcquisitionResult(
                dataset_id=dataset_id, success=False, error=str(e), error_kind=error_kind(e)
            )
        return self.acquire_resources(dataset, options, cancel)

    def acquire_resources(
        self,
        dataset: Dataset,
        options: AcquireOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> AcquisitionResult:
        """Acquire resources of a descriptor the caller already holds."""
        options = options or AcquireOptions()
        selected = dataset.resources[: options.resource_limit]
        outcomes = [self._acquire_resource(resource, options, cancel) for resource in selected]
        return AcquisitionResult(
            dataset_id=dataset.id, success=True, dataset=dataset, resources=outcomes
        )

    def _acquire_resource(
        self,
        resource: Resource,
        options: AcquireOptions,
        cancel: CancellationToken | None,
    ) -> ResourceOutcome:
        if not is_supported(resource.format):
            supported = ", ".join(sorted(SUPPORTED_FORMATS))
            return ResourceOutcome(
                resource=resource,
                reason=f"Unsupported format '{resource.format or 'unknown'}' (supported: {supported})",
                error_kind=ErrorKind.UNSUPPORTED_FORMAT,
            )

        if resource.size is not None and resource.size > options.max_bytes:
            return ResourceOutcome(
                resource=resource,
                reason=f"File too large ({resource.size} bytes, limit {options.max_bytes})",
                error_kind=ErrorKind.SIZE_EXCEEDED,
            )

        verdict = None
        if self.gate is not None:
            verdict = self.gate.validate_resource_download(resource)
            if not verdict.allowed:
                return ResourceOutcome(
                    resource=resource,
                    reason="; ".join(verdict.errors),
                    error_kind=ErrorKind.GOVERNANCE_BLOCKED,
                    governance=verdict,
                )

        if not options.include_data:
            return ResourceOutcome(resource=resource, reason=NOT_REQUESTED, governance=verdict)

        try:
            data = self.client.download(
                resource.url or "", options.max_bytes, cancel=cancel, url_guard=check_url
            )
        except SentinelError as e:
            logger.warning("Download of %s failed: %s", resource.url, e)
            return ResourceOutcome(
                resource=resource, error=str(e), error_kind=error_kind(e), governance=verdict
            )

        try:
            preview = self.decoder(data, resource.format)
        except Exception as e:  # noqa: BLE001
            logger.warning("Decoder failed on %s: %s", resource.url, e)
            return ResourceOutcome(
                resource=resource,
                error=f"Decode failed: {e}",
                error_kind=ErrorKind.DECODE_FAILED,
                measured_size=len(data),
                governance=verdict,
            )
        if not preview.parsed:
            return ResourceOutcome(
                resource=resource,
                error=preview.error,
                error_kind=ErrorKind.DECODE_FAILED,
                measured_size=len(data),
                preview=preview,
                governance=verdict,
            )
        return ResourceOutcome(
            resource=resource,
            acquired=True,
            measured_size=len(data),
            preview=preview,
            governance=verdict,
        )

    def batch_acquire(
        self,
        datasets: list[str | Dataset],
        options: AcquireOptions | None = None,
        max_workers: int = 1,
        cancel: CancellationToken | None = None,
        progress_hook: BatchProgressHook | None = None,
    ) -> list[AcquisitionResult]:
        """Acquire each dataset independently, results in input order.

        Args:
            datasets: Dataset ids or names, or descriptors already fetched (and
                gated) by the caller, which are not fetched again
            options: Options shared by every dataset
            max_workers: Concurrent acquisitions; every call still shares the quota
            cancel: Optional cancellation token
            progress_hook: Called with (id, completed, total) after each dataset
        """
        total = len(datasets)
        results: list[AcquisitionResult] = []

        def run(item: str | Dataset) -> AcquisitionResult:
            if isinstance(item, Dataset):
                return self.acquire_resources(item, options, cancel)
            return self.acquire(item, options, cancel)

        if max_workers <= 1 or total <= 1:
            for index, item in enumerate(datasets, start=1):
                result = run(item)
                results.append(result)
                if progress_hook:
                    progress_hook(result.dataset_id, index, total)
            return results

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            for index, result in enumerate(executor.map(run, datasets), start=1):
                results.append(result)
                if progress_hook:
                    progress_hook(result.dataset_id, index, total)
        return results
