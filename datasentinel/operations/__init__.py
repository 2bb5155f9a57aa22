"""Catalog operations and resource decoding."""

from datasentinel.operations.catalog import CatalogClient
from datasentinel.operations.decode import decode, is_supported

__all__ = ["CatalogClient", "decode", "is_supported"]
