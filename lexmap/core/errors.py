"""Error taxonomy shared by the catalog, the index mirror and the search engine.

Lookup misses are not errors: they are modelled as ``None`` / empty results.
A catalog write whose mirror update failed is not an error either: it is
reported as ``SyncStatus.PARTIAL`` on the returned result.
"""

from __future__ import annotations


class LexmapError(Exception):
    """Base error for the standardization service."""


class StoreUnavailableError(LexmapError):
    """Raised when a backing store cannot be reached or fails mid-operation."""


class CatalogUnavailableError(StoreUnavailableError):
    """Raised when the sqlite catalog fails."""


class IndexUnavailableError(StoreUnavailableError):
    """Raised when the Qdrant similarity index fails."""


class EmbeddingFailureError(LexmapError):
    """Raised when the embedding backend fails or returns malformed vectors."""


class InputValidationError(LexmapError):
    """Raised for requests rejected before any store access."""


class InvalidPayloadError(InputValidationError):
    """Raised when a vector or payload does not fit the index schema."""


class DuplicateEntryError(InputValidationError):
    """Raised when a catalog write violates a uniqueness constraint."""


class NotFoundError(LexmapError):
    """Raised when an update or delete targets a row that does not exist."""
