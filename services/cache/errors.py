# =============================================================================
# Cache Errors
# =============================================================================
# Exceptions raised by the durable document store and the cache layer.
# =============================================================================

__all__ = [
    "CacheError",
    "DocumentNotFound",
    "TransientIOError",
    "InvalidDocumentError",
]


class CacheError(Exception):
    """Base class for metadata cache errors."""


class DocumentNotFound(CacheError):
    """The document was never written (or has been deleted)."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Document not found: {key}")
        self.key = key


class TransientIOError(CacheError):
    """An object store call failed; the document may exist."""


class InvalidDocumentError(CacheError):
    """The document exists but does not contain valid JSON."""
