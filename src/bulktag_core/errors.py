"""Error taxonomy for bulk tag and metafield runs."""


class BulkTagError(Exception):
    """Base exception for all bulktag errors."""


class InputError(BulkTagError):
    """Raised for malformed input rejected before any remote call."""


class NotFoundError(BulkTagError):
    """Raised when a requested record or resource does not exist."""


class RemoteError(BulkTagError):
    """Raised when the upstream Admin API fails."""


class StorageError(BulkTagError):
    """Raised when the audit store cannot be read or written."""
