"""Error hierarchy for backup and restore operations."""

from typing import Optional


class MirrorError(Exception):
    """Base exception for search-mirror operations.

    fatal errors abort the remaining work of a run; the others only fail the
    job that raised them.
    """
    fatal: bool = False

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientServiceError(MirrorError):
    """Throttling, server-side or transport failure worth retrying."""
    pass


class SchemaFetchError(MirrorError):
    """Source index schema could not be read."""
    pass


class IndexCreateError(MirrorError):
    """Target index could not be created."""
    fatal = True


class IndexDeleteError(MirrorError):
    """Target index exists but could not be deleted."""
    fatal = True


class QueryError(MirrorError):
    """A search page request failed."""
    pass


class FileWriteError(MirrorError):
    """An export file could not be written."""
    fatal = True


class UploadError(MirrorError):
    """A document batch was rejected by the target index."""
    pass
