"""
Structured errors raised by the storage layer.

Every failure carries:
- kind: what went wrong (ErrorKind)
- stage: where it happened (open, legacy_check, migrate, query, ...)
- cause: the underlying exception, also chained via ``raise ... from``

Only LockedError reports ``locked`` as True, so callers can choose to retry
instead of aborting. Nothing in this layer retries on its own.
"""
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    UNSUPPORTED_BACKEND = "unsupported_backend"
    UNKNOWN_FAMILY = "unknown_family"
    LOCKED = "locked"
    OPEN_FAILED = "open_failed"
    LEGACY_SCHEMA = "legacy_schema"
    MIGRATION_FAILED = "migration_failed"
    QUERY_FAILED = "query_failed"


class DBError(Exception):
    """Base exception for all storage layer failures."""

    kind: ErrorKind = ErrorKind.QUERY_FAILED

    def __init__(self, message: str, stage: str, cause: Optional[BaseException] = None):
        self.stage = stage
        self.cause = cause
        super().__init__(message)

    @property
    def locked(self) -> bool:
        return self.kind is ErrorKind.LOCKED

    def __str__(self):
        message = f"[{self.stage}] {super().__str__()}"
        if self.cause is not None:
            message = f"{message}: {self.cause}"
        return message


class UnsupportedBackendError(DBError):
    """Raised when no driver is registered for a backend type tag."""
    kind = ErrorKind.UNSUPPORTED_BACKEND


class UnknownFamilyError(DBError):
    """Raised when a family is outside the supported set."""
    kind = ErrorKind.UNKNOWN_FAMILY


class LockedError(DBError):
    """Raised when another process holds the store."""
    kind = ErrorKind.LOCKED


class OpenError(DBError):
    """Raised for any open failure other than lock contention."""
    kind = ErrorKind.OPEN_FAILED


class LegacySchemaError(DBError):
    """Raised when the store uses the incompatible v1 layout."""
    kind = ErrorKind.LEGACY_SCHEMA


class MigrationError(DBError):
    kind = ErrorKind.MIGRATION_FAILED


class QueryError(DBError):
    kind = ErrorKind.QUERY_FAILED
