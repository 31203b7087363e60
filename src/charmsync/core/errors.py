"""
Error taxonomy for charmsync.

The controller transport does not reliably preserve structured error codes
across protocol versions, so errors coming back from the remote API are
classified by matching known substrings of their text. All of that matching
lives in ``classify_error`` and the ``ERROR_CLASSIFICATION`` table so it can
be hardened without touching call sites.

Kinds:
- NOT_FOUND / ALREADY_EXISTS: retryable inside deploy and read loops
- NOT_VALID / NOT_SUPPORTED / NOT_IMPLEMENTED: caller or charm mistakes
- STORAGE_NOT_FOUND: application exists but storage detail not materialized
- PENDING_CONVERGENCE: a read succeeded but remote side effects are not done
- UNKNOWN: anything unclassified, always fatal
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator


class ErrorKind(str, Enum):
    """Classification buckets for remote and local failures."""

    NOT_FOUND = "not-found"
    ALREADY_EXISTS = "already-exists"
    USER_NOT_FOUND = "user-not-found"
    NOT_VALID = "not-valid"
    NOT_SUPPORTED = "not-supported"
    NOT_IMPLEMENTED = "not-implemented"
    NOT_YET_AVAILABLE = "not-yet-available"
    STORAGE_NOT_FOUND = "storage-not-found"
    PENDING_CONVERGENCE = "pending-convergence"
    UNREACHABLE = "unreachable"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class CharmSyncError(Exception):
    """Base exception for charmsync errors with a classification kind."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RemoteError(CharmSyncError):
    """Unclassified failure reported by the controller."""


class NotFoundError(CharmSyncError):
    kind = ErrorKind.NOT_FOUND


class ApplicationNotFoundError(NotFoundError):
    """Raised when the controller has no record of the application."""

    def __init__(self, application: str, details: dict[str, Any] | None = None):
        super().__init__(f"application {application} not found", details)
        self.application = application


class UserNotFoundError(NotFoundError):
    kind = ErrorKind.USER_NOT_FOUND


class StorageNotFoundError(CharmSyncError):
    """The application exists but its storage detail is not available yet."""

    kind = ErrorKind.STORAGE_NOT_FOUND

    def __init__(self, application: str, details: dict[str, Any] | None = None):
        super().__init__(f"storage not found for application {application}", details)
        self.application = application


class AlreadyExistsError(CharmSyncError):
    kind = ErrorKind.ALREADY_EXISTS


class NotValidError(CharmSyncError):
    kind = ErrorKind.NOT_VALID


class NotSupportedError(CharmSyncError):
    kind = ErrorKind.NOT_SUPPORTED


class ServerNotImplementedError(CharmSyncError):
    kind = ErrorKind.NOT_IMPLEMENTED


class NotYetAvailableError(CharmSyncError):
    kind = ErrorKind.NOT_YET_AVAILABLE


class ControllerUnreachableError(CharmSyncError):
    kind = ErrorKind.UNREACHABLE


class PendingConvergenceError(CharmSyncError):
    """A read succeeded but the snapshot does not satisfy its invariants yet."""

    kind = ErrorKind.PENDING_CONVERGENCE

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(f"retrying: {message}", details)


class OperationCancelledError(CharmSyncError):
    """Raised when the caller's cancellation signal fires inside a retry loop."""

    kind = ErrorKind.CANCELLED


class ApplicationPartiallyCreatedError(CharmSyncError):
    """The deploy succeeded but a follow-up step (expose, uploads) failed."""

    def __init__(self, application: str, cause: BaseException):
        super().__init__(
            f"application {application} was partially created: {cause}",
            {"application": application},
        )
        self.application = application
        self.cause = cause


# Ordered: the first matching substring wins, so "user not valid" must be
# checked before "not valid".
ERROR_CLASSIFICATION: tuple[tuple[str, type[CharmSyncError]], ...] = (
    ("not found", NotFoundError),
    ("already exists", AlreadyExistsError),
    ("user not valid", UserNotFoundError),
    ("not valid", NotValidError),
    ("not implemented", ServerNotImplementedError),
    ("not yet available", NotYetAvailableError),
    ("connection refused", ControllerUnreachableError),
)


def classify_error(error: BaseException) -> CharmSyncError:
    """
    Map a lower-level error onto the charmsync taxonomy.

    Errors that are already classified are returned unchanged. Everything
    else is matched against ``ERROR_CLASSIFICATION``; unmatched errors become
    ``RemoteError``. The underlying error is kept as ``__cause__``.
    """
    if isinstance(error, CharmSyncError):
        return error

    classified = classify_message(str(error), {"error_type": type(error).__name__})
    classified.__cause__ = error
    return classified


def classify_message(text: str, details: dict[str, Any] | None = None) -> CharmSyncError:
    """Build the charmsync error whose kind matches ``text``."""
    error_cls: type[CharmSyncError] = RemoteError
    for substring, candidate in ERROR_CLASSIFICATION:
        if substring in text:
            error_cls = candidate
            break
    return error_cls(text, details)


@contextmanager
def classified_errors() -> Iterator[None]:
    """Re-raise anything escaping the block as a classified charmsync error."""
    try:
        yield
    except CharmSyncError:
        raise
    except Exception as exc:
        raise classify_error(exc) from exc


def is_kind(error: BaseException, *kinds: ErrorKind) -> bool:
    """Return True when ``error`` classifies as one of ``kinds``."""
    return classify_error(error).kind in kinds
