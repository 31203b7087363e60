"""Core building blocks: error taxonomy and the retrying executor."""

from charmsync.core.errors import (
    AlreadyExistsError,
    ApplicationNotFoundError,
    ApplicationPartiallyCreatedError,
    CharmSyncError,
    ControllerUnreachableError,
    ErrorKind,
    NotFoundError,
    NotYetAvailableError,
    NotSupportedError,
    NotValidError,
    OperationCancelledError,
    PendingConvergenceError,
    RemoteError,
    ServerNotImplementedError,
    StorageNotFoundError,
    UserNotFoundError,
    classify_error,
    classify_message,
    classified_errors,
    is_kind,
)
from charmsync.core.retry import RetryPolicy, call_with_retry

__all__ = [
    "AlreadyExistsError",
    "ApplicationNotFoundError",
    "ApplicationPartiallyCreatedError",
    "CharmSyncError",
    "ControllerUnreachableError",
    "ErrorKind",
    "NotFoundError",
    "NotYetAvailableError",
    "NotSupportedError",
    "NotValidError",
    "OperationCancelledError",
    "PendingConvergenceError",
    "RemoteError",
    "RetryPolicy",
    "ServerNotImplementedError",
    "StorageNotFoundError",
    "UserNotFoundError",
    "call_with_retry",
    "classified_errors",
    "classify_error",
    "classify_message",
    "is_kind",
]
