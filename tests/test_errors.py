"""Tests for error classification."""

import pytest
from charmsync.core.errors import (
    AlreadyExistsError,
    ApplicationNotFoundError,
    ApplicationPartiallyCreatedError,
    CharmSyncError,
    ControllerUnreachableError,
    ErrorKind,
    NotFoundError,
    NotValidError,
    NotYetAvailableError,
    PendingConvergenceError,
    RemoteError,
    ServerNotImplementedError,
    StorageNotFoundError,
    UserNotFoundError,
    classified_errors,
    classify_error,
    classify_message,
    is_kind,
)


class TestClassifyError:
    """Test substring classification of remote errors."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ('application "pg" not found', NotFoundError),
            ('charm "ch:pg" already exists', AlreadyExistsError),
            ("user not valid", UserNotFoundError),
            ('base "ubuntu@99.04" not valid', NotValidError),
            ("DeployFromRepository not implemented", ServerNotImplementedError),
            ("storage not yet available", NotYetAvailableError),
            ("dial tcp 10.0.0.1:17070: connection refused", ControllerUnreachableError),
            ("something exploded", RemoteError),
        ],
    )
    def test_table(self, text, expected):
        classified = classify_error(Exception(text))
        assert type(classified) is expected
        assert classified.message == text

    def test_first_match_wins(self):
        # Both "not found" and "already exists" appear; table order decides
        classified = classify_error(Exception("machine not found, unit already exists"))
        assert classified.kind == ErrorKind.NOT_FOUND

    def test_user_not_valid_before_not_valid(self):
        assert classify_error(Exception("user not valid")).kind == ErrorKind.USER_NOT_FOUND

    def test_keeps_cause(self):
        original = ValueError("model not found")
        classified = classify_error(original)
        assert classified.__cause__ is original
        assert classified.details["error_type"] == "ValueError"

    def test_already_classified_returned_unchanged(self):
        error = StorageNotFoundError("pg")
        assert classify_error(error) is error

    def test_classify_message(self):
        error = classify_message("a not found; b failed", {"errors": 2})
        assert isinstance(error, NotFoundError)
        assert error.details == {"errors": 2}


class TestClassifiedErrors:
    """Test the classifying context manager."""

    def test_translates_foreign_errors(self):
        with pytest.raises(AlreadyExistsError) as exc_info:
            with classified_errors():
                raise RuntimeError("application already exists")
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_passes_charmsync_errors_through(self):
        error = NotValidError("bad input")
        with pytest.raises(NotValidError) as exc_info:
            with classified_errors():
                raise error
        assert exc_info.value is error

    def test_no_error(self):
        with classified_errors():
            value = 1
        assert value == 1


class TestErrorTypes:
    """Test derived error types."""

    def test_application_not_found(self):
        error = ApplicationNotFoundError("pg")
        assert str(error) == "application pg not found"
        assert error.kind == ErrorKind.NOT_FOUND
        assert isinstance(error, NotFoundError)

    def test_storage_not_found_is_distinct_kind(self):
        error = StorageNotFoundError("pg")
        assert error.kind == ErrorKind.STORAGE_NOT_FOUND
        assert not isinstance(error, NotFoundError)

    def test_pending_convergence_message(self):
        error = PendingConvergenceError("no machines found in output")
        assert str(error) == "retrying: no machines found in output"

    def test_partially_created(self):
        cause = RemoteError("expose failed")
        error = ApplicationPartiallyCreatedError("pg", cause)
        assert error.application == "pg"
        assert error.cause is cause
        assert "partially created" in str(error)

    def test_base_defaults(self):
        error = CharmSyncError("oops")
        assert error.kind == ErrorKind.UNKNOWN
        assert error.details == {}

    def test_is_kind(self):
        assert is_kind(Exception("x not found"), ErrorKind.NOT_FOUND, ErrorKind.ALREADY_EXISTS)
        assert not is_kind(Exception("boom"), ErrorKind.NOT_FOUND)
        assert is_kind(StorageNotFoundError("pg"), ErrorKind.STORAGE_NOT_FOUND)
