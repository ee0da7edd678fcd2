"""Tests for the error taxonomy and the error handling service."""

from unittest.mock import patch

import pytest
from hypothesis import given, strategies as st

from bggsync.services.errors import (
    AppError,
    ErrorCategory,
    ErrorHandlingService,
    ErrorSeverity,
    InvalidInputError,
    NetworkError,
    NotLoggedInError,
    ParseFailedError,
    RetryExhaustedError,
    SyncError,
    UnexpectedStatusError,
    get_error_service,
    handle_error,
)


class TestErrorTaxonomy:
    """Test cases for the fetch-core error kinds."""

    def test_retry_exhausted_carries_attempts_and_status(self) -> None:
        error = RetryExhaustedError(10, 503, url="https://bgg.test/xmlapi2/collection")

        assert error.attempts == 10
        assert error.last_status_code == 503
        assert error.category is ErrorCategory.NETWORK
        assert "10 attempts" in error.message
        assert "Status: 503" in (error.technical_details or "")

    def test_retry_exhausted_without_status(self) -> None:
        error = RetryExhaustedError(10, None)
        assert error.last_status_code is None
        assert error.status_code is None

    def test_pending_exhaustion_suggests_waiting(self) -> None:
        error = RetryExhaustedError(10, 202)
        assert any("preparing the export" in action for action in error.suggested_actions)

    def test_unexpected_status_is_not_recoverable(self) -> None:
        error = UnexpectedStatusError(400)
        assert error.status_code == 400
        assert error.recoverable is False
        assert isinstance(error, NetworkError)

    def test_parse_failure_is_not_recoverable(self) -> None:
        cause = ValueError("bad")
        error = ParseFailedError("Could not parse", document="plays", original_error=cause)

        assert error.category is ErrorCategory.PARSING
        assert error.recoverable is False
        assert "ValueError: bad" in (error.technical_details or "")

    def test_not_logged_in(self) -> None:
        error = NotLoggedInError()
        assert error.category is ErrorCategory.AUTHENTICATION
        assert error.severity is ErrorSeverity.WARNING

    def test_invalid_input_details(self) -> None:
        error = InvalidInputError("Page number must be 1 or greater", field="page", value=0)
        assert error.field == "page"
        assert "Field: page" in (error.technical_details or "")
        assert "Value: 0" in (error.technical_details or "")

    def test_sync_error_wraps_cause(self) -> None:
        cause = RetryExhaustedError(10, 503)
        error = SyncError("plays", cause)

        assert error.operation == "plays"
        assert error.cause is cause
        assert error.category is ErrorCategory.SYNC
        assert error.message == "Plays sync failed: Gave up after 10 attempts"
        assert error.suggested_actions == cause.suggested_actions

    @given(status_code=st.integers(min_value=500, max_value=599))
    def test_server_errors_suggest_trying_later(self, status_code: int) -> None:
        error = NetworkError("Server error", status_code=status_code)
        assert "Try again later" in error.suggested_actions


class TestErrorHandlingService:
    """Test cases for ErrorHandlingService."""

    def test_app_errors_pass_through(self) -> None:
        service = ErrorHandlingService()
        error = UnexpectedStatusError(404)

        friendly = service.handle_error(error, operation="collection", component="test")

        assert friendly.message == error.message
        assert friendly.recoverable is False
        assert "Status: 404" in (friendly.technical_details or "")

    @pytest.mark.parametrize(
        ("error", "category"),
        [
            (PermissionError("denied"), ErrorCategory.STORAGE),
            (ValueError("nope"), ErrorCategory.VALIDATION),
            (RuntimeError("boom"), ErrorCategory.UNEXPECTED),
        ],
    )
    def test_standard_exceptions_are_classified(self, error: Exception, category: ErrorCategory) -> None:
        friendly = ErrorHandlingService().handle_error(error, operation="sync", component="test")
        assert friendly.category is category

    def test_oserror_becomes_storage_error(self) -> None:
        with patch("bggsync.services.errors.log") as mock_logger:
            friendly = ErrorHandlingService().handle_error(
                OSError("disk full"), operation="write", component="cache", context={"path": "/tmp/x"}
            )

        assert friendly.category is ErrorCategory.STORAGE
        assert friendly.message == "A file system error occurred: disk full"
        assert "OSError: disk full" in mock_logger.error.call_args.kwargs["technical_details"]

    def test_technical_details_are_logged(self) -> None:
        with patch("bggsync.services.errors.log") as mock_logger:
            ErrorHandlingService().handle_error(RetryExhaustedError(10, 503), operation="collection", component="sync")

        assert mock_logger.error.called
        kwargs = mock_logger.error.call_args.kwargs
        assert kwargs["operation"] == "collection"
        assert kwargs["category"] == "network"
        assert "Status: 503" in kwargs["technical_details"]

    def test_warnings_logged_at_warning_level(self) -> None:
        with patch("bggsync.services.errors.log") as mock_logger:
            ErrorHandlingService().handle_error(NotLoggedInError(), operation="plays", component="cli")

        assert mock_logger.warning.called
        assert not mock_logger.error.called

    def test_unexpected_error_keeps_type_in_details(self) -> None:
        with patch("bggsync.services.errors.log") as mock_logger:
            friendly = ErrorHandlingService().handle_error(KeyError("records"), operation="status", component="cli")

        assert friendly.message == "An unexpected error occurred. Please try again."
        assert mock_logger.error.call_args.kwargs["technical_details"] == "KeyError: 'records'"

    def test_user_message_lists_at_most_three_suggestions(self) -> None:
        service = ErrorHandlingService()
        error = AppError("Something failed", suggested_actions=["one", "two", "three", "four"])

        message = service.create_user_message(error.to_user_friendly())

        assert message.startswith("Something failed")
        assert "Suggested actions:" in message
        assert "  • three" in message
        assert "four" not in message

    def test_user_message_without_suggestions(self) -> None:
        service = ErrorHandlingService()
        message = service.create_user_message(NotLoggedInError().to_user_friendly(), include_suggestions=False)
        assert message == "No BoardGameGeek username is configured"


def test_global_error_service_is_shared() -> None:
    assert get_error_service() is get_error_service()

    friendly = handle_error(ValueError("bad page"), operation="plays", component="test")
    assert friendly.category is ErrorCategory.VALIDATION
