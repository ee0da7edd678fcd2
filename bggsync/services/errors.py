"""Error taxonomy and error handling for the bggsync application.

This module provides:
- The fetch-core failure kinds (invalid input, exhausted retries, unexpected
  status, parse failure, not logged in)
- The sync-level wrapper raised by the orchestrator
- User-friendly error message generation with suggested actions
- A centralized error handling service used by the command-line front end
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

log = structlog.stdlib.get_logger()


class ErrorCategory(Enum):
    """Categories of errors for classification and handling."""
    NETWORK = "network"
    VALIDATION = "validation"
    PARSING = "parsing"
    AUTHENTICATION = "authentication"
    CONFIGURATION = "configuration"
    STORAGE = "storage"
    SYNC = "sync"
    UNEXPECTED = "unexpected"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ErrorContext:
    """Context information for an error."""
    operation: str
    component: str
    details: dict[str, Any]


@dataclass(frozen=True)
class UserFriendlyError:
    """User-friendly error representation with suggested actions."""
    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    suggested_actions: list[str]
    technical_details: str | None = None
    recoverable: bool = True


class AppError(Exception):
    """Base exception class for application errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNEXPECTED,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        suggested_actions: list[str] | None = None,
        technical_details: str | None = None,
        recoverable: bool = True,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.suggested_actions = suggested_actions or []
        self.technical_details = technical_details
        self.recoverable = recoverable
        self.context = context

    def to_user_friendly(self) -> UserFriendlyError:
        """Convert to user-friendly error representation."""
        return UserFriendlyError(
            message=self.message,
            category=self.category,
            severity=self.severity,
            suggested_actions=self.suggested_actions,
            technical_details=self.technical_details,
            recoverable=self.recoverable,
        )


class InvalidInputError(AppError):
    """Raised before any request is sent when a query argument is unusable."""

    def __init__(self, message: str, field: str | None = None, value: Any = None) -> None:
        technical_details = None
        if field:
            technical_details = f"Field: {field}"
        if value is not None:
            value_str = repr(value)[:100]
            technical_details = (technical_details or "") + f"\nValue: {value_str}"

        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.WARNING,
            suggested_actions=["Check the username and page number"],
            technical_details=technical_details,
            recoverable=True,
        )
        self.field = field
        self.value = value


class NetworkError(AppError):
    """Base class for failures talking to the upstream service."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        suggested_actions = [
            "Check your internet connection",
            "Try again in a few moments",
        ]
        if status_code is not None:
            if status_code == 202:
                suggested_actions = [
                    "BoardGameGeek is still preparing the export",
                    "Try again in a few minutes",
                ]
            elif status_code == 429:
                suggested_actions = [
                    "Wait a few minutes before retrying",
                    "Increase request_delay in the configuration",
                ]
            elif status_code == 404:
                suggested_actions = [
                    "Verify the username exists on BoardGameGeek",
                ]
            elif status_code >= 500:
                suggested_actions = [
                    "The server is experiencing issues",
                    "Try again later",
                ]

        technical_details = None
        if original_error:
            technical_details = f"{type(original_error).__name__}: {str(original_error)}"
        if url:
            technical_details = f"URL: {url}" + (f"\n{technical_details}" if technical_details else "")
        if status_code is not None:
            technical_details = f"Status: {status_code}" + (f"\n{technical_details}" if technical_details else "")

        super().__init__(
            message=message,
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.ERROR,
            suggested_actions=suggested_actions,
            technical_details=technical_details,
            recoverable=True,
        )
        self.status_code = status_code
        self.url = url
        self.original_error = original_error


class RetryExhaustedError(NetworkError):
    """The attempt budget ran out while the upstream kept answering with retryable outcomes."""

    def __init__(self, attempts: int, last_status_code: int | None, url: str | None = None) -> None:
        super().__init__(
            message=f"Gave up after {attempts} attempts",
            status_code=last_status_code,
            url=url,
        )
        self.attempts = attempts
        self.last_status_code = last_status_code


class UnexpectedStatusError(NetworkError):
    """The upstream answered with a status that is never retried."""

    def __init__(self, status_code: int, url: str | None = None) -> None:
        super().__init__(
            message=f"Unexpected response status {status_code}",
            status_code=status_code,
            url=url,
        )
        self.recoverable = False


class ParseFailedError(AppError):
    """A successful response body could not be turned into records."""

    def __init__(
        self,
        message: str,
        document: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        technical_details = None
        if document:
            technical_details = f"Document: {document}"
        if original_error:
            technical_details = (technical_details or "") + f"\nError: {type(original_error).__name__}: {str(original_error)}"

        super().__init__(
            message=message,
            category=ErrorCategory.PARSING,
            severity=ErrorSeverity.ERROR,
            suggested_actions=[
                "The upstream response format may have changed",
                "Report the problem if it persists",
            ],
            technical_details=technical_details,
            recoverable=False,
        )
        self.document = document
        self.original_error = original_error


class NotLoggedInError(AppError):
    """No current user identity is available."""

    def __init__(self, message: str = "No BoardGameGeek username is configured") -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.AUTHENTICATION,
            severity=ErrorSeverity.WARNING,
            suggested_actions=[
                "Pass --username on the command line",
                "Set username in the configuration file or BGGSYNC_USERNAME",
            ],
            recoverable=True,
        )


class ConfigurationError(AppError):
    """Exception for configuration-related errors."""

    def __init__(
        self,
        message: str,
        setting: str | None = None,
        current_value: Any = None,
        expected: str | None = None,
    ) -> None:
        suggested_actions = [
            "Check the configuration settings",
            "Reset to default values if needed",
        ]
        if expected:
            suggested_actions.append(f"Expected: {expected}")

        technical_details = None
        if setting:
            technical_details = f"Setting: {setting}"
        if current_value is not None:
            technical_details = (technical_details or "") + f"\nCurrent: {current_value}"

        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.ERROR,
            suggested_actions=suggested_actions,
            technical_details=technical_details,
            recoverable=True,
        )
        self.setting = setting
        self.current_value = current_value
        self.expected = expected


class StorageError(AppError):
    """Exception for local cache persistence errors."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        technical_details = None
        if original_error:
            technical_details = f"{type(original_error).__name__}: {str(original_error)}"
        if path:
            technical_details = f"Path: {path}" + (f"\n{technical_details}" if technical_details else "")

        super().__init__(
            message=message,
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.ERROR,
            suggested_actions=[
                "Check permissions on the cache directory",
                "Ensure sufficient disk space",
            ],
            technical_details=technical_details,
            recoverable=True,
        )
        self.path = path
        self.original_error = original_error


class SyncError(AppError):
    """A sync operation failed; wraps the fetch-core error that caused it."""

    def __init__(self, operation: str, cause: AppError) -> None:
        super().__init__(
            message=f"{operation.capitalize()} sync failed: {cause.message}",
            category=ErrorCategory.SYNC,
            severity=cause.severity,
            suggested_actions=cause.suggested_actions,
            technical_details=cause.technical_details,
            recoverable=cause.recoverable,
        )
        self.operation = operation
        self.cause = cause


class ErrorHandlingService:
    """Centralized error handling service.

    This service provides:
    - Conversion of unexpected exceptions into AppError
    - Error logging with technical details
    - User-friendly message generation
    """

    def handle_error(
        self,
        error: Exception,
        operation: str,
        component: str,
        context: dict[str, Any] | None = None,
    ) -> UserFriendlyError:
        """Handle an error and return a user-friendly representation.

        Args:
            error: The exception that occurred
            operation: The operation being performed
            component: The component where the error occurred
            context: Additional context information

        Returns:
            User-friendly error representation
        """
        app_error = self._convert_to_app_error(error, operation, component, context)

        self._log_error(app_error, operation, component, context)
        return app_error.to_user_friendly()

    def _convert_to_app_error(
        self,
        error: Exception,
        operation: str,
        component: str,
        context: dict[str, Any] | None,
    ) -> AppError:
        """Convert a standard exception to an AppError."""
        if isinstance(error, AppError):
            return error

        if isinstance(error, OSError):
            return StorageError(
                message=f"A file system error occurred: {str(error)}",
                path=context.get("path") if context else None,
                original_error=error,
            )
        elif isinstance(error, ValueError):
            return InvalidInputError(
                message=str(error),
                field=context.get("field") if context else None,
                value=context.get("value") if context else None,
            )

        return AppError(
            message="An unexpected error occurred. Please try again.",
            category=ErrorCategory.UNEXPECTED,
            severity=ErrorSeverity.ERROR,
            technical_details=f"{type(error).__name__}: {str(error)}",
            recoverable=True,
            context=ErrorContext(
                operation=operation,
                component=component,
                details=context or {},
            ),
        )

    def _log_error(
        self,
        error: AppError,
        operation: str,
        component: str,
        context: dict[str, Any] | None,
    ) -> None:
        """Log error with full technical details."""
        log_method = log.error if error.severity != ErrorSeverity.WARNING else log.warning

        log_method(
            "Error occurred",
            error_message=error.message,
            category=error.category.value,
            severity=error.severity.value,
            operation=operation,
            component=component,
            technical_details=error.technical_details,
            recoverable=error.recoverable,
            context=context,
        )

    def create_user_message(
        self,
        error: UserFriendlyError,
        include_suggestions: bool = True,
    ) -> str:
        """Create a formatted user message from an error.

        Args:
            error: The user-friendly error
            include_suggestions: Whether to include suggested actions

        Returns:
            Formatted message string
        """
        parts = [error.message]

        if include_suggestions and error.suggested_actions:
            parts.append("\nSuggested actions:")
            for action in error.suggested_actions[:3]:
                parts.append(f"  • {action}")

        return "\n".join(parts)


_error_service: ErrorHandlingService | None = None


def get_error_service() -> ErrorHandlingService:
    """Get the global error handling service instance."""
    global _error_service
    if _error_service is None:
        _error_service = ErrorHandlingService()
    return _error_service


def handle_error(
    error: Exception,
    operation: str,
    component: str,
    context: dict[str, Any] | None = None,
) -> UserFriendlyError:
    """Convenience function to handle errors using the global service."""
    return get_error_service().handle_error(error, operation, component, context)
