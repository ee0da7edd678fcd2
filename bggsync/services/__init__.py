"""Service layer: upstream fetching, retrying, syncing and local persistence."""

from .backoff import BackoffPolicy
from .collection_fetcher import CollectionFetcher
from .config import ConfigurationService, ValidationResult
from .errors import (
    AppError,
    ConfigurationError,
    ErrorCategory,
    ErrorHandlingService,
    ErrorSeverity,
    InvalidInputError,
    NetworkError,
    NotLoggedInError,
    ParseFailedError,
    RetryExhaustedError,
    StorageError,
    SyncError,
    UnexpectedStatusError,
    UserFriendlyError,
    get_error_service,
    handle_error,
)
from .http_client import HttpClientService, classify_status
from .parsers import BggXmlParser, DocumentParser
from .plays_fetcher import PlaysFetcher
from .retry import RetryLoop
from .stats import StatsService
from .storage import (
    IdentityProvider,
    JsonRecordCache,
    JsonSyncTimeStore,
    RecordCache,
    StaticIdentityProvider,
    SyncTimeStore,
)
from .sync import SyncOperation, SyncService

__all__ = [
    "AppError",
    "BackoffPolicy",
    "BggXmlParser",
    "CollectionFetcher",
    "ConfigurationError",
    "ConfigurationService",
    "DocumentParser",
    "ErrorCategory",
    "ErrorHandlingService",
    "ErrorSeverity",
    "HttpClientService",
    "IdentityProvider",
    "InvalidInputError",
    "JsonRecordCache",
    "JsonSyncTimeStore",
    "NetworkError",
    "NotLoggedInError",
    "ParseFailedError",
    "PlaysFetcher",
    "RecordCache",
    "RetryExhaustedError",
    "RetryLoop",
    "StaticIdentityProvider",
    "StatsService",
    "StorageError",
    "SyncError",
    "SyncOperation",
    "SyncService",
    "SyncTimeStore",
    "UnexpectedStatusError",
    "UserFriendlyError",
    "ValidationResult",
    "classify_status",
    "get_error_service",
    "handle_error",
]
