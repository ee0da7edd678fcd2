"""Data models for the bggsync application."""

from .config import AppConfig
from .outcome import FetchOutcome, OutcomeKind, RetryState
from .query import BggQuery
from .records import (
    PAGE_SIZE,
    CollectionKind,
    CollectionRecord,
    CollectionSummary,
    OverviewStats,
    PageMeta,
    PlayerRecord,
    PlayRecord,
    PlaysPage,
    PlayStats,
    SyncReport,
    SyncTimestamps,
)

__all__ = [
    "AppConfig",
    "BggQuery",
    "CollectionKind",
    "CollectionRecord",
    "CollectionSummary",
    "FetchOutcome",
    "OutcomeKind",
    "OverviewStats",
    "PAGE_SIZE",
    "PageMeta",
    "PlayerRecord",
    "PlayRecord",
    "PlaysPage",
    "PlayStats",
    "RetryState",
    "SyncReport",
    "SyncTimestamps",
]
