"""Collection and play records produced by the document parser."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

PAGE_SIZE = 100


class CollectionKind(Enum):
    """Subtype of an owned collection item."""
    BASE_GAME = "boardgame"
    EXPANSION = "boardgameexpansion"


@dataclass(frozen=True)
class CollectionRecord:
    """An owned item in the user's collection."""
    external_id: int
    kind: CollectionKind
    name: str
    year_published: int | None = None
    thumbnail_url: str | None = None


@dataclass(frozen=True)
class PlayerRecord:
    """A single participant of a logged play."""
    name: str
    username: str | None = None
    user_id: int | None = None
    start_position: str | None = None
    color: str | None = None
    score: str | None = None
    won: bool = False


@dataclass(frozen=True)
class PlayRecord:
    """A logged play of a game."""
    external_id: int
    date: date
    quantity: int
    game_id: int
    game_name: str
    length_minutes: int | None = None
    incomplete: bool = False
    location: str | None = None
    comments: str | None = None
    players: tuple[PlayerRecord, ...] = ()


@dataclass(frozen=True)
class PageMeta:
    """Pagination metadata reported by the plays endpoint."""
    total_count: int
    page_number: int  # 1-indexed

    @property
    def has_more_pages(self) -> bool:
        return self.total_count > self.page_number * PAGE_SIZE


@dataclass(frozen=True)
class PlaysPage:
    """One page of play history."""
    plays: list[PlayRecord]
    meta: PageMeta


@dataclass(frozen=True)
class SyncTimestamps:
    """Last successful sync times, None when never synced."""
    collection: datetime | None = None
    plays: datetime | None = None
    full: datetime | None = None


@dataclass(frozen=True)
class SyncReport:
    """Summary of a completed sync operation."""
    operation: str
    item_count: int
    synced_at: datetime
    pages: int = 1
    details: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class CollectionSummary:
    """Owned items and how many of them have never been played."""
    total_games: int
    unplayed_games: int


@dataclass(frozen=True)
class PlayStats:
    """Aggregates over the cached play history."""
    total_plays: int  # sum of play quantities
    unique_games: int
    plays_this_year: int
    current_year: int


@dataclass(frozen=True)
class OverviewStats:
    """Collection and play figures shown together in the status overview."""
    games_count: int
    unplayed_count: int
    total_plays: int
    plays_this_month: int
