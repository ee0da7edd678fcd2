"""Local cache, sync-time store and identity collaborators.

The sync orchestrator only depends on the protocols defined here. The JSON
implementations keep one file per record type inside the cache directory and
always write atomically, so a crash mid-write never leaves a half-written
cache behind.
"""

import asyncio
import json
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

import structlog

from ..models import (
    CollectionKind,
    CollectionRecord,
    PlayerRecord,
    PlayRecord,
    SyncTimestamps,
)
from .errors import StorageError

log = structlog.stdlib.get_logger()

R = TypeVar("R")

COLLECTION_FILE = "collection.json"
PLAYS_FILE = "plays.json"
SYNC_TIMES_FILE = "sync_times.json"
CACHE_FORMAT_VERSION = 1


class RecordCache(Protocol[R]):
    """Replace-or-append store of parsed records with change notifications."""

    async def replace_all(self, records: Iterable[R]) -> None: ...

    async def append(self, records: Iterable[R]) -> None: ...

    async def clear(self) -> None: ...

    async def snapshot(self) -> list[R]: ...

    def observe(self) -> AsyncIterator[list[R]]: ...


class SyncTimeStore(Protocol):
    """Records when each kind of sync last completed."""

    async def update_collection(self, at: datetime) -> None: ...

    async def update_plays(self, at: datetime) -> None: ...

    async def update_full(self, at: datetime) -> None: ...

    async def get(self) -> SyncTimestamps: ...

    async def clear(self) -> None: ...


class IdentityProvider(Protocol):
    """Supplies the upstream account name of the current user."""

    def current_username(self) -> str | None: ...


def collection_record_to_dict(record: CollectionRecord) -> dict[str, Any]:
    return {
        "external_id": record.external_id,
        "kind": record.kind.value,
        "name": record.name,
        "year_published": record.year_published,
        "thumbnail_url": record.thumbnail_url,
    }


def collection_record_from_dict(data: dict[str, Any]) -> CollectionRecord:
    return CollectionRecord(
        external_id=int(data["external_id"]),
        kind=CollectionKind(data["kind"]),
        name=data["name"],
        year_published=data.get("year_published"),
        thumbnail_url=data.get("thumbnail_url"),
    )


def play_record_to_dict(record: PlayRecord) -> dict[str, Any]:
    return {
        "external_id": record.external_id,
        "date": record.date.isoformat(),
        "quantity": record.quantity,
        "game_id": record.game_id,
        "game_name": record.game_name,
        "length_minutes": record.length_minutes,
        "incomplete": record.incomplete,
        "location": record.location,
        "comments": record.comments,
        "players": [
            {
                "name": player.name,
                "username": player.username,
                "user_id": player.user_id,
                "start_position": player.start_position,
                "color": player.color,
                "score": player.score,
                "won": player.won,
            }
            for player in record.players
        ],
    }


def play_record_from_dict(data: dict[str, Any]) -> PlayRecord:
    return PlayRecord(
        external_id=int(data["external_id"]),
        date=date.fromisoformat(data["date"]),
        quantity=int(data.get("quantity", 1)),
        game_id=int(data["game_id"]),
        game_name=data.get("game_name", ""),
        length_minutes=data.get("length_minutes"),
        incomplete=bool(data.get("incomplete", False)),
        location=data.get("location"),
        comments=data.get("comments"),
        players=tuple(PlayerRecord(**player) for player in data.get("players", [])),
    )


def write_json_atomic(data: Any, path: Path) -> None:
    """Write JSON to `path` through a temporary file and an atomic rename.

    Args:
        data: JSON-serializable value
        path: Destination file; parent directories are created

    Raises:
        StorageError: If the file cannot be written
    """
    temp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        temp_path.replace(path)
    except OSError as e:
        log.error("Failed to write cache file", path=str(path), error=str(e))
        temp_path.unlink(missing_ok=True)
        raise StorageError("Failed to write cache file", path=str(path), original_error=e) from e

    log.debug("Cache file written", path=str(path), size=path.stat().st_size)


def read_json(path: Path) -> Any | None:
    """Read a JSON file, returning None when it does not exist.

    Raises:
        StorageError: If the file exists but cannot be read or decoded
    """
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        log.error("Failed to read cache file", path=str(path), error=str(e))
        raise StorageError("Failed to read cache file", path=str(path), original_error=e) from e


class JsonRecordCache(Generic[R]):
    """Record cache persisted as a single JSON document."""

    def __init__(
        self,
        path: Path,
        to_dict: Callable[[R], dict[str, Any]],
        from_dict: Callable[[dict[str, Any]], R],
    ) -> None:
        """Initialize the cache.

        Args:
            path: JSON file backing the cache
            to_dict: Serializer for a single record
            from_dict: Deserializer for a single record
        """
        self.path = path
        self._to_dict = to_dict
        self._from_dict = from_dict
        self._records: list[R] | None = None
        self._subscribers: set[asyncio.Queue[list[R]]] = set()

    @classmethod
    def for_collection(cls, directory: Path) -> "JsonRecordCache[CollectionRecord]":
        return cls(directory / COLLECTION_FILE, collection_record_to_dict, collection_record_from_dict)

    @classmethod
    def for_plays(cls, directory: Path) -> "JsonRecordCache[PlayRecord]":
        return cls(directory / PLAYS_FILE, play_record_to_dict, play_record_from_dict)

    async def replace_all(self, records: Iterable[R]) -> None:
        """Replace the cached records with `records`."""
        self._store(list(records))

    async def append(self, records: Iterable[R]) -> None:
        """Add `records` after the ones already cached."""
        self._store(self._load() + list(records))

    async def clear(self) -> None:
        self._store([])

    async def snapshot(self) -> list[R]:
        """Current cached records, in insertion order."""
        return list(self._load())

    async def observe(self) -> AsyncIterator[list[R]]:
        """Yield the current records, then the full record list after every change."""
        queue: asyncio.Queue[list[R]] = asyncio.Queue()
        self._subscribers.add(queue)
        try:
            yield list(self._load())
            while True:
                yield await queue.get()
        finally:
            self._subscribers.discard(queue)

    def _load(self) -> list[R]:
        if self._records is None:
            data = read_json(self.path)
            if data is None:
                self._records = []
            else:
                try:
                    self._records = [self._from_dict(item) for item in data["records"]]
                except (KeyError, TypeError, ValueError) as e:
                    raise StorageError("Cache file has an unexpected layout", path=str(self.path), original_error=e) from e
            log.debug("Cache loaded", path=str(self.path), records=len(self._records))
        return self._records

    def _store(self, records: list[R]) -> None:
        write_json_atomic(
            {"version": CACHE_FORMAT_VERSION, "records": [self._to_dict(r) for r in records]},
            self.path,
        )
        self._records = records
        log.info("Cache updated", path=str(self.path), records=len(records))

        for queue in self._subscribers:
            queue.put_nowait(list(records))


class JsonSyncTimeStore:
    """Sync-time store persisted as a JSON document of ISO-8601 timestamps."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def in_directory(cls, directory: Path) -> "JsonSyncTimeStore":
        return cls(directory / SYNC_TIMES_FILE)

    async def update_collection(self, at: datetime) -> None:
        self._store(replace(self._load(), collection=at))

    async def update_plays(self, at: datetime) -> None:
        self._store(replace(self._load(), plays=at))

    async def update_full(self, at: datetime) -> None:
        self._store(replace(self._load(), full=at))

    async def get(self) -> SyncTimestamps:
        return self._load()

    async def clear(self) -> None:
        self._store(SyncTimestamps())

    def _load(self) -> SyncTimestamps:
        data = read_json(self.path) or {}
        try:
            return SyncTimestamps(
                **{
                    key: datetime.fromisoformat(value) if value else None
                    for key, value in data.items()
                    if key in ("collection", "plays", "full")
                }
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise StorageError("Sync time file has an unexpected layout", path=str(self.path), original_error=e) from e

    def _store(self, timestamps: SyncTimestamps) -> None:
        write_json_atomic(
            {
                "collection": timestamps.collection.isoformat() if timestamps.collection else None,
                "plays": timestamps.plays.isoformat() if timestamps.plays else None,
                "full": timestamps.full.isoformat() if timestamps.full else None,
            },
            self.path,
        )


class StaticIdentityProvider:
    """Identity provider returning a fixed, configured username."""

    def __init__(self, username: str | None) -> None:
        self.username = username

    def current_username(self) -> str | None:
        if self.username is None or not self.username.strip():
            return None
        return self.username.strip()
