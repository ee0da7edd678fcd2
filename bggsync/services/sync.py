"""Sync orchestration: fetch from the upstream, then write the local cache."""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from ..models import CollectionKind, CollectionRecord, PlayRecord, PlaysPage, SyncReport, SyncTimestamps
from .collection_fetcher import CollectionFetcher
from .errors import AppError, NotLoggedInError, SyncError
from .plays_fetcher import PlaysFetcher
from .retry import Sleep
from .storage import IdentityProvider, RecordCache, SyncTimeStore

log = structlog.stdlib.get_logger()


class SyncOperation(Enum):
    """Kinds of sync the orchestrator runs."""
    COLLECTION = "collection"
    PLAYS = "plays"
    FULL = "full"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncService:
    """Runs collection and plays syncs for the current user.

    A sync writes to the cache only after every request it needs has
    succeeded. When any fetch fails the cache and the recorded sync times for
    that operation are left exactly as they were. When a write fails part way
    through, the records cached before the sync are put back.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        collection_fetcher: CollectionFetcher,
        plays_fetcher: PlaysFetcher,
        collection_cache: RecordCache[CollectionRecord],
        plays_cache: RecordCache[PlayRecord],
        sync_times: SyncTimeStore,
        page_delay: float = 0.0,
        clock: Callable[[], datetime] = utc_now,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the sync service.

        Args:
            identity: Source of the current username
            collection_fetcher: Fetcher for owned games and expansions
            plays_fetcher: Fetcher for single pages of plays
            collection_cache: Destination for collection records
            plays_cache: Destination for play records
            sync_times: Store for last-successful-sync timestamps
            page_delay: Pause in seconds between consecutive plays pages
            clock: Source of the timestamps recorded after a sync
            sleep: Awaitable used for the pause between pages
        """
        self.identity = identity
        self.collection_fetcher = collection_fetcher
        self.plays_fetcher = plays_fetcher
        self.collection_cache = collection_cache
        self.plays_cache = plays_cache
        self.sync_times = sync_times
        self.page_delay = page_delay
        self._clock = clock
        self._sleep = sleep

    async def sync_collection(self) -> SyncReport:
        """Fetch the owned collection and replace the cached one.

        Returns:
            Report with the number of records written

        Raises:
            NotLoggedInError: If no username is available; nothing is fetched
            SyncError: If fetching or writing failed
        """
        username = self._require_username()
        log.info("Collection sync started", username=username)

        try:
            records = await self.collection_fetcher.fetch_collection(username)

            async with self._restoring(self.collection_cache, SyncOperation.COLLECTION):
                await self.collection_cache.replace_all(records)
                synced_at = self._clock()
                await self.sync_times.update_collection(synced_at)
        except AppError as e:
            raise self._failed(SyncOperation.COLLECTION, e) from e

        base_games = sum(1 for r in records if r.kind is CollectionKind.BASE_GAME)
        log.info("Collection sync completed", username=username, records=len(records))
        return SyncReport(
            operation=SyncOperation.COLLECTION.value,
            item_count=len(records),
            synced_at=synced_at,
            details={"base_games": base_games, "expansions": len(records) - base_games},
        )

    async def sync_plays(self) -> SyncReport:
        """Fetch every page of plays and replace the cached play history.

        Returns:
            Report with the number of plays written and pages fetched

        Raises:
            NotLoggedInError: If no username is available; nothing is fetched
            SyncError: If any page failed or writing failed
        """
        username = self._require_username()
        log.info("Plays sync started", username=username)

        try:
            pages = await self._fetch_all_pages(username)

            async with self._restoring(self.plays_cache, SyncOperation.PLAYS):
                await self.plays_cache.replace_all(pages[0].plays)
                for page in pages[1:]:
                    await self.plays_cache.append(page.plays)

                synced_at = self._clock()
                await self.sync_times.update_plays(synced_at)
        except AppError as e:
            raise self._failed(SyncOperation.PLAYS, e) from e

        play_count = sum(len(page.plays) for page in pages)
        log.info("Plays sync completed", username=username, plays=play_count, pages=len(pages))
        return SyncReport(
            operation=SyncOperation.PLAYS.value,
            item_count=play_count,
            synced_at=synced_at,
            pages=len(pages),
        )

    async def sync_all(self) -> SyncReport:
        """Sync the collection and then, if that succeeded, the plays.

        The full-sync time is recorded only when both parts succeed.

        Raises:
            NotLoggedInError: If no username is available; nothing is fetched
            SyncError: From whichever part failed first
        """
        collection = await self.sync_collection()
        plays = await self.sync_plays()

        synced_at = self._clock()
        try:
            await self.sync_times.update_full(synced_at)
        except AppError as e:
            raise self._failed(SyncOperation.FULL, e) from e

        log.info("Full sync completed", collection=collection.item_count, plays=plays.item_count)
        return SyncReport(
            operation=SyncOperation.FULL.value,
            item_count=collection.item_count + plays.item_count,
            synced_at=synced_at,
            pages=plays.pages,
            details={"collection": collection.item_count, "plays": plays.item_count},
        )

    async def last_synced(self) -> SyncTimestamps:
        return await self.sync_times.get()

    async def _fetch_all_pages(self, username: str) -> list[PlaysPage]:
        """Fetch pages 1..n while the upstream reports more plays."""
        pages = [await self.plays_fetcher.fetch_plays_page(username, 1)]

        while pages[-1].meta.has_more_pages:
            if not pages[-1].plays:
                # A short total would otherwise never be reached
                log.warning(
                    "Plays page was empty before the reported total was reached",
                    page=len(pages),
                    total=pages[-1].meta.total_count,
                )
                break

            if self.page_delay > 0:
                log.debug("Waiting between plays pages", delay=self.page_delay)
                await self._sleep(self.page_delay)

            pages.append(await self.plays_fetcher.fetch_plays_page(username, len(pages) + 1))

        return pages

    @asynccontextmanager
    async def _restoring(self, cache: RecordCache[Any], operation: SyncOperation) -> AsyncIterator[None]:
        """Put the cache back as it was if a write inside the block fails."""
        previous = await cache.snapshot()
        try:
            yield
        except AppError:
            log.warning("Restoring cache after a failed write", operation=operation.value, records=len(previous))
            try:
                await cache.replace_all(previous)
            except AppError as e:
                log.error("Failed to restore cache", operation=operation.value, error=e.message)
            raise

    def _require_username(self) -> str:
        username = self.identity.current_username()
        if username is None or not username.strip():
            log.warning("Sync requested without a logged-in user")
            raise NotLoggedInError()
        return username

    @staticmethod
    def _failed(operation: SyncOperation, cause: AppError) -> SyncError:
        log.error(
            "Sync failed",
            operation=operation.value,
            error=cause.message,
            error_type=type(cause).__name__,
        )
        return SyncError(operation.value, cause)
