"""Read-side summaries computed from the cached collection and plays."""

from collections.abc import Callable, Iterable
from datetime import date, datetime, timezone

import structlog

from ..models import CollectionRecord, CollectionSummary, OverviewStats, PlayRecord, PlayStats
from .storage import RecordCache
from .sync import utc_now

log = structlog.stdlib.get_logger()


def _count_plays(plays: Iterable[PlayRecord]) -> int:
    return sum(play.quantity for play in plays)


class StatsService:
    """Computes collection and play statistics over the local cache.

    Play counts add up each play's quantity, so a play logged as "3x" counts
    three times. The current year and month are taken from the clock in UTC.
    """

    def __init__(
        self,
        collection_cache: RecordCache[CollectionRecord],
        plays_cache: RecordCache[PlayRecord],
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the stats service.

        Args:
            collection_cache: Source of the owned collection
            plays_cache: Source of the logged plays
            clock: Source of the current time, used for year and month figures
        """
        self.collection_cache = collection_cache
        self.plays_cache = plays_cache
        self._clock = clock

    async def collection_summary(self) -> CollectionSummary:
        """Count owned items and the ones with no logged play."""
        collection = await self.collection_cache.snapshot()
        played = {play.game_id for play in await self.plays_cache.snapshot()}

        return CollectionSummary(
            total_games=len(collection),
            unplayed_games=sum(1 for record in collection if record.external_id not in played),
        )

    async def play_stats(self) -> PlayStats:
        """Total plays, distinct games played and plays in the current year."""
        plays = await self.plays_cache.snapshot()
        year = self._today().year

        return PlayStats(
            total_plays=_count_plays(plays),
            unique_games=len({play.game_id for play in plays}),
            plays_this_year=_count_plays(p for p in plays if p.date.year == year),
            current_year=year,
        )

    async def overview(self) -> OverviewStats:
        """Collection summary together with total plays and plays this month."""
        summary = await self.collection_summary()
        plays = await self.plays_cache.snapshot()
        today = self._today()

        stats = OverviewStats(
            games_count=summary.total_games,
            unplayed_count=summary.unplayed_games,
            total_plays=_count_plays(plays),
            plays_this_month=_count_plays(
                p for p in plays if (p.date.year, p.date.month) == (today.year, today.month)
            ),
        )
        log.debug("Overview stats computed", games=stats.games_count, plays=stats.total_plays)
        return stats

    async def plays_for_game(self, game_id: int) -> list[PlayRecord]:
        """Cached plays of one game, most recent first."""
        plays = [play for play in await self.plays_cache.snapshot() if play.game_id == game_id]
        return sorted(plays, key=lambda play: play.date, reverse=True)

    def _today(self) -> date:
        now = self._clock()
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        return now.date()
