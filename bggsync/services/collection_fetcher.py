"""Collection fetcher assembling base games and expansions."""

import asyncio

import structlog

from ..models import BggQuery, CollectionKind, CollectionRecord
from .http_client import HttpClientService
from .parsers import BggXmlParser, DocumentParser
from .retry import RetryLoop, Sleep

log = structlog.stdlib.get_logger()


class CollectionFetcher:
    """Fetches a user's owned collection.

    The upstream cannot return base games and expansions in a single owned
    query, so the collection is assembled from two sub-queries. Base games
    always come first in the result, each part in document order.
    """

    def __init__(
        self,
        http_client: HttpClientService,
        retry_loop: RetryLoop,
        parser: DocumentParser | None = None,
        subfetch_delay: float = 0.0,
        concurrent: bool = False,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the collection fetcher.

        Args:
            http_client: Single-attempt HTTP fetch primitive
            retry_loop: Retry loop driving each sub-query
            parser: Document parser for collection bodies
            subfetch_delay: Pause in seconds between the two sequential sub-fetches
            concurrent: Run both sub-fetches at the same time
            sleep: Awaitable used for the pause between sub-fetches
        """
        self.http_client = http_client
        self.retry_loop = retry_loop
        self.parser = parser or BggXmlParser()
        self.subfetch_delay = subfetch_delay
        self.concurrent = concurrent
        self._sleep = sleep

    async def fetch_collection(self, username: str) -> list[CollectionRecord]:
        """Fetch every owned base game and expansion.

        Args:
            username: Upstream account name

        Returns:
            Base-game records followed by expansion records

        Raises:
            InvalidInputError: If the username is blank
            RetryExhaustedError: If a sub-fetch ran out of attempts
            UnexpectedStatusError: If a sub-fetch hit a non-retryable status
            ParseFailedError: If a sub-fetch body could not be parsed
        """
        base_query = BggQuery.collection_base_games(username)
        expansion_query = BggQuery.collection_expansions(username)

        log.info("Fetching collection", username=username, concurrent=self.concurrent)

        if self.concurrent:
            base_games, expansions = await self._fetch_concurrently(base_query, expansion_query)
        else:
            base_games = await self._fetch_items(base_query, CollectionKind.BASE_GAME)
            if self.subfetch_delay > 0:
                log.debug("Waiting between collection sub-fetches", delay=self.subfetch_delay)
                await self._sleep(self.subfetch_delay)
            expansions = await self._fetch_items(expansion_query, CollectionKind.EXPANSION)

        log.info(
            "Collection fetched",
            username=username,
            base_games=len(base_games),
            expansions=len(expansions),
        )
        return base_games + expansions

    async def _fetch_concurrently(
        self, base_query: BggQuery, expansion_query: BggQuery
    ) -> tuple[list[CollectionRecord], list[CollectionRecord]]:
        """Run both sub-fetches as tasks, cancelling the survivor when one fails."""
        base_task = asyncio.create_task(self._fetch_items(base_query, CollectionKind.BASE_GAME))
        expansion_task = asyncio.create_task(self._fetch_items(expansion_query, CollectionKind.EXPANSION))
        tasks = (base_task, expansion_task)

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in tasks:
                if task in done and (error := task.exception()) is not None:
                    raise error
            return base_task.result(), expansion_task.result()
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _fetch_items(self, query: BggQuery, kind: CollectionKind) -> list[CollectionRecord]:
        """Run one collection sub-query through the retry loop."""
        return await self.retry_loop.run(
            lambda: self.http_client.fetch(query),
            lambda body: self.parser.parse_collection(body, kind),
            url=self.http_client.url_for(query),
        )
