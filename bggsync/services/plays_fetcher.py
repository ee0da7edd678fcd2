"""Plays fetcher retrieving one page of logged plays at a time."""

import structlog

from ..models import BggQuery, PageMeta, PlaysPage
from .errors import InvalidInputError
from .http_client import HttpClientService
from .parsers import BggXmlParser, DocumentParser
from .retry import RetryLoop

log = structlog.stdlib.get_logger()


class PlaysFetcher:
    """Fetches single pages of a user's play history.

    Stateless between calls: callers decide whether to ask for the next page
    using the returned page metadata.
    """

    def __init__(
        self,
        http_client: HttpClientService,
        retry_loop: RetryLoop,
        parser: DocumentParser | None = None,
    ) -> None:
        self.http_client = http_client
        self.retry_loop = retry_loop
        self.parser = parser or BggXmlParser()

    async def fetch_plays_page(self, username: str, page: int) -> PlaysPage:
        """Fetch one page of plays.

        Args:
            username: Upstream account name
            page: 1-indexed page number

        Returns:
            The page's plays and pagination metadata

        Raises:
            InvalidInputError: If the username is blank or the page is below 1
            RetryExhaustedError: If the page ran out of attempts
            UnexpectedStatusError: On a non-retryable status
            ParseFailedError: If the body could not be parsed
        """
        if page < 1:
            raise InvalidInputError("Page number must be 1 or greater", field="page", value=page)

        query = BggQuery.plays(username, page)
        result = await self.retry_loop.run(
            lambda: self.http_client.fetch(query),
            self.parser.parse_plays,
            url=self.http_client.url_for(query),
        )

        if result.meta.page_number != page:
            log.warning("Upstream reported a different page number", requested=page, reported=result.meta.page_number)
            result = PlaysPage(plays=result.plays, meta=PageMeta(result.meta.total_count, page))

        log.debug(
            "Plays page fetched",
            username=username,
            page=page,
            plays=len(result.plays),
            total=result.meta.total_count,
            has_more_pages=result.meta.has_more_pages,
        )
        return result
