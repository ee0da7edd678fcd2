"""HTTP client service issuing single classified requests to the XML API."""

import asyncio
import time
from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from ..models import BggQuery, FetchOutcome, OutcomeKind
from ..models.config import DEFAULT_BASE_URL
from .errors import InvalidInputError
from .middleware import RequestHook

log = structlog.stdlib.get_logger()


def classify_status(status_code: int, body: bytes | None = None) -> FetchOutcome:
    """Map an HTTP status code onto a fetch outcome.

    Args:
        status_code: Status returned by the upstream
        body: Response body, kept only for successful responses

    Returns:
        The classified outcome
    """
    if status_code == 200:
        return FetchOutcome(OutcomeKind.SUCCESS, status_code, body or b"")
    if status_code == 202:
        return FetchOutcome(OutcomeKind.PENDING, status_code)
    if status_code == 429:
        return FetchOutcome(OutcomeKind.RATE_LIMITED, status_code)
    if 500 <= status_code <= 599:
        return FetchOutcome(OutcomeKind.SERVER_ERROR, status_code)
    if 400 <= status_code <= 499:
        return FetchOutcome(OutcomeKind.CLIENT_ERROR, status_code)
    return FetchOutcome(OutcomeKind.MALFORMED, status_code)


class HttpClientService:
    """HTTP client service with per-attempt timeouts, request hooks and request spacing.

    Each call to `fetch` performs exactly one GET; retrying is left to the caller.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        connect_timeout: float = 10.0,
        read_timeout: float = 30.0,
        rate_limit_delay: float = 0.0,
        request_hooks: Sequence[RequestHook] = (),
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP client service.

        Args:
            base_url: Root of the XML API, without trailing slash
            connect_timeout: Connection timeout per attempt in seconds
            read_timeout: Read timeout per attempt in seconds
            rate_limit_delay: Minimum delay between requests in seconds
            request_hooks: Hooks run against every outgoing request
            transport: Optional transport override (used for mock upstreams)
        """
        self.base_url = base_url.rstrip("/")
        self.rate_limit_delay = rate_limit_delay
        self._last_request_time: float = float("-inf")

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(read_timeout, connect=connect_timeout),
            event_hooks={"request": list(request_hooks)},
            follow_redirects=True,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            transport=transport,
        )

        log.info(
            "HTTP client service initialized",
            base_url=self.base_url,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            rate_limit_delay=rate_limit_delay,
            hooks=len(request_hooks),
        )

    def url_for(self, query: BggQuery) -> str:
        """Absolute URL of the endpoint targeted by a query."""
        return f"{self.base_url}/{query.endpoint}"

    async def fetch(self, query: BggQuery) -> FetchOutcome:
        """Issue one GET for the query and classify the response.

        Args:
            query: The fully-formed upstream query

        Returns:
            The classified outcome of this single attempt

        Raises:
            InvalidInputError: If the username is blank; no request is sent
        """
        if not query.username or not query.username.strip():
            raise InvalidInputError("Username must not be empty", field="username", value=query.username)

        await self._enforce_rate_limit()

        url = self.url_for(query)
        try:
            response = await self._client.get(url, params=query.query_params)
        except httpx.TransportError as e:
            log.warning(
                "HTTP GET request failed",
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            return FetchOutcome(OutcomeKind.TRANSPORT_ERROR)

        outcome = classify_status(response.status_code, response.content)

        log.debug(
            "HTTP GET request completed",
            url=url,
            endpoint=query.endpoint,
            status_code=response.status_code,
            outcome=outcome.kind.value,
            content_length=len(response.content),
        )
        return outcome

    async def _enforce_rate_limit(self) -> None:
        """Enforce rate limiting between requests.

        The next slot is claimed before sleeping, so concurrent callers queue
        up one delay apart instead of waking together.
        """
        if self.rate_limit_delay <= 0:
            return

        current_time = time.monotonic()
        slot = max(current_time, self._last_request_time + self.rate_limit_delay)
        self._last_request_time = slot

        sleep_time = slot - current_time
        if sleep_time > 0:
            log.debug("Rate limiting: sleeping", sleep_time=sleep_time)
            await asyncio.sleep(sleep_time)

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._client.aclose()
        log.info("HTTP client closed")

    async def __aenter__(self) -> "HttpClientService":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: type[Exception] | None, exc_val: Exception | None, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
