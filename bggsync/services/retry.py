"""Bounded retry loop around a single-attempt fetch."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from ..models import FetchOutcome, RetryState
from .backoff import BackoffPolicy
from .errors import AppError, ParseFailedError, RetryExhaustedError, UnexpectedStatusError

log = structlog.stdlib.get_logger()

T = TypeVar("T")

MAX_ATTEMPTS = 10

Sleep = Callable[[float], Awaitable[None]]


class RetryLoop:
    """Drives one logical fetch to a parsed result, a fatal error or exhaustion.

    The attempt budget counts every HTTP attempt, including the first one,
    and is shared by all retryable outcomes (202, 429, 5xx and transport
    failures). Each `run` call owns its own `RetryState`, so one loop instance
    can safely be shared between concurrent fetches.
    """

    def __init__(
        self,
        backoff: BackoffPolicy | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the retry loop.

        Args:
            backoff: Policy computing the wait after each retryable outcome
            max_attempts: Total number of attempts before giving up
            sleep: Awaitable used to wait between attempts
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.backoff = backoff or BackoffPolicy()
        self.max_attempts = max_attempts
        self._sleep = sleep

    async def run(
        self,
        fetch: Callable[[], Awaitable[FetchOutcome]],
        parse: Callable[[bytes], T],
        url: str | None = None,
    ) -> T:
        """Fetch until success, a fatal outcome or an exhausted budget.

        Args:
            fetch: Performs exactly one attempt and classifies it
            parse: Turns a successful body into the result
            url: Target URL, used for logging and error details only

        Returns:
            The parsed result of the first successful attempt

        Raises:
            RetryExhaustedError: If every attempt ended in a retryable outcome
            UnexpectedStatusError: On the first non-retryable status
            ParseFailedError: If the successful body cannot be parsed
        """
        state = RetryState()

        while True:
            outcome = await fetch()

            if outcome.is_success:
                return self._parse(parse, outcome.body or b"", url, state)

            if outcome.is_fatal:
                log.error(
                    "Upstream returned a non-retryable status",
                    url=url,
                    status_code=outcome.status_code,
                    outcome=outcome.kind.value,
                    attempt=state.attempt + 1,
                )
                raise UnexpectedStatusError(outcome.status_code or 0, url=url)

            state.attempt += 1
            state.last_status_code = outcome.status_code

            if state.attempt >= self.max_attempts:
                log.error(
                    "Retry budget exhausted",
                    url=url,
                    attempts=state.attempt,
                    last_status_code=state.last_status_code,
                )
                raise RetryExhaustedError(self.max_attempts, state.last_status_code, url=url)

            delay = self.backoff.delay_for(state.attempt)
            log.info(
                "Retrying upstream request",
                url=url,
                attempt=state.attempt,
                max_attempts=self.max_attempts,
                status_code=outcome.status_code,
                outcome=outcome.kind.value,
                delay=delay,
            )
            await self._sleep(delay)

    @staticmethod
    def _parse(parse: Callable[[bytes], T], body: bytes, url: str | None, state: RetryState) -> T:
        try:
            result = parse(body)
        except AppError:
            raise
        except Exception as e:
            raise ParseFailedError(
                f"Failed to parse response: {e}",
                document=url,
                original_error=e,
            ) from e

        log.debug("Upstream request succeeded", url=url, retries=state.attempt)
        return result
