"""Tests for the collection fetcher, including end-to-end runs against a mock upstream."""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from bggsync.models import BggQuery, CollectionKind, CollectionRecord
from bggsync.services.backoff import BackoffPolicy
from bggsync.services.collection_fetcher import CollectionFetcher
from bggsync.services.errors import InvalidInputError, RetryExhaustedError, UnexpectedStatusError
from bggsync.services.http_client import HttpClientService
from bggsync.services.retry import RetryLoop

BASE_URL = "https://bgg.test/xmlapi2"

BASE_GAMES_XML = b"""<items totalitems="2">
    <item objecttype="thing" objectid="1" subtype="boardgame"><name sortindex="1">A</name></item>
    <item objecttype="thing" objectid="2" subtype="boardgame"><name sortindex="1">B</name></item>
</items>"""

EXPANSIONS_XML = b"""<items totalitems="1">
    <item objecttype="thing" objectid="3" subtype="boardgameexpansion"><name sortindex="1">C</name></item>
</items>"""


async def no_sleep(delay: float) -> None:
    return None


class CollectionUpstream:
    """Mock upstream answering each collection sub-query from its own script."""

    def __init__(self, base_statuses: list[int], expansion_statuses: list[int]) -> None:
        self.scripts = {"excludesubtype": list(base_statuses), "subtype": list(expansion_statuses)}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = "excludesubtype" if "excludesubtype" in request.url.params else "subtype"
        script = self.scripts[key]
        status_code = script.pop(0) if len(script) > 1 else script[0]
        body = BASE_GAMES_XML if key == "excludesubtype" else EXPANSIONS_XML
        return httpx.Response(status_code, content=body if status_code == 200 else b"")

    def count(self, key: str) -> int:
        return sum(1 for r in self.requests if key in r.url.params)


def make_fetcher(upstream: CollectionUpstream, **kwargs: object) -> tuple[CollectionFetcher, HttpClientService]:
    client = HttpClientService(BASE_URL, transport=httpx.MockTransport(upstream))
    loop = RetryLoop(BackoffPolicy(), sleep=no_sleep)
    return CollectionFetcher(client, loop, sleep=no_sleep, **kwargs), client


class TestCollectionFetcher:
    """Test cases for CollectionFetcher.fetch_collection."""

    @pytest.mark.asyncio
    async def test_base_games_then_expansions(self) -> None:
        upstream = CollectionUpstream([200], [200])
        fetcher, client = make_fetcher(upstream)
        async with client:
            records = await fetcher.fetch_collection("alice")

        assert [r.name for r in records] == ["A", "B", "C"]
        assert [r.kind for r in records] == [
            CollectionKind.BASE_GAME,
            CollectionKind.BASE_GAME,
            CollectionKind.EXPANSION,
        ]

    @pytest.mark.asyncio
    async def test_pending_base_games_then_success(self) -> None:
        """Two 202s on the base-game query cost two extra requests, nothing else."""
        upstream = CollectionUpstream([202, 202, 200], [200])
        fetcher, client = make_fetcher(upstream)
        async with client:
            records = await fetcher.fetch_collection("alice")

        assert upstream.count("excludesubtype") == 3
        assert upstream.count("subtype") == 1
        assert len(upstream.requests) == 4
        assert [r.external_id for r in records] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_budget(self) -> None:
        upstream = CollectionUpstream([503], [503])
        fetcher, client = make_fetcher(upstream)
        async with client:
            with pytest.raises(RetryExhaustedError) as exc_info:
                await fetcher.fetch_collection("alice")

        assert exc_info.value.attempts == 10
        assert exc_info.value.last_status_code == 503
        assert len(upstream.requests) == 10
        assert upstream.count("subtype") == 0

    @pytest.mark.asyncio
    async def test_expansion_failure_aborts(self) -> None:
        upstream = CollectionUpstream([200], [404])
        fetcher, client = make_fetcher(upstream)
        async with client:
            with pytest.raises(UnexpectedStatusError) as exc_info:
                await fetcher.fetch_collection("alice")

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_blank_username_sends_nothing(self) -> None:
        upstream = CollectionUpstream([200], [200])
        fetcher, client = make_fetcher(upstream)
        async with client:
            with pytest.raises(InvalidInputError):
                await fetcher.fetch_collection("  ")

        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_pause_between_sequential_subfetches(self) -> None:
        upstream = CollectionUpstream([200], [200])
        client = HttpClientService(BASE_URL, transport=httpx.MockTransport(upstream))
        sleep = AsyncMock()
        fetcher = CollectionFetcher(client, RetryLoop(sleep=no_sleep), subfetch_delay=5.0, sleep=sleep)
        async with client:
            await fetcher.fetch_collection("alice")

        sleep.assert_awaited_once_with(5.0)

    @pytest.mark.asyncio
    async def test_concurrent_mode_keeps_order(self) -> None:
        upstream = CollectionUpstream([202, 200], [200])
        fetcher, client = make_fetcher(upstream, concurrent=True)
        async with client:
            records = await fetcher.fetch_collection("alice")

        assert [r.name for r in records] == ["A", "B", "C"]
        assert len(upstream.requests) == 3


class TestCollectionFetcherComposition:
    """Merging behavior with stubbed sub-fetches."""

    @pytest.mark.asyncio
    async def test_concatenation_without_deduplication(self) -> None:
        a = CollectionRecord(1, CollectionKind.BASE_GAME, "A")
        b = CollectionRecord(2, CollectionKind.BASE_GAME, "B")
        c = CollectionRecord(3, CollectionKind.EXPANSION, "C")
        duplicate = CollectionRecord(1, CollectionKind.EXPANSION, "A")

        client = HttpClientService(BASE_URL)
        fetcher = CollectionFetcher(client, RetryLoop(sleep=no_sleep))

        async def fake_fetch(query: BggQuery, kind: CollectionKind) -> list[CollectionRecord]:
            return [a, b] if kind is CollectionKind.BASE_GAME else [c, duplicate]

        fetcher._fetch_items = fake_fetch  # type: ignore[method-assign]
        async with client:
            assert await fetcher.fetch_collection("alice") == [a, b, c, duplicate]

    @pytest.mark.asyncio
    async def test_concurrent_failure_cancels_sibling(self) -> None:
        client = HttpClientService(BASE_URL)
        fetcher = CollectionFetcher(client, RetryLoop(sleep=no_sleep), concurrent=True)
        sibling_cancelled = asyncio.Event()

        async def fake_fetch(query: BggQuery, kind: CollectionKind) -> list[CollectionRecord]:
            if kind is CollectionKind.EXPANSION:
                raise UnexpectedStatusError(400)
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                sibling_cancelled.set()
                raise
            return []

        fetcher._fetch_items = fake_fetch  # type: ignore[method-assign]
        async with client:
            with pytest.raises(UnexpectedStatusError):
                await fetcher.fetch_collection("alice")

        assert sibling_cancelled.is_set()
