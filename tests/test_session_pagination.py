"""
Unit tests for paginated collection aggregation.
"""

from unittest.mock import AsyncMock

import pytest

from rainbow.sdk.errors import AggregationInconsistency, NetworkError, TransportError
from rainbow.sdk.session.pagination import (
    PageResult,
    PaginatedAggregator,
    fetch_all,
    rest_page_fetcher,
)


def collection_fetcher(items, calls=None):
    """Page fetcher serving slices of a fixed collection."""

    async def fetch(offset, limit):
        if calls is not None:
            calls.append((offset, limit))
        return PageResult(items=items[offset : offset + limit], reported_total=len(items))

    return fetch


class TestFetchAll:
    async def test_walks_pages_until_total(self):
        items = list(range(250))
        calls = []

        result = await PaginatedAggregator(page_size=100).fetch_all(
            collection_fetcher(items, calls)
        )

        assert result == items
        assert calls == [(0, 100), (100, 100), (200, 100)]

    async def test_empty_collection_single_request(self):
        calls = []

        result = await PaginatedAggregator().fetch_all(collection_fetcher([], calls))

        assert result == []
        assert calls == [(0, 100)]

    async def test_exact_multiple_of_page_size(self):
        items = [f"item-{i}" for i in range(200)]
        calls = []

        result = await PaginatedAggregator(page_size=100).fetch_all(
            collection_fetcher(items, calls)
        )

        assert result == items
        assert len(calls) == 2

    async def test_page_size_override(self):
        calls = []

        await PaginatedAggregator(page_size=100).fetch_all(
            collection_fetcher(list(range(25)), calls), page_size=10
        )

        assert calls == [(0, 10), (10, 10), (20, 10)]

    async def test_failure_aborts_walk(self):
        fetcher = AsyncMock(
            side_effect=[
                PageResult(items=list(range(100)), reported_total=250),
                NetworkError("down"),
                PageResult(items=list(range(50)), reported_total=250),
            ]
        )

        with pytest.raises(NetworkError):
            await PaginatedAggregator().fetch_all(fetcher)

        assert fetcher.await_count == 2

    async def test_ceiling_raises_inconsistency(self):
        """The server reports more items than it ever serves."""
        fetcher = AsyncMock(return_value=PageResult(items=[], reported_total=5))

        with pytest.raises(AggregationInconsistency) as excinfo:
            await PaginatedAggregator(max_pages=4).fetch_all(fetcher)

        assert fetcher.await_count == 4
        assert excinfo.value.collected == 0
        assert excinfo.value.reported_total == 5

    async def test_last_reported_total_wins(self):
        """An item added mid-walk is picked up on the next page."""
        pages = [
            PageResult(items=[1, 2], reported_total=3),
            PageResult(items=[3, 4], reported_total=4),
        ]
        fetcher = AsyncMock(side_effect=pages)

        result = await PaginatedAggregator(page_size=2).fetch_all(fetcher)

        assert result == [1, 2, 3, 4]

    async def test_records_page_count(self, metrics_client):
        aggregator = PaginatedAggregator(page_size=100, metrics_client=metrics_client)

        await aggregator.fetch_all(collection_fetcher(list(range(250))), label="groups")

        key = ("rainbow.session.pagination.pages", (("collection", "groups"),))
        assert metrics_client.increments[key] == 3

    async def test_module_level_helper(self):
        result = await fetch_all(collection_fetcher(list(range(7))), page_size=3)
        assert result == list(range(7))

    @pytest.mark.parametrize("kwargs", [{"page_size": 0}, {"max_pages": 0}])
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            PaginatedAggregator(**kwargs)


class TestRestPageFetcher:
    async def test_builds_query(self):
        get = AsyncMock(return_value={"data": ["a"], "total": 1})

        page = await rest_page_fetcher(get, "/api/rainbow/enduser/v1.0/groups")(0, 100)

        get.assert_awaited_once_with(
            "/api/rainbow/enduser/v1.0/groups?offset=0&limit=100"
        )
        assert page.items == ["a"]
        assert page.reported_total == 1

    async def test_extends_existing_query(self):
        get = AsyncMock(return_value={"data": [], "total": 0})

        await rest_page_fetcher(get, "/rooms?format=full")(200, 50)

        get.assert_awaited_once_with("/rooms?format=full&offset=200&limit=50")

    @pytest.mark.parametrize(
        "body",
        [
            None,
            [1, 2, 3],
            {"data": [1]},
            {"total": 3},
            {"data": "abc", "total": 3},
        ],
    )
    async def test_malformed_page(self, body):
        get = AsyncMock(return_value=body)

        with pytest.raises(TransportError):
            await rest_page_fetcher(get, "/items")(0, 10)
