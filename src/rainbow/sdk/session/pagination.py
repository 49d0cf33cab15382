"""
Paginated collection aggregation.

Listing endpoints return one slice of a collection at a time together with the size the
server reports for the whole collection. `PaginatedAggregator.fetch_all` walks the
slices sequentially and stops when the number of collected items equals the last
reported total. Items keep the order they were received in, across pages.

If the collection changes while it is being walked, the reported total may never be
matched. A page ceiling bounds the walk and raises AggregationInconsistency when it is
reached; no partial result is returned.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from rainbow.sdk.errors import AggregationInconsistency, TransportError
from rainbow.sdk.metrics import MetricsClient, NoOpMetricsClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PageCursor:
    offset: int
    limit: int


@dataclass(frozen=True)
class PageResult(Generic[T]):
    items: Sequence[T]
    reported_total: int


PageFetcher = Callable[[int, int], Awaitable[PageResult[T]]]
"""Called with `(offset, limit)`, returns one page."""


class PaginatedAggregator:
    def __init__(
        self,
        page_size: int = 100,
        max_pages: int = 10000,
        metrics_client: Optional[MetricsClient] = None,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        if max_pages <= 0:
            raise ValueError("max_pages must be positive")
        self.page_size = page_size
        self.max_pages = max_pages
        self._metrics_client = metrics_client or NoOpMetricsClient()

    async def fetch_all(
        self,
        page_fetcher: PageFetcher[T],
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        label: str = "collection",
    ) -> List[T]:
        """
        Fetch every page of a collection.

        Args:
            page_fetcher: Coroutine function fetching the page at `(offset, limit)`
            page_size: Items per page, defaults to the aggregator's page size
            max_pages: Page ceiling, defaults to the aggregator's ceiling
            label: Collection name used in logs and metrics

        Returns:
            List[T]: Every item, in received order

        Raises:
            AggregationInconsistency: If the ceiling is reached before the collected item
                count matches the reported total
            Exception: Whatever a page fetch raised; the walk is aborted
        """
        page_size = page_size or self.page_size
        max_pages = max_pages or self.max_pages

        cursor = PageCursor(offset=0, limit=page_size)
        collected: List[T] = []
        reported_total: Optional[int] = None

        for page_number in range(1, max_pages + 1):
            page = await page_fetcher(cursor.offset, cursor.limit)
            collected.extend(page.items)
            reported_total = page.reported_total

            logger.info(
                "retrieved %d %s, total %d, existing %d",
                len(page.items),
                label,
                len(collected),
                reported_total,
            )

            if len(collected) == reported_total:
                logger.debug("all %s retrieved in %d page(s)", label, page_number)
                self._metrics_client.increment(
                    "rainbow.session.pagination.pages",
                    page_number,
                    tag_dict={"collection": label},
                )
                return collected

            logger.debug("need another loop to get more %s [%d]", label, len(collected))
            cursor = PageCursor(offset=cursor.offset + page_size, limit=page_size)

        raise AggregationInconsistency(
            f"Collected {len(collected)} {label} in {max_pages} pages without matching "
            f"the reported total {reported_total}",
            collected=len(collected),
            reported_total=reported_total,
        )


def _with_query(path: str, **params: Any) -> str:
    separator = "&" if "?" in path else "?"
    query = "&".join(f"{key}={value}" for key, value in params.items())
    return f"{path}{separator}{query}"


def rest_page_fetcher(
    get: Callable[[str], Awaitable[Any]], path: str
) -> PageFetcher[Any]:
    """
    Build a page fetcher for a REST listing endpoint answering
    `{"data": [...], "total": N}` to `path?offset=..&limit=..`.
    """

    async def fetch_page(offset: int, limit: int) -> PageResult[Any]:
        body = await get(_with_query(path, offset=offset, limit=limit))

        if not isinstance(body, dict):
            raise TransportError(f"Unexpected page payload from {path}", body=body)

        items = body.get("data")
        total = body.get("total")
        if not isinstance(items, list) or not isinstance(total, int):
            raise TransportError(f"Malformed page from {path}", body=body)

        return PageResult(items=items, reported_total=total)

    return fetch_page


async def fetch_all(
    page_fetcher: PageFetcher[T], page_size: int = 100, max_pages: int = 10000
) -> List[T]:
    return await PaginatedAggregator(page_size, max_pages).fetch_all(page_fetcher)
