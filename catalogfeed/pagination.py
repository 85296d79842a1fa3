"""
Pagination support for catalogfeed.

This module provides the page structure returned by a single fetch, the query
string encoding used for offset based pagination, and the Pager, which turns a
page-fetching coroutine into one lazy async sequence of items.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from types import TracebackType
from typing import Any, Generic, TypeVar
from urllib.parse import urlencode

from ._logging import logger
from .exceptions import PaginationError

T = TypeVar("T")

# Query parameters for a paged request. A None value means "absent".
ListOptions = dict[str, str | int | bool | None]


@dataclass
class PageResult(Generic[T]):
    """
    Represents a single page of results with pagination cursor.

    Attributes:
        items: Items of this page, in server order (may be empty)
        next_page: Page number of the next page (None if this is the last page)
    """

    items: list[T]
    next_page: int | None = None

    @property
    def count(self) -> int:
        """Number of items in this page."""
        return len(self.items)

    @property
    def has_more(self) -> bool:
        """Returns True if there are more pages available."""
        return self.next_page is not None


RequestFn = Callable[[ListOptions], Awaitable[PageResult[T]]]


def _encode_value(value: str | int | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def list_options_to_query_string(options: Mapping[str, Any] | None = None) -> str:
    """
    Converts list options to a query string.

    Keys whose value is None are dropped. Every other value is kept, including
    0, "" and False, so that omitting a parameter is always an explicit choice
    of the caller. The result can be appended to absolute or relative URLs and
    has a leading '?' if it is non-empty.

    Example:
        >>> list_options_to_query_string({"per_page": 100, "group": None, "page": 2})
        '?per_page=100&page=2'
    """
    if not options:
        return ""
    pairs = [(key, _encode_value(value)) for key, value in options.items() if value is not None]
    query = urlencode(pairs)
    return f"?{query}" if query else ""


class PagerState(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    CANCELLED = "cancelled"


_TERMINAL_STATES = frozenset({PagerState.EXHAUSTED, PagerState.FAILED, PagerState.CANCELLED})
_MISSING: Any = object()


class Pager(AsyncIterator[T]):
    """
    Walks a paginated endpoint one page at a time.

    The Pager is pull driven: nothing is requested until the first item is
    awaited, and page N+1 is only requested once every item of page N has been
    consumed. At most one request is in flight at any time.

    After each fetch the cursor key of the Pager's own copy of the options is
    set to the page's next_page (or removed on the last page). Errors raised
    by the request function end the walk and propagate unchanged; nothing is
    retried. A Pager is consumed once and cannot be restarted, and it serves
    one consumer: pulling again while a pull is pending raises RuntimeError,
    as a native async generator does.

    A next_page that names a page already requested during the walk (the page
    itself or an earlier one) is treated as a loop: the items of that page are
    still yielded, then the next pull raises PaginationError. A server that
    keeps handing out new page numbers is only bounded by max_pages.

    Usage:
        async with paginate(fetch_page, {"per_page": 100}) as pager:
            async for item in pager:
                ...
    """

    def __init__(
        self,
        request: "RequestFn[T]",
        options: Mapping[str, Any] | None = None,
        *,
        cursor_key: str = "page",
        max_pages: int | None = None,
    ) -> None:
        if max_pages is not None and max_pages < 1:
            raise ValueError("max_pages must be a positive integer")

        self._request = request
        # Private copy: the caller's options are never mutated
        self._params: ListOptions = dict(options or {})
        self.cursor_key = cursor_key
        self.max_pages = max_pages

        self.state = PagerState.PENDING
        self.pages_fetched = 0
        self.items_yielded = 0
        self._items: Iterator[T] = iter(())
        self._last_page = False
        self._running = False
        self._requested_pages: set[Any] = set()
        self._loop_error: PaginationError | None = None

    @property
    def params(self) -> ListOptions:
        """Options that will be sent with the next request."""
        return dict(self._params)

    async def __anext__(self) -> T:
        # Single consumer: never a second fetch for the same page
        if self._running:
            raise RuntimeError("anext(): Pager is already running")
        self._running = True
        try:
            return await self._next_item()
        finally:
            self._running = False

    async def _next_item(self) -> T:
        while True:
            if self.state in _TERMINAL_STATES:
                raise StopAsyncIteration

            item = next(self._items, _MISSING)
            if item is not _MISSING:
                self.items_yielded += 1
                return item

            if self._loop_error is not None:
                self.state = PagerState.FAILED
                raise self._loop_error

            if self._last_page:
                self.state = PagerState.EXHAUSTED
                logger.info(
                    "Pagination exhausted",
                    extra={"pages_fetched": self.pages_fetched, "items": self.items_yielded},
                )
                raise StopAsyncIteration

            await self._fetch_next_page()

    async def _fetch_next_page(self) -> None:
        if self.max_pages is not None and self.pages_fetched >= self.max_pages:
            self.state = PagerState.FAILED
            raise PaginationError(
                f"Refusing to fetch more than {self.max_pages} pages",
                pages_fetched=self.pages_fetched,
            )

        requested = self._params.get(self.cursor_key)
        if requested is not None:
            self._requested_pages.add(requested)
        if self.state is PagerState.PENDING:
            logger.info("Starting paginated iteration", extra={"cursor_key": self.cursor_key})
        self.state = PagerState.ACTIVE

        try:
            result = await self._request(dict(self._params))
        except asyncio.CancelledError:
            self.state = PagerState.CANCELLED
            raise
        except Exception as e:
            self.state = PagerState.FAILED
            logger.debug(
                "Page fetch failed",
                extra={"page": requested, "pages_fetched": self.pages_fetched, "error": str(e)},
            )
            raise

        # Closed while the request was in flight: discard the result
        if self.state is PagerState.CANCELLED:
            return

        self.pages_fetched += 1
        next_page = result.next_page
        logger.debug(
            "Page fetched",
            extra={"page": requested, "next_page": next_page, "count": result.count},
        )

        self._items = iter(result.items)

        if next_page is not None and next_page in self._requested_pages:
            # Raised once the items of this page have been handed out
            self._loop_error = PaginationError(
                f"Server returned page {next_page} again after {self.pages_fetched} pages, "
                "the walk would loop",
                pages_fetched=self.pages_fetched,
            )
            return

        if next_page is None:
            self._params.pop(self.cursor_key, None)
        else:
            self._params[self.cursor_key] = next_page

        self._last_page = next_page is None

    async def aclose(self) -> None:
        """Stops the walk. No further requests are issued."""
        if self.state not in _TERMINAL_STATES:
            logger.debug(
                "Pagination cancelled",
                extra={"pages_fetched": self.pages_fetched, "items": self.items_yielded},
            )
            self.state = PagerState.CANCELLED
        self._items = iter(())

    async def to_list(self) -> list[T]:
        """
        Consumes the remaining pages into a list.
        WARNING: Can consume high memory for large collections.
        """
        return [item async for item in self]

    async def __aenter__(self) -> "Pager[T]":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


def paginate(
    request: "RequestFn[T]",
    options: Mapping[str, Any] | None = None,
    *,
    cursor_key: str = "page",
    max_pages: int | None = None,
) -> Pager[T]:
    """
    Advances through each page and provides each item from a paginated request.

    Args:
        request: Coroutine function fetching one page for the given options
        options: Initial options; copied, never mutated
        cursor_key: Option key carrying the page number
        max_pages: Optional upper bound on the number of page requests

    Returns:
        A Pager yielding the items of every page in order.
    """
    return Pager(request, options, cursor_key=cursor_key, max_pages=max_pages)
