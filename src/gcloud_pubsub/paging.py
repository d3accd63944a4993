"""Cursor-based paging over Pub/Sub listings."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")

# (page_token, page_size) -> (items, next_page_token)
PageFetcher = Callable[[str | None, int], Awaitable[tuple[list[T], str | None]]]


class ResourcePage(Generic[T]):
    """One page of results plus the cursor for the next one.

    Implements the Page protocol.  The listing is exhausted when the service
    returns no (or an empty) continuation token.
    """

    def __init__(
        self,
        fetch: PageFetcher[T],
        items: list[T],
        next_token: str | None,
        page_size: int,
    ) -> None:
        self._fetch = fetch
        self._items = items
        self._next_token = next_token or None
        self._page_size = page_size

    @classmethod
    async def first(cls, fetch: PageFetcher[T], page_size: int) -> ResourcePage[T]:
        if page_size < 1:
            msg = f"page_size must be positive, got {page_size}"
            raise ValueError(msg)
        items, token = await fetch(None, page_size)
        return cls(fetch, items, token, page_size)

    @property
    def items(self) -> list[T]:
        return self._items

    @property
    def is_last(self) -> bool:
        return self._next_token is None

    async def next(self, page_size: int | None = None) -> ResourcePage[T] | None:
        if self._next_token is None:
            return None
        size = page_size or self._page_size
        items, token = await self._fetch(self._next_token, size)
        return ResourcePage(self._fetch, items, token, size)

    async def __aiter__(self) -> AsyncIterator[T]:
        """Yield the items of this page and of every following page."""
        page: ResourcePage[T] | None = self
        while page is not None:
            for item in page.items:
                yield item
            page = await page.next()
