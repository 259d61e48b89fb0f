"""
Page Image Cache.

A per-session, memoizing loader keyed by page number. Each page is fetched at
most once per session: loaded and failed pages are answered from the cache,
and a page requested while its fetch is in flight shares that fetch.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .constants import PageState
from .fetchers import ImageFetcher, ImageLoadError
from .pages import ImageResolver

logger = logging.getLogger(__name__)


@dataclass
class PageEntry:
    """
    Cache record for one page.

    Attributes:
        page: 1-based page number.
        state: Where the page is in its load lifecycle.
        url: The resolved locator, set once the page is loaded.
        data: The verified image bytes, when the loader provided them.
    """

    page: int
    state: PageState = PageState.UNREQUESTED
    url: Optional[str] = None
    data: Optional[bytes] = None

    @property
    def loaded(self) -> bool:
        return self.state == PageState.LOADED

    @property
    def failed(self) -> bool:
        return self.state == PageState.FAILED

    @property
    def settled(self) -> bool:
        return self.state in (PageState.LOADED, PageState.FAILED)


class PageImageCache:
    """
    Memoized asynchronous page loader owned by one reader session.

    ``load`` never raises for image problems: a page that cannot be fetched
    settles as FAILED so that callers gathering several pages always get every
    result back.
    """

    def __init__(
        self,
        book_id: str,
        total_pages: int,
        resolver: ImageResolver,
        fetcher: ImageFetcher,
        on_change: Optional[Callable[[PageEntry], None]] = None,
    ) -> None:
        self.book_id = book_id
        self.total_pages = total_pages
        self.resolver = resolver
        self.fetcher = fetcher
        self.on_change = on_change
        self._entries: Dict[int, PageEntry] = {}
        self._pending: Dict[int, "asyncio.Task[PageEntry]"] = {}

    def entry(self, page: int) -> PageEntry:
        """Returns the record for a page; unknown pages read as UNREQUESTED."""
        return self._entries.get(page) or PageEntry(page)

    def state(self, page: int) -> PageState:
        return self.entry(page).state

    def known_pages(self) -> List[int]:
        return sorted(self._entries)

    def is_pending(self, page: int) -> bool:
        return page in self._pending

    async def load(self, page: int) -> PageEntry:
        """
        Loads a page image, fetching it only if it has never settled.

        Args:
            page: 1-based page number.

        Returns:
            The settled entry (LOADED or FAILED).
        """
        current = self._entries.get(page)
        if current is not None and current.settled:
            return current

        task = self._pending.get(page)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._fetch(page))
            self._pending[page] = task
        # A caller giving up (e.g. a replaced preload queue) must not abort
        # the shared fetch.
        return await asyncio.shield(task)

    async def reload(self, page: int) -> PageEntry:
        """
        Requests a failed page again with a fresh cache-busting token.

        Loaded pages are returned as they are.
        """
        current = self._entries.get(page)
        if current is not None and current.failed:
            del self._entries[page]
        return await self.load(page)

    async def _fetch(self, page: int) -> PageEntry:
        url = self.resolver.resolve(self.book_id, page, self.total_pages)
        self._store(PageEntry(page, PageState.LOADING))
        try:
            data = await self.fetcher.fetch(url)
        except ImageLoadError as e:
            logger.warning(
                "Failed to load image for page %d of %s from %s: %s",
                page,
                self.book_id,
                url,
                e.reason,
            )
            return self.mark_failed(page)
        except Exception:
            logger.exception(
                "Unexpected error loading page %d of %s from %s",
                page,
                self.book_id,
                url,
            )
            return self.mark_failed(page)
        else:
            return self.mark_loaded(page, url, data)
        finally:
            self._pending.pop(page, None)

    def mark_loaded(self, page: int, url: str, data: Optional[bytes] = None) -> PageEntry:
        """Promotes a page to LOADED; safe to call from render callbacks."""
        return self._store(PageEntry(page, PageState.LOADED, url, data))

    def mark_failed(self, page: int, url: Optional[str] = None) -> PageEntry:
        """Promotes a page to FAILED; safe to call from render callbacks."""
        return self._store(PageEntry(page, PageState.FAILED, url))

    def _store(self, entry: PageEntry) -> PageEntry:
        self._entries[entry.page] = entry
        if self.on_change:
            self.on_change(entry)
        return entry

    async def close(self) -> None:
        """Cancels in-flight fetches and forgets every entry."""
        tasks = list(self._pending.values())
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
        self._entries.clear()
