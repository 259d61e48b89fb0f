"""
Reader Session.

Navigation controller for one open book. It keeps the reader position,
drives the load pipeline (visible pages first, then a throttled background
preload) and publishes immutable snapshots for the renderer.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Set, Tuple

from .book import BookInfo
from .cache import PageEntry, PageImageCache
from .config import ReaderConfig
from .constants import InteractionMode, KeyCommand, ViewMode
from .fetchers import ImageFetcher
from .managers import PreferencesManager
from .pages import (
    ImageResolver,
    clamp_page,
    normalize_page_for_mode,
    page_info_text,
    pages_to_preload,
    visible_pages,
)
from .transform import Transform, ViewportTransform, resolve_key_command

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageTile:
    """Render state of one visible page."""

    page: int
    loaded: bool
    failed: bool
    url: Optional[str] = None
    data: Optional[bytes] = None


@dataclass(frozen=True)
class ReaderSnapshot:
    """Everything the renderer needs, frozen at one instant."""

    book_id: str
    current_page: int
    total_pages: int
    view_mode: ViewMode
    visible_pages: Tuple[int, ...]
    tiles: Tuple[PageTile, ...]
    is_loading: bool
    transform: Transform
    zoom: float
    interaction_mode: InteractionMode
    page_info_text: str
    can_go_prev: bool
    can_go_next: bool
    fullscreen: bool


Listener = Callable[[ReaderSnapshot], None]


class ReaderSession:
    """
    One open book: position, view mode, viewport and page cache.

    Navigation methods are synchronous and return True when they changed the
    position. When called inside a running event loop they also schedule the
    load pipeline for the new spread; otherwise the next ``refresh()`` picks
    the change up.
    """

    def __init__(
        self,
        book: BookInfo,
        fetcher: ImageFetcher,
        config: Optional[ReaderConfig] = None,
        preferences: Optional[PreferencesManager] = None,
        resolver: Optional[ImageResolver] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.book = book.validate()
        self.config = config or ReaderConfig()
        self.preferences = preferences
        self._sleep = sleep

        stored = preferences.read() if preferences else {}
        self.view_mode: ViewMode = stored.get("viewMode", self.config.view_mode)
        start = preferences.read_progress(book.book_id) if preferences else None
        self.current_page: int = normalize_page_for_mode(
            clamp_page(start, book.total_pages), self.view_mode
        )
        self.is_loading: bool = False
        self.fullscreen: bool = False

        self.viewport = ViewportTransform(
            self.config,
            zoom=stored.get("zoomLevel"),
            clock=clock,
            on_change=self._notify,
            on_zoom_committed=self._persist_zoom,
        )

        resolver = resolver or ImageResolver(
            self.config.base_url, self.config.image_prefix, self.config.image_suffix
        )
        self.cache = PageImageCache(
            book.book_id,
            book.total_pages,
            resolver,
            fetcher,
            on_change=self._on_entry_changed,
        )

        self._listeners: List[Listener] = []
        self._tasks: Set[asyncio.Task] = set()
        self._preload_task: Optional[asyncio.Task] = None
        self._generation = 0
        self._closed = False

    # --- Observable state ---

    @property
    def total_pages(self) -> int:
        return self.book.total_pages

    @property
    def visible_pages(self) -> List[int]:
        return visible_pages(self.current_page, self.total_pages, self.view_mode)

    @property
    def page_info_text(self) -> str:
        return page_info_text(self.visible_pages, self.total_pages)

    @property
    def can_go_prev(self) -> bool:
        return self.current_page > 1

    @property
    def can_go_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def zoom(self) -> float:
        return self.viewport.zoom

    def snapshot(self) -> ReaderSnapshot:
        pages = self.visible_pages
        tiles = []
        for p in pages:
            e = self.cache.entry(p)
            tiles.append(PageTile(p, e.loaded, e.failed, e.url, e.data))
        return ReaderSnapshot(
            book_id=self.book.book_id,
            current_page=self.current_page,
            total_pages=self.total_pages,
            view_mode=self.view_mode,
            visible_pages=tuple(pages),
            tiles=tuple(tiles),
            is_loading=self.is_loading,
            transform=self.viewport.transform,
            zoom=self.viewport.zoom,
            interaction_mode=self.viewport.mode,
            page_info_text=page_info_text(pages, self.total_pages),
            can_go_prev=self.can_go_prev,
            can_go_next=self.can_go_next,
            fullscreen=self.fullscreen,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Registers a snapshot listener.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("Snapshot listener failed")

    def _on_entry_changed(self, entry: PageEntry) -> None:
        if entry.page in self.visible_pages:
            self._notify()

    # --- Navigation ---

    def go_to_prev_page(self) -> bool:
        """Moves one page (single) or one spread (double) back."""
        if self.current_page <= 1:
            return False
        if self.view_mode == ViewMode.SINGLE:
            self.current_page -= 1
        else:
            self.current_page = max(1, self.current_page - 2)
        self._position_changed()
        return True

    def go_to_next_page(self) -> bool:
        """Moves one page (single) or one spread (double) forward."""
        if self.current_page >= self.total_pages:
            return False
        if self.view_mode == ViewMode.SINGLE:
            self.current_page += 1
        else:
            self.current_page = min(self.total_pages, self.current_page + 2)
        self._position_changed()
        return True

    def go_to_page(self, page: int) -> bool:
        """Jumps to a page; out-of-range numbers are ignored."""
        if not 1 <= page <= self.total_pages:
            return False
        target = normalize_page_for_mode(page, self.view_mode)
        if target == self.current_page:
            return False
        self.current_page = target
        self._position_changed()
        return True

    def set_view_mode(self, mode: ViewMode) -> bool:
        """Switches single/double view, keeping the zoom."""
        if mode == self.view_mode:
            return False
        self.view_mode = mode
        self.current_page = normalize_page_for_mode(self.current_page, mode)
        if self.preferences:
            self.preferences.write({"viewMode": mode})
        self._position_changed()
        return True

    def toggle_view_mode(self) -> bool:
        if self.view_mode == ViewMode.SINGLE:
            return self.set_view_mode(ViewMode.DOUBLE)
        return self.set_view_mode(ViewMode.SINGLE)

    def apply_preferences(self) -> bool:
        """
        Re-reads the stored view mode and zoom into the running session.

        Returns:
            True if either value changed.
        """
        if not self.preferences:
            return False
        stored = self.preferences.read()
        changed = self.viewport.set_zoom(stored["zoomLevel"])
        mode = stored["viewMode"]
        if mode != self.view_mode:
            self.view_mode = mode
            self.current_page = normalize_page_for_mode(self.current_page, mode)
            self._position_changed()
            changed = True
        return changed

    def _position_changed(self) -> None:
        self.viewport.reset_pan()
        if self.preferences:
            self.preferences.write_progress(self.book.book_id, self.current_page)
        self.schedule_refresh()

    # --- Zoom & window ---

    def adjust_zoom(self, delta: float) -> bool:
        return self.viewport.adjust_zoom(delta)

    def reset_zoom(self) -> None:
        self.viewport.reset()

    def toggle_fullscreen(self) -> bool:
        self.fullscreen = not self.fullscreen
        self._notify()
        return self.fullscreen

    def handle_key(self, key: str, ctrl: bool = False, editing: bool = False) -> bool:
        """
        Dispatches a keyboard shortcut.

        Returns:
            True if the key is a reader shortcut and was consumed.
        """
        command = resolve_key_command(key, ctrl, editing)
        if command is None:
            return False
        if command == KeyCommand.ZOOM_IN:
            self.viewport.step_zoom(1)
        elif command == KeyCommand.ZOOM_OUT:
            self.viewport.step_zoom(-1)
        elif command == KeyCommand.RESET_ZOOM:
            self.reset_zoom()
        elif command == KeyCommand.PREV_PAGE:
            self.go_to_prev_page()
        elif command == KeyCommand.NEXT_PAGE:
            self.go_to_next_page()
        return True

    def _persist_zoom(self, zoom: float) -> None:
        if self.preferences:
            self.preferences.write({"zoomLevel": zoom})

    # --- Load pipeline ---

    def schedule_refresh(self) -> Optional[asyncio.Task]:
        """Starts the load pipeline for the current spread if a loop is running."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; page %d will load on refresh", self.current_page)
            self._notify()
            return None
        task = loop.create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def refresh(self) -> List[PageEntry]:
        """
        Loads the visible pages, then queues the neighbours for preloading.

        The visible pages are fetched concurrently and the spread counts as
        settled only when every one of them has loaded or failed.

        Returns:
            The settled entries of the visible pages.
        """
        self._generation += 1
        generation = self._generation
        self._stop_preload()

        pages = self.visible_pages
        self.is_loading = True
        self._notify()

        entries = await asyncio.gather(*(self.cache.load(p) for p in pages))

        if generation != self._generation or self._closed:
            return list(entries)

        self.is_loading = False
        self._notify()

        queue = pages_to_preload(
            self.current_page, self.total_pages, pages, self.config.preload_buffer
        )
        if queue:
            self._preload_task = asyncio.get_running_loop().create_task(
                self._preload(queue)
            )
        return list(entries)

    async def open(self) -> List[PageEntry]:
        """Loads the first spread of the session."""
        task = self.schedule_refresh()
        return await task

    async def _preload(self, pages: List[int]) -> None:
        for page in pages:
            entry = await self.cache.load(page)
            logger.debug("Preloaded page %d of %s: %s", page, self.book.book_id, entry.state.name)
            await self._sleep(self.config.preload_delay)

    def _stop_preload(self) -> None:
        if self._preload_task and not self._preload_task.done():
            self._preload_task.cancel()
        self._preload_task = None

    async def retry_page(self, page: int) -> PageEntry:
        """Fetches a failed page again with a fresh locator."""
        entry = await self.cache.reload(page)
        self._notify()
        return entry

    async def wait_until_settled(self) -> None:
        """Waits for every scheduled refresh and the current preload queue."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        task = self._preload_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def close(self) -> None:
        """Tears the session down: listeners, tasks and cache."""
        self._closed = True
        self._listeners.clear()
        self._stop_preload()
        for t in list(self._tasks):
            t.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.cache.close()
