"""
Page Arithmetic.

Pure helpers that map the reader position onto page numbers: the locator of
a page image, the pages of the current spread and the pages worth fetching
in the background.
"""

import time
from typing import Callable, Iterable, List, Optional

from .constants import DEFAULT_IMAGE_PREFIX, DEFAULT_IMAGE_SUFFIX, ViewMode


def format_page_number(page_number: int, total_pages: int) -> str:
    """
    Zero-pads a page number to the digit count of the book length.

    Args:
        page_number: 1-based page number.
        total_pages: Number of pages in the book.

    Returns:
        The padded string, e.g. ``"007"`` for page 7 of 198.
    """
    return str(page_number).zfill(len(str(total_pages)))


class ImageResolver:
    """
    Builds the fetchable locator of a rendered page image.

    The locator is ``{base}{padded page}{suffix}?t={milliseconds}``. The
    timestamp defeats HTTP caching so that an image which failed once can be
    retried on a later navigation.
    """

    def __init__(
        self,
        base_url: str = "",
        prefix: str = DEFAULT_IMAGE_PREFIX,
        suffix: str = DEFAULT_IMAGE_SUFFIX,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.prefix = prefix
        self.suffix = suffix
        self._clock = clock

    def base_for_book(self, book_id: str) -> str:
        """Returns the locator prefix shared by every page of a book."""
        return self.base_url + self.prefix.format(book_id=book_id)

    def resolve(self, book_id: str, page_number: int, total_pages: int) -> str:
        """
        Resolves the locator of one page image.

        Args:
            book_id: Identifier of the book.
            page_number: 1-based page number.
            total_pages: Number of pages, which fixes the padding width.

        Returns:
            The locator string with a cache-busting query.
        """
        stamp = int(self._clock() * 1000)
        padded = format_page_number(page_number, total_pages)
        return f"{self.base_for_book(book_id)}{padded}{self.suffix}?t={stamp}"


def visible_pages(current_page: int, total_pages: int, view_mode: ViewMode) -> List[int]:
    """
    Lists the pages shown for a reader position.

    Double view always pairs an odd page with the following even page, like
    a printed spread.

    Args:
        current_page: The current 1-based page.
        total_pages: Number of pages in the book.
        view_mode: Single or double page view.

    Returns:
        One or two ascending page numbers.
    """
    if view_mode == ViewMode.SINGLE:
        return [current_page]

    if current_page % 2 == 1:
        pages = [current_page]
        if current_page + 1 <= total_pages:
            pages.append(current_page + 1)
        return pages
    return [current_page - 1, current_page]


def normalize_page_for_mode(page: int, view_mode: ViewMode) -> int:
    """Moves an even page back to the odd page opening its spread."""
    if view_mode == ViewMode.DOUBLE and page % 2 == 0:
        return max(1, page - 1)
    return page


def pages_to_preload(
    current_page: int,
    total_pages: int,
    visible: Iterable[int],
    buffer_size: int,
) -> List[int]:
    """
    Orders the pages to fetch in the background, nearest first.

    Pages behind the current page come first (walking backwards), then the
    pages ahead. Visible pages and pages outside the book are skipped.

    Args:
        current_page: The current 1-based page.
        total_pages: Number of pages in the book.
        visible: Pages already being loaded for display.
        buffer_size: How many pages to look behind and ahead.

    Returns:
        Page numbers in fetch order.
    """
    shown = set(visible)
    result: List[int] = []

    for i in range(1, buffer_size + 1):
        page = current_page - i
        if page >= 1 and page not in shown:
            result.append(page)

    for i in range(1, buffer_size + 1):
        page = current_page + i
        if page <= total_pages and page not in shown:
            result.append(page)

    return result


def page_info_text(pages: List[int], total_pages: int) -> str:
    """Formats the position label, e.g. ``Pages 3-4 of 5``."""
    if len(pages) == 1:
        return f"Page {pages[0]} of {total_pages}"
    return f"Pages {pages[0]}-{pages[-1]} of {total_pages}"


def clamp_page(page: Optional[int], total_pages: int) -> int:
    """Restricts a page number to ``[1, total_pages]``; None maps to 1."""
    if page is None:
        return 1
    return max(1, min(total_pages, int(page)))
