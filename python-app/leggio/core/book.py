"""
Book Metadata.

The reader only needs an identifier and a page count; both come from the
catalog and are treated as immutable for the lifetime of a session.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


class InvalidBookError(ValueError):
    """Raised when book metadata cannot back a reader session."""


@dataclass(frozen=True)
class BookInfo:
    """
    Metadata of the book being read.

    Attributes:
        book_id: Catalog identifier, also part of every page locator.
        total_pages: Number of rendered pages.
        title: Display title.
    """

    book_id: str
    total_pages: int
    title: str = ""

    def validate(self, strict: bool = False) -> "BookInfo":
        """
        Checks the metadata and returns self.

        Args:
            strict: Also require the catalog id format (``book-`` prefix and
                at least six characters).

        Raises:
            InvalidBookError: If the metadata is unusable.
        """
        if not self.book_id:
            raise InvalidBookError("Book id is empty.")
        if self.total_pages < 1:
            raise InvalidBookError(
                f"Book {self.book_id} has {self.total_pages} pages; at least one is required."
            )
        if strict and (len(self.book_id) < 6 or not self.book_id.startswith("book-")):
            raise InvalidBookError(f"Malformed book id: {self.book_id!r}")
        return self

    @property
    def display_title(self) -> str:
        return self.title or self.book_id


def load_book_info(path: str, book_id: Optional[str] = None) -> BookInfo:
    """
    Reads book metadata from a JSON file.

    The file uses the catalog field names: ``bookId``, ``pagesCount`` and an
    optional ``title``.

    Args:
        path: Path to the JSON file.
        book_id: Overrides the identifier stored in the file.

    Returns:
        The validated BookInfo.

    Raises:
        InvalidBookError: If the file is unreadable or incomplete.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidBookError(f"Cannot read book metadata from {path}: {e}") from e

    if not isinstance(raw, dict):
        raise InvalidBookError(f"Book metadata in {path} is not an object.")

    try:
        info = BookInfo(
            book_id=book_id or str(raw["bookId"]),
            total_pages=int(raw["pagesCount"]),
            title=str(raw.get("title") or ""),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidBookError(f"Incomplete book metadata in {path}: {e}") from e

    logger.debug("Loaded metadata for %s (%d pages)", info.book_id, info.total_pages)
    return info.validate()
