"""
Page Image Fetchers.

Fetchers turn a page locator into verified image bytes. Blocking I/O runs in
a worker thread so the session's event loop is never stalled, and every
failure mode is reported as ImageLoadError.
"""

import abc
import asyncio
import io
import os
from typing import Optional, Tuple
from urllib.parse import unquote, urlsplit

import requests
from PIL import Image, UnidentifiedImageError


class ImageLoadError(Exception):
    """Raised when a page image cannot be fetched or decoded."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{reason} ({url})")
        self.url = url
        self.reason = reason


def verify_image(data: bytes, url: str) -> None:
    """
    Checks that the bytes hold a decodable image.

    Raises:
        ImageLoadError: If the data is empty or not an image.
    """
    if not data:
        raise ImageLoadError(url, "Empty response")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ImageLoadError(url, f"Undecodable image: {e}") from e


class ImageFetcher(abc.ABC):
    """
    Base fetcher: reads in a thread, then verifies the payload.

    Subclasses implement the blocking ``read``; ``fetch`` may be overridden
    wholesale by fetchers that are natively asynchronous.
    """

    async def fetch(self, url: str) -> bytes:
        return await asyncio.to_thread(self._fetch_sync, url)

    def _fetch_sync(self, url: str) -> bytes:
        data = self.read(url)
        verify_image(data, url)
        return data

    @abc.abstractmethod
    def read(self, url: str) -> bytes:
        """Returns the raw bytes behind a page locator."""

    def close(self) -> None:
        """Releases held resources."""


class HttpImageFetcher(ImageFetcher):
    """Fetches page images over HTTP(S) with a shared requests session."""

    def __init__(
        self, timeout: float = 10.0, session: Optional[requests.Session] = None
    ) -> None:
        self.timeout = timeout
        self.session = session or requests.Session()

    def read(self, url: str) -> bytes:
        try:
            res = self.session.get(url, timeout=self.timeout)
            res.raise_for_status()
        except requests.RequestException as e:
            raise ImageLoadError(url, str(e)) from e
        return res.content

    def close(self) -> None:
        self.session.close()


class LocalImageFetcher(ImageFetcher):
    """
    Serves page locators from a directory laid out like the image host.

    The locator path (query string dropped) is resolved below ``root``, so
    ``/epub/book-1/pages/page-007-or8.png?t=1`` reads
    ``{root}/epub/book-1/pages/page-007-or8.png``.
    """

    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(root)

    def path_for(self, url: str) -> str:
        rel = unquote(urlsplit(url).path).lstrip("/")
        path = os.path.abspath(os.path.join(self.root, rel))
        if os.path.commonpath([self.root, path]) != self.root:
            raise ImageLoadError(url, "Locator escapes the image root")
        return path

    def read(self, url: str) -> bytes:
        path = self.path_for(url)
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            raise ImageLoadError(url, f"Cannot read {path}: {e.strerror}") from e


def fetcher_for(source: str, timeout: float = 10.0) -> Tuple[ImageFetcher, str]:
    """
    Picks a fetcher for an image host.

    Args:
        source: An ``http(s)://`` base URL or a local directory.
        timeout: HTTP request timeout in seconds.

    Returns:
        The fetcher and the base URL to prefix locators with.
    """
    if urlsplit(source).scheme in ("http", "https"):
        return HttpImageFetcher(timeout=timeout), source.rstrip("/")
    return LocalImageFetcher(source), ""
