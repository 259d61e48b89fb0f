import asyncio
import logging

from fakes import FakeFetcher
from leggio.core.cache import PageEntry, PageImageCache
from leggio.core.constants import PageState
from leggio.core.pages import ImageResolver


def _cache(fetcher, total_pages: int = 10, on_change=None) -> PageImageCache:
    resolver = ImageResolver(clock=lambda: 1.0)
    return PageImageCache("book-test", total_pages, resolver, fetcher, on_change)


def test_unknown_page_reads_as_unrequested(fetcher) -> None:
    cache = _cache(fetcher)
    assert cache.entry(3) == PageEntry(3)
    assert cache.state(3) == PageState.UNREQUESTED
    assert cache.known_pages() == []


def test_load_fetches_once(fetcher) -> None:
    async def _run():
        cache = _cache(fetcher)
        first = await cache.load(7)
        second = await cache.load(7)
        return first, second

    first, second = asyncio.run(_run())
    assert first is second
    assert first.state == PageState.LOADED
    assert first.url == "/epub/book-test/pages/page-07-or8.png?t=1000"
    assert first.data == b"png:" + first.url.encode()
    assert len(fetcher.calls) == 1


def test_failed_page_is_not_refetched(caplog) -> None:
    fetcher = FakeFetcher(failing={4})

    async def _run():
        cache = _cache(fetcher)
        return await cache.load(4), await cache.load(4)

    with caplog.at_level(logging.WARNING, logger="leggio.core.cache"):
        first, second = asyncio.run(_run())

    assert first.state == PageState.FAILED
    assert second is first
    assert first.url is None
    assert len(fetcher.calls) == 1
    assert "page 4 of book-test" in caplog.text
    assert "HTTP 404" in caplog.text


def test_concurrent_loads_share_one_fetch() -> None:
    async def _run():
        gate = asyncio.Event()
        fetcher = FakeFetcher(gate=gate)
        cache = _cache(fetcher)
        a = asyncio.ensure_future(cache.load(2))
        b = asyncio.ensure_future(cache.load(2))
        for _ in range(3):
            await asyncio.sleep(0)
        assert cache.is_pending(2)
        assert cache.state(2) == PageState.LOADING
        gate.set()
        results = await asyncio.gather(a, b)
        return fetcher, cache, results

    fetcher, cache, (a, b) = asyncio.run(_run())
    assert a is b
    assert len(fetcher.calls) == 1
    assert not cache.is_pending(2)


def test_cancelled_caller_does_not_abort_shared_fetch() -> None:
    async def _run():
        gate = asyncio.Event()
        fetcher = FakeFetcher(gate=gate)
        cache = _cache(fetcher)
        waiter = asyncio.ensure_future(cache.load(5))
        await asyncio.sleep(0)
        waiter.cancel()
        await asyncio.gather(waiter, return_exceptions=True)
        gate.set()
        entry = await cache.load(5)
        return fetcher, entry

    fetcher, entry = asyncio.run(_run())
    assert entry.loaded
    assert len(fetcher.calls) == 1


def test_reload_refetches_failed_page_with_fresh_token() -> None:
    fetcher = FakeFetcher(failing={3})
    ticks = iter([1.0, 2.0])

    async def _run():
        resolver = ImageResolver(clock=lambda: next(ticks))
        cache = PageImageCache("book-test", 10, resolver, fetcher)
        await cache.load(3)
        fetcher.failing.clear()
        return await cache.reload(3)

    entry = asyncio.run(_run())
    assert entry.loaded
    assert fetcher.calls == [
        "/epub/book-test/pages/page-03-or8.png?t=1000",
        "/epub/book-test/pages/page-03-or8.png?t=2000",
    ]


def test_reload_keeps_loaded_page(fetcher) -> None:
    async def _run():
        cache = _cache(fetcher)
        first = await cache.load(1)
        return first, await cache.reload(1)

    first, second = asyncio.run(_run())
    assert first is second
    assert len(fetcher.calls) == 1


def test_unexpected_errors_settle_as_failed(caplog) -> None:
    class BrokenFetcher(FakeFetcher):
        async def fetch(self, url: str) -> bytes:
            raise RuntimeError("boom")

    async def _run():
        return await _cache(BrokenFetcher()).load(1)

    with caplog.at_level(logging.ERROR, logger="leggio.core.cache"):
        entry = asyncio.run(_run())
    assert entry.failed
    assert "Unexpected error loading page 1" in caplog.text


def test_mark_helpers_notify(fetcher) -> None:
    seen = []
    cache = _cache(fetcher, on_change=seen.append)
    cache.mark_loaded(2, "/p2.png")
    cache.mark_failed(3)
    assert [(e.page, e.state) for e in seen] == [
        (2, PageState.LOADED),
        (3, PageState.FAILED),
    ]
    assert cache.known_pages() == [2, 3]


def test_close_cancels_pending_and_forgets_entries() -> None:
    async def _run():
        fetcher = FakeFetcher(gate=asyncio.Event())
        cache = _cache(fetcher)
        cache.mark_loaded(1, "/p1.png")
        pending = asyncio.ensure_future(cache.load(2))
        await asyncio.sleep(0)
        await cache.close()
        await asyncio.gather(pending, return_exceptions=True)
        return cache, pending

    cache, pending = asyncio.run(_run())
    assert cache.known_pages() == []
    assert not cache.is_pending(2)
    assert pending.cancelled()
