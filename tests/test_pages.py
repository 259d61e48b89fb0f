from leggio.core.constants import ViewMode
from leggio.core.pages import (
    ImageResolver,
    clamp_page,
    format_page_number,
    normalize_page_for_mode,
    page_info_text,
    pages_to_preload,
    visible_pages,
)


def test_format_page_number_pads_to_total_digits() -> None:
    assert format_page_number(7, 198) == "007"
    assert format_page_number(12, 20) == "12"
    assert format_page_number(3, 9) == "3"
    assert format_page_number(1, 1000) == "0001"


def test_resolver_builds_cache_busted_locator() -> None:
    resolver = ImageResolver(clock=lambda: 1700000000.123)
    assert (
        resolver.resolve("book-abc", 7, 198)
        == "/epub/book-abc/pages/page-007-or8.png?t=1700000000123"
    )


def test_resolver_prefixes_base_url() -> None:
    resolver = ImageResolver("https://cdn.example.org/", clock=lambda: 2.0)
    assert (
        resolver.resolve("book-xyz", 12, 20)
        == "https://cdn.example.org/epub/book-xyz/pages/page-12-or8.png?t=2000"
    )


def test_resolver_token_changes_between_calls() -> None:
    ticks = iter([1.0, 2.0])
    resolver = ImageResolver(clock=lambda: next(ticks))
    assert resolver.resolve("book-1", 1, 5) != resolver.resolve("book-1", 1, 5)


def test_visible_pages_single_mode() -> None:
    assert visible_pages(4, 10, ViewMode.SINGLE) == [4]


def test_visible_pages_double_mode_pairs_odd_with_even() -> None:
    assert visible_pages(1, 10, ViewMode.DOUBLE) == [1, 2]
    assert visible_pages(4, 10, ViewMode.DOUBLE) == [3, 4]
    assert visible_pages(5, 5, ViewMode.DOUBLE) == [5]
    assert visible_pages(1, 1, ViewMode.DOUBLE) == [1]


def test_double_mode_pairing_holds_for_every_page() -> None:
    for total in (1, 2, 5, 6, 11):
        for page in range(1, total + 1):
            pages = visible_pages(page, total, ViewMode.DOUBLE)
            assert pages[0] % 2 == 1
            assert all(1 <= p <= total for p in pages)
            if len(pages) == 2:
                assert pages[1] == pages[0] + 1
            else:
                assert pages[0] == total


def test_normalize_page_for_mode() -> None:
    assert normalize_page_for_mode(4, ViewMode.DOUBLE) == 3
    assert normalize_page_for_mode(3, ViewMode.DOUBLE) == 3
    assert normalize_page_for_mode(4, ViewMode.SINGLE) == 4


def test_pages_to_preload_orders_behind_then_ahead() -> None:
    assert pages_to_preload(10, 20, [10, 11], 4) == [9, 8, 7, 6, 12, 13, 14]


def test_pages_to_preload_stays_inside_book() -> None:
    assert pages_to_preload(1, 3, [1, 2], 3) == [3]
    assert pages_to_preload(5, 5, [5], 3) == [4, 3, 2]
    assert pages_to_preload(1, 1, [1], 3) == []


def test_page_info_text() -> None:
    assert page_info_text([3, 4], 5) == "Pages 3-4 of 5"
    assert page_info_text([5], 5) == "Page 5 of 5"


def test_clamp_page() -> None:
    assert clamp_page(None, 10) == 1
    assert clamp_page(0, 10) == 1
    assert clamp_page(42, 10) == 10
    assert clamp_page(7, 10) == 7
