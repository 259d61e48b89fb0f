"""
Utility functions for the Reader package.

Translates Qt input into the reader's device-neutral vocabulary and lays out
the visible page tiles.
"""

from typing import List, Optional, Sequence, Tuple

from PySide6.QtCore import Qt

# Placeholder aspect (width / height) for pages whose image is not ready.
PLACEHOLDER_ASPECT = 1 / 1.4

_KEY_NAMES = {
    Qt.Key.Key_Plus: "+",
    Qt.Key.Key_Equal: "=",
    Qt.Key.Key_Minus: "-",
    Qt.Key.Key_0: "0",
    Qt.Key.Key_Left: "ArrowLeft",
    Qt.Key.Key_Right: "ArrowRight",
    Qt.Key.Key_Up: "ArrowUp",
    Qt.Key.Key_Down: "ArrowDown",
}


def qt_key_name(key: int) -> Optional[str]:
    """
    Returns the DOM-style key name for a Qt key code.

    Args:
        key: A ``Qt.Key`` value.

    Returns:
        The key name, or None for keys the reader does not bind.
    """
    try:
        return _KEY_NAMES.get(Qt.Key(key))
    except ValueError:
        return None


def layout_tiles(
    aspects: Sequence[float],
    width: float,
    height: float,
    gap: float,
    padding: float = 20.0,
) -> List[Tuple[float, float, float, float]]:
    """
    Places page tiles side by side, centred in the viewport.

    Each tile is as tall as the viewport allows (minus padding) and as wide
    as its aspect ratio dictates; the row shrinks uniformly when it would not
    fit horizontally.

    Args:
        aspects: Width/height ratio of each page, left to right.
        width: Viewport width.
        height: Viewport height.
        gap: Space between adjacent pages.
        padding: Margin kept around the row.

    Returns:
        ``(x, y, w, h)`` rectangles in viewport coordinates.
    """
    if not aspects:
        return []

    avail_w = max(1.0, width - 2 * padding)
    avail_h = max(1.0, height - 2 * padding)
    total_gap = gap * (len(aspects) - 1)

    tile_h = avail_h
    row_w = sum(a * tile_h for a in aspects) + total_gap
    if row_w > avail_w:
        tile_h = max(1.0, (avail_w - total_gap) / max(sum(aspects), 1e-6))
        row_w = sum(a * tile_h for a in aspects) + total_gap

    x = (width - row_w) / 2
    y = (height - tile_h) / 2
    rects = []
    for a in aspects:
        w = a * tile_h
        rects.append((x, y, w, tile_h))
        x += w + gap
    return rects
