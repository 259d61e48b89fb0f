"""
Custom UI Widgets for the Reader Module.
"""

from typing import Dict, Optional, Tuple

from PySide6.QtCore import QRectF, Qt
from PySide6.QtGui import QColor, QPainter, QPen, QPixmap, QTransform
from PySide6.QtWidgets import QLabel, QWidget

from ...core.constants import InteractionMode
from ...core.session import PageTile, ReaderSnapshot
from ...core.transform import Transform
from .utils import PLACEHOLDER_ASPECT, layout_tiles

CURSORS = {
    InteractionMode.IDLE: Qt.CursorShape.OpenHandCursor,
    InteractionMode.PANNING: Qt.CursorShape.ClosedHandCursor,
    InteractionMode.PINCHING: Qt.CursorShape.ClosedHandCursor,
}


class PageViewport(QWidget):
    """
    Paints the visible pages under the current pan/zoom transform.

    Decoded pixmaps are kept per page locator so a snapshot that only moves
    the view does not decode images again.
    """

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setAttribute(Qt.WidgetAttribute.WA_AcceptTouchEvents, True)
        self.setMouseTracking(False)
        self.snapshot: Optional[ReaderSnapshot] = None
        self.page_gap: int = 20
        self.dark_mode: bool = False
        self._pixmaps: Dict[int, Tuple[str, QPixmap]] = {}
        self.setCursor(CURSORS[InteractionMode.IDLE])

    def set_snapshot(self, snapshot: ReaderSnapshot) -> None:
        """Adopts a new snapshot and schedules a repaint."""
        self.snapshot = snapshot
        self.setCursor(CURSORS[snapshot.interaction_mode])
        self.update()

    def pixmap_for(self, tile: PageTile) -> Optional[QPixmap]:
        """Returns the decoded image of a loaded tile, decoding it once."""
        if not tile.loaded or not tile.data:
            return None
        cached = self._pixmaps.get(tile.page)
        if cached and cached[0] == tile.url:
            return cached[1]
        pix = QPixmap()
        if not pix.loadFromData(tile.data):
            return None
        self._pixmaps[tile.page] = (tile.url or "", pix)
        return pix

    def clear_cache(self) -> None:
        self._pixmaps.clear()

    def qtransform(self, t: Transform) -> QTransform:
        """Maps the translate/scale transform about the viewport centre."""
        cx, cy = self.width() / 2, self.height() / 2
        qt = QTransform()
        qt.translate(cx + t.translate_x, cy + t.translate_y)
        qt.scale(t.scale, t.scale)
        qt.translate(-cx, -cy)
        return qt

    def paintEvent(self, event) -> None:
        """Draws page tiles, placeholders for failed pages and blank slots."""
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.fillRect(self.rect(), QColor("#222" if self.dark_mode else "#f3f4f6"))

        snap = self.snapshot
        if snap is None:
            painter.end()
            return

        pixmaps = [self.pixmap_for(t) for t in snap.tiles]
        aspects = [
            (p.width() / p.height()) if p and p.height() else PLACEHOLDER_ASPECT
            for p in pixmaps
        ]
        gap = self.page_gap if len(snap.tiles) > 1 else 0
        rects = layout_tiles(aspects, self.width(), self.height(), gap)

        painter.setTransform(self.qtransform(snap.transform))
        for tile, pix, (x, y, w, h) in zip(snap.tiles, pixmaps, rects):
            target = QRectF(x, y, w, h)
            painter.fillRect(target, QColor("#fff"))
            if pix is not None:
                painter.drawPixmap(target, pix, QRectF(pix.rect()))
            elif tile.failed:
                painter.setPen(QPen(QColor("#9ca3af")))
                painter.drawText(
                    target,
                    Qt.AlignmentFlag.AlignCenter,
                    f"Page {tile.page}\nnot available",
                )
            painter.setPen(QPen(QColor(0, 0, 0, 40)))
            painter.drawRect(target)
        painter.end()


class LoadingOverlay(QLabel):
    """Centered 'Loading...' badge shown while the visible pages settle."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__("Loading...", parent)
        self.setStyleSheet(
            "background: rgba(0, 0, 0, 0.7); color: white; padding: 16px 20px; border-radius: 4px;"
        )
        self.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents, True)
        self.adjustSize()
        self.hide()

    def recenter(self) -> None:
        parent = self.parentWidget()
        if parent:
            self.adjustSize()
            self.move(
                (parent.width() - self.width()) // 2,
                (parent.height() - self.height()) // 2,
            )
