"""
Reader Tab Component.

The main aggregator class that combines the mixins to provide the paginated
page-image reading experience for one book.
"""

import logging
from typing import Optional

from PySide6.QtCore import QEvent, QObject, QSettings, Qt, Signal
from PySide6.QtGui import QKeyEvent, QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPlainTextEdit,
    QPushButton,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from ...core.book import BookInfo
from ...core.config import ReaderConfig
from ...core.constants import ViewMode
from ...core.fetchers import ImageFetcher, fetcher_for
from ...core.managers import PreferencesManager
from ...core.session import ReaderSession, ReaderSnapshot
from ...core.transform import resolve_key_command
from ..components import OptionsSidebar
from .mixins.gestures import GesturesMixin
from .mixins.rendering import RenderingMixin
from .utils import qt_key_name
from .widgets import LoadingOverlay, PageViewport
from .workers import EngineThread

logger = logging.getLogger(__name__)


class ReaderTab(QWidget, RenderingMixin, GesturesMixin):
    """
    A self-contained page-image reader widget.
    Inherits functional logic from mixins.
    """

    snapshot_ready = Signal(object)

    def __init__(
        self,
        parent: Optional[QWidget] = None,
        config: Optional[ReaderConfig] = None,
        preferences: Optional[PreferencesManager] = None,
    ) -> None:
        """Initializes the ReaderTab."""
        super().__init__(parent)

        self.settings: QSettings = QSettings("Leggio", "Reader")
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)

        # State Initialization
        self.config: ReaderConfig = config or ReaderConfig.from_settings(self.settings)
        self.preferences = preferences
        self.session: Optional[ReaderSession] = None
        self.book: Optional[BookInfo] = None
        self.last_snapshot: Optional[ReaderSnapshot] = None
        self.dark_mode: bool = self.settings.value("darkMode", False, type=bool)
        self._fullscreen_applied: bool = False
        self._unsubscribe = None

        self.engine = EngineThread(self)
        self.engine.start()
        self.snapshot_ready.connect(self.apply_snapshot)

        self.setup_ui()
        self.apply_theme()
        self._init_shortcuts()

    def _init_shortcuts(self) -> None:
        """Initializes keyboard shortcuts."""
        shortcuts = [
            ("Ctrl+Shift+S", self.sidebar.toggle_collapsed),
            ("Ctrl+R", self.retry_failed_pages),
        ]
        for seq, slot in shortcuts:
            QShortcut(QKeySequence(seq), self).activated.connect(slot)

    def setup_ui(self) -> None:
        """Constructs the visual hierarchy."""
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        self.toolbar = QWidget()
        self.toolbar.setFixedHeight(50)
        t_layout = QHBoxLayout(self.toolbar)
        self._setup_toolbar_buttons(t_layout)
        t_layout.addStretch()
        layout.addWidget(self.toolbar)

        body = QHBoxLayout()
        body.setContentsMargins(0, 0, 0, 0)
        body.setSpacing(0)

        self.viewport = PageViewport()
        self.viewport.page_gap = self.config.page_gap
        body.addWidget(self.viewport, 1)

        self._setup_viewport_overlays()
        self.viewport.installEventFilter(self)

        self.sidebar = OptionsSidebar(collapsed=self.config.sidebar_collapsed)
        self.sidebar.view_mode_selected.connect(self.set_view_mode)
        self.sidebar.zoom_step_requested.connect(
            lambda step: self.adjust_zoom(step * self.config.zoom_step)
        )
        self.sidebar.zoom_reset_requested.connect(self.reset_zoom)
        body.addWidget(self.sidebar)

        layout.addLayout(body)

    def _setup_toolbar_buttons(self, layout: QHBoxLayout) -> None:
        """Creates and configures standard toolbar buttons."""
        self.btn_view_mode = QPushButton("📄/📖")
        self.btn_view_mode.setToolTip("Toggle Single / Two Pages View (D)")
        self.btn_view_mode.setCheckable(True)
        self.btn_view_mode.clicked.connect(self.toggle_view_mode)

        self.btn_prev = QPushButton("◄")
        self.btn_prev.setToolTip("Previous Page (Left Arrow)")
        self.btn_prev.clicked.connect(self.prev_view)

        self.txt_page = QLineEdit()
        self.txt_page.setFixedWidth(50)
        self.txt_page.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.txt_page.returnPressed.connect(self.on_page_input_return)

        self.lbl_total = QLabel("/ 0")

        self.btn_next = QPushButton("►")
        self.btn_next.setToolTip("Next Page (Right Arrow)")
        self.btn_next.clicked.connect(self.next_view)

        self.btn_zoom_out = QPushButton("−")
        self.btn_zoom_out.setToolTip("Zoom Out (-)")
        self.btn_zoom_out.clicked.connect(lambda: self.adjust_zoom(-self.config.zoom_step))

        self.lbl_zoom = QLabel("100%")
        self.lbl_zoom.setFixedWidth(50)
        self.lbl_zoom.setAlignment(Qt.AlignmentFlag.AlignCenter)

        self.btn_zoom_in = QPushButton("+")
        self.btn_zoom_in.setToolTip("Zoom In (+)")
        self.btn_zoom_in.clicked.connect(lambda: self.adjust_zoom(self.config.zoom_step))

        self.btn_zoom_reset = QPushButton("1:1")
        self.btn_zoom_reset.setToolTip("Reset Zoom (0)")
        self.btn_zoom_reset.clicked.connect(self.reset_zoom)

        self.btn_fullscreen = QPushButton("⛶")
        self.btn_fullscreen.setToolTip("Toggle Fullscreen Reader Mode (F)")
        self.btn_fullscreen.clicked.connect(self.toggle_fullscreen)

        widgets = [
            self.btn_view_mode,
            self.btn_prev,
            self.txt_page,
            self.lbl_total,
            self.btn_next,
            self.btn_zoom_out,
            self.lbl_zoom,
            self.btn_zoom_in,
            self.btn_zoom_reset,
            self.btn_fullscreen,
        ]
        for w in widgets:
            layout.addWidget(w)

    def _setup_viewport_overlays(self) -> None:
        """Creates the arrows, page label and loading badge over the pages."""
        self.btn_nav_prev = QPushButton("‹", self.viewport)
        self.btn_nav_prev.setFixedSize(50, 50)
        self.btn_nav_prev.clicked.connect(self.prev_view)

        self.btn_nav_next = QPushButton("›", self.viewport)
        self.btn_nav_next.setFixedSize(50, 50)
        self.btn_nav_next.clicked.connect(self.next_view)

        self.controls = (self.btn_nav_prev, self.btn_nav_next)

        self.lbl_page_info = QLabel("", self.viewport)
        self.lbl_page_info.setAttribute(
            Qt.WidgetAttribute.WA_TransparentForMouseEvents, True
        )

        self.loading_overlay = LoadingOverlay(self.viewport)

    # --- Session lifecycle ---

    def load_book(
        self,
        book: BookInfo,
        source: Optional[str] = None,
        fetcher: Optional[ImageFetcher] = None,
    ) -> None:
        """
        Opens a book, replacing any session this tab already holds.

        Args:
            book: Metadata from the catalog.
            source: Image host, either an ``http(s)://`` base URL or a local
                directory. Defaults to the configured base URL.
            fetcher: Explicit image fetcher; skips the source lookup and uses
                the configured base URL as is.
        """
        self.close_session()

        config = self.config
        if fetcher is None:
            fetcher, base_url = fetcher_for(
                source or config.base_url or ".", config.request_timeout
            )
            config = config.with_overrides(base_url=base_url)

        self.book = book
        self.session = ReaderSession(book, fetcher, config, self.preferences)
        self._unsubscribe = self.session.subscribe(self.snapshot_ready.emit)
        self.apply_snapshot(self.session.snapshot())
        self.engine.submit(self.session.open())

    def close_session(self) -> None:
        """Tears down the current session on the engine loop."""
        session = self.session
        if session is None:
            return
        self.session = None
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        future = self.engine.submit(session.close())
        try:
            future.result(timeout=3)
        except Exception as e:
            logger.warning("Session for %s did not close cleanly: %s", session.book.book_id, e)
        session.cache.fetcher.close()
        self.viewport.clear_cache()

    def shutdown(self) -> None:
        """Closes the session and stops the engine thread."""
        self.close_session()
        self.engine.stop()

    def closeEvent(self, event) -> None:
        self.shutdown()
        super().closeEvent(event)

    # --- Commands (marshalled to the engine loop) ---

    def _session_call(self, name: str, *args) -> None:
        if self.session is None:
            return
        self.engine.call(getattr(self.session, name), *args)

    def next_view(self) -> None:
        """Next page or spread."""
        self._session_call("go_to_next_page")

    def prev_view(self) -> None:
        """Previous page or spread."""
        self._session_call("go_to_prev_page")

    def set_view_mode(self, mode: ViewMode) -> None:
        self._session_call("set_view_mode", mode)

    def toggle_view_mode(self) -> None:
        """Switches single/double view."""
        self._session_call("toggle_view_mode")

    def adjust_zoom(self, delta: float) -> None:
        self._session_call("adjust_zoom", delta)

    def reset_zoom(self) -> None:
        self._session_call("reset_zoom")

    def toggle_fullscreen(self) -> None:
        self._session_call("toggle_fullscreen")

    def reload_preferences(self) -> None:
        """Applies the stored view mode and zoom to the open book."""
        self._session_call("apply_preferences")

    def retry_failed_pages(self) -> None:
        """Requests the failed visible pages again."""
        if self.session is None or self.last_snapshot is None:
            return
        for tile in self.last_snapshot.tiles:
            if tile.failed:
                self.engine.submit(self.session.retry_page(tile.page))

    def on_page_input_return(self) -> None:
        """Navigates to the entered page number."""
        if self.session is None:
            return
        try:
            num = int(self.txt_page.text().strip())
            if not 1 <= num <= self.session.total_pages:
                raise ValueError
        except ValueError:
            if self.last_snapshot:
                self.txt_page.setText(str(self.last_snapshot.current_page))
            return
        self._session_call("go_to_page", num)
        self.setFocus()

    def apply_fullscreen(self, enabled: bool) -> None:
        """Enters or leaves the window's fullscreen reading mode."""
        from ...app import LeggioWindow

        window = self.window()
        if isinstance(window, LeggioWindow):
            window.set_reader_fullscreen(enabled)
        elif window is not None and window is not self:
            if enabled:
                window.showFullScreen()
            else:
                window.showNormal()

    # --- Qt events ---

    def eventFilter(self, source: QObject, event: QEvent) -> bool:
        """Routes viewport input to the gesture handlers."""
        if source is self.viewport and event.type() == QEvent.Type.Resize:
            self.position_overlays()
        if self.handle_viewport_event(source, event):
            return True
        return super().eventFilter(source, event)

    def _editing_focus(self) -> bool:
        focus = QApplication.focusWidget()
        return isinstance(focus, (QLineEdit, QTextEdit, QPlainTextEdit))

    def keyPressEvent(self, event: QKeyEvent) -> None:
        """Handles keyboard navigation and zoom."""
        key = event.key()
        mod = event.modifiers()
        fullscreen = bool(self.last_snapshot and self.last_snapshot.fullscreen)

        if key == Qt.Key.Key_Escape and fullscreen:
            self.toggle_fullscreen()
            event.accept()
            return

        if key == Qt.Key.Key_F11:
            self.toggle_fullscreen()
            event.accept()
            return

        editing = self._editing_focus()
        if mod == Qt.KeyboardModifier.NoModifier and not editing:
            if key == Qt.Key.Key_D:
                self.toggle_view_mode()
                event.accept()
                return
            elif key == Qt.Key.Key_F:
                self.toggle_fullscreen()
                event.accept()
                return

        name = qt_key_name(key)
        ctrl = bool(
            mod & (Qt.KeyboardModifier.ControlModifier | Qt.KeyboardModifier.MetaModifier)
        )
        if name and resolve_key_command(name, ctrl, editing) is not None:
            self._session_call("handle_key", name, ctrl, editing)
            event.accept()
            return

        super().keyPressEvent(event)
