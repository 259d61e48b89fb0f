import argparse
import logging
import os
import sys
from typing import List, Optional

from PySide6.QtCore import QSettings, Qt
from PySide6.QtGui import QKeyEvent
from PySide6.QtWidgets import QApplication, QFileDialog, QMainWindow, QTabWidget

from .core.book import BookInfo, InvalidBookError, load_book_info
from .core.config import ReaderConfig
from .core.constants import ViewMode
from .core.managers import PreferencesManager
from .ui.reader import ReaderTab

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class LeggioWindow(QMainWindow):
    """
    The Main Window Manager.
    Handles global application state, window chrome, and tab management.
    """

    def __init__(
        self,
        config: Optional[ReaderConfig] = None,
        preferences: Optional[PreferencesManager] = None,
    ) -> None:
        super().__init__()
        self.setWindowTitle("Leggio Reader")
        self.resize(1200, 900)

        self.settings = QSettings("Leggio", "Reader")
        self.dark_mode = self.settings.value("darkMode", False, type=bool)
        self.config = config or ReaderConfig.from_settings(self.settings)
        self.preferences = preferences or PreferencesManager()

        self._reader_fullscreen = False
        self._was_maximized = False

        self.tabs = QTabWidget()
        self.tabs.setTabsClosable(True)
        self.tabs.tabCloseRequested.connect(self.close_tab)
        self.setCentralWidget(self.tabs)

        self.setup_menu()

    def setup_menu(self) -> None:
        menubar = self.menuBar()

        file_menu = menubar.addMenu("File")

        open_action = file_menu.addAction("Open Book")
        open_action.setShortcut("Ctrl+O")
        open_action.triggered.connect(self.open_book_dialog)

        new_tab_action = file_menu.addAction("New Tab")
        new_tab_action.setShortcut("Ctrl+T")
        new_tab_action.triggered.connect(lambda: self.new_tab())

        view_menu = menubar.addMenu("View")

        theme_action = view_menu.addAction("Toggle Dark Mode")
        theme_action.triggered.connect(self.toggle_theme)

        fullscreen_action = view_menu.addAction("Fullscreen Reader")
        fullscreen_action.setShortcut("F11")
        fullscreen_action.triggered.connect(self.toggle_reader_fullscreen)

        reset_action = view_menu.addAction("Reset Reader Preferences")
        reset_action.triggered.connect(self.reset_preferences)

    def new_tab(
        self, book: Optional[BookInfo] = None, source: Optional[str] = None
    ) -> ReaderTab:
        """
        Opens a reader tab, optionally loading a book into it.

        Args:
            book: Book to open.
            source: Image host for the book (URL or directory).

        Returns:
            The new tab.
        """
        reader = ReaderTab(config=self.config, preferences=self.preferences)
        title = "New Tab"

        if book is not None:
            reader.load_book(book, source)
            title = book.display_title
            self._remember(book, source)

        self.tabs.addTab(reader, title)
        self.tabs.setCurrentWidget(reader)
        return reader

    def open_book(self, book: BookInfo, source: Optional[str] = None) -> None:
        """Loads a book into the current empty tab or a new one."""
        current = self.tabs.currentWidget()
        if isinstance(current, ReaderTab) and current.session is None:
            current.load_book(book, source)
            self.tabs.setTabText(self.tabs.currentIndex(), book.display_title)
            self._remember(book, source)
        else:
            self.new_tab(book, source)

    def open_book_dialog(self) -> None:
        path, _ = QFileDialog.getOpenFileName(
            self, "Open Book", "", "Book Metadata (*.json)"
        )
        if not path:
            return
        try:
            book = load_book_info(path)
        except InvalidBookError as e:
            logger.warning("%s", e)
            return
        self.open_book(book, self.config.base_url or os.path.dirname(path))

    def restore_last_book(self) -> bool:
        """Reopens the book read last, if its details were stored."""
        book_id = self.settings.value("lastBookId", "", type=str)
        pages = self.settings.value("lastPagesCount", 0, type=int)
        if not book_id:
            return False
        try:
            book = BookInfo(
                book_id, pages, self.settings.value("lastTitle", "", type=str)
            ).validate()
        except InvalidBookError as e:
            logger.info("Not restoring last book: %s", e)
            return False
        source = self.settings.value("lastSource", "", type=str) or None
        self.new_tab(book, source)
        return True

    def _remember(self, book: BookInfo, source: Optional[str]) -> None:
        self.settings.setValue("lastBookId", book.book_id)
        self.settings.setValue("lastPagesCount", book.total_pages)
        self.settings.setValue("lastTitle", book.title)
        self.settings.setValue("lastSource", source or "")

    def close_tab(self, index: int) -> None:
        widget = self.tabs.widget(index)
        self.tabs.removeTab(index)
        if isinstance(widget, ReaderTab):
            widget.shutdown()
        if widget:
            widget.deleteLater()

    def reset_preferences(self) -> None:
        """Restores default preferences and applies them to every open book."""
        self.preferences.reset_to_defaults()
        for reader in self.readers():
            reader.reload_preferences()

    def readers(self) -> List[ReaderTab]:
        return [
            w
            for w in (self.tabs.widget(i) for i in range(self.tabs.count()))
            if isinstance(w, ReaderTab)
        ]

    def toggle_reader_fullscreen(self) -> None:
        """Asks the active reader to flip its fullscreen state."""
        current = self.tabs.currentWidget()
        if isinstance(current, ReaderTab) and current.session is not None:
            current.toggle_fullscreen()
        else:
            self.set_reader_fullscreen(not self._reader_fullscreen)

    def set_reader_fullscreen(self, enabled: bool) -> None:
        """
        Enters or leaves 'Zen Mode' reading.
        Hides OS chrome, tab bars, and toolbars for an immersive experience.
        """
        if enabled == self._reader_fullscreen:
            return
        self._reader_fullscreen = enabled

        if enabled:
            self._was_maximized = self.isMaximized()
            self.menuBar().hide()
            self.tabs.tabBar().hide()
            self._set_tabs_toolbar_visible(False)
            self.showFullScreen()
        else:
            self.menuBar().show()
            self.tabs.tabBar().show()
            self._set_tabs_toolbar_visible(True)
            if self._was_maximized:
                self.showMaximized()
            else:
                self.showNormal()

    def _set_tabs_toolbar_visible(self, visible: bool) -> None:
        for reader in self.readers():
            reader.toolbar.setVisible(visible)

    def toggle_theme(self) -> None:
        self.dark_mode = not self.dark_mode
        self.settings.setValue("darkMode", self.dark_mode)
        for reader in self.readers():
            reader.dark_mode = self.dark_mode
            reader.apply_theme()

    def keyPressEvent(self, event: QKeyEvent) -> None:
        if event.key() == Qt.Key.Key_Escape and self._reader_fullscreen:
            self.toggle_reader_fullscreen()
            event.accept()
            return

        super().keyPressEvent(event)

    def closeEvent(self, event) -> None:
        for reader in self.readers():
            reader.shutdown()
        super().closeEvent(event)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="leggio", description="Paginated page-image book reader."
    )
    parser.add_argument(
        "metadata", nargs="?", help="book.json with bookId, pagesCount and title"
    )
    parser.add_argument("--book-id", help="catalog identifier of the book")
    parser.add_argument("--pages", type=int, help="number of pages in the book")
    parser.add_argument("--title", default="", help="title shown on the tab")
    parser.add_argument(
        "--source", help="image host: http(s) base URL or a local directory"
    )
    parser.add_argument(
        "--view-mode",
        choices=[m.value for m in ViewMode],
        help="view mode to start in (stored as the new preference)",
    )
    parser.add_argument(
        "--preload-buffer", type=int, help="pages preloaded around the current page"
    )
    parser.add_argument(
        "--strict-id",
        action="store_true",
        help="require catalog ids of the form book-...",
    )
    parser.add_argument(
        "--log-level", default="WARNING", choices=LOG_LEVELS, type=str.upper
    )
    return parser


def book_from_args(
    parser: argparse.ArgumentParser, args: argparse.Namespace
) -> Optional[BookInfo]:
    """
    Builds the book to open from parsed arguments.

    Returns None when neither a metadata file nor a book id was given.
    Invalid input terminates through ``parser.error``.
    """
    try:
        if args.metadata:
            book = load_book_info(args.metadata, args.book_id)
            if args.title:
                book = BookInfo(book.book_id, book.total_pages, args.title)
        elif args.book_id:
            if args.pages is None:
                parser.error("--pages is required with --book-id")
            book = BookInfo(args.book_id, args.pages, args.title)
        else:
            return None
        return book.validate(strict=args.strict_id)
    except InvalidBookError as e:
        parser.error(str(e))


def run(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    book = book_from_args(parser, args)

    app = QApplication(sys.argv[:1])
    app.setOrganizationName("Leggio")
    app.setApplicationName("Reader")

    settings = QSettings("Leggio", "Reader")
    config = ReaderConfig.from_settings(settings).with_overrides(
        preload_buffer=args.preload_buffer
    )
    preferences = PreferencesManager()
    if args.view_mode:
        preferences.write({"viewMode": ViewMode(args.view_mode)})

    window = LeggioWindow(config, preferences)
    if book is not None:
        source = args.source
        if source is None and args.metadata and not config.base_url:
            source = os.path.dirname(os.path.abspath(args.metadata))
        window.new_tab(book, source)
    elif not window.restore_last_book():
        window.new_tab()

    window.show()
    sys.exit(app.exec())
