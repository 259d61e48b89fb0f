import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6 import QtCore, QtGui, QtWidgets  # noqa: E402

from fakes import FakeFetcher  # noqa: E402
from leggio.app import LeggioWindow  # noqa: E402
from leggio.core.book import BookInfo  # noqa: E402
from leggio.core.config import ReaderConfig  # noqa: E402
from leggio.core.constants import InteractionMode, ViewMode  # noqa: E402
from leggio.core.managers import PreferencesManager  # noqa: E402
from leggio.core.session import ReaderSession  # noqa: E402
from leggio.ui.reader import ReaderTab  # noqa: E402
from leggio.ui.reader.utils import layout_tiles, qt_key_name  # noqa: E402

Qt = QtCore.Qt
QEvent = QtCore.QEvent
State = QtGui.QEventPoint.State

_QAPP = None


def _ensure_qapp():
    global _QAPP
    app = QtWidgets.QApplication.instance()
    if app is None:
        app = QtWidgets.QApplication([])
    _QAPP = app
    return _QAPP


def _settle(tab: ReaderTab) -> None:
    tab.engine.submit(tab.session.wait_until_settled()).result(timeout=5)
    # Let the queued snapshot signals reach the GUI thread.
    for _ in range(5):
        _QAPP.processEvents()


def test_qt_key_name() -> None:
    assert qt_key_name(QtCore.Qt.Key.Key_Left) == "ArrowLeft"
    assert qt_key_name(QtCore.Qt.Key.Key_Plus) == "+"
    assert qt_key_name(QtCore.Qt.Key.Key_A) is None


def test_layout_tiles_centres_a_spread() -> None:
    rects = layout_tiles([0.5, 0.5], width=1000, height=440, gap=20, padding=20)
    assert rects == [(290.0, 20.0, 200.0, 400.0), (510.0, 20.0, 200.0, 400.0)]


def test_layout_tiles_shrinks_wide_rows() -> None:
    rects = layout_tiles([1.0, 1.0], width=240, height=1000, gap=0, padding=20)
    assert [r[2] for r in rects] == [100.0, 100.0]
    assert rects[0][0] == 20.0
    assert layout_tiles([], 100, 100, 10) == []


def test_apply_snapshot_updates_controls(prefs_path) -> None:
    _ensure_qapp()
    tab = ReaderTab(config=ReaderConfig(), preferences=PreferencesManager(prefs_path))
    try:
        session = ReaderSession(BookInfo("book-ui", 5), FakeFetcher())
        session.go_to_page(5)
        tab.apply_snapshot(session.snapshot())

        assert tab.lbl_page_info.text() == "Page 5 of 5"
        assert tab.txt_page.text() == "5"
        assert tab.lbl_total.text() == "/ 5"
        assert tab.btn_prev.isEnabled()
        assert not tab.btn_next.isEnabled()
        assert not tab.btn_nav_next.isEnabled()
        assert tab.btn_view_mode.isChecked()
        assert tab.lbl_zoom.text() == "100%"
        assert tab.sidebar.btn_double.isChecked()
    finally:
        tab.shutdown()


def test_tab_drives_session_on_engine_thread(prefs_path) -> None:
    _ensure_qapp()
    fetcher = FakeFetcher()
    tab = ReaderTab(config=ReaderConfig(), preferences=PreferencesManager(prefs_path))
    try:
        tab.load_book(BookInfo("book-ui", 5), fetcher=fetcher)
        _settle(tab)
        assert tab.last_snapshot.visible_pages == (1, 2)
        assert not tab.last_snapshot.is_loading
        assert all(t.loaded for t in tab.last_snapshot.tiles)
        assert not tab.loading_overlay.isVisible()

        tab.next_view()
        _settle(tab)
        assert tab.last_snapshot.visible_pages == (3, 4)
        assert tab.lbl_page_info.text() == "Pages 3-4 of 5"

        tab.adjust_zoom(20)
        _settle(tab)
        assert tab.lbl_zoom.text() == "120%"
    finally:
        tab.shutdown()
    assert fetcher.closed


def test_page_input_rejects_out_of_range(prefs_path) -> None:
    _ensure_qapp()
    tab = ReaderTab(config=ReaderConfig(), preferences=PreferencesManager(prefs_path))
    try:
        tab.load_book(BookInfo("book-ui", 5), fetcher=FakeFetcher())
        _settle(tab)
        tab.txt_page.setText("9")
        tab.on_page_input_return()
        assert tab.txt_page.text() == "1"

        tab.txt_page.setText("4")
        tab.on_page_input_return()
        _settle(tab)
        assert tab.last_snapshot.current_page == 3
    finally:
        tab.shutdown()


def _shown_tab(prefs_path) -> ReaderTab:
    _ensure_qapp()
    tab = ReaderTab(
        config=ReaderConfig(zoom_throttle=0.0),
        preferences=PreferencesManager(prefs_path),
    )
    tab.resize(1000, 800)
    tab.show()
    _QAPP.processEvents()
    tab.setFocus()
    tab.load_book(BookInfo("book-ui", 5), fetcher=FakeFetcher())
    _settle(tab)
    return tab


def _wheel(tab: ReaderTab, dy: int, mods=Qt.KeyboardModifier.NoModifier) -> None:
    pos = QtCore.QPointF(200, 200)
    event = QtGui.QWheelEvent(
        pos,
        pos,
        QtCore.QPoint(0, 0),
        QtCore.QPoint(0, dy),
        Qt.MouseButton.NoButton,
        mods,
        Qt.ScrollPhase.NoScrollPhase,
        False,
    )
    QtWidgets.QApplication.sendEvent(tab.viewport, event)
    _settle(tab)


def _mouse(tab: ReaderTab, etype, x: float, y: float, buttons=Qt.MouseButton.LeftButton) -> None:
    pos = QtCore.QPointF(x, y)
    button = Qt.MouseButton.NoButton if etype == QEvent.Type.MouseMove else Qt.MouseButton.LeftButton
    event = QtGui.QMouseEvent(etype, pos, pos, button, buttons, Qt.KeyboardModifier.NoModifier)
    QtWidgets.QApplication.sendEvent(tab.viewport, event)


def _key(tab: ReaderTab, key, mods=Qt.KeyboardModifier.NoModifier) -> None:
    tab.keyPressEvent(QtGui.QKeyEvent(QEvent.Type.KeyPress, key, mods))
    _settle(tab)


class FakePoint:
    def __init__(self, x: float, y: float, state) -> None:
        self._pos = QtCore.QPointF(x, y)
        self._state = state

    def position(self) -> QtCore.QPointF:
        return self._pos

    def state(self):
        return self._state


class FakeTouch:
    def __init__(self, etype, *points: FakePoint) -> None:
        self._type = etype
        self._points = list(points)

    def type(self):
        return self._type

    def points(self):
        return self._points


def _touch(tab: ReaderTab, etype, *points: FakePoint) -> None:
    tab._handle_touch(FakeTouch(etype, *points))
    _settle(tab)


def test_ctrl_or_meta_wheel_zooms(prefs_path) -> None:
    tab = _shown_tab(prefs_path)
    try:
        _wheel(tab, 120, Qt.KeyboardModifier.ControlModifier)
        assert tab.last_snapshot.zoom == 110

        _wheel(tab, 120, Qt.KeyboardModifier.MetaModifier)
        assert tab.last_snapshot.zoom == 120

        _wheel(tab, -120, Qt.KeyboardModifier.ControlModifier)
        assert tab.last_snapshot.zoom == 110
        assert tab.lbl_zoom.text() == "110%"

        _wheel(tab, 120)
        assert tab.last_snapshot.zoom == 110
    finally:
        tab.shutdown()


def test_mouse_drag_pans_viewport(prefs_path) -> None:
    tab = _shown_tab(prefs_path)
    try:
        x = tab.viewport.width() / 2
        _mouse(tab, QEvent.Type.MouseButtonPress, x, 20)
        _mouse(tab, QEvent.Type.MouseMove, x + 50, 60)
        _settle(tab)
        assert tab.last_snapshot.interaction_mode == InteractionMode.PANNING

        _mouse(tab, QEvent.Type.MouseButtonRelease, x + 50, 60, Qt.MouseButton.NoButton)
        _settle(tab)
        t = tab.last_snapshot.transform
        assert (t.translate_x, t.translate_y) == (50, 40)
        assert tab.last_snapshot.interaction_mode == InteractionMode.IDLE
    finally:
        tab.shutdown()


def test_press_on_navigation_arrow_does_not_pan(prefs_path) -> None:
    tab = _shown_tab(prefs_path)
    try:
        centre = QtCore.QPointF(tab.btn_nav_prev.geometry().center())
        _mouse(tab, QEvent.Type.MouseButtonPress, centre.x(), centre.y())
        _mouse(tab, QEvent.Type.MouseMove, centre.x() + 80, centre.y())
        _settle(tab)
        assert tab.last_snapshot.interaction_mode == InteractionMode.IDLE
        assert tab.last_snapshot.transform.translate_x == 0
    finally:
        tab.shutdown()


def test_touch_events_pan_pinch_and_cancel(prefs_path) -> None:
    tab = _shown_tab(prefs_path)
    try:
        _touch(tab, QEvent.Type.TouchBegin, FakePoint(100, 100, State.Pressed))
        _touch(tab, QEvent.Type.TouchUpdate, FakePoint(160, 140, State.Updated))
        t = tab.last_snapshot.transform
        assert (t.translate_x, t.translate_y) == (60, 40)

        _touch(tab, QEvent.Type.TouchCancel)
        assert tab.last_snapshot.interaction_mode == InteractionMode.IDLE

        _touch(
            tab,
            QEvent.Type.TouchBegin,
            FakePoint(400, 300, State.Pressed),
            FakePoint(600, 300, State.Pressed),
        )
        assert tab.last_snapshot.interaction_mode == InteractionMode.PINCHING
        _touch(
            tab,
            QEvent.Type.TouchUpdate,
            FakePoint(300, 300, State.Updated),
            FakePoint(700, 300, State.Updated),
        )
        assert tab.last_snapshot.zoom == 200

        _touch(
            tab,
            QEvent.Type.TouchEnd,
            FakePoint(300, 300, State.Released),
            FakePoint(700, 300, State.Released),
        )
        assert tab.last_snapshot.interaction_mode == InteractionMode.IDLE
        assert tab.last_snapshot.zoom == 200
    finally:
        tab.shutdown()


def test_new_touch_on_arrow_is_not_a_pan(prefs_path) -> None:
    tab = _shown_tab(prefs_path)
    try:
        centre = QtCore.QPointF(tab.btn_nav_next.geometry().center())
        _touch(
            tab,
            QEvent.Type.TouchUpdate,
            FakePoint(tab.viewport.width() / 2, 20, State.Released),
            FakePoint(centre.x(), centre.y(), State.Pressed),
        )
        assert tab.last_snapshot.interaction_mode == InteractionMode.IDLE

        _touch(tab, QEvent.Type.TouchUpdate, FakePoint(centre.x() - 90, centre.y(), State.Updated))
        assert tab.last_snapshot.transform.translate_x == 0
    finally:
        tab.shutdown()


def test_keys_navigate_and_zoom(prefs_path) -> None:
    tab = _shown_tab(prefs_path)
    try:
        _key(tab, Qt.Key.Key_Right)
        assert tab.last_snapshot.current_page == 3

        _key(tab, Qt.Key.Key_Up, Qt.KeyboardModifier.ControlModifier)
        assert tab.last_snapshot.zoom == 110

        _key(tab, Qt.Key.Key_Down, Qt.KeyboardModifier.MetaModifier)
        assert tab.last_snapshot.zoom == 100

        _key(tab, Qt.Key.Key_Plus)
        assert tab.last_snapshot.zoom == 110

        _key(tab, Qt.Key.Key_D)
        assert tab.last_snapshot.view_mode == ViewMode.SINGLE

        _key(tab, Qt.Key.Key_Left)
        assert tab.last_snapshot.current_page == 2
    finally:
        tab.shutdown()


def test_shortcuts_ignored_while_typing_page(prefs_path, monkeypatch) -> None:
    tab = _shown_tab(prefs_path)
    try:

        class EditingApp:
            @staticmethod
            def focusWidget():
                return tab.txt_page

        monkeypatch.setattr("leggio.ui.reader.tab.QApplication", EditingApp)
        _key(tab, Qt.Key.Key_Right)
        _key(tab, Qt.Key.Key_Plus)
        _key(tab, Qt.Key.Key_D)

        snap = tab.last_snapshot
        assert snap.current_page == 1
        assert snap.zoom == 100
        assert snap.view_mode == ViewMode.DOUBLE
    finally:
        tab.shutdown()


def test_reset_preferences_reseeds_open_tabs(prefs_path) -> None:
    _ensure_qapp()
    window = LeggioWindow(
        ReaderConfig(zoom_throttle=0.0), PreferencesManager(prefs_path)
    )
    tab = window.new_tab()
    try:
        tab.load_book(BookInfo("book-ui", 5), fetcher=FakeFetcher())
        _settle(tab)
        tab.set_view_mode(ViewMode.SINGLE)
        tab.adjust_zoom(50)
        _settle(tab)
        assert tab.last_snapshot.view_mode == ViewMode.SINGLE
        assert tab.last_snapshot.zoom == 150

        action = next(
            a
            for a in window.menuBar().findChildren(QtGui.QAction)
            if a.text() == "Reset Reader Preferences"
        )
        action.trigger()
        _settle(tab)

        assert tab.last_snapshot.view_mode == ViewMode.DOUBLE
        assert tab.last_snapshot.zoom == 100
        assert tab.sidebar.btn_double.isChecked()
    finally:
        for reader in window.readers():
            reader.shutdown()
