"""
Rendering Mixin.

Maps session snapshots onto the reader widgets.
"""

from PySide6.QtCore import Qt

from ....core.constants import ViewMode
from ....core.session import ReaderSnapshot


class RenderingMixin:
    """Methods for reflecting reader state in the UI."""

    def apply_snapshot(self, snap: ReaderSnapshot) -> None:
        """Updates every widget from a session snapshot (GUI thread only)."""
        self.last_snapshot = snap
        self.viewport.set_snapshot(snap)

        self.lbl_page_info.setText(snap.page_info_text)
        if not self.txt_page.hasFocus():
            self.txt_page.setText(str(snap.current_page))
        self.lbl_total.setText(f"/ {snap.total_pages}")

        self.btn_prev.setEnabled(snap.can_go_prev)
        self.btn_next.setEnabled(snap.can_go_next)
        self.btn_nav_prev.setEnabled(snap.can_go_prev)
        self.btn_nav_next.setEnabled(snap.can_go_next)

        self.btn_view_mode.setChecked(snap.view_mode == ViewMode.DOUBLE)
        self.lbl_zoom.setText(f"{snap.zoom:.0f}%")
        self.sidebar.sync(snap.view_mode, snap.zoom)

        self.loading_overlay.setVisible(snap.is_loading)
        self.position_overlays()

        if snap.fullscreen != self._fullscreen_applied:
            self._fullscreen_applied = snap.fullscreen
            self.apply_fullscreen(snap.fullscreen)

    def position_overlays(self) -> None:
        """Places the navigation arrows, page label and loading badge."""
        vw, vh = self.viewport.width(), self.viewport.height()

        for btn, left in ((self.btn_nav_prev, True), (self.btn_nav_next, False)):
            x = 20 if left else vw - btn.width() - 20
            btn.move(x, (vh - btn.height()) // 2)
            btn.raise_()

        self.lbl_page_info.adjustSize()
        self.lbl_page_info.move(
            (vw - self.lbl_page_info.width()) // 2,
            vh - self.lbl_page_info.height() - 20,
        )
        self.lbl_page_info.raise_()

        self.loading_overlay.recenter()
        self.loading_overlay.raise_()

    def apply_theme(self) -> None:
        """Updates colors for dark/light mode."""
        bg = "#1e1e1e" if self.dark_mode else "#f0f0f0"
        fg = "#ddd" if self.dark_mode else "#111"
        self.viewport.dark_mode = self.dark_mode

        self.toolbar.setStyleSheet(f"""
            QWidget {{ background: {bg}; color: {fg}; }}
            QPushButton {{
                border: 1px solid transparent;
                padding: 6px;
                border-radius: 4px;
                background: transparent;
            }}
            QPushButton:hover {{
                background: rgba(128, 128, 128, 0.2);
            }}
            QPushButton:checked {{
                background-color: rgba(60, 140, 255, 0.3);
                border: 1px solid #50a0ff;
            }}
        """)

        nav_style = """
            QPushButton {
                background: rgba(255, 255, 255, 0.8);
                color: #1f2937;
                border-radius: 25px;
                font-size: 18px;
            }
            QPushButton:hover { background: rgba(255, 255, 255, 0.9); }
            QPushButton:disabled { background: rgba(255, 255, 255, 0.4); color: #9ca3af; }
        """
        self.btn_nav_prev.setStyleSheet(nav_style)
        self.btn_nav_next.setStyleSheet(nav_style)

        self.lbl_page_info.setStyleSheet(
            "background: rgba(255, 255, 255, 0.8); color: #1f2937;"
            " padding: 8px 16px; border-radius: 16px;"
        )
        self.lbl_page_info.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.viewport.update()
