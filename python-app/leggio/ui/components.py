from typing import Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QButtonGroup,
    QFrame,
    QHBoxLayout,
    QLabel,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

from ..core.constants import ViewMode


class OptionsSidebar(QWidget):
    """
    A collapsible settings panel for the page reader.
    Emits signals when the view mode or the zoom is changed.
    """

    # Signals to notify the ReaderTab
    view_mode_selected = Signal(object)  # ViewMode
    zoom_step_requested = Signal(int)  # +1 zoom in, -1 zoom out
    zoom_reset_requested = Signal()
    collapsed_changed = Signal(bool)

    EXPANDED_WIDTH = 250
    COLLAPSED_WIDTH = 22

    def __init__(self, parent: Optional[QWidget] = None, collapsed: bool = True) -> None:
        super().__init__(parent)
        self.setObjectName("optionsSidebar")
        self.setStyleSheet("""
            #optionsSidebar {
                background-color: #ffffff;
                border-left: 1px solid rgba(0, 0, 0, 0.5);
                color: #1f2937;
            }
            QToolButton {
                border: none;
                padding: 10px;
                font-size: 16px;
                color: #ffffff;
                background-color: #3b82f6;
            }
            QToolButton:hover { background-color: #2563eb; }
            QToolButton:checked { background-color: #1d4ed8; }
            #sidebarToggle {
                border-radius: 11px;
                padding: 0px;
                font-size: 12px;
            }
        """)

        outer = QHBoxLayout(self)
        outer.setContentsMargins(0, 0, 0, 0)
        outer.setSpacing(0)

        self.btn_toggle = QToolButton()
        self.btn_toggle.setObjectName("sidebarToggle")
        self.btn_toggle.setFixedSize(22, 22)
        self.btn_toggle.setToolTip("Toggle sidebar")
        self.btn_toggle.clicked.connect(self.toggle_collapsed)
        outer.addWidget(self.btn_toggle, 0, Qt.AlignmentFlag.AlignTop)

        self.panel = QWidget()
        panel_layout = QVBoxLayout(self.panel)
        panel_layout.setContentsMargins(24, 24, 24, 24)
        panel_layout.setSpacing(10)

        title = QLabel("Settings")
        title.setStyleSheet("font-weight: bold; padding-bottom: 10px;")
        panel_layout.addWidget(title)
        self._add_separator(panel_layout)

        # --- Section 1: View Mode ---
        panel_layout.addWidget(QLabel("View Mode"))
        mode_row = QHBoxLayout()
        mode_row.setSpacing(0)
        self.mode_group = QButtonGroup(self)
        self.mode_group.setExclusive(True)
        self.btn_single = self._add_mode_btn("📄", ViewMode.SINGLE, "Single Page View", mode_row)
        self.btn_double = self._add_mode_btn("📖", ViewMode.DOUBLE, "Two Pages View", mode_row)
        panel_layout.addLayout(mode_row)

        # --- Section 2: Zoom ---
        panel_layout.addWidget(QLabel("Zoom"))
        zoom_row = QHBoxLayout()
        zoom_row.setSpacing(0)

        self.btn_zoom_out = QToolButton()
        self.btn_zoom_out.setText("−")
        self.btn_zoom_out.setToolTip("Zoom Out")
        self.btn_zoom_out.clicked.connect(lambda: self.zoom_step_requested.emit(-1))
        zoom_row.addWidget(self.btn_zoom_out)

        self.btn_zoom_reset = QToolButton()
        self.btn_zoom_reset.setText("🔍")
        self.btn_zoom_reset.setToolTip("Reset Zoom")
        self.btn_zoom_reset.clicked.connect(self.zoom_reset_requested.emit)
        zoom_row.addWidget(self.btn_zoom_reset)

        self.btn_zoom_in = QToolButton()
        self.btn_zoom_in.setText("+")
        self.btn_zoom_in.setToolTip("Zoom In")
        self.btn_zoom_in.clicked.connect(lambda: self.zoom_step_requested.emit(1))
        zoom_row.addWidget(self.btn_zoom_in)

        panel_layout.addLayout(zoom_row)

        self.lbl_zoom = QLabel("100%")
        self.lbl_zoom.setAlignment(Qt.AlignmentFlag.AlignCenter)
        panel_layout.addWidget(self.lbl_zoom)
        panel_layout.addStretch()

        outer.addWidget(self.panel)

        self.collapsed = not collapsed
        self.set_collapsed(collapsed)

    def _add_mode_btn(self, icon, mode, tooltip, layout):
        btn = QToolButton()
        btn.setText(icon)
        btn.setCheckable(True)
        btn.setToolTip(tooltip)
        btn.clicked.connect(lambda: self.view_mode_selected.emit(mode))
        self.mode_group.addButton(btn)
        layout.addWidget(btn)
        return btn

    def _add_separator(self, layout):
        line = QFrame()
        line.setFrameShape(QFrame.Shape.HLine)
        line.setFrameShadow(QFrame.Shadow.Sunken)
        layout.addWidget(line)

    def set_collapsed(self, collapsed: bool) -> None:
        if collapsed == self.collapsed:
            return
        self.collapsed = collapsed
        self.panel.setVisible(not collapsed)
        self.btn_toggle.setText("◀" if collapsed else "▶")
        self.setFixedWidth(self.COLLAPSED_WIDTH if collapsed else self.EXPANDED_WIDTH)
        self.collapsed_changed.emit(collapsed)

    def toggle_collapsed(self) -> None:
        self.set_collapsed(not self.collapsed)

    def sync(self, view_mode: ViewMode, zoom: float) -> None:
        """Reflects the session state without emitting signals."""
        btn = self.btn_single if view_mode == ViewMode.SINGLE else self.btn_double
        if not btn.isChecked():
            btn.setChecked(True)
        self.lbl_zoom.setText(f"{zoom:.0f}%")
