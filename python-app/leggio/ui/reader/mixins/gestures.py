"""
Gestures Mixin.

Translates Qt mouse, touch and wheel events on the page viewport into calls
on the session's viewport transform.
"""

from typing import List, Tuple

from PySide6.QtCore import QEvent, QObject, QPointF, Qt
from PySide6.QtGui import QEventPoint


class GesturesMixin:
    """Methods for pan, pinch and wheel handling."""

    def _in_control(self, pos: QPointF) -> bool:
        """True if the point is over a navigation control."""
        child = self.viewport.childAt(pos.toPoint())
        while child is not None and child is not self.viewport:
            if child in self.controls:
                return True
            child = child.parentWidget()
        return False

    def _viewport_call(self, name: str, *args) -> None:
        if self.session is None:
            return
        self.engine.call(getattr(self.session.viewport, name), *args)

    def handle_viewport_event(self, source: QObject, event: QEvent) -> bool:
        """Handles pointer interaction on the page viewport; True if consumed."""
        if source is self.viewport and self.session is not None:
            etype = event.type()

            if etype == QEvent.Type.MouseButtonPress:
                if event.button() == Qt.MouseButton.LeftButton:
                    pos = event.position()
                    self._viewport_call(
                        "pointer_down", pos.x(), pos.y(), self._in_control(pos)
                    )
                    return True

            elif etype == QEvent.Type.MouseMove:
                pos = event.position()
                self._viewport_call("pointer_move", pos.x(), pos.y())
                return True

            elif etype == QEvent.Type.MouseButtonRelease:
                if event.button() == Qt.MouseButton.LeftButton:
                    self._viewport_call("pointer_up")
                    return True

            elif etype in (
                QEvent.Type.TouchBegin,
                QEvent.Type.TouchUpdate,
                QEvent.Type.TouchEnd,
                QEvent.Type.TouchCancel,
            ):
                self._handle_touch(event)
                event.accept()
                return True

            elif etype == QEvent.Type.Wheel:
                mods = event.modifiers()
                ctrl = bool(
                    mods
                    & (
                        Qt.KeyboardModifier.ControlModifier
                        | Qt.KeyboardModifier.MetaModifier
                    )
                )
                if ctrl:
                    # Qt reports wheel-up as positive; the engine expects DOM sign.
                    self._viewport_call("wheel", -event.angleDelta().y(), True)
                    event.accept()
                    return True

        return False

    def _handle_touch(self, event) -> None:
        etype = event.type()
        points = event.points()
        active: List[Tuple[float, float]] = [
            (p.position().x(), p.position().y())
            for p in points
            if p.state() != QEventPoint.State.Released
        ]

        if etype == QEvent.Type.TouchCancel:
            self._viewport_call("touches_changed", [])
            return

        changed = etype in (QEvent.Type.TouchBegin, QEvent.Type.TouchEnd) or any(
            p.state() in (QEventPoint.State.Pressed, QEventPoint.State.Released)
            for p in points
        )
        if changed:
            pressed = [p for p in points if p.state() == QEventPoint.State.Pressed]
            in_control = bool(pressed) and self._in_control(pressed[-1].position())
            self._viewport_call("touches_changed", active, in_control)
        else:
            self._viewport_call("touches_moved", active)
