"""
Viewport Transform.

Owns the pan offset and zoom of the page view and turns pointer, touch,
wheel and keyboard input into a 2D translate-then-scale transform. The engine
holds no widget references; it exposes the interaction mode so the renderer
can choose a cursor.
"""

import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from .config import ReaderConfig
from .constants import DEFAULT_ZOOM, InteractionMode, KeyCommand

Point = Tuple[float, float]


@dataclass(frozen=True)
class Transform:
    """A translate-then-scale transform, as applied to the pages container."""

    translate_x: float = 0.0
    translate_y: float = 0.0
    scale: float = 1.0

    def css(self) -> str:
        """Renders the equivalent CSS transform string."""
        return (
            f"translate3d({self.translate_x:g}px, {self.translate_y:g}px, 0) "
            f"scale({self.scale:g})"
        )


@dataclass(frozen=True)
class PinchGestureState:
    """Baseline captured when the second finger touches down."""

    initial_distance: float
    initial_zoom: float
    initial_midpoint: Point
    initial_pan: Point


class Throttle:
    """Lets an action through at most once per interval."""

    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.interval = interval
        self._clock = clock
        self._last: Optional[float] = None

    def ready(self) -> bool:
        now = self._clock()
        if self._last is not None and now - self._last < self.interval:
            return False
        self._last = now
        return True


def _distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def _midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) / 2, (a[1] + b[1]) / 2)


class ViewportTransform:
    """
    Pan/zoom state machine over IDLE, PANNING and PINCHING.

    Zoom is a percentage clamped to the configured range. Pan is in pixels
    and unconstrained.
    """

    def __init__(
        self,
        config: Optional[ReaderConfig] = None,
        zoom: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        on_change: Optional[Callable[[], None]] = None,
        on_zoom_committed: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.config = config or ReaderConfig()
        self._clock = clock
        self.on_change = on_change
        self.on_zoom_committed = on_zoom_committed

        self.zoom: float = self.config.clamp_zoom(
            self.config.zoom if zoom is None else zoom
        )
        self.pan: Point = (0.0, 0.0)
        self.mode: InteractionMode = InteractionMode.IDLE

        self._drag_start: Point = (0.0, 0.0)
        self._drag_baseline: Point = (0.0, 0.0)
        self.pinch: Optional[PinchGestureState] = None
        self._last_tap: Optional[float] = None
        # (x, y, time) of a touch-down that may still turn out to be a tap.
        self._tap_down: Optional[Tuple[float, float, float]] = None
        self._step_throttle = Throttle(self.config.zoom_throttle, clock)

    @property
    def transform(self) -> Transform:
        return Transform(self.pan[0], self.pan[1], self.zoom / 100.0)

    # --- Zoom ---

    def set_zoom(self, value: float) -> bool:
        """Sets the zoom percentage (clamped); returns True if it changed."""
        new_zoom = self.config.clamp_zoom(value)
        if new_zoom == self.zoom:
            return False
        self.zoom = new_zoom
        self._changed()
        return True

    def adjust_zoom(self, delta: float) -> bool:
        """Adds ``delta`` percent to the zoom, clamped to the range."""
        changed = self.set_zoom(self.zoom + delta)
        if changed:
            self._commit_zoom()
        return changed

    def step_zoom(self, direction: int) -> bool:
        """
        Applies one discrete zoom step (wheel notch or key press).

        Steps closer together than the throttle interval are dropped so that
        a fast wheel or a held key cannot run the zoom away.
        """
        if not self._step_throttle.ready():
            return False
        return self.adjust_zoom(self.config.zoom_step * (1 if direction > 0 else -1))

    def reset(self) -> None:
        """Restores 100% zoom and centres the view."""
        zoom_changed = self.zoom != DEFAULT_ZOOM
        self.zoom = DEFAULT_ZOOM
        self.pan = (0.0, 0.0)
        self._drag_baseline = (0.0, 0.0)
        self._changed()
        if zoom_changed:
            self._commit_zoom()

    def reset_pan(self) -> None:
        """Centres the view, keeping the zoom."""
        self.pan = (0.0, 0.0)
        self._drag_baseline = (0.0, 0.0)
        self._changed()

    def wheel(self, delta_y: float, ctrl: bool) -> bool:
        """
        Handles a wheel event.

        Only Ctrl/Cmd+wheel zooms; scrolling up (negative ``delta_y`` in DOM
        terms) zooms in. The zoom is not re-anchored on the cursor.

        Returns:
            True if the event was consumed.
        """
        if not ctrl or delta_y == 0:
            return False
        self.step_zoom(1 if delta_y < 0 else -1)
        return True

    # --- Mouse / single pointer ---

    def pointer_down(self, x: float, y: float, in_control: bool = False) -> bool:
        """Starts a pan unless the press landed on a control."""
        if in_control or self.mode == InteractionMode.PINCHING:
            return False
        self._drag_start = (x, y)
        self._drag_baseline = self.pan
        self.mode = InteractionMode.PANNING
        self._changed()
        return True

    def pointer_move(self, x: float, y: float) -> bool:
        if self.mode != InteractionMode.PANNING:
            return False
        self.pan = (
            self._drag_baseline[0] + (x - self._drag_start[0]),
            self._drag_baseline[1] + (y - self._drag_start[1]),
        )
        self._changed()
        return True

    def pointer_up(self) -> bool:
        if self.mode != InteractionMode.PANNING:
            return False
        self.mode = InteractionMode.IDLE
        self._changed()
        return True

    # --- Touch ---

    def touches_changed(self, points: Sequence[Point], in_control: bool = False) -> bool:
        """
        Handles a touch going down or up.

        Args:
            points: Positions of every touch still on the surface.
            in_control: The touch landed on a control.

        Returns:
            True if the gesture state changed.
        """
        count = len(points)

        if count >= 2:
            if in_control and self.mode == InteractionMode.IDLE:
                return False
            self._tap_down = None
            self._last_tap = None
            a, b = points[0], points[1]
            self.pinch = PinchGestureState(
                initial_distance=_distance(a, b),
                initial_zoom=self.zoom,
                initial_midpoint=_midpoint(a, b),
                initial_pan=self.pan,
            )
            self.mode = InteractionMode.PINCHING
            self._changed()
            return True

        if self.mode == InteractionMode.PINCHING:
            self.pinch = None
            self.mode = InteractionMode.IDLE
            self._changed()
            self._commit_zoom()
            return True

        if count == 1:
            if self.mode == InteractionMode.PANNING:
                return False
            if in_control:
                return False
            now = self._clock()
            if self._is_double_tap(now):
                self._tap_down = None
                self.reset()
                return True
            x, y = points[0]
            self._tap_down = (x, y, now)
            return self.pointer_down(x, y)

        if self.mode == InteractionMode.PANNING:
            self._record_tap()
        return self.pointer_up()

    def touches_moved(self, points: Sequence[Point]) -> bool:
        """Updates a pan (one touch) or a pinch (two touches)."""
        if self.mode == InteractionMode.PINCHING:
            if len(points) < 2:
                return False
            return self._pinch_to(points[0], points[1])
        if self.mode == InteractionMode.PANNING and points:
            x, y = points[0]
            down = self._tap_down
            if down is not None and _distance((x, y), down[:2]) > self.config.tap_slop:
                self._tap_down = None
            return self.pointer_move(x, y)
        return False

    def _pinch_to(self, a: Point, b: Point) -> bool:
        pinch = self.pinch
        if pinch is None or pinch.initial_distance <= 0 or pinch.initial_zoom <= 0:
            return False

        scale = _distance(a, b) / pinch.initial_distance
        new_zoom = self.config.clamp_zoom(pinch.initial_zoom * scale)

        # Keep the content point under the fingers fixed while scaling.
        ratio = new_zoom / pinch.initial_zoom
        mx, my = _midpoint(a, b)
        ix, iy = pinch.initial_midpoint
        px, py = pinch.initial_pan
        self.zoom = new_zoom
        self.pan = (mx - (ix - px) * ratio, my - (iy - py) * ratio)
        self._changed()
        return True

    def _record_tap(self) -> None:
        """Remembers a release as a tap if the finger stayed put and lifted quickly."""
        down = self._tap_down
        self._tap_down = None
        now = self._clock()
        if down is not None and now - down[2] <= self.config.tap_timeout:
            self._last_tap = now
        else:
            self._last_tap = None

    def _is_double_tap(self, now: float) -> bool:
        last = self._last_tap
        self._last_tap = None
        return last is not None and now - last <= self.config.double_tap_interval

    # --- Notifications ---

    def _changed(self) -> None:
        if self.on_change:
            self.on_change()

    def _commit_zoom(self) -> None:
        if self.on_zoom_committed:
            self.on_zoom_committed(self.zoom)


_ZOOM_IN_KEYS = ("+", "=")
_ZOOM_OUT_KEYS = ("-",)


def resolve_key_command(key: str, ctrl: bool = False, editing: bool = False) -> Optional[KeyCommand]:
    """
    Maps a key press to a reader command.

    Args:
        key: DOM-style key name (``"+"``, ``"0"``, ``"ArrowLeft"`` ...).
        ctrl: Ctrl or Cmd is held.
        editing: A text field has focus; every shortcut is then ignored.

    Returns:
        The command, or None when the key is not a reader shortcut.
    """
    if editing:
        return None
    if key in _ZOOM_IN_KEYS or (ctrl and key == "ArrowUp"):
        return KeyCommand.ZOOM_IN
    if key in _ZOOM_OUT_KEYS or (ctrl and key == "ArrowDown"):
        return KeyCommand.ZOOM_OUT
    if key == "0" and not ctrl:
        return KeyCommand.RESET_ZOOM
    if key == "ArrowLeft":
        return KeyCommand.PREV_PAGE
    if key == "ArrowRight":
        return KeyCommand.NEXT_PAGE
    return None
