"""
Reader Configuration.

Holds the tunable values of the page reader and loads overrides from a
QSettings-compatible store.
"""

import logging
from dataclasses import dataclass, fields, replace
from typing import Any

from .constants import (
    DEFAULT_IMAGE_PREFIX,
    DEFAULT_IMAGE_SUFFIX,
    DEFAULT_ZOOM,
    MAX_ZOOM,
    MIN_ZOOM,
    ZOOM_STEP,
    ViewMode,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReaderConfig:
    """
    Tunable settings for one reader session.

    Attributes:
        view_mode: Initial view mode when no preference is stored.
        zoom: Initial zoom percentage when no preference is stored.
        page_gap: Pixels between the two pages of a spread.
        sidebar_collapsed: Whether the options sidebar starts collapsed.
        base_url: Scheme and host prepended to every page locator.
        image_prefix: Path template before the page number; ``{book_id}``
            is substituted.
        image_suffix: Fixed text after the page number.
        preload_buffer: Pages preloaded behind and ahead of the current page.
        preload_delay: Seconds to wait after each preload settles.
        min_zoom: Lower zoom bound in percent.
        max_zoom: Upper zoom bound in percent.
        zoom_step: Percent added or removed by one wheel notch or key press.
        zoom_throttle: Minimum seconds between two discrete zoom steps.
        double_tap_interval: Maximum seconds between the taps of a double tap.
        tap_slop: Pixels a finger may drift and still count as a tap.
        tap_timeout: Longest press, in seconds, that still counts as a tap.
        request_timeout: Seconds before an HTTP page request is abandoned.
    """

    view_mode: ViewMode = ViewMode.DOUBLE
    zoom: float = DEFAULT_ZOOM
    page_gap: int = 20
    sidebar_collapsed: bool = True
    base_url: str = ""
    image_prefix: str = DEFAULT_IMAGE_PREFIX
    image_suffix: str = DEFAULT_IMAGE_SUFFIX
    preload_buffer: int = 3
    preload_delay: float = 0.1
    min_zoom: float = MIN_ZOOM
    max_zoom: float = MAX_ZOOM
    zoom_step: float = ZOOM_STEP
    zoom_throttle: float = 0.016
    double_tap_interval: float = 0.3
    tap_slop: float = 10.0
    tap_timeout: float = 0.25
    request_timeout: float = 10.0

    def clamp_zoom(self, value: float) -> float:
        """Restricts a zoom percentage to the configured range."""
        return max(self.min_zoom, min(self.max_zoom, value))

    def with_overrides(self, **overrides: Any) -> "ReaderConfig":
        """Returns a copy with the given non-None fields replaced."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)

    @classmethod
    def from_settings(cls, settings: Any) -> "ReaderConfig":
        """
        Builds a configuration from a QSettings-like object.

        Keys are the camelCase field names (``preloadBuffer``,
        ``imageSuffix`` ...). Missing keys keep their defaults and values that
        cannot be converted are ignored with a warning.

        Args:
            settings: An object exposing ``value(key, default)``.

        Returns:
            A new ReaderConfig.
        """
        defaults = cls()
        values = {}
        for f in fields(cls):
            key = _camel(f.name)
            default = getattr(defaults, f.name)
            raw = settings.value(key, None)
            if raw is None:
                continue
            try:
                values[f.name] = _coerce(raw, default)
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid setting %s=%r", key, raw)
        return replace(defaults, **values)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _coerce(raw: Any, default: Any) -> Any:
    # QSettings returns strings for ini-backed values.
    if isinstance(default, ViewMode):
        return raw if isinstance(raw, ViewMode) else ViewMode(str(raw).lower())
    if isinstance(default, bool):
        if isinstance(raw, str):
            return raw.strip().lower() in ("1", "true", "yes", "on")
        return bool(raw)
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return str(raw)
