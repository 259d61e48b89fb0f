import json
import logging
import os
import threading
from typing import Any, Dict, Optional

from PySide6.QtCore import QStandardPaths

from .constants import DEFAULT_ZOOM, ViewMode

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES: Dict[str, Any] = {
    "viewMode": ViewMode.DOUBLE.value,
    "zoomLevel": DEFAULT_ZOOM,
}


class PreferencesManager:
    """
    Manages persistent reader preferences.

    Stores the preferred view mode, the zoom level and the last page reached
    in every book in a JSON file within the user's application data
    directory.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        """
        Initializes the PreferencesManager and loads stored preferences.

        Args:
            path: Location of the JSON file. Defaults to
                ``reader_preferences.json`` in the application data directory.
        """
        if path is None:
            base = QStandardPaths.writableLocation(
                QStandardPaths.StandardLocation.AppDataLocation
            )
            path = os.path.join(base, "reader_preferences.json")
        self.path = path
        self.reader: Dict[str, Any] = dict(DEFAULT_PREFERENCES)
        self.progress: Dict[str, int] = {}
        self._lock = threading.RLock()
        self.load()

    def load(self) -> None:
        """Loads preferences from the JSON persistence file."""
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable preferences %s: %s", self.path, e)
            return

        if not isinstance(raw, dict):
            logger.warning("Ignoring malformed preferences in %s", self.path)
            return
        reader = raw.get("reader")
        if isinstance(reader, dict):
            self.reader.update(reader)
        progress = raw.get("progress")
        if isinstance(progress, dict):
            self.progress = {
                str(k): int(v) for k, v in progress.items() if isinstance(v, int)
            }

    def save(self) -> None:
        """Saves the current preferences to the JSON persistence file."""
        # Sessions on different engine threads share one manager.
        with self._lock:
            try:
                os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
                with open(self.path, "w") as f:
                    json.dump({"reader": self.reader, "progress": self.progress}, f)
            except OSError as e:
                logger.warning("Could not save preferences to %s: %s", self.path, e)

    def read(self) -> Dict[str, Any]:
        """
        Returns the reader preferences.

        Returns:
            A dict with ``viewMode`` (a ViewMode) and ``zoomLevel`` (percent).
            Stored values that cannot be understood fall back to defaults.
        """
        try:
            mode = ViewMode(self.reader.get("viewMode"))
        except ValueError:
            mode = ViewMode(DEFAULT_PREFERENCES["viewMode"])

        try:
            zoom = float(self.reader.get("zoomLevel", DEFAULT_ZOOM))
        except (TypeError, ValueError):
            zoom = DEFAULT_ZOOM
        # Older stores kept the zoom as a factor (1.0 == 100%).
        if 0 < zoom <= 3.0:
            zoom *= 100.0
        elif zoom <= 0:
            zoom = DEFAULT_ZOOM

        return {"viewMode": mode, "zoomLevel": zoom}

    def write(self, partial: Dict[str, Any]) -> None:
        """
        Merges some preference values and persists them.

        Args:
            partial: Any of ``viewMode`` (ViewMode or its value) and
                ``zoomLevel`` (percent).
        """
        with self._lock:
            for key, value in partial.items():
                if isinstance(value, ViewMode):
                    value = value.value
                self.reader[key] = value
            self.save()

    def read_progress(self, book_id: str) -> Optional[int]:
        """Returns the last page reached in a book, if any."""
        return self.progress.get(book_id)

    def write_progress(self, book_id: str, page: int) -> None:
        """Remembers the last page reached in a book."""
        with self._lock:
            if self.progress.get(book_id) == page:
                return
            self.progress[book_id] = page
            self.save()

    def reset_to_defaults(self) -> None:
        """Restores default reader preferences, keeping reading progress."""
        with self._lock:
            self.reader = dict(DEFAULT_PREFERENCES)
            self.save()
