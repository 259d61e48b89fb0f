import json
import logging

from fakes import read_json
from leggio.core.constants import ViewMode
from leggio.core.managers import PreferencesManager


def test_defaults_without_file(prefs_path) -> None:
    prefs = PreferencesManager(prefs_path)
    assert prefs.read() == {"viewMode": ViewMode.DOUBLE, "zoomLevel": 100.0}
    assert prefs.read_progress("book-1") is None


def test_write_persists_and_reloads(prefs_path) -> None:
    prefs = PreferencesManager(prefs_path)
    prefs.write({"viewMode": ViewMode.SINGLE})
    prefs.write({"zoomLevel": 180})
    prefs.write_progress("book-1", 12)

    reloaded = PreferencesManager(prefs_path)
    assert reloaded.read() == {"viewMode": ViewMode.SINGLE, "zoomLevel": 180.0}
    assert reloaded.read_progress("book-1") == 12
    assert read_json(prefs_path)["reader"]["viewMode"] == "single"


def test_legacy_zoom_factor_is_read_as_percentage(prefs_path) -> None:
    with open(prefs_path, "w") as f:
        json.dump({"reader": {"zoomLevel": 1.5}}, f)
    assert PreferencesManager(prefs_path).read()["zoomLevel"] == 150.0


def test_nonsense_values_fall_back(prefs_path) -> None:
    with open(prefs_path, "w") as f:
        json.dump({"reader": {"viewMode": "spread", "zoomLevel": -4}}, f)
    assert PreferencesManager(prefs_path).read() == {
        "viewMode": ViewMode.DOUBLE,
        "zoomLevel": 100.0,
    }


def test_corrupt_file_is_ignored(prefs_path, caplog) -> None:
    with open(prefs_path, "w") as f:
        f.write("{not json")
    with caplog.at_level(logging.WARNING, logger="leggio.core.managers"):
        prefs = PreferencesManager(prefs_path)
    assert prefs.read()["viewMode"] == ViewMode.DOUBLE
    assert "Ignoring unreadable preferences" in caplog.text


def test_reset_to_defaults_keeps_progress(prefs_path) -> None:
    prefs = PreferencesManager(prefs_path)
    prefs.write({"viewMode": ViewMode.SINGLE, "zoomLevel": 200})
    prefs.write_progress("book-1", 4)
    prefs.reset_to_defaults()

    reloaded = PreferencesManager(prefs_path)
    assert reloaded.read() == {"viewMode": ViewMode.DOUBLE, "zoomLevel": 100.0}
    assert reloaded.read_progress("book-1") == 4


def test_unchanged_progress_is_not_rewritten(prefs_path) -> None:
    prefs = PreferencesManager(prefs_path)
    prefs.write_progress("book-1", 4)
    with open(prefs_path, "w") as f:
        f.write("{}")
    prefs.write_progress("book-1", 4)
    assert read_json(prefs_path) == {}
