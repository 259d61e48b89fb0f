import os

import pytest

from fakes import FakeFetcher

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def prefs_path(tmp_path) -> str:
    return str(tmp_path / "reader_preferences.json")
