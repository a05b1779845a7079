"""Pytest configuration and shared fixtures"""
import base64
import io
import os
import tempfile

# Keep settings/state/cache/logs out of the project tree. Must run before
# config, settings or state_manager are imported anywhere.
_TEST_ROOT = tempfile.mkdtemp(prefix="nowlyrics-tests-")
os.environ.setdefault("NOWLYRICS_SETTINGS_FILE", os.path.join(_TEST_ROOT, "settings.json"))
os.environ.setdefault("NOWLYRICS_STATE_FILE", os.path.join(_TEST_ROOT, "state.json"))
os.environ.setdefault("NOWLYRICS_CACHE_DIR", os.path.join(_TEST_ROOT, "cache"))
os.environ.setdefault("NOWLYRICS_LRC_DIR", os.path.join(_TEST_ROOT, "lrc"))
os.environ.setdefault("NOWLYRICS_LOGS_DIR", os.path.join(_TEST_ROOT, "logs"))

from unittest.mock import MagicMock

import pytest
from PIL import Image

from cache_store import CacheStore
from system_utils.errors import ErrorChannel
from system_utils.sources.base import MediaBackend
from system_utils.state import AppState, Song

SYNCED = "[00:10]Line A\n[00:20]Line B"


def solid_png_base64(color=(255, 0, 0), size=(16, 16)) -> str:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.fixture
def song_a():
    return Song(artist="Artist A", title="Song A", album="Album A")


@pytest.fixture
def song_b():
    return Song(artist="Artist B", title="Song B", album="Album B")


@pytest.fixture
def app_state():
    return AppState()


@pytest.fixture
def errors():
    return ErrorChannel()


@pytest.fixture
def cache(tmp_path):
    return CacheStore(tmp_path / "cache")


@pytest.fixture
def backend(song_a):
    """Media backend whose async methods are AsyncMocks"""
    mock = MagicMock(spec=MediaBackend)
    mock.get_current_playing_song.return_value = song_a
    mock.get_current_audio_time.return_value = 10.4
    mock.get_active_player.return_value = "spotify"
    mock.get_available_players.return_value = ["spotify", "vlc"]
    return mock


@pytest.fixture
def no_backoff():
    """Retry budget with zero delays, for providers under test"""
    return {"max_retries": 2, "initial_delay": 0.0, "max_delay": 0.0, "backoff_multiplier": 2.0}
