"""Tests for persisted preferences and settings"""
import json

import pytest

import state_manager
from settings import SettingsManager


@pytest.fixture
def state_file(tmp_path, monkeypatch):
    path = tmp_path / "state.json"
    monkeypatch.setattr(state_manager, "STATE_FILE", str(path))
    monkeypatch.setattr(state_manager, "state", None)
    monkeypatch.setattr(state_manager, "state_cache_time", 0)
    return path


def test_missing_file_is_created_with_defaults(state_file):
    assert state_manager.get_state() == state_manager.DEFAULT_STATE
    assert state_file.exists()


def test_dotted_preferences_roundtrip(state_file):
    state_manager.set_preference("representationMethods.terminal", False)
    state_manager.set_preference("activePlayer", "vlc")

    saved = json.loads(state_file.read_text(encoding="utf-8"))
    assert saved["representationMethods"]["terminal"] is False
    assert state_manager.get_preference("activePlayer") == "vlc"
    assert state_manager.get_preference("does.not.exist", "fallback") == "fallback"


def test_corrupted_file_resets(state_file):
    state_file.write_text("[1, 2, 3]", encoding="utf-8")
    assert state_manager.get_state()["lyricsMode"] == "single"


def test_settings_file_created_and_validated(tmp_path):
    path = tmp_path / "settings.json"
    manager = SettingsManager(path)
    assert path.exists()
    assert manager.get("polling.interval") == 1.0

    # Out of range and unknown options fall back to the default
    path.write_text(json.dumps({
        "polling.interval": 999,
        "lyrics.mode": "karaoke",
        "polling.debounce": "0.25",
        "features.save_lrc_files": "true",
    }), encoding="utf-8")
    manager.load_settings()

    assert manager.get("polling.interval") == 1.0
    assert manager.get("lyrics.mode") == "single"
    assert manager.get("polling.debounce") == 0.25
    assert manager.get("features.save_lrc_files") is True


def test_corrupted_settings_are_backed_up(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{broken", encoding="utf-8")

    manager = SettingsManager(path)
    assert manager.get("retry.max_delay") == 10.0
    assert (tmp_path / "settings.json.corrupted").exists()
