"""Tests for the playerctl backend (subprocess mocked)"""
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from system_utils.errors import BackendError
from system_utils.sources.linux import PlayerctlBackend, parse_metadata_output
from system_utils.state import Song


def completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=["playerctl"], returncode=returncode, stdout=stdout, stderr=stderr)


def test_parse_metadata_output():
    assert parse_metadata_output("Artist\nTitle\nAlbum\n") == Song("Artist", "Title", "Album")
    assert parse_metadata_output("Artist\nTitle\n") == Song("Artist", "Title", None)
    assert parse_metadata_output("") == Song(None, None, None)


async def test_selected_player_is_passed_to_playerctl():
    backend = PlayerctlBackend()
    await backend.set_active_player("vlc")

    with patch("system_utils.sources.linux.subprocess.run", return_value=completed("A\nT\nB\n")) as run:
        song = await backend.get_current_playing_song()

    assert song == Song("A", "T", "B")
    args = run.call_args.args[0]
    assert args[:4] == ["playerctl", "-p", "vlc", "metadata"]


async def test_active_player_prefers_one_that_is_playing():
    backend = PlayerctlBackend()

    def fake_run(args, **kwargs):
        if args[1:] == ["-l"]:
            return completed("firefox\nspotify\n")
        if args[-1] == "status":
            return completed("Playing\n" if args[2] == "spotify" else "Paused\n")
        raise AssertionError(args)

    with patch("system_utils.sources.linux.subprocess.run", side_effect=fake_run):
        assert await backend.get_active_player() == "spotify"
        assert await backend.get_available_players() == ["firefox", "spotify"]


async def test_position_and_errors():
    backend = PlayerctlBackend()
    await backend.set_active_player("spotify")

    with patch("system_utils.sources.linux.subprocess.run", return_value=completed("42.5\n")):
        assert await backend.get_current_audio_time() == 42.5

    with patch("system_utils.sources.linux.subprocess.run",
               return_value=completed(returncode=1, stderr="No players found")):
        with pytest.raises(BackendError):
            await backend.get_current_audio_time()

    with patch("system_utils.sources.linux.subprocess.run",
               side_effect=subprocess.TimeoutExpired("playerctl", 2)):
        with pytest.raises(BackendError):
            await backend.go_to_time(10)


def test_missing_playerctl_is_detected():
    backend = PlayerctlBackend()
    with patch("system_utils.sources.linux.subprocess.run", side_effect=FileNotFoundError()) as run:
        assert backend.check_if_playerctl_exists() is False
        assert backend.check_if_playerctl_exists() is False
    assert run.call_count == 1


async def test_fetch_url_classifies_http_errors():
    backend = PlayerctlBackend()
    backend.session = MagicMock()
    backend.session.get.return_value = MagicMock(status_code=200, text='{"data": []}')
    assert await backend.fetch_url("https://api.deezer.com/search?q=x") == '{"data": []}'

    backend.session.get.return_value = MagicMock(status_code=404)
    with pytest.raises(BackendError):
        await backend.fetch_url("https://api.deezer.com/search?q=x")
