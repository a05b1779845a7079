"""Tests for the now-playing poller"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from system_utils.errors import BackendError, ErrorCategory, ErrorSeverity
from system_utils.metadata import NowPlayingPoller, PollerPhase
from system_utils.state import Song


def make_poller(backend, app_state, errors, debounce=0.0, **kwargs):
    on_change = AsyncMock()
    poller = NowPlayingPoller(backend, app_state, errors, on_change, interval=0.01,
                              debounce=debounce, **kwargs)
    return poller, on_change


async def test_equal_keys_never_change(backend, app_state, errors):
    poller, on_change = make_poller(backend, app_state, errors)
    poller.prime(Song("Artist", "Title", "Album"))

    for song in (Song(" artist ", "TITLE", "album"), Song("ARTIST", "title ", " Album")):
        backend.get_current_playing_song.return_value = song
        await poller.tick()

    on_change.assert_not_awaited()
    assert poller.phase == PollerPhase.UNCHANGED


async def test_unprimed_poller_announces_first_song(backend, app_state, errors, song_a):
    poller, on_change = make_poller(backend, app_state, errors)

    await poller.tick()
    await poller.tick()

    on_change.assert_awaited_once_with(song_a)


async def test_change_fires_once(backend, app_state, errors, song_a, song_b):
    poller, on_change = make_poller(backend, app_state, errors)
    poller.prime(song_a)
    backend.get_current_playing_song.side_effect = [song_a, song_a, song_b, song_b]

    for _ in range(4):
        await poller.tick()

    on_change.assert_awaited_once_with(song_b)
    assert poller.committed_key == song_b.key


async def test_no_player_error_published_once_at_threshold(backend, app_state, errors, song_a):
    poller, _ = make_poller(backend, app_state, errors, failure_threshold=3)
    published = []
    errors.subscribe(published.append)
    backend.get_current_playing_song.side_effect = BackendError("no players found")

    for _ in range(2):
        await poller.tick()
    assert errors.current is None

    for _ in range(4):
        await poller.tick()
    assert len(published) == 1
    assert errors.current.category == ErrorCategory.PLAYER
    assert errors.current.severity == ErrorSeverity.INFO

    # Recovery clears it
    backend.get_current_playing_song.side_effect = None
    backend.get_current_playing_song.return_value = song_a
    await poller.tick()
    assert poller.consecutive_failures == 0
    assert errors.current is None


async def test_success_keeps_errors_raised_by_the_refresh_cycle(backend, app_state, errors, song_a):
    poller, _ = make_poller(backend, app_state, errors)
    poller.prime(song_a)
    errors.set_error("Could not read the current song from the media player",
                     category=ErrorCategory.PLAYER, retryable=True)

    await poller.tick()
    assert errors.current.message == "Could not read the current song from the media player"


async def test_failed_refresh_redeclares_the_change(backend, app_state, errors, song_a, song_b):
    poller, on_change = make_poller(backend, app_state, errors)
    poller.prime(song_a)
    on_change.side_effect = [None, song_b]
    backend.get_current_playing_song.return_value = song_b

    await poller.tick()
    assert poller.committed_key == song_a.key

    await poller.tick()
    assert on_change.await_count == 2
    assert poller.committed_key == song_b.key

    await poller.tick()
    assert on_change.await_count == 2


async def test_incomplete_song_counts_as_failure(backend, app_state, errors):
    poller, on_change = make_poller(backend, app_state, errors, failure_threshold=2)
    backend.get_current_playing_song.return_value = Song(None, "Title")

    await poller.tick()
    await poller.tick()

    on_change.assert_not_awaited()
    assert errors.current.message == "No media player detected"


async def test_flicker_within_debounce_window_collapses(backend, app_state, errors, song_a, song_b):
    poller, on_change = make_poller(backend, app_state, errors, debounce=0.05)
    poller.prime(song_a)

    # A -> B -> A inside the window: no change
    backend.get_current_playing_song.return_value = song_b
    await poller.tick()
    backend.get_current_playing_song.return_value = song_a
    await poller.tick()
    await asyncio.sleep(0.1)
    on_change.assert_not_awaited()

    # B -> C inside the window: one change, to the last-seen song
    song_c = Song("Artist C", "Song C")
    backend.get_current_playing_song.return_value = song_b
    await poller.tick()
    backend.get_current_playing_song.return_value = song_c
    await poller.tick()
    await asyncio.sleep(0.1)
    on_change.assert_awaited_once_with(song_c)


async def test_repeated_key_does_not_restart_window(backend, app_state, errors, song_a, song_b):
    poller, on_change = make_poller(backend, app_state, errors, debounce=0.05)
    poller.prime(song_a)
    backend.get_current_playing_song.return_value = song_b

    await poller.tick()
    await asyncio.sleep(0.03)
    await poller.tick()
    await asyncio.sleep(0.04)

    on_change.assert_awaited_once_with(song_b)


async def test_active_player_refreshed_on_first_and_every_nth_tick(backend, app_state, errors):
    poller, _ = make_poller(backend, app_state, errors, active_player_every=3)

    for _ in range(6):
        await poller.tick()

    assert backend.get_active_player.await_count == 3  # ticks 1, 3, 6
    assert app_state.get("active_player") == "spotify"
    assert app_state.get("available_players") == ["spotify", "vlc"]


async def test_start_and_stop(backend, app_state, errors, song_a):
    poller, on_change = make_poller(backend, app_state, errors)

    poller.start(initial_song=song_a)
    await asyncio.sleep(0.05)
    await poller.stop()

    assert backend.get_current_playing_song.await_count >= 1
    on_change.assert_not_awaited()
    assert poller.phase == PollerPhase.IDLE
