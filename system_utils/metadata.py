"""
Now-playing poller for system_utils package.
Watches the media backend for song changes and hands each genuine change to
the sync orchestrator. It never fetches lyrics or art itself.

Dependencies: state, helpers, errors, sources
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import state_manager
from config import DEBUG, POLLING
from logging_config import get_logger
from .errors import ErrorCategory, ErrorChannel, ErrorSeverity
from .helpers import IntervalTask, create_tracked_task
from .sources.base import MediaBackend
from .state import AppState, Song

logger = get_logger(__name__)

NO_PLAYER_MESSAGE = "No media player detected"


class PollerPhase(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    UNCHANGED = "unchanged"
    CHANGED = "changed"


class NowPlayingPoller:
    """
    Polls backend.get_current_playing_song() every `interval` seconds.

    A song key that differs from the committed one starts a debounce window;
    if the key is still different when the window closes, on_change(song) is
    awaited once. Keys that flicker and settle back never fire. When on_change
    returns None (the refresh failed) the change is declared again later.
    """

    def __init__(
        self,
        backend: MediaBackend,
        state: AppState,
        errors: ErrorChannel,
        on_change: Callable[[Song], Awaitable[Any]],
        interval: float = POLLING["interval"],
        debounce: float = POLLING["debounce"],
        failure_threshold: int = POLLING["failure_threshold"],
        active_player_every: int = POLLING["active_player_every"],
    ):
        self.backend = backend
        self.state = state
        self.errors = errors
        self.on_change = on_change
        self.debounce = debounce
        self.failure_threshold = max(1, failure_threshold)
        self.active_player_every = max(1, active_player_every)

        self.phase = PollerPhase.IDLE
        self.consecutive_failures = 0
        self._committed_key: Optional[str] = None
        self._pending: Optional[Song] = None
        self._debounce_task: Optional[asyncio.Task] = None
        self._tick_count = 0
        self._ticker = IntervalTask("Now-playing poller", self.tick, interval)

    @property
    def committed_key(self) -> Optional[str]:
        return self._committed_key

    def prime(self, song: Optional[Song]) -> None:
        """Treat `song` as already announced, so seeing it again is not a change."""
        if song is not None and song.is_complete:
            self._committed_key = song.key

    def start(self, initial_song: Optional[Song] = None) -> None:
        """Begin polling. `initial_song` (already refreshed by the caller) is not re-announced."""
        self.prime(initial_song)
        self._ticker.start()

    async def stop(self) -> None:
        await self._ticker.stop()
        self._cancel_debounce()
        self.phase = PollerPhase.IDLE

    async def tick(self) -> None:
        self._tick_count += 1
        if self._tick_count == 1 or self._tick_count % self.active_player_every == 0:
            await self._refresh_active_player()

        self.phase = PollerPhase.DETECTING
        try:
            song = await self.backend.get_current_playing_song()
        except Exception as e:
            if DEBUG.get("log_polling"):
                logger.debug(f"Now-playing query failed: {e}")
            song = None

        if song is None or not song.is_complete:
            self._record_failure()
            return

        self.consecutive_failures = 0
        self._clear_no_player_error()

        key = song.key
        if key == self._committed_key:
            # Flickered back before the window closed
            self._cancel_debounce()
            self.phase = PollerPhase.UNCHANGED
            return

        restart = self._pending is None or self._pending.key != key or self._debounce_task is None
        self._pending = song
        if self.debounce <= 0:
            await self._commit()
        elif restart:
            self._cancel_timer()
            self._debounce_task = create_tracked_task(self._debounce_then_commit())

    def _record_failure(self) -> None:
        self.consecutive_failures += 1
        if DEBUG.get("log_polling"):
            logger.debug(f"No usable song from backend ({self.consecutive_failures} in a row)")
        # Publish once, on the tick that reaches the threshold
        if self.consecutive_failures == self.failure_threshold:
            logger.info(NO_PLAYER_MESSAGE)
            self.errors.set_error(
                NO_PLAYER_MESSAGE,
                severity=ErrorSeverity.INFO,
                category=ErrorCategory.PLAYER,
                recoverable=True,
                retryable=True,
            )

    def _clear_no_player_error(self) -> None:
        # Other PLAYER errors belong to the refresh cycle
        current = self.errors.current
        if current is not None and current.message == NO_PLAYER_MESSAGE:
            self.errors.clear(ErrorCategory.PLAYER)

    def _cancel_debounce(self) -> None:
        self._pending = None
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        task, self._debounce_task = self._debounce_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _debounce_then_commit(self) -> None:
        await asyncio.sleep(self.debounce)
        self._debounce_task = None
        await self._commit()

    async def _commit(self) -> None:
        song, self._pending = self._pending, None
        if song is None or song.key == self._committed_key:
            return

        previous, self._committed_key = self._committed_key, song.key
        self.phase = PollerPhase.CHANGED
        logger.info(f"Song changed: {song}")
        result = await self.on_change(song)

        if result is None and self._committed_key == song.key:
            # Refresh did not land; declare the change again on a later tick
            logger.debug(f"Refresh for {song} did not complete, will retry")
            self._committed_key = previous

    async def _refresh_active_player(self) -> None:
        try:
            player = await self.backend.get_active_player()
            players = await self.backend.get_available_players()
        except Exception as e:
            logger.debug(f"Could not refresh active player: {e}")
            return
        self.state.update(active_player=player, available_players=players)


async def set_active_player(backend: MediaBackend, state: AppState, player_id: Optional[str]) -> None:
    """Switch players and remember the choice for the next run."""
    await backend.set_active_player(player_id or "")
    state_manager.set_preference("activePlayer", player_id or None)
    state.set("active_player", player_id or None)


async def restore_active_player(backend: MediaBackend, state: AppState) -> Optional[str]:
    """Re-select the player saved by set_active_player(), if any."""
    player_id = state_manager.get_preference("activePlayer")
    if not player_id:
        return None
    try:
        await backend.set_active_player(player_id)
    except Exception as e:
        logger.warning(f"Could not restore player '{player_id}': {e}")
        return None
    state.set("active_player", player_id)
    return player_id
