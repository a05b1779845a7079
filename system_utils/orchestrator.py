"""
Sync orchestrator for system_utils package.
Runs one refresh cycle per song change: resolve the current song, then load
lyrics, artwork and playback time side by side and publish them to AppState.

Dependencies: state, errors, retry, cancellation, helpers, image, sources
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional

import lyrics as lyrics_mapper
from config import FEATURES, LYRICS, RETRY
from logging_config import get_logger
from .cancellation import ALBUM_ART, CURRENT_PLAYING, LYRICS as LYRICS_KEY, CancellationRegistry, RequestToken
from .errors import (
    ErrorCategory,
    ErrorChannel,
    ErrorSeverity,
    RequestCancelledError,
    ValidationError,
)
from .helpers import run_blocking
from .image import DEFAULT_ACCENT, DEFAULT_TEXT
from .retry import retry_with_backoff
from .sources.base import MediaBackend
from .state import AppState, Song

logger = get_logger(__name__)


class SyncPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SETTLED = "settled"
    FAILED = "failed"


def _not_cancelled(error: BaseException) -> bool:
    return not isinstance(error, RequestCancelledError)


class SyncOrchestrator:
    """
    Owns the refresh cycle. Lyrics and artwork providers are injected so the
    cycle can run against fakes; the shared AppState is the only output.
    """

    def __init__(
        self,
        backend: MediaBackend,
        state: AppState,
        errors: ErrorChannel,
        lyrics_provider,
        art_provider,
        cancellation: Optional[CancellationRegistry] = None,
        lead: float = LYRICS.get("lead_time", 0.5),
        save_lrc: bool = FEATURES.get("save_lrc_files", False),
    ):
        self.backend = backend
        self.state = state
        self.errors = errors
        self.lyrics_provider = lyrics_provider
        self.art_provider = art_provider
        self.cancellation = cancellation or CancellationRegistry()
        self.lead = lead
        self.save_lrc = save_lrc

        self.phase = SyncPhase.IDLE
        self._position = lyrics_mapper.LinePosition()

    # === Refresh cycle ===

    async def refresh(self) -> Optional[Song]:
        """
        One full cycle. Returns the resolved Song, or None when the cycle
        failed or was superseded by a newer refresh().
        """
        token = self.cancellation.get_token(CURRENT_PLAYING)
        self.errors.clear()
        self._ensure_colors()
        self.phase = SyncPhase.LOADING
        self.state.set("is_loading", True)

        try:
            song = await self._resolve_song(token)
        except RequestCancelledError:
            logger.debug("Refresh superseded while resolving the song")
            self.cancellation.release(CURRENT_PLAYING, token)
            self._abandon()
            return None
        except ValidationError as e:
            logger.info(f"Skipping refresh: {e}")
            self.errors.set_error(
                str(e),
                severity=ErrorSeverity.WARNING,
                category=ErrorCategory.PLAYER,
                recoverable=True,
                retryable=False,
            )
            self._finish(SyncPhase.FAILED)
            self.cancellation.release(CURRENT_PLAYING, token)
            return None
        except Exception as e:
            logger.warning(f"Could not resolve the current song: {e}")
            self.errors.set_error(
                "Could not read the current song from the media player",
                severity=ErrorSeverity.ERROR,
                category=ErrorCategory.PLAYER,
                recoverable=True,
                retryable=True,
            )
            self._finish(SyncPhase.FAILED)
            self.cancellation.release(CURRENT_PLAYING, token)
            return None

        self._switch_song(song)

        self.cancellation.cancel(LYRICS_KEY)
        self.cancellation.cancel(ALBUM_ART)
        lyrics_token = self.cancellation.get_token(LYRICS_KEY)
        art_token = self.cancellation.get_token(ALBUM_ART)

        results = await asyncio.gather(
            self._load_lyrics(song, lyrics_token),
            self._load_artwork(song, art_token),
            self.refresh_play_time(),
            return_exceptions=True,
        )
        for branch, result in zip(("lyrics", "artwork", "play time"), results):
            if isinstance(result, RequestCancelledError):
                logger.debug(f"{branch} load superseded for {song}")
            elif isinstance(result, Exception):
                logger.error(f"{branch} load failed for {song}: {result}", exc_info=result)

        self.cancellation.release(LYRICS_KEY, lyrics_token)
        self.cancellation.release(ALBUM_ART, art_token)
        self.cancellation.release(CURRENT_PLAYING, token)

        if token.cancelled:
            self._abandon()
            return None
        self._finish(SyncPhase.SETTLED)
        return song

    async def _resolve_song(self, token: RequestToken) -> Song:
        async def fetch() -> Song:
            token.raise_if_cancelled()
            song = await self.backend.get_current_playing_song()
            token.raise_if_cancelled()
            return song

        song = await retry_with_backoff(
            fetch,
            should_retry=_not_cancelled,
            name="Current song lookup",
            **RETRY["song"]
        )
        if song is None or not song.is_complete:
            raise ValidationError("No song playing: artist or title is missing")
        return song

    def _switch_song(self, song: Song) -> None:
        current = self.state.get("current_song")
        if current is not None and current.key == song.key:
            return
        self._position = lyrics_mapper.LinePosition()
        self.state.update(
            current_song=song,
            play_time=0.0,
            synced_lyrics="",
            plain_lyrics="",
            current_line=None,
            next_line=None,
        )

    def _finish(self, phase: SyncPhase) -> None:
        self.phase = phase
        self.state.set("is_loading", False)

    def _abandon(self) -> None:
        # Superseded: a newer cycle, if any, owns the loading flag
        if not self.cancellation.has_active_request(CURRENT_PLAYING):
            self._finish(SyncPhase.IDLE)

    def _ensure_colors(self) -> None:
        if not self.state.get("accent_color") or not self.state.get("text_color"):
            self.state.update(accent_color=DEFAULT_ACCENT, text_color=DEFAULT_TEXT)

    # === Branches ===

    async def _load_lyrics(self, song: Song, token: RequestToken) -> Optional[str]:
        synced = await self.lyrics_provider.resolve(song.artist, song.title, token)
        token.raise_if_cancelled()

        plain = self.lyrics_provider.get_plain_lyrics(song.artist, song.title) if synced else None
        self.state.update(synced_lyrics=synced or "", plain_lyrics=plain or "")
        self._update_lines(self.state.get("play_time"))

        if synced and self.save_lrc:
            try:
                await run_blocking(lyrics_mapper.export_lrc, synced, song.artist, song.title)
            except OSError as e:
                logger.warning(f"Could not save .lrc for {song}: {e}")
        return synced

    async def _load_artwork(self, song: Song, token: RequestToken) -> Optional[str]:
        return await self.art_provider.resolve(song.artist, song.title, song.album, token)

    # === Playback ===

    async def refresh_play_time(self) -> Optional[float]:
        """Sample the playback position and move the current/next line."""
        try:
            play_time = await self.backend.get_current_audio_time()
        except Exception as e:
            logger.debug(f"Could not read playback position: {e}")
            return None

        self.state.set("play_time", play_time)
        self._update_lines(play_time)
        return play_time

    def _update_lines(self, play_time: float) -> None:
        position = lyrics_mapper.locate(
            self.state.get("synced_lyrics"), play_time, previous=self._position, lead=self.lead
        )
        if position != self._position:
            self._position = position
            self.state.update(current_line=position.current_line, next_line=position.next_line)

    async def seek(self, seconds: float) -> None:
        await self.backend.go_to_time(seconds)
        await self.refresh_play_time()

    async def toggle_play(self) -> None:
        await self.backend.toggle_play()

    async def next_song(self) -> None:
        await self.backend.next_song()

    async def previous_song(self) -> None:
        await self.backend.previous_song()

    # === Cleanup ===

    def close(self) -> None:
        """Cancel every in-flight request. Safe to call more than once."""
        self.cancellation.cancel_all()
        self.phase = SyncPhase.IDLE
