import sys
import os

# Safety fix for running with pythonw.exe (no console)
# When using pythonw, stdout/stderr are None, causing crashes if anything tries to print
if sys.stdout is None:
    sys.stdout = open(os.devnull, "w")
if sys.stderr is None:
    sys.stderr = open(os.devnull, "w")

import argparse
import asyncio
import signal
from queue import Empty
from typing import List, Optional

from cache_store import CacheStore
from config import DEBUG, LYRICS, POLLING, VERSION
from context import queue
from logging_config import get_logger, setup_logging
from lyrics import surrounding_lines
from providers import AlbumArtProvider, LRCLIBProvider
from state_manager import get_preference, set_preference
from system_utils import (
    AppState,
    BackendError,
    CancellationRegistry,
    ErrorChannel,
    IntervalTask,
    NowPlayingPoller,
    SyncOrchestrator,
    cancel_background_tasks,
    get_backend,
    restore_active_player,
    set_active_player,
    shutdown_executor,
)

logger = get_logger(__name__)

_orchestrator: Optional[SyncOrchestrator] = None
_poller: Optional[NowPlayingPoller] = None
_playback_ticker: Optional[IntervalTask] = None


class TerminalPrinter:
    """Prints the current line (or a window around it) whenever it changes."""

    def __init__(self, state: AppState, mode: str = "single"):
        self.state = state
        self.mode = mode
        self._last = None

    def __call__(self, key, value):
        if key == "current_song" and value is not None:
            print(f"\n♫ {value}")
        elif key == "current_line":
            self.render()

    def render(self):
        line = self.state.get("current_line")
        if line is None:
            return
        if self.mode == "multiple":
            window = surrounding_lines(self.state.get("synced_lyrics"), self.state.get("play_time"),
                                       before=0, after=1)
            output = "\n".join(text for text in window if text) or line.text
        else:
            output = line.text or "♪"
        if output != self._last:
            print(output)
            self._last = output


def _print_error(error):
    if error is not None:
        print(f"[{error.severity.value}] {error.message}")


async def cleanup() -> None:
    """Stop tickers, cancel in-flight requests, drain background tasks."""
    global _orchestrator, _poller, _playback_ticker

    logger.info("Cleaning up resources...")

    if _poller:
        await _poller.stop()
    if _playback_ticker:
        await _playback_ticker.stop()
    if _orchestrator:
        _orchestrator.close()

    await cancel_background_tasks(timeout=0.5)
    shutdown_executor()

    _orchestrator = _poller = _playback_ticker = None
    logger.info("Cleanup complete")


async def main(args: argparse.Namespace) -> None:
    """Startup refresh, then poll until an exit command arrives on the control queue."""
    global _orchestrator, _poller, _playback_ticker

    try:
        backend = get_backend()
    except BackendError as e:
        logger.error(str(e))
        print(f"Error: {e}")
        return

    state = AppState()
    errors = ErrorChannel()
    cache = CacheStore()
    cancellation = CancellationRegistry()

    lyrics_provider = LRCLIBProvider(cache, errors)
    art_provider = AlbumArtProvider(backend, cache, state, errors)
    _orchestrator = SyncOrchestrator(backend, state, errors, lyrics_provider, art_provider, cancellation)

    if args.player:
        await set_active_player(backend, state, args.player)
    else:
        await restore_active_player(backend, state)

    if get_preference("representationMethods.terminal", True) and not args.no_terminal:
        state.subscribe(TerminalPrinter(state, args.mode))
        errors.subscribe(_print_error)

    try:
        logger.info("Running startup refresh...")
        song = await _orchestrator.refresh()

        _poller = NowPlayingPoller(backend, state, errors, on_change=lambda _song: _orchestrator.refresh())
        _poller.start(initial_song=song)
        _playback_ticker = IntervalTask("Playback clock", _orchestrator.refresh_play_time,
                                        POLLING["playback_interval"])
        _playback_ticker.start()

        logger.info("Entering main loop...")
        while True:
            try:
                command = queue.get_nowait()
                if command == "exit":
                    logger.info("Exit signal received, breaking main loop...")
                    break
                elif command == "refresh":
                    await _orchestrator.refresh()
            except Empty:
                pass

            # Short sleep keeps interrupts responsive
            await asyncio.sleep(0.1)
    except asyncio.CancelledError:
        logger.info("Main loop cancelled...")
    finally:
        await cleanup()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='NowLyrics - synced lyrics for whatever is playing')
    parser.add_argument('--player', default=None,
                        help='Media player to follow (as listed by playerctl -l)')
    parser.add_argument('--mode', choices=['single', 'multiple'], default=None,
                        help='Show only the current line, or the current and next line')
    parser.add_argument('--no-terminal', action='store_true',
                        help='Do not print lyrics to the terminal')
    parser.add_argument('--version', action='version', version=f'NowLyrics {VERSION}')
    args = parser.parse_args(argv)

    if args.mode is None:
        args.mode = get_preference("lyricsMode", LYRICS.get("mode", "single"))
    else:
        set_preference("lyricsMode", args.mode)
    return args


def run(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)

    setup_logging(
        console_level=DEBUG.get("log_level", "INFO"),
        file_level="DEBUG" if DEBUG.get("log_detailed", False) else "INFO",
        console=DEBUG.get("log_to_console", True),
        log_file=DEBUG.get("log_file", "nowlyrics.log"),
        log_providers=DEBUG.get("log_providers", True),
        max_bytes=DEBUG["log_rotation"]["max_bytes"],
        backup_count=DEBUG["log_rotation"]["backup_count"],
    )

    def handle_interrupt(signum, frame):
        """Handle keyboard interrupt"""
        logger.info("Received keyboard interrupt...")
        queue.put("exit")

    def handle_refresh(signum, frame):
        """Force a refresh cycle (kill -USR1 <pid>)"""
        logger.info("Received refresh signal...")
        queue.put("refresh")

    signal.signal(signal.SIGINT, handle_interrupt)
    if hasattr(signal, "SIGUSR1"):
        signal.signal(signal.SIGUSR1, handle_refresh)

    try:
        logger.info(f"Starting NowLyrics v{VERSION}...")
        asyncio.run(main(args))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt caught in main...")
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    run()
