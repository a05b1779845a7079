"""
Linux MPRIS backend via playerctl.

Works with any MPRIS-compatible player (Spotify, VLC, Firefox, Rhythmbox...).

Requirements:
- Linux operating system
- playerctl installed: sudo apt install playerctl
"""
import subprocess
from typing import List, Optional

from .base import MediaBackend
from ..errors import BackendError
from ..helpers import run_blocking
from ..state import Song
from logging_config import get_logger

logger = get_logger(__name__)

PLAYERCTL_TIMEOUT = 2


class PlayerctlBackend(MediaBackend):
    """
    Talks to playerctl with one subprocess per call.

    The active player is either chosen explicitly (set_active_player) or
    picked from `playerctl -l`, preferring one that is currently playing.
    """

    name = "linux"
    platforms = ["Linux"]

    def __init__(self, fetch_timeout: float = 10):
        super().__init__(fetch_timeout)
        self._playerctl_available: Optional[bool] = None
        self._selected_player: Optional[str] = None

    def check_if_playerctl_exists(self) -> bool:
        """Cached `playerctl --version` probe."""
        if self._playerctl_available is None:
            try:
                result = subprocess.run(
                    ["playerctl", "--version"],
                    capture_output=True,
                    timeout=PLAYERCTL_TIMEOUT
                )
                self._playerctl_available = result.returncode == 0
                if self._playerctl_available:
                    logger.debug(f"playerctl found: {result.stdout.decode().strip()}")
                else:
                    logger.warning("playerctl not available (command failed)")
            except FileNotFoundError:
                self._playerctl_available = False
                logger.warning("playerctl not installed. Install with: sudo apt install playerctl")
            except subprocess.TimeoutExpired:
                self._playerctl_available = False
                logger.warning("playerctl check timed out")
        return self._playerctl_available

    def is_available(self) -> bool:
        return super().is_available() and self.check_if_playerctl_exists()

    def _run_sync(self, *args: str) -> str:
        """Blocking playerctl call; raises BackendError on any failure."""
        try:
            result = subprocess.run(
                ["playerctl", *args],
                capture_output=True,
                text=True,
                timeout=PLAYERCTL_TIMEOUT
            )
        except subprocess.TimeoutExpired:
            raise BackendError(f"playerctl {args[0]} timed out")
        except FileNotFoundError:
            self._playerctl_available = False
            raise BackendError("playerctl is not installed")
        except subprocess.SubprocessError as e:
            raise BackendError(f"playerctl {args[0]} failed: {e}", cause=e)

        if result.returncode != 0:
            raise BackendError(f"playerctl {' '.join(args)} failed: {result.stderr.strip()}")
        return result.stdout

    async def _run(self, *args: str) -> str:
        return await run_blocking(self._run_sync, *args)

    async def _player_args(self) -> List[str]:
        player = await self.get_active_player()
        return ["-p", player] if player else []

    # === Now playing ===

    async def get_current_playing_song(self) -> Song:
        args = await self._player_args()
        output = await self._run(*args, "metadata", "--format", "{{artist}}\n{{title}}\n{{album}}")
        return parse_metadata_output(output)

    async def get_current_audio_time(self) -> float:
        args = await self._player_args()
        output = (await self._run(*args, "position")).strip()
        try:
            return float(output)
        except ValueError:
            raise BackendError(f"Unparsable position from playerctl: {output!r}")

    # === Player selection ===

    async def get_available_players(self) -> List[str]:
        output = await self._run("-l")
        return [line.strip() for line in output.splitlines() if line.strip()]

    async def get_player_status(self, player_id: str) -> str:
        try:
            return (await self._run("-p", player_id, "status")).strip() or "Unknown"
        except BackendError:
            return "Unknown"

    async def get_active_player(self) -> Optional[str]:
        if self._selected_player:
            return self._selected_player

        players = await self.get_available_players()
        for player in players:
            if await self.get_player_status(player) == "Playing":
                return player
        return players[0] if players else None

    async def set_active_player(self, player_id: str) -> None:
        self._selected_player = player_id or None
        logger.info(f"Active player set to {player_id or 'auto'}")

    # === Playback control ===

    async def go_to_time(self, seconds: float) -> None:
        args = await self._player_args()
        await self._run(*args, "position", f"{max(seconds, 0):.3f}")

    async def toggle_play(self) -> None:
        await self._run(*await self._player_args(), "play-pause")

    async def next_song(self) -> None:
        await self._run(*await self._player_args(), "next")

    async def previous_song(self) -> None:
        await self._run(*await self._player_args(), "previous")

    async def is_playing(self) -> bool:
        args = await self._player_args()
        try:
            return (await self._run(*args, "status")).strip() == "Playing"
        except BackendError:
            return False


def parse_metadata_output(output: str) -> Song:
    """Turn 'artist\\ntitle\\nalbum' from playerctl into a Song (empty fields -> None)."""
    lines = output.split("\n")
    fields = [(lines[i].strip() if i < len(lines) else "") or None for i in range(3)]
    return Song(artist=fields[0], title=fields[1], album=fields[2])
