"""
Boundary of the native media-control backend.

A backend reports the current song and playback position, lists and selects
players, accepts seek/playback commands and offers a fetch capability used by
the artwork provider. Every call is async and may raise BackendError.

To add a backend:
1. Create a new file in system_utils/sources/
2. Subclass MediaBackend and implement the abstract methods
3. Register it in system_utils/sources/__init__.py:get_backend()
"""
import base64
import platform
from abc import ABC, abstractmethod
from typing import List, Optional

import requests

from ..errors import BackendError, TransientError
from ..helpers import run_blocking
from ..state import Song
from config import VERSION
from logging_config import get_logger

logger = get_logger(__name__)

USER_AGENT = f"NowLyrics v{VERSION} (https://github.com/nowlyrics/nowlyrics)"


class MediaBackend(ABC):
    """
    Abstract media backend.

    Required methods:
        get_current_playing_song() - Current track (may be incomplete)
        get_current_audio_time() - Playback position in seconds

    Optional methods (defaults raise or return empty values):
        player selection, playback controls, seek
    """

    name = "base"
    platforms: List[str] = ["Windows", "Linux", "Darwin"]

    def __init__(self, fetch_timeout: float = 10):
        self.fetch_timeout = fetch_timeout
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})

    def is_available(self) -> bool:
        """Default: the current platform is supported."""
        return platform.system() in self.platforms

    def check_if_playerctl_exists(self) -> bool:
        return False

    # === Now playing ===

    @abstractmethod
    async def get_current_playing_song(self) -> Song:
        pass

    @abstractmethod
    async def get_current_audio_time(self) -> float:
        pass

    # === Player selection ===

    async def get_active_player(self) -> Optional[str]:
        return None

    async def get_available_players(self) -> List[str]:
        return []

    async def set_active_player(self, player_id: str) -> None:
        raise BackendError(f"{self.name} backend cannot select players")

    async def get_player_status(self, player_id: str) -> str:
        return "Unknown"

    # === Playback control ===

    async def go_to_time(self, seconds: float) -> None:
        raise BackendError(f"{self.name} backend cannot seek")

    async def toggle_play(self) -> None:
        raise BackendError(f"{self.name} backend has no playback control")

    async def next_song(self) -> None:
        raise BackendError(f"{self.name} backend has no playback control")

    async def previous_song(self) -> None:
        raise BackendError(f"{self.name} backend has no playback control")

    async def is_playing(self) -> bool:
        return False

    # === Fetch capability ===
    # The desktop shell proxied these to dodge browser CORS; here they are
    # plain HTTP calls that backends may override.

    def _get(self, url: str) -> requests.Response:
        response = self.session.get(url, timeout=self.fetch_timeout)
        if response.status_code >= 500:
            raise TransientError(f"HTTP {response.status_code} from {url}", status_code=response.status_code)
        if response.status_code != 200:
            raise BackendError(f"HTTP {response.status_code} from {url}")
        return response

    async def fetch_url(self, url: str) -> str:
        response = await run_blocking(self._get, url)
        return response.text

    async def fetch_image_base64(self, url: str) -> str:
        response = await run_blocking(self._get, url)
        if not response.content:
            raise BackendError(f"Empty image body from {url}")
        return base64.b64encode(response.content).decode("ascii")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name='{self.name}'>"
