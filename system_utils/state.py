"""
Shared State Module for system_utils package.
Holds the data model (Song, LyricLine) and the explicit state container the
UI/terminal subscribes to.

It imports NOTHING from the rest of the system_utils package to prevent circular imports.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from logging_config import get_logger

logger = get_logger(__name__)

# ==========================================
# CONSTANTS
# ==========================================

_MAX_CACHE_SIZE = 50

# ==========================================
# TASK TRACKING
# ==========================================

# Strong references to background tasks so they are not garbage collected mid-flight
_background_tasks: set = set()


# ==========================================
# DATA MODEL
# ==========================================

def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


@dataclass(frozen=True)
class Song:
    artist: Optional[str] = None
    title: Optional[str] = None
    album: Optional[str] = None

    @property
    def key(self) -> str:
        """Identity used for change detection and the lyrics cache."""
        return make_song_key(self.artist, self.title, self.album)

    @property
    def is_complete(self) -> bool:
        return bool(_clean(self.artist)) and bool(_clean(self.title))

    def __str__(self) -> str:
        return f"{_clean(self.artist) or '?'} - {_clean(self.title) or '?'}"


def make_song_key(artist: Optional[str], title: Optional[str], album: Optional[str] = None) -> str:
    return f"{_clean(artist)}{_clean(title)}{_clean(album)}".lower()


@dataclass(frozen=True)
class LyricLine:
    time: float
    text: str


# ==========================================
# OBSERVABLE STATE
# ==========================================

class Observable:
    """Minimal subscribe/notify helper shared by AppState and ErrorChannel."""

    def __init__(self):
        self._lock = threading.RLock()
        self._subscribers: List[Callable[..., Any]] = []

    def subscribe(self, callback: Callable[..., Any]) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, *args: Any) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"State subscriber failed: {e}", exc_info=True)


DEFAULT_STATE: Dict[str, Any] = {
    "current_song": None,
    "synced_lyrics": "",
    "plain_lyrics": "",
    "current_line": None,
    "next_line": None,
    "play_time": 0.0,
    "artwork": "",
    "accent_color": "",
    "text_color": "",
    "is_loading": False,
    "active_player": None,
    "available_players": [],
}


class AppState(Observable):
    """
    Explicit container for everything the UI renders.

    Built once by the entry point, passed to the components that write to it.
    Subscribers are called as callback(key, value) after each change.
    """

    def __init__(self, **initial: Any):
        super().__init__()
        self._values: Dict[str, Any] = dict(DEFAULT_STATE)
        for key, value in initial.items():
            self._check_key(key)
            self._values[key] = value

    @staticmethod
    def _check_key(key: str) -> None:
        if key not in DEFAULT_STATE:
            raise KeyError(f"Unknown state key: {key}")

    def get(self, key: str) -> Any:
        self._check_key(key)
        with self._lock:
            return self._values[key]

    def set(self, key: str, value: Any) -> bool:
        """Set one value. Returns True if it changed."""
        return self.update(**{key: value})

    def update(self, **values: Any) -> bool:
        """Set several values atomically; subscribers see them after the whole write."""
        changed = []
        with self._lock:
            for key, value in values.items():
                self._check_key(key)
                if self._values[key] != value:
                    self._values[key] = value
                    changed.append((key, value))
        for key, value in changed:
            self._notify(key, value)
        return bool(changed)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._values)

    def reset(self) -> None:
        self.update(**DEFAULT_STATE)
