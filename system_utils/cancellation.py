"""
Keyed cancellation tokens.

Starting a new operation under a key cancels whatever was in flight under that
key. Cancellation is cooperative: holders call token.raise_if_cancelled()
before every network call and stop when it raises.
"""
from __future__ import annotations

import threading
from typing import Dict

from .errors import RequestCancelledError
from logging_config import get_logger

logger = get_logger(__name__)

# Logical operation names
CURRENT_PLAYING = "getCurrentPlaying"
LYRICS = "getLyrics"
ALBUM_ART = "getAlbumArt"


class RequestToken:
    def __init__(self, key: str):
        self.key = key
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def raise_if_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise RequestCancelledError(self.key)

    def __repr__(self) -> str:
        return f"<RequestToken key='{self.key}' cancelled={self.cancelled}>"


class CancellationRegistry:
    def __init__(self):
        self._tokens: Dict[str, RequestToken] = {}
        self._lock = threading.Lock()

    def get_token(self, key: str) -> RequestToken:
        """Cancel any token under `key`, then register and return a fresh one."""
        token = RequestToken(key)
        with self._lock:
            previous = self._tokens.get(key)
            self._tokens[key] = token
        if previous is not None:
            previous.cancel()
            logger.debug(f"Superseded in-flight request: {key}")
        return token

    def cancel(self, key: str) -> None:
        with self._lock:
            token = self._tokens.pop(key, None)
        if token is not None:
            token.cancel()

    def cancel_all(self) -> None:
        with self._lock:
            tokens = list(self._tokens.values())
            self._tokens.clear()
        for token in tokens:
            token.cancel()

    def release(self, key: str, token: RequestToken) -> None:
        """Forget a finished token, unless a newer one already replaced it."""
        with self._lock:
            if self._tokens.get(key) is token:
                del self._tokens[key]

    def has_active_request(self, key: str) -> bool:
        with self._lock:
            return key in self._tokens
