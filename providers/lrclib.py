"""LRCLIB Provider for synchronized lyrics"""
from typing import Any, Dict, Optional

import requests

from .base import BaseProvider
from cache_store import CacheStore
from logging_config import get_logger
from system_utils.cancellation import RequestToken
from system_utils.errors import (
    ErrorCategory,
    ErrorChannel,
    NotFoundError,
    RequestCancelledError,
    TransientError,
    UnexpectedError,
    ValidationError,
    is_retryable,
)
from system_utils.helpers import replace_special_chars, run_blocking
from system_utils.retry import retry_with_backoff
from system_utils.state import make_song_key

logger = get_logger(__name__)

PLAIN_PREFIX = "plain::"


class LRCLIBProvider(BaseProvider):
    category = ErrorCategory.LYRICS

    def __init__(self, cache: CacheStore, errors: ErrorChannel, session: Optional[requests.Session] = None):
        """Initialize LRCLIB provider with config settings"""
        super().__init__("lrclib", errors, "lyrics", session=session)
        self.cache = cache
        self.session.headers.update({"Lrclib-Client": self.session.headers["User-Agent"]})

    async def resolve(self, artist: str, title: str, token: Optional[RequestToken] = None) -> Optional[str]:
        """
        Synced lyrics for (artist, title), cache first.

        Returns None when nothing usable was found or the fetch failed; the
        reason is published on the error channel. Empty input is published too,
        then raised as ValidationError; RequestCancelledError when superseded.
        """
        artist = (artist or "").strip()
        title = (title or "").strip()
        if not artist or not title:
            error = ValidationError("Artist and title are required to look up lyrics")
            self._publish_failure(error, "this track")
            raise error

        key = make_song_key(artist, title)
        cached = self.cache.get(key)
        if cached:
            logger.debug(f"LRCLib - Cache hit for {artist} - {title}")
            return cached

        try:
            result = await retry_with_backoff(
                lambda: self._search(artist, title, token),
                should_retry=is_retryable,
                name=f"LRCLib search '{artist} - {title}'",
                **self.retry_config
            )
        except RequestCancelledError:
            raise
        except NotFoundError as e:
            logger.info(f"LRCLib - {e}")
            self._publish_failure(e, f"{artist} - {title}")
            return None
        except Exception as e:
            logger.error(f"LRCLib - Error fetching lyrics for {artist} - {title}: {e}")
            self._publish_failure(e, f"{artist} - {title}")
            return None

        self._checkpoint(token)
        synced = result["syncedLyrics"]
        self._write_cache(key, synced)
        plain = result.get("plainLyrics")
        if isinstance(plain, str) and plain.strip():
            self._write_cache(PLAIN_PREFIX + key, plain)

        logger.info(f"LRCLib - Found synced lyrics for {artist} - {title}")
        return synced

    def get_plain_lyrics(self, artist: str, title: str) -> Optional[str]:
        """Unsynced lyrics stored alongside the last successful resolve()."""
        return self.cache.get(PLAIN_PREFIX + make_song_key(artist, title))

    def _write_cache(self, key: str, value: str) -> None:
        try:
            self.cache.set(key, value)
        except OSError as e:
            logger.warning(f"LRCLib - Could not cache lyrics under '{key}': {e}")

    async def _search(self, artist: str, title: str, token: Optional[RequestToken]) -> Dict[str, Any]:
        self._checkpoint(token)
        params = {
            "artist_name": replace_special_chars(artist),
            "track_name": replace_special_chars(title),
        }
        logger.debug(f"LRCLib - Searching with params: {params}")
        payload = await run_blocking(self._get_json, f"{self.base_url}/search", params)
        self._checkpoint(token)

        if not isinstance(payload, list) or not payload:
            raise NotFoundError(f"No search results for {artist} - {title}")
        first = payload[0]
        synced = first.get("syncedLyrics") if isinstance(first, dict) else None
        if not isinstance(synced, str) or not synced.strip():
            raise NotFoundError(f"No synced lyrics for {artist} - {title}")
        return first

    def _get_json(self, url: str, params: Dict[str, str]) -> Any:
        """Blocking GET, classified into the sync error taxonomy."""
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            raise TransientError(f"LRCLib request timed out after {self.timeout}s", cause=e)
        except requests.ConnectionError as e:
            raise TransientError(f"Could not reach LRCLib: {e}", cause=e)
        except requests.RequestException as e:
            raise UnexpectedError(f"LRCLib request failed: {e}", cause=e)

        if response.status_code == 404:
            raise NotFoundError("LRCLib returned 404 Not Found")
        if response.status_code >= 500:
            raise TransientError(f"LRCLib returned status {response.status_code}",
                                 status_code=response.status_code)
        if response.status_code != 200:
            raise UnexpectedError(f"LRCLib returned status {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise UnexpectedError(f"LRCLib returned invalid JSON: {e}", cause=e)
