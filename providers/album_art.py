"""
Album Art Provider
Resolves cover art for the current track from the Deezer search API and
keeps the theme colors (accent + readable text color) in sync with it.

Art is stored as a self-contained data URI so the cache keeps working offline.
"""
import json
from typing import Optional
from urllib.parse import urlencode

from .base import BaseProvider
from cache_store import CacheStore
from config import FEATURES
from logging_config import get_logger
from system_utils.cancellation import RequestToken
from system_utils.errors import (
    ErrorCategory,
    ErrorChannel,
    NotFoundError,
    RequestCancelledError,
    UnexpectedError,
    ValidationError,
    is_retryable,
)
from system_utils.image import (
    DEFAULT_COLORS,
    ThemeColors,
    derive_theme_colors,
    placeholder_artwork,
    to_data_uri,
)
from system_utils.retry import retry_with_backoff
from system_utils.sources.base import MediaBackend
from system_utils.state import AppState

logger = get_logger(__name__)


def make_art_key(artist: Optional[str], title: Optional[str], album: Optional[str]) -> str:
    parts = [(artist or "").strip(), (title or "").strip(), (album or "").strip()]
    return "-".join(parts).lower()


def build_search_query(artist: str, title: str, album: Optional[str]) -> str:
    """
    Deezer query for a track.

    Some players report the title as the album for singles, so an album equal
    to the title is not trusted and the search goes by artist + track.
    """
    if not album or album != title:
        return f'artist:"{artist}" track:"{title}"'
    return f'album:"{album}" artist:"{artist}"'


class AlbumArtProvider(BaseProvider):
    """Artwork lookups go through the media backend's fetch capability."""

    category = ErrorCategory.ALBUM_ART

    def __init__(self, backend: MediaBackend, cache: CacheStore, state: AppState, errors: ErrorChannel):
        super().__init__("deezer", errors, "album_art")
        self.backend = backend
        self.cache = cache
        self.state = state

    def _ensure_placeholder(self) -> None:
        if not self.state.get("artwork"):
            self.state.set("artwork", placeholder_artwork())

    async def resolve(self, artist: str, title: str, album: Optional[str] = None,
                      token: Optional[RequestToken] = None) -> Optional[str]:
        """
        Artwork (data URI, or raw URL if re-encoding failed) for the track.

        Never clears existing artwork: on failure the previous value stays in
        state and is returned. Colors are re-derived on every path.
        """
        self._ensure_placeholder()

        artist = (artist or "").strip()
        title = (title or "").strip()
        if not artist or not title:
            error = ValidationError("Artist and title are required to look up album art")
            self._publish_failure(error, "this track")
            await self.update_accent_color()
            raise error

        key = make_art_key(artist, title, album)
        cached = self.cache.get(key)
        if cached:
            logger.debug(f"Album art cache hit for {artist} - {title}")
            self.state.set("artwork", cached)
            await self.update_accent_color()
            return cached

        try:
            artwork = await retry_with_backoff(
                lambda: self._fetch_artwork(artist, title, album, token),
                should_retry=is_retryable,
                name=f"Deezer search '{artist} - {title}'",
                **self.retry_config
            )
        except RequestCancelledError:
            raise
        except Exception as e:
            if isinstance(e, NotFoundError):
                logger.info(f"Album art - {e}")
            else:
                logger.warning(f"Album art - Failed for {artist} - {title}: {e}")
            self._publish_failure(e, f"{artist} - {title}")
            await self.update_accent_color()
            return self.state.get("artwork")

        self._checkpoint(token)
        try:
            self.cache.set(key, artwork)
        except OSError as e:
            logger.warning(f"Album art - Could not cache artwork for {artist} - {title}: {e}")

        self.state.set("artwork", artwork)
        await self.update_accent_color()
        return artwork

    async def update_accent_color(self) -> ThemeColors:
        """Derive accent/text colors from the current artwork and publish them."""
        artwork = self.state.get("artwork")
        if not artwork or artwork == placeholder_artwork() or not FEATURES.get("album_art_colors", True):
            colors = DEFAULT_COLORS
        else:
            colors = await derive_theme_colors(artwork, self.backend.fetch_image_base64)

        self.state.update(accent_color=colors.accent, text_color=colors.text)
        return colors

    async def _fetch_artwork(self, artist: str, title: str, album: Optional[str],
                             token: Optional[RequestToken]) -> str:
        self._checkpoint(token)
        query = build_search_query(artist, title, album)
        url = f"{self.base_url}/search?{urlencode({'q': query})}"
        logger.debug(f"Album art - Deezer search: {query}")

        body = await self.backend.fetch_url(url)
        self._checkpoint(token)

        try:
            data = json.loads(body)
        except ValueError as e:
            raise UnexpectedError(f"Deezer returned invalid JSON: {e}", cause=e)

        try:
            cover_url = data["data"][0]["album"]["cover_medium"]
        except (KeyError, IndexError, TypeError):
            cover_url = None
        if not cover_url:
            raise NotFoundError(f"No album art for {artist} - {title}")

        try:
            payload = await self.backend.fetch_image_base64(cover_url)
            self._checkpoint(token)
            return to_data_uri(payload)
        except RequestCancelledError:
            raise
        except Exception as e:
            logger.warning(f"Album art - Could not embed {cover_url}, keeping the URL: {e}")
            return cover_url
