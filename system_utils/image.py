"""
Image utilities for system_utils package.
Handles artwork encoding, dominant color extraction and text color contrast.

Dependencies: state (for the color cache)
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import io
from dataclasses import dataclass
from functools import lru_cache
from typing import Awaitable, Callable, Optional

from PIL import Image

from . import state
from .helpers import run_blocking
from config import THEME
from logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_ACCENT = THEME.get("default_accent", "#121212")
DEFAULT_TEXT = THEME.get("default_text", "#ffffff")

# Perceived brightness midpoint of the 0-255 range
LUMINANCE_THRESHOLD = 127.5

# Cache for color extraction; key: sha1 of the artwork reference
_color_cache: dict = {}


@dataclass(frozen=True)
class ThemeColors:
    accent: str
    text: str


DEFAULT_COLORS = ThemeColors(DEFAULT_ACCENT, DEFAULT_TEXT)


def get_image_mime(data: bytes) -> str:
    """Detect image format from file header bytes."""
    if data.startswith(b'\x89PNG\r\n\x1a\n'):
        return 'image/png'
    if data.startswith(b'GIF8'):
        return 'image/gif'
    if data.startswith(b'BM'):
        return 'image/bmp'
    if data[:4] == b'RIFF' and data[8:12] == b'WEBP':
        return 'image/webp'
    return 'image/jpeg'


def to_data_uri(b64_payload: str) -> str:
    """Wrap a base64 image payload in a self-contained data URI."""
    raw = base64.b64decode(b64_payload, validate=True)
    if not raw:
        raise ValueError("Empty image payload")
    return f"data:{get_image_mime(raw)};base64,{b64_payload}"


def decode_data_uri(artwork: str) -> Optional[bytes]:
    """Image bytes of a data URI, or None if `artwork` is not one."""
    if not artwork.startswith("data:") or ";base64," not in artwork:
        return None
    try:
        return base64.b64decode(artwork.split(";base64,", 1)[1])
    except (binascii.Error, ValueError):
        return None


@lru_cache(maxsize=1)
def placeholder_artwork() -> str:
    """Solid default-accent PNG so color derivation has deterministic input before any art loads."""
    rgb = tuple(int(DEFAULT_ACCENT.lstrip('#')[i:i + 2], 16) for i in (0, 2, 4))
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), rgb).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def extract_dominant_color_sync(data: bytes) -> str:
    """
    Synchronous helper for dominant color extraction.
    Runs in a worker thread; raises on undecodable images.
    """
    with Image.open(io.BytesIO(data)) as img:
        img = img.convert("RGB")
        img = img.resize((100, 100))  # Small size is enough for a dominant color

        result = img.quantize(colors=8)
        palette = result.getpalette()
        counts = result.getcolors()
        if not counts or not palette:
            raise ValueError("Image has no palette")

        _, index = max(counts)
        r, g, b = palette[index * 3:index * 3 + 3]
        return f"#{r:02x}{g:02x}{b:02x}"


def get_text_color(background: str) -> str:
    """Black or white, whichever reads better on `background` (hex)."""
    hex_value = background.lstrip('#')
    r = int(hex_value[0:2], 16)
    g = int(hex_value[2:4], 16)
    b = int(hex_value[4:6], 16)

    brightness = 0.299 * r + 0.587 * g + 0.114 * b
    return "#000000" if brightness > LUMINANCE_THRESHOLD else "#ffffff"


async def derive_theme_colors(
    artwork: Optional[str],
    fetch_image_base64: Optional[Callable[[str], Awaitable[str]]] = None
) -> ThemeColors:
    """
    Accent + text color for the given artwork (data URI or remote URL).
    Never raises: any failure yields the default dark accent with light text.
    """
    if not artwork:
        return DEFAULT_COLORS

    cache_key = hashlib.sha1(artwork.encode("utf-8")).hexdigest()
    if cache_key in _color_cache:
        return _color_cache[cache_key]

    try:
        data = decode_data_uri(artwork)
        if data is None:
            if fetch_image_base64 is None:
                raise ValueError("Remote artwork and no image fetcher")
            data = base64.b64decode(await fetch_image_base64(artwork))

        accent = await run_blocking(extract_dominant_color_sync, data)
        colors = ThemeColors(accent, get_text_color(accent))
    except Exception as e:
        logger.warning(f"Color extraction failed, using defaults: {e}")
        return DEFAULT_COLORS

    if len(_color_cache) > state._MAX_CACHE_SIZE:
        _color_cache.pop(next(iter(_color_cache)))
    _color_cache[cache_key] = colors
    return colors
