"""
Providers Package
Network-backed providers for synchronized lyrics (LRCLIB) and album art (Deezer).
"""
from .base import BaseProvider
from .lrclib import LRCLIBProvider
from .album_art import AlbumArtProvider

__all__ = [
    'BaseProvider',
    'LRCLIBProvider',
    'AlbumArtProvider',
]
