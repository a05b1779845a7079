"""
Media backend selection.

Usage:
    from system_utils.sources import get_backend
    backend = get_backend()
"""
import platform

from .base import MediaBackend
from .linux import PlayerctlBackend
from ..errors import BackendError
from config import PROVIDERS
from logging_config import get_logger

logger = get_logger(__name__)


def check_media_control(backend: MediaBackend) -> bool:
    """Windows and macOS use native APIs; Linux needs playerctl."""
    if platform.system() == "Linux":
        return backend.check_if_playerctl_exists()
    return backend.is_available()


def get_backend() -> MediaBackend:
    """Backend for the current platform. Raises BackendError when none can run."""
    current_platform = platform.system()
    timeout = PROVIDERS.get("deezer", {}).get("timeout", 10)

    if current_platform == "Linux":
        backend = PlayerctlBackend(fetch_timeout=timeout)
        if not check_media_control(backend):
            raise BackendError("playerctl is required on Linux: sudo apt install playerctl")
        logger.info("Using playerctl media backend")
        return backend

    raise BackendError(f"No media backend available for {current_platform}")


__all__ = ["MediaBackend", "PlayerctlBackend", "check_media_control", "get_backend"]
