"""
NowLyrics Configuration Loader
Loads values from settings.json via the settings manager.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

from settings import settings

# ==========================================
# Path Configuration
# ==========================================
ROOT_DIR = Path(__file__).parent

# ==========================================
# Version
# ==========================================
VERSION = "0.4.0"

env_file = ROOT_DIR / '.env'
if env_file.exists():
    load_dotenv(env_file)


def conf(key, default=None):
    """Env var (DEBUG_LOG_LEVEL style) > settings.json > default."""
    env_val = os.getenv(key.upper().replace('.', '_'))
    if env_val is not None:
        return env_val

    json_val = settings.get(key)
    if json_val is not None:
        return json_val

    return default


def conf_bool(key, default=False) -> bool:
    """conf() for switches; env vars arrive as strings."""
    value = conf(key, default)
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes", "on")
    return bool(value)


# ==========================================
# Directories
# ==========================================

CACHE_DIR = Path(os.getenv("NOWLYRICS_CACHE_DIR", str(ROOT_DIR / "cache")))
LRC_DIR = Path(os.getenv("NOWLYRICS_LRC_DIR", str(ROOT_DIR / "lrc")))

for d in [CACHE_DIR, LRC_DIR]:
    try:
        d.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        # Logging is not configured yet at import time
        print(f"Warning: Failed to create directory {d}: {e}")

# ==========================================
# EXPORTED CONFIG DICTS
# ==========================================

DEBUG = {
    "log_file": conf("debug.log_file", "nowlyrics.log"),
    "log_level": conf("debug.log_level", "INFO"),
    "log_providers": conf_bool("debug.log_providers", True),
    "log_polling": conf_bool("debug.log_polling", False),
    "log_to_console": conf_bool("debug.log_to_console", True),
    "log_detailed": conf_bool("debug.log_detailed", False),
    "log_rotation": {
        "max_bytes": int(conf("debug.log_rotation.max_bytes", 1048576)),
        "backup_count": int(conf("debug.log_rotation.backup_count", 10)),
    },
}

POLLING = {
    "interval": float(conf("polling.interval", 1.0)),
    "debounce": float(conf("polling.debounce", 0.5)),
    "failure_threshold": int(conf("polling.failure_threshold", 5)),
    "active_player_every": int(conf("polling.active_player_every", 10)),
    "playback_interval": float(conf("polling.playback_interval", 0.5)),
}

LYRICS = {
    "lead_time": float(conf("lyrics.lead_time", 0.5)),
    "mode": conf("lyrics.mode", "single"),
}

_retry_defaults = {
    "initial_delay": float(conf("retry.initial_delay", 1.0)),
    "max_delay": float(conf("retry.max_delay", 10.0)),
    "backoff_multiplier": float(conf("retry.backoff_multiplier", 2.0)),
}

RETRY = {
    # Song lookup gets a small budget: two attempts, short delays
    "song": {
        "max_retries": int(conf("retry.song.max_retries", 1)),
        "initial_delay": 0.5,
        "max_delay": 2.0,
        "backoff_multiplier": 2.0,
    },
    "lyrics": {"max_retries": int(conf("retry.lyrics.max_retries", 3)), **_retry_defaults},
    "album_art": {"max_retries": int(conf("retry.album_art.max_retries", 2)), **_retry_defaults},
}

PROVIDERS = {
    "lrclib": {
        "base_url": os.getenv("LRCLIB_BASE_URL", "https://lrclib.net/api"),
        "timeout": int(conf("providers.lrclib.timeout", 10)),
    },
    "deezer": {
        "base_url": os.getenv("DEEZER_BASE_URL", "https://api.deezer.com"),
        "timeout": int(conf("providers.deezer.timeout", 5)),
    },
}

THEME = {
    "default_accent": conf("theme.default_accent", "#121212"),
    "default_text": conf("theme.default_text", "#ffffff"),
}

FEATURES = {
    "save_lrc_files": conf_bool("features.save_lrc_files", False),
    "album_art_colors": conf_bool("features.album_art_colors", True),
}


def get_provider_config(name: str) -> dict:
    return PROVIDERS.get(name, {})
