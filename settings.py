"""
NowLyrics Settings Manager
Handles typed, persisted configuration in settings.json
"""

import json
import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from logging_config import get_logger

logger = get_logger(__name__)

ROOT_DIR = Path(__file__).parent

# Overridable so tests and packaged installs never write next to the sources
SETTINGS_FILE = Path(os.getenv("NOWLYRICS_SETTINGS_FILE", str(ROOT_DIR / "settings.json")))


@dataclass
class Setting:
    """Represents a single configurable setting"""
    name: str
    type: type
    default: Any
    category: Optional[str] = None
    description: Optional[str] = None
    min_val: Optional[float] = None
    max_val: Optional[float] = None
    options: Optional[list] = None

    def validate_and_convert(self, value: Any) -> Any:
        try:
            if self.type == bool and isinstance(value, str):
                return value.lower() in ('true', '1', 'yes', 'on')

            converted = self.type(value)
            if self.min_val is not None and converted < self.min_val:
                return self.default
            if self.max_val is not None and converted > self.max_val:
                return self.default
            if self.options and converted not in self.options:
                return self.default
            return converted
        except (ValueError, TypeError):
            return self.default


class SettingsManager:
    def __init__(self, settings_file: Path = SETTINGS_FILE):
        self.settings_file = settings_file
        self._settings: Dict[str, Any] = {}

        self._definitions = {
            # Debug
            "debug.log_file": Setting("Log File", str, "nowlyrics.log", "Debug", "Log file name"),
            "debug.log_level": Setting("Log Level", str, "INFO", "Debug", "Console logging verbosity", options=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
            "debug.log_providers": Setting("Log Providers", bool, True, "Debug", "Log provider requests"),
            "debug.log_polling": Setting("Log Polling", bool, False, "Debug", "Log every poller tick"),
            "debug.log_to_console": Setting("Log to Console", bool, True, "Debug", "Print logs to terminal"),
            "debug.log_detailed": Setting("Detailed Logging", bool, False, "Debug", "Write DEBUG records to the log file"),
            "debug.log_rotation.max_bytes": Setting("Max Log Size", int, 1048576, "Debug", "Max log file size (bytes)", min_val=1024),
            "debug.log_rotation.backup_count": Setting("Log Backups", int, 10, "Debug", "Number of backups to keep", min_val=0),

            # Polling
            "polling.interval": Setting("Poll Interval", float, 1.0, "Polling", "Seconds between now-playing checks", min_val=0.1, max_val=30.0),
            "polling.debounce": Setting("Change Debounce", float, 0.5, "Polling", "Quiet period before a song change is declared", min_val=0.0, max_val=5.0),
            "polling.failure_threshold": Setting("No-Player Threshold", int, 5, "Polling", "Consecutive misses before 'no player' is reported", min_val=1),
            "polling.active_player_every": Setting("Active Player Refresh", int, 10, "Polling", "Refresh the active player every N ticks", min_val=1),
            "polling.playback_interval": Setting("Playback Interval", float, 0.5, "Polling", "Seconds between playback position samples", min_val=0.05, max_val=5.0),

            # Lyrics
            "lyrics.lead_time": Setting("Lead Time", float, 0.5, "Lyrics", "Highlight lines this many seconds early", min_val=0.0, max_val=3.0),
            "lyrics.mode": Setting("Terminal Mode", str, "single", "Lyrics", "Terminal display mode", options=["single", "multiple"]),

            # Retry
            "retry.song.max_retries": Setting("Song Retries", int, 1, "Retry", "Retries for the current song lookup", min_val=0),
            "retry.lyrics.max_retries": Setting("Lyrics Retries", int, 3, "Retry", "Retries for lyrics lookups", min_val=0),
            "retry.album_art.max_retries": Setting("Album Art Retries", int, 2, "Retry", "Retries for album art lookups", min_val=0),
            "retry.initial_delay": Setting("Initial Delay", float, 1.0, "Retry", "First backoff delay (seconds)", min_val=0.0),
            "retry.max_delay": Setting("Max Delay", float, 10.0, "Retry", "Backoff delay cap (seconds)", min_val=0.0),
            "retry.backoff_multiplier": Setting("Backoff Multiplier", float, 2.0, "Retry", "Delay growth factor", min_val=1.0),

            # Providers
            "providers.lrclib.timeout": Setting("LRCLIB Timeout", int, 10, "Providers", "Request timeout (seconds)", min_val=1),
            "providers.deezer.timeout": Setting("Deezer Timeout", int, 5, "Providers", "Request timeout (seconds)", min_val=1),

            # Theme
            "theme.default_accent": Setting("Default Accent", str, "#121212", "Theme", "Accent color used when extraction fails"),
            "theme.default_text": Setting("Default Text", str, "#ffffff", "Theme", "Text color used when extraction fails"),

            # Features
            "features.save_lrc_files": Setting("Save .lrc Files", bool, False, "Features", "Write resolved lyrics to the LRC folder"),
            "features.album_art_colors": Setting("Album Art Colors", bool, True, "Features", "Derive accent colors from album art"),
        }

        self.load_settings()

    def load_settings(self) -> None:
        """Load settings from JSON, fall back to defaults"""
        self._settings = {key: definition.default for key, definition in self._definitions.items()}

        if not self.settings_file.exists():
            logger.info(f"Creating default settings file at {self.settings_file}")
            self.save_to_config()
            return

        try:
            with open(self.settings_file, 'r', encoding='utf-8') as f:
                saved = json.load(f)
            for key, val in saved.items():
                if key in self._definitions:
                    self._settings[key] = self._definitions[key].validate_and_convert(val)
                else:
                    # Unknown keys are kept so newer files survive a downgrade
                    self._settings[key] = val
        except Exception as e:
            logger.error(f"Failed to load settings.json: {e} - resetting to defaults")
            backup_path = self.settings_file.with_suffix('.json.corrupted')
            try:
                shutil.copy2(self.settings_file, backup_path)
                logger.info(f"Backed up corrupted settings to {backup_path}")
            except OSError as copy_err:
                logger.warning(f"Could not back up corrupted settings: {copy_err}")
            self.save_to_config()

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.
        Loaded value first, then the schema default, then `default`.
        """
        if key in self._settings:
            return self._settings[key]
        if key in self._definitions:
            return self._definitions[key].default
        return default

    def save_to_config(self) -> None:
        """Save current memory settings to JSON file"""
        temp_path = self.settings_file.parent / f"settings_{uuid.uuid4().hex}.json.tmp"
        try:
            self.settings_file.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(self._settings, f, indent=4, sort_keys=True)
            os.replace(temp_path, self.settings_file)
        except OSError as e:
            logger.error(f"Failed to save settings: {e}")
            if temp_path.exists():
                try:
                    os.remove(temp_path)
                except OSError:
                    pass


settings = SettingsManager()
