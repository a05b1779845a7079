"""
Persistent string-keyed cache for lyrics and artwork.

One JSON file per key under CACHE_DIR, written with an atomic temp-file
replace. Read failures of any kind are reported as a cache miss. There is no
eviction; entries are overwritten by later successful fetches.
"""
import hashlib
import json
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Optional, Union

from config import CACHE_DIR
from logging_config import get_logger

logger = get_logger(__name__)


class CacheStore:
    def __init__(self, directory: Union[str, Path] = CACHE_DIR):
        self.directory = Path(directory)
        self._lock = threading.RLock()

    def _path_for(self, key: str) -> Path:
        # Keys contain arbitrary text (artist names, dashes, slashes), so hash them
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        with self._lock:
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except FileNotFoundError:
                return None
            except Exception as e:
                logger.warning(f"Cache read failed for '{key}', treating as miss: {e}")
                return None

        if not isinstance(data, dict) or data.get("key") != key:
            return None
        value = data.get("value")
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        entry = {"key": key, "value": value, "saved_at": time.time()}

        with self._lock:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(dir=str(self.directory), suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(entry, f, ensure_ascii=False)
                os.replace(temp_path, path)
            except Exception:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise
        logger.debug(f"Cached '{key}' ({len(value)} chars)")
