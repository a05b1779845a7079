"""
Persisted user preferences (state.json): active player, terminal lyrics mode,
enabled representation methods. Separate from the in-memory AppState, which
is rebuilt every run.
"""
import json
import os
import threading
import time
import uuid
from typing import Any

from benedict import benedict

from config import ROOT_DIR
from logging_config import get_logger

logger = get_logger(__name__)

STATE_FILE = os.getenv("NOWLYRICS_STATE_FILE", str(ROOT_DIR / "state.json"))

DEFAULT_STATE = {
    "activePlayer": None,
    "lyricsMode": "single",
    "representationMethods": {
        "terminal": True
    },
}

# In-memory cache with TTL to avoid reading from disk on every tick
state = None
state_cache_time = 0
STATE_CACHE_TTL = 2.0

# Re-entrant: get_state() -> reset_state() -> set_state() runs on one thread
_state_lock = threading.RLock()


def reset_state():
    """Reset the persisted state to DEFAULT_STATE."""
    set_state(json.loads(json.dumps(DEFAULT_STATE)))


def set_state(new_state: dict):
    """
    Persist `new_state` with an atomic temp-file replace.

    Args:
        new_state (dict): The new state.
    """
    global state, state_cache_time

    with _state_lock:
        state_dir = os.path.dirname(STATE_FILE) or "."
        temp_path = os.path.join(state_dir, f"state_{uuid.uuid4().hex}.json.tmp")

        try:
            os.makedirs(state_dir, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(new_state, f, indent=4)
            os.replace(temp_path, STATE_FILE)

            state = new_state
            state_cache_time = time.time()
        except Exception:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise


def get_state() -> dict:
    """
    Return the persisted state, read through a short TTL cache.
    Missing or corrupted files fall back to DEFAULT_STATE.
    """
    global state, state_cache_time

    current_time = time.time()
    if state is not None and (current_time - state_cache_time) < STATE_CACHE_TTL:
        return state

    with _state_lock:
        if not os.path.exists(STATE_FILE):
            try:
                reset_state()
                return state
            except OSError as e:
                logger.error(f"Failed to create state file at {STATE_FILE}: {e}")
                state = json.loads(json.dumps(DEFAULT_STATE))
                state_cache_time = current_time
                return state

        try:
            with open(STATE_FILE, "r", encoding="utf-8") as f:
                loaded = json.load(f)
            if not isinstance(loaded, dict):
                raise ValueError(f"expected an object, got {type(loaded).__name__}")
            state = loaded
            state_cache_time = current_time
            return state
        except Exception as e:
            logger.warning(f"Failed to read state file {STATE_FILE}: {e}, resetting")
            try:
                reset_state()
            except OSError as reset_error:
                logger.error(f"Failed to reset state file: {reset_error}")
                state = json.loads(json.dumps(DEFAULT_STATE))
                state_cache_time = current_time
            return state


def set_attribute_js_notation(state: dict, attribute: str, value: Any) -> dict:
    """
    Set `attribute` (dotted path, e.g. "representationMethods.terminal") to `value`.

    Returns:
        dict: A copy of the state with the attribute set.
    """
    state = benedict(state, keypath_separator=".")
    state[attribute] = value
    return state.dict()


def get_attribute_js_notation(state: dict, attribute: str, default: Any = None) -> Any:
    """Read a dotted-path attribute, `default` if it is missing."""
    state = benedict(state, keypath_separator=".")
    return state.get(attribute, default)


def get_preference(attribute: str, default: Any = None) -> Any:
    return get_attribute_js_notation(get_state(), attribute, default)


def set_preference(attribute: str, value: Any) -> None:
    with _state_lock:
        set_state(set_attribute_js_notation(get_state(), attribute, value))
