"""
System Utils Package - Sync Engine Facade

External code can use:
    from system_utils import SyncOrchestrator, NowPlayingPoller, AppState

The internal structure is:
    state.py        - Data model (Song, LyricLine) and the AppState container
    errors.py       - Error taxonomy and the ErrorChannel
    helpers.py      - Worker pool, tracked tasks, interval tasks, string helpers
    retry.py        - Exponential backoff
    cancellation.py - Keyed cancellation tokens
    image.py        - Artwork encoding and theme color extraction
    sources/        - Media backends (playerctl)
    metadata.py     - Now-playing poller
    orchestrator.py - Refresh cycle
"""

# --- Level 0: State ---
from .state import (
    AppState,
    LyricLine,
    Song,
    make_song_key,
)

# --- Level 1: Errors, helpers ---
from .errors import (
    AppError,
    BackendError,
    ErrorCategory,
    ErrorChannel,
    ErrorSeverity,
    NotFoundError,
    RequestCancelledError,
    SyncError,
    TransientError,
    UnexpectedError,
    ValidationError,
    is_network_error,
    is_retryable,
    is_timeout_error,
)
from .helpers import (
    IntervalTask,
    cancel_background_tasks,
    create_tracked_task,
    replace_special_chars,
    run_blocking,
    shutdown_executor,
)

# --- Level 2: Retry, cancellation, image ---
from .retry import backoff_delays, retry_with_backoff
from .cancellation import CancellationRegistry, RequestToken
from .image import DEFAULT_COLORS, ThemeColors, derive_theme_colors, get_text_color

# --- Level 3: Backends, poller, orchestrator ---
from .sources import MediaBackend, check_media_control, get_backend
from .metadata import NowPlayingPoller, PollerPhase, restore_active_player, set_active_player
from .orchestrator import SyncOrchestrator, SyncPhase
