"""
Helper functions for system_utils package.
Pure utility functions with minimal dependencies.

Dependencies: state (for task tracking)
"""
from __future__ import annotations

import asyncio
import re
import unicodedata
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Awaitable, Callable, Optional

from . import state
from logging_config import get_logger

logger = get_logger(__name__)


# =============================================================================
# Thread Executor for Blocking Operations
# =============================================================================
# requests and subprocess calls block, so they run here instead of on the event loop.

_thread_executor: Optional[ThreadPoolExecutor] = None


def _get_executor() -> ThreadPoolExecutor:
    global _thread_executor
    if _thread_executor is None:
        _thread_executor = ThreadPoolExecutor(
            max_workers=8,
            thread_name_prefix="NowLyrics_Worker"
        )
    return _thread_executor


async def run_blocking(func: Callable, *args: Any) -> Any:
    """Run a blocking function in the worker pool and await its result."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_get_executor(), func, *args)


def shutdown_executor() -> None:
    """Shutdown the worker pool. Call during app cleanup."""
    global _thread_executor
    if _thread_executor is not None:
        # wait=False so a hung request cannot block shutdown
        _thread_executor.shutdown(wait=False, cancel_futures=True)
        _thread_executor = None


def create_tracked_task(coro) -> asyncio.Task:
    """
    Create a background task with automatic cleanup and error logging.
    Prevents silent failures and keeps a strong reference until the task is done.
    """
    task = asyncio.create_task(coro)
    state._background_tasks.add(task)

    def cleanup(t):
        state._background_tasks.discard(t)
        try:
            t.result()
        except asyncio.CancelledError:
            pass  # Expected during shutdown
        except Exception as e:
            logger.error(f"Background task failed: {e}", exc_info=True)

    task.add_done_callback(cleanup)
    return task


async def cancel_background_tasks(timeout: float = 0.5) -> None:
    """Cancel every tracked task except the caller's own."""
    for task in list(state._background_tasks):
        if task is asyncio.current_task() or task.done():
            continue
        task.cancel()
        try:
            await asyncio.wait_for(task, timeout=timeout)
        except (asyncio.CancelledError, asyncio.TimeoutError):
            pass
        except Exception as e:
            logger.debug(f"Background task ended with error during cancel: {e}")


class IntervalTask:
    """
    Runs an async callback every `interval` seconds until stopped.

    Nothing runs until start() is called; stop() cancels and awaits the loop.
    A failing callback is logged and the loop keeps going.
    """

    def __init__(self, name: str, callback: Callable[[], Awaitable[Any]], interval: float):
        self.name = name
        self.callback = callback
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        logger.debug(f"Starting {self.name} (every {self.interval}s)")
        self._task = create_tracked_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.debug(f"Stopped {self.name}")

    async def _run(self) -> None:
        while True:
            try:
                await self.callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"{self.name} tick failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval)


# =============================================================================
# String helpers
# =============================================================================

def replace_special_chars(text: str) -> str:
    """
    Normalize a search term: strip accents, drop (parenthetical) parts, & -> and.

    "Beyoncé (feat. X) & Y" -> "Beyonce and Y"
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    stripped = re.sub(r"\s*\([^)]*\)\s*", " ", stripped)
    stripped = stripped.replace("&", "and")
    return re.sub(r"\s+", " ", stripped).strip()


def sanitize_filename(name: str) -> str:
    """
    Make a string safe to use as a file name on Windows/Linux/macOS.
    Illegal characters become underscores; empty results become "Unknown".
    """
    if not name:
        return "Unknown"

    sanitized = re.sub(r'[<>:"/\\|?*]', '_', name)
    sanitized = sanitized.strip(' .')
    sanitized = re.sub(r'_+', '_', sanitized)

    if len(sanitized) > 100:
        sanitized = sanitized[:100].rstrip('_')

    return sanitized or "Unknown"
