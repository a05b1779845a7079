"""
Error taxonomy and the process-wide error channel.

Failures are classified by exception type, never by message text:

    ValidationError        missing artist/title, not retried
    NotFoundError          valid query with no usable result, informational
    TransientError         network/timeout/5xx, retried with backoff
    RequestCancelledError  superseded by a newer request, never surfaced
    UnexpectedError        anything else
    BackendError           the native media backend failed

The ErrorChannel holds at most one live AppError; newer errors replace older ones.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

import requests

from .state import Observable
from logging_config import get_logger

logger = get_logger(__name__)


class ErrorSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ErrorCategory(str, Enum):
    PLAYER = "player"
    LYRICS = "lyrics"
    ALBUM_ART = "album-art"
    NETWORK = "network"
    GENERAL = "general"


class SyncError(Exception):
    """Base class for every failure the sync engine knows how to classify."""

    def __init__(self, message: str = "", *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ValidationError(SyncError):
    pass


class NotFoundError(SyncError):
    pass


class TransientError(SyncError):
    def __init__(self, message: str = "", *, status_code: Optional[int] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(message, cause=cause)
        self.status_code = status_code

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500


class RequestCancelledError(SyncError):
    def __init__(self, key: str = ""):
        super().__init__(f"Request cancelled: {key}" if key else "Request cancelled")
        self.key = key


class UnexpectedError(SyncError):
    pass


class BackendError(SyncError):
    """A call into the media backend failed (player gone, command error...)."""


def is_network_error(error: BaseException) -> bool:
    return isinstance(error, requests.ConnectionError) or (
        isinstance(error, TransientError) and error.status_code is None
    )


def is_timeout_error(error: BaseException) -> bool:
    return isinstance(error, (requests.Timeout, TimeoutError))


def is_retryable(error: BaseException) -> bool:
    """Retry predicate for network fetches: network, timeout and 5xx only."""
    if isinstance(error, RequestCancelledError):
        return False
    return is_network_error(error) or is_timeout_error(error) or isinstance(error, TransientError)


@dataclass(frozen=True)
class AppError:
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.GENERAL
    timestamp: float = 0.0
    recoverable: bool = True
    retryable: bool = False
    retry_count: int = 0

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "timestamp": self.timestamp,
            "recoverable": self.recoverable,
            "retryable": self.retryable,
            "retryCount": self.retry_count,
        }


class ErrorChannel(Observable):
    """Last-error cell consumed by the UI layer. Subscribers get the new AppError (or None)."""

    def __init__(self):
        super().__init__()
        self._current: Optional[AppError] = None

    @property
    def current(self) -> Optional[AppError]:
        return self._current

    def set(self, error: Optional[AppError]) -> None:
        with self._lock:
            self._current = error
        if error is not None:
            logger.debug(f"AppError [{error.category.value}/{error.severity.value}]: {error.message}")
        self._notify(error)

    def set_error(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.GENERAL,
        recoverable: bool = True,
        retryable: bool = False,
    ) -> AppError:
        error = AppError(
            message=message,
            severity=severity,
            category=category,
            timestamp=time.time(),
            recoverable=recoverable,
            retryable=retryable,
        )
        self.set(error)
        return error

    def clear(self, category: Optional[ErrorCategory] = None) -> None:
        """Clear the live error. With `category`, only clear an error of that category."""
        if self._current is None:
            return
        if category is not None and self._current.category != category:
            return
        self.set(None)

    def increment_retry(self) -> None:
        with self._lock:
            if self._current is None:
                return
            self._current = replace(self._current, retry_count=self._current.retry_count + 1)
            updated = self._current
        self._notify(updated)
