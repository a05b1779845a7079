"""
Base Provider Class
Shared plumbing for the network-backed providers: config lookup, retry
budget, error publication.
"""
from abc import ABC
from typing import Optional

import requests

from config import RETRY, VERSION, get_provider_config
from logging_config import get_logger
from system_utils.cancellation import RequestToken
from system_utils.errors import (
    AppError,
    ErrorCategory,
    ErrorChannel,
    ErrorSeverity,
    NotFoundError,
    TransientError,
    is_retryable,
)

logger = get_logger(__name__)

USER_AGENT = f"NowLyrics v{VERSION} (https://github.com/nowlyrics/nowlyrics)"


class BaseProvider(ABC):
    """Base class for the lyrics and artwork providers."""

    # Error category for AppErrors published by this provider
    category = ErrorCategory.GENERAL

    def __init__(self, provider_name: str, errors: ErrorChannel, retry_config_key: str,
                 session: Optional[requests.Session] = None):
        """
        Args:
            provider_name (str): Name of the provider (must match a PROVIDERS key)
            errors (ErrorChannel): Where failures are published
            retry_config_key (str): RETRY entry holding this provider's backoff budget
            session (requests.Session, optional): Injected HTTP session
        """
        config = get_provider_config(provider_name.lower())

        self.name = provider_name
        self.base_url = config.get("base_url", "").rstrip("/")
        self.timeout = config.get("timeout", 10)
        self.retry_config = dict(RETRY.get(retry_config_key, {}))
        self.errors = errors

        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})

        logger.debug(f"Initialized {self.name} provider ({self.base_url})")

    @staticmethod
    def _checkpoint(token: Optional[RequestToken]) -> None:
        """Suspension-point check; raises RequestCancelledError when superseded."""
        if token is not None:
            token.raise_if_cancelled()

    def _publish_failure(self, error: BaseException, subject: str) -> AppError:
        """Map a provider failure onto a single AppError in this provider's category."""
        if isinstance(error, NotFoundError):
            severity = ErrorSeverity.INFO
            message = f"No {self.category.value.replace('-', ' ')} found for {subject}"
        elif isinstance(error, TransientError) and error.is_server_error:
            severity = ErrorSeverity.WARNING
            message = f"{self.name} is having trouble (HTTP {error.status_code}), try again later"
        else:
            severity = ErrorSeverity.ERROR
            message = f"Failed to load {self.category.value.replace('-', ' ')} for {subject}"

        return self.errors.set_error(
            message,
            severity=severity,
            category=self.category,
            recoverable=True,
            retryable=is_retryable(error),
        )

    def __str__(self) -> str:
        return f"{self.name} Provider ({self.base_url})"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name='{self.name}' timeout={self.timeout}>"
