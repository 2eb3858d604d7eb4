"""Retry Policy - classifies failures and retries outbound calls with backoff."""

import random
import time
from typing import Any, Callable, Optional, TypeVar

import requests

from app.core.config import Settings
from app.core.errors import PipelineCancelled, ServiceError
from app.core.logging_config import get_logger
from app.models.schemas import RetryContext
from app.utils.cancellation import CancellationToken

T = TypeVar("T")

RETRYABLE_MESSAGES = ("timeout", "timed out", "temporarily unavailable", "service unavailable", "overloaded")
OVERLOAD_MESSAGES = ("overloaded", "unavailable")
NON_RETRYABLE_STATUS = (400, 401, 403, 404, 422)


def status_code_of(error: BaseException) -> Optional[int]:
    """HTTP status attached to an error, if any."""
    if isinstance(error, ServiceError) and error.status_code is not None:
        return error.status_code
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


class RetryPolicy:
    """
    Runs an operation, retrying while the failure is classified as retryable.

    Ordinary transient failures back off exponentially
    (``base * 2^attempt + jitter[0, 1000)`` ms). Overload failures (HTTP 503,
    or a message mentioning "overloaded"/"unavailable") wait
    ``5000 + attempt * 3000 + jitter[0, 2000)`` ms and raise the retry ceiling
    of that call to at least ``overload_min_retries``.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay_ms: int = 1000,
        overload_min_retries: int = 5,
        logger: Any = None,
        sleeper: Optional[Callable[[float], None]] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the retry policy.

        Args:
            max_retries: Default retries after the first attempt
            base_delay_ms: Default base delay for exponential backoff
            overload_min_retries: Retry ceiling once a call reports overload
            logger: Logger instance
            sleeper: Sleep function taking seconds (defaults to time.sleep)
            rng: Random source for jitter
        """
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.overload_min_retries = overload_min_retries
        self.logger = logger or get_logger(__name__)
        self.sleeper = sleeper or time.sleep
        self.rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings: Settings, logger: Any) -> "RetryPolicy":
        return cls(
            max_retries=settings.retry_max_retries,
            base_delay_ms=settings.retry_base_delay_ms,
            overload_min_retries=settings.retry_overload_min_retries,
            logger=logger,
        )

    def context(self, operation_name: str) -> RetryContext:
        """Retry context with this policy's defaults."""
        return RetryContext(
            operation_name=operation_name,
            max_retries=self.max_retries,
            base_delay_ms=self.base_delay_ms,
        )

    def execute(
        self,
        operation: Callable[[], T],
        context: Optional[RetryContext] = None,
        classifier: Optional[Callable[[BaseException], bool]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> T:
        """
        Run ``operation`` until it succeeds or retries are exhausted.

        Args:
            operation: Zero-argument callable to run
            context: Operation name and retry limits (policy defaults if omitted)
            classifier: Call-site specific retryability check (defaults to is_retryable)
            cancel_token: Optional token checked before every attempt and during waits

        Returns:
            The operation's result

        Raises:
            The last error when it is non-retryable or retries are exhausted,
            PipelineCancelled when the token fires
        """
        context = context or self.context("operation")
        is_retryable = classifier or self.is_retryable
        ceiling = context.max_retries
        attempt = 0

        while True:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            try:
                return operation()
            except PipelineCancelled:
                raise
            except Exception as error:
                overloaded = self.is_overload(error)
                if overloaded:
                    ceiling = max(ceiling, self.overload_min_retries)

                if not overloaded and not is_retryable(error):
                    self.logger.error(f"[retry] {context.operation_name}: non-retryable error: {error}")
                    raise

                if attempt >= ceiling:
                    self.logger.error(
                        f"[retry] {context.operation_name}: giving up after {attempt + 1} attempts: {error}"
                    )
                    raise

                delay_ms = self.calculate_delay(attempt, overloaded=overloaded, base_delay_ms=context.base_delay_ms)
                self.logger.warning(
                    f"[retry] {context.operation_name}: attempt {attempt + 1}/{ceiling + 1} failed "
                    f"({'overloaded' if overloaded else 'retryable'}): {error}; retrying in {delay_ms:.0f}ms"
                )
                self._wait(delay_ms, cancel_token)
                attempt += 1

    def is_retryable(self, error: BaseException) -> bool:
        """Network failures, 5xx, 429 and timeout-like messages are retryable."""
        if isinstance(error, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
            return True
        if isinstance(error, (ConnectionError, TimeoutError)):
            return True

        status = status_code_of(error)
        if status is not None:
            if status in NON_RETRYABLE_STATUS:
                return False
            if status >= 500 or status == 429:
                return True

        message = str(error).lower()
        return any(marker in message for marker in RETRYABLE_MESSAGES)

    def is_overload(self, error: BaseException) -> bool:
        """Temporary capacity exhaustion: HTTP 503 or an overloaded/unavailable message."""
        if status_code_of(error) == 503:
            return True
        message = str(error).lower()
        return any(marker in message for marker in OVERLOAD_MESSAGES)

    def calculate_delay(
        self,
        attempt: int,
        overloaded: bool = False,
        base_delay_ms: Optional[int] = None,
    ) -> float:
        """Backoff in milliseconds before retry number ``attempt + 1``."""
        if overloaded:
            return 5000 + attempt * 3000 + self.rng.random() * 2000
        base = self.base_delay_ms if base_delay_ms is None else base_delay_ms
        return base * (2 ** attempt) + self.rng.random() * 1000

    def _wait(self, delay_ms: float, cancel_token: Optional[CancellationToken]) -> None:
        if cancel_token is None:
            self.sleeper(delay_ms / 1000.0)
            return
        if cancel_token.wait(delay_ms / 1000.0):
            raise PipelineCancelled()
