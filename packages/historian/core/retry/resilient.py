"""Retry wrapper for remote calls.

Retries transient failures with growing delays plus random jitter. The
delay schedule is ``base, base*1.5, base*1.5^2, ...`` milliseconds, each
with up to one second of jitter added. Growth is uncapped.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
import random
from typing import TYPE_CHECKING, TypeVar

from historian.core.retry.classifier import DEFAULT_CLASSIFIER, ErrorClassifier

if TYPE_CHECKING:
    from historian.core.config.models import RetrySettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_MS = 1500.0
DEFAULT_JITTER_MS = 1000.0
DEFAULT_BACKOFF_FACTOR = 1.5


class ResilientCall:
    """Execute an async operation with retry on transient failure.

    Non-retryable errors, and retryable errors once retries are exhausted,
    are re-raised unchanged.
    """

    def __init__(
        self,
        classifier: ErrorClassifier | None = None,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_ms: float = DEFAULT_BASE_DELAY_MS,
        jitter_ms: float = DEFAULT_JITTER_MS,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        jitter: Callable[[], float] | None = None,
    ) -> None:
        """
        Args:
            classifier: Decides which errors are retryable
            max_retries: Default retry count (attempts = max_retries + 1)
            base_delay_ms: Default delay before the first retry
            jitter_ms: Upper bound of the uniform jitter added to each delay
            backoff_factor: Multiplier applied to the base delay after each retry
            sleep: Async sleep taking seconds (injectable for tests)
            jitter: Jitter source returning milliseconds (injectable for tests)
        """
        self.classifier = classifier or DEFAULT_CLASSIFIER
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.jitter_ms = jitter_ms
        self.backoff_factor = backoff_factor
        self._sleep = sleep or asyncio.sleep
        self._jitter = jitter or (lambda: random.uniform(0.0, self.jitter_ms))

    @classmethod
    def from_settings(
        cls, settings: RetrySettings, classifier: ErrorClassifier | None = None
    ) -> ResilientCall:
        return cls(
            classifier,
            max_retries=settings.max_retries,
            base_delay_ms=settings.base_delay_ms,
            jitter_ms=settings.jitter_ms,
            backoff_factor=settings.backoff_factor,
        )

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: int | None = None,
        base_delay_ms: float | None = None,
        *,
        label: str = "operation",
    ) -> T:
        """Run ``operation`` until it succeeds or fails non-retryably.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt
            max_retries: Retries allowed after the first attempt
            base_delay_ms: Delay before the first retry
            label: Name used in log messages

        Returns:
            Result of the first successful attempt

        Raises:
            Exception: The error of the final attempt, unchanged
        """
        retries_left = self.max_retries if max_retries is None else max_retries
        delay_ms = self.base_delay_ms if base_delay_ms is None else base_delay_ms
        attempt = 1

        while True:
            try:
                return await operation()
            except Exception as e:
                if retries_left <= 0 or not self.classifier.is_retryable(e):
                    if attempt > 1:
                        logger.error(f"{label} failed after {attempt} attempts: {e}")
                    raise

                wait_ms = delay_ms + self._jitter()
                logger.warning(
                    f"{label} failed (attempt {attempt}), retrying in {wait_ms:.0f}ms: {e}"
                )
                await self._sleep(wait_ms / 1000.0)

                retries_left -= 1
                delay_ms *= self.backoff_factor
                attempt += 1
