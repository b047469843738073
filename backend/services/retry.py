# backend/services/retry.py
"""Retry for transient storage contention on grouped operations."""
import random
import time
from typing import Callable, TypeVar

import structlog

from services.errors import TransientStoreError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Exponential backoff with ±25% jitter. Only TransientStoreError is retried."""

    def __init__(self, max_retries: int = 3, base_delay_ms: int = 50, max_delay_ms: int = 2000):
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    def _backoff(self, attempt: int) -> float:
        delay = min(self.base_delay_ms * (2 ** attempt), self.max_delay_ms)
        jitter = delay * random.uniform(-0.25, 0.25)
        return max(delay + jitter, 0) / 1000

    def run(self, operation: str, fn: Callable[[], T]) -> T:
        """Run fn, re-running it from scratch on transient contention."""
        attempt = 0
        while True:
            try:
                return fn()
            except TransientStoreError:
                if attempt >= self.max_retries:
                    logger.error("store_retries_exhausted", operation=operation, attempts=attempt + 1)
                    raise
            delay = self._backoff(attempt)
            attempt += 1
            logger.warning(
                "store_contention_retry",
                operation=operation,
                attempt=attempt,
                delay_s=round(delay, 3),
            )
            time.sleep(delay)
