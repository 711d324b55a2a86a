"""
Bounded retry with exponential backoff for Drive listing and downloads.
"""

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Tuple, Type, TypeVar

from gallerysync.errors import TransientDriveError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """
    Retry configuration for network calls.

    Total executions = max_retries + 1. Only exceptions listed in
    retryable_exceptions are retried; anything else propagates immediately.

    Examples:
        >>> policy = RetryPolicy(max_retries=3, initial_delay=1.0)
        >>> policy.call(lambda: client.list_images(folder_id))
    """

    max_retries: int = 3

    # Seconds before the first retry
    initial_delay: float = 1.0

    # Cap for any single delay
    max_delay: float = 30.0

    # delay = initial_delay * base^attempt
    exponential_base: float = 2.0

    # Randomize each delay by +/-25%
    jitter: bool = True

    retryable_exceptions: Tuple[Type[Exception], ...] = (TransientDriveError,)

    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if self.exponential_base < 1.0:
            raise ValueError("exponential_base must be >= 1.0")

    def should_retry(self, exc: Exception, attempt: int) -> bool:
        if attempt >= self.max_retries:
            return False
        return isinstance(exc, self.retryable_exceptions)

    def get_delay(self, attempt: int) -> float:
        delay = self.initial_delay * (self.exponential_base ** attempt)
        if self.jitter:
            delay *= random.uniform(0.75, 1.25)
        return max(0.0, min(delay, self.max_delay))

    def call(self, fn: Callable[[], T], description: str = "request") -> T:
        """
        Run fn, retrying retryable failures with backoff. The last exception
        is re-raised once retries are exhausted.
        """
        attempt = 0
        while True:
            try:
                return fn()
            except Exception as e:
                if not self.should_retry(e, attempt):
                    raise
                delay = self.get_delay(attempt)
                attempt += 1
                logger.warning(
                    "%s failed (%s); retry %d/%d in %.1fs",
                    description, e, attempt, self.max_retries, delay,
                )
                self.sleep(delay)
