"""
Bounded retry for store calls.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional, TypeVar

from ..exceptions import StorageError

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryPolicy:
    """Attempts, backoff and overall deadline for one store call."""

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_seconds: float = 0.1,
        backoff_multiplier: float = 2.0,
        timeout_seconds: float = 5.0,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.backoff_multiplier = backoff_multiplier
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "RetryPolicy":
        config = config or {}
        return cls(
            max_attempts=int(config.get("max_attempts", 3)),
            backoff_seconds=float(config.get("backoff_seconds", 0.1)),
            backoff_multiplier=float(config.get("backoff_multiplier", 2.0)),
            timeout_seconds=float(config.get("timeout_seconds", 5.0)),
        )


def call_with_retry(
    operation: Callable[..., T],
    *args: Any,
    policy: Optional[RetryPolicy] = None,
    description: str = "store operation",
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> T:
    """Run a store operation, retrying StorageError until attempts or time run out."""
    policy = policy or RetryPolicy()
    deadline = time.monotonic() + policy.timeout_seconds
    delay = policy.backoff_seconds
    attempt = 0

    while True:
        attempt += 1
        try:
            return operation(*args, **kwargs)
        except StorageError as e:
            remaining = deadline - time.monotonic()
            if attempt >= policy.max_attempts or remaining <= delay:
                logger.error(
                    f"{description} failed after {attempt} attempt(s): {e}"
                )
                raise StorageError(
                    f"{description} failed after {attempt} attempt(s): {e}"
                ) from e

            logger.warning(
                f"{description} failed (attempt {attempt}/{policy.max_attempts}), "
                f"retrying in {delay:.2f}s: {e}"
            )
            sleep(delay)
            delay *= policy.backoff_multiplier
