"""Retry policy and decorator with exponential backoff (stdlib only)."""
from __future__ import annotations

import functools
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Tuple, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to attempt a call and how long to wait in between.

    ``max_attempts=1`` means a single attempt with no retries.
    """

    max_attempts: int = 1
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0
    jitter: bool = True
    retryable: Tuple[Type[BaseException], ...] = (Exception,)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.backoff_factor ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random()
        return delay

    def call(
        self,
        fn: Callable[..., Any],
        *args: Any,
        sleep: Callable[[float], None] | None = None,
        **kwargs: Any,
    ) -> Any:
        name = getattr(fn, "__qualname__", repr(fn))
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn(*args, **kwargs)
            except self.retryable as exc:
                if attempt == self.max_attempts:
                    if self.max_attempts > 1:
                        logger.error(
                            "%s failed after %d attempts: %s", name, self.max_attempts, exc
                        )
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "%s attempt %d/%d failed (%s), retrying in %.1fs",
                    name, attempt, self.max_attempts, exc, delay,
                )
                (sleep or time.sleep)(delay)
        raise RuntimeError("unreachable")


NO_RETRY = RetryPolicy()


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable:
    """Decorator: retries the wrapped function with exponential backoff."""
    policy = RetryPolicy(
        max_attempts=max_attempts,
        base_delay=base_delay,
        max_delay=max_delay,
        backoff_factor=backoff_factor,
        jitter=jitter,
        retryable=retryable,
    )

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return policy.call(fn, *args, **kwargs)

        return wrapper

    return decorator
