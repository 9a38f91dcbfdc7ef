from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar


log = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(step_seconds: float) -> Callable[[int], float]:
    """attempt 1 -> step, attempt 2 -> 2*step, ..."""
    def _backoff(attempt: int) -> float:
        return step_seconds * max(1, attempt)
    return _backoff


class RetryableError(Exception):
    """Raised by a retried operation to signal the failure is transient."""

    def __init__(self, message: str, *, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


@dataclass(frozen=True)
class RetryPolicy:
    """
    max_attempts includes the first try. Only RetryableError triggers another
    attempt; anything else propagates immediately.
    """
    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default_factory=lambda: linear_backoff(5.0))
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def run(self, op: Callable[[int], Awaitable[T]], *, label: str = "op") -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await op(attempt)
            except RetryableError as e:
                if attempt >= self.max_attempts:
                    log.warning("retry: %s gave up after %d attempts: %s", label, attempt, e)
                    raise
                delay = self.backoff(attempt)
                log.info("retry: %s attempt %d failed (%s), retrying in %.1fs", label, attempt, e, delay)
                await self.sleep(delay)
