"""
Linear backoff retry primitive.

- RetryPolicy: max attempts and base delay; the n-th failure waits base * n before the next try.
- AttemptBudget: bounded failure counter for one policy. The provider executor and the
  orchestrator's invalid-move strikes are two configured instances of it.
- retry_with_backoff(): runs an async operation under a policy and re-raises the last failure.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type, TypeVar

log = logging.getLogger("retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_s: float = 1.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_s < 0:
            raise ValueError("base_delay_s must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Delay after the given 1-based failed attempt (no jitter)."""
        return self.base_delay_s * attempt


class AttemptBudget:
    """Counts failures against a policy; never exceeds max_attempts."""

    def __init__(self, policy: RetryPolicy):
        self.policy = policy
        self._used = 0

    @property
    def used(self) -> int:
        return self._used

    @property
    def exhausted(self) -> bool:
        return self._used >= self.policy.max_attempts

    def spend(self) -> int:
        """Record one failure and return the failure count."""
        if not self.exhausted:
            self._used += 1
        return self._used

    def reset(self) -> None:
        self._used = 0


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    label: str = "operation",
) -> T:
    """Await operation() until it succeeds or the policy's attempts run out.

    Only exceptions in retry_on count as failures; anything else propagates at once.
    After the last attempt the final exception is re-raised unchanged.
    """
    policy = policy or RetryPolicy()
    budget = AttemptBudget(policy)
    while True:
        try:
            return await operation()
        except retry_on as exc:
            attempt = budget.spend()
            log.warning("%s attempt %d/%d failed: %s", label, attempt, policy.max_attempts, exc)
            if budget.exhausted:
                log.error("%s failed after %d attempts", label, attempt)
                raise
            delay = policy.delay_for(attempt)
            log.info("Retrying %s in %.2fs", label, delay)
            await asyncio.sleep(delay)
