"""Fixed-count, fixed-delay retry wrapper for per-fork remote calls."""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    type Sleep = cabc.Callable[[float], cabc.Awaitable[object]]
    type RetryHook = cabc.Callable[[int, Exception], None]

_DEFAULT_MAX_RETRIES = 2
_DEFAULT_DELAY_S = 3.0


@dataclasses.dataclass(frozen=True, slots=True)
class RetryPolicy:
    """How often, and how far apart, a failed operation is retried.

    Attributes
    ----------
    max_retries
        Retries after the first attempt; the operation runs at most
        ``max_retries + 1`` times.
    delay_s
        Seconds slept before every retry.

    """

    max_retries: int = _DEFAULT_MAX_RETRIES
    delay_s: float = _DEFAULT_DELAY_S

    def __post_init__(self) -> None:
        """Reject negative retry counts and delays."""
        if self.max_retries < 0:
            msg = f"max_retries must be non-negative, got {self.max_retries}"
            raise ValueError(msg)
        if self.delay_s < 0:
            msg = f"delay_s must be non-negative, got {self.delay_s}"
            raise ValueError(msg)

    @property
    def max_attempts(self) -> int:
        """Return the total number of attempts allowed."""
        return self.max_retries + 1


async def with_retries[T](
    operation: cabc.Callable[[], cabc.Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    sleep: Sleep = asyncio.sleep,
    on_retry: RetryHook | None = None,
) -> T:
    """Run ``operation`` until it succeeds or the policy is exhausted.

    Attempts are sequential. The delay suspends only the calling task.

    Parameters
    ----------
    operation
        Zero-argument coroutine factory; called once per attempt.
    policy
        Retry policy; defaults to two retries three seconds apart.
    sleep
        Awaitable used for the inter-attempt delay.
    on_retry
        Called with the retry number (starting at 1) and the failure that
        triggered it, before sleeping.

    Returns
    -------
    T
        The first successful result.

    Raises
    ------
    Exception
        The failure from the final attempt.

    """
    active = policy or RetryPolicy()
    retries = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if retries >= active.max_retries:
                raise
            retries += 1
            if on_retry is not None:
                on_retry(retries, exc)
            await sleep(active.delay_s)
