"""Retry policy for eventually-consistent provider reads."""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

from scmbridge.logging import get_logger, log_error, log_warning

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = get_logger(__name__)

_DEFAULT_MAX_ATTEMPTS = 5
_DEFAULT_STEP_S = 1.0


def linear_delay(attempt: int, *, step_s: float = _DEFAULT_STEP_S) -> float:
    """Return ``attempt * step_s`` seconds.

    >>> linear_delay(3)
    3.0

    """
    return attempt * step_s


@dataclasses.dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """How often and how patiently to retry a provider read.

    Attributes
    ----------
    max_attempts
        Total attempts, including the first.
    delay
        Seconds to wait after failed attempt ``n`` (1-based) before the next.
    sleep
        Awaitable sleep; replaced in tests to avoid real delays.

    """

    max_attempts: int = _DEFAULT_MAX_ATTEMPTS
    delay: cabc.Callable[[int], float] = linear_delay
    sleep: cabc.Callable[[float], cabc.Awaitable[None]] = asyncio.sleep

    def __post_init__(self) -> None:
        """Reject policies that would never attempt the operation."""
        if self.max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {self.max_attempts}"
            raise ValueError(msg)

    async def run[T](
        self,
        operation: cabc.Callable[[], cabc.Awaitable[T]],
        *,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        description: str = "operation",
    ) -> T:
        """Await ``operation`` until it succeeds or attempts run out.

        Returns the first successful result. After the final failed attempt
        the last error is raised unchanged.
        """
        for attempt in range(1, self.max_attempts):
            try:
                return await operation()
            except retry_on as exc:
                wait_s = self.delay(attempt)
                log_warning(
                    logger,
                    "%s failed on attempt %d/%d (%s); retrying in %.1fs",
                    description,
                    attempt,
                    self.max_attempts,
                    type(exc).__name__,
                    wait_s,
                )
                await self.sleep(wait_s)
        try:
            return await operation()
        except retry_on as exc:
            log_error(
                logger,
                "%s failed after %d attempts (%s)",
                description,
                self.max_attempts,
                type(exc).__name__,
            )
            raise


__all__ = ["BackoffPolicy", "linear_delay"]
