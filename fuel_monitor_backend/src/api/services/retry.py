from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from src.api.config import EngineConfig
from src.api.errors import RemoteError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


def backoff_delay_ms(attempt: int, base_delay_ms: int) -> int:
    """Delay before retrying after zero-based `attempt`: base * 2**attempt (no jitter, no cap)."""
    return int(base_delay_ms) * (2 ** int(attempt))


class ResilientInvoker:
    """
    Runs a remote operation with bounded retries and exponential backoff.

    - only `retry_on` failures (remote errors by default) are retried; anything else propagates at once
    - the last failure is re-raised as-is so callers can inspect it
    - one attempt at a time; no cancellation
    """

    def __init__(
        self,
        config: EngineConfig,
        sleep: Optional[SleepFunc] = None,
        retry_on: Tuple[Type[BaseException], ...] = (RemoteError,),
    ):
        self._config = config
        self._sleep = sleep or asyncio.sleep
        self._retry_on = retry_on

    # PUBLIC_INTERFACE
    async def invoke(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
        context: str = "remote call",
    ) -> T:
        """Await `operation()` up to `max_attempts` times, sleeping base_delay_ms * 2**i between tries."""
        attempts = self._config.max_retry_attempts if max_attempts is None else int(max_attempts)
        base_ms = self._config.base_retry_delay_ms if base_delay_ms is None else int(base_delay_ms)
        if attempts < 1:
            raise ValidationError(f"max_attempts must be >= 1 (got {attempts})")

        for attempt in range(attempts):
            try:
                return await operation()
            except self._retry_on as exc:
                if attempt == attempts - 1:
                    logger.error("All %d attempts exhausted for %s: %s", attempts, context, exc)
                    raise
                delay_ms = backoff_delay_ms(attempt, base_ms)
                logger.warning(
                    "Attempt %d/%d for %s failed; retrying in %dms: %s",
                    attempt + 1,
                    attempts,
                    context,
                    delay_ms,
                    exc,
                )
                await self._sleep(delay_ms / 1000.0)

        # Unreachable: the loop either returns or re-raises on the final attempt.
        raise AssertionError("retry loop exited without a result")
