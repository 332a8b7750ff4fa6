# -*- coding: utf-8 -*-
"""Shared retry loop for clip and audio generation."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Literal, Optional, Tuple, Type, TypeVar

from utils.clock import Clock, system_clock

log = logging.getLogger(__name__)

T = TypeVar("T")

BackoffStrategy = Literal["linear", "exponential", "fixed"]


def backoff_delay(base_delay: float, attempt: int, strategy: BackoffStrategy = "linear") -> float:
    """Delay after the ``attempt``-th failure (1-based)."""
    if strategy == "fixed":
        return base_delay
    if strategy == "exponential":
        return base_delay * (2 ** (attempt - 1))
    return base_delay * attempt


async def retry_with_backoff(
    fn: Callable[[int], Awaitable[T]],
    *,
    max_attempts: int = 3,
    base_delay: float = 5.0,
    strategy: BackoffStrategy = "linear",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    clock: Clock = system_clock,
    label: str = "task",
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> T:
    """
    Call ``fn(attempt)`` until it succeeds or ``max_attempts`` is reached.
    The last error propagates unchanged, as does any error ``should_retry``
    rejects.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    for attempt in range(1, max_attempts + 1):
        try:
            return await fn(attempt)
        except retry_on as exc:
            log.error("[%s] failed on attempt %d/%d: %s", label, attempt, max_attempts, exc)
            if should_retry is not None and not should_retry(exc):
                log.error("[%s] not retrying: %s", label, exc)
                raise
            if attempt >= max_attempts:
                log.error("[%s] all retries failed", label)
                raise
            if on_retry is not None:
                on_retry(attempt, exc)
            delay = backoff_delay(base_delay, attempt, strategy)
            log.info("[%s] waiting %.1fs before next retry...", label, delay)
            await clock.sleep(delay)

    raise RuntimeError("unreachable")  # pragma: no cover
