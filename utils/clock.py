# -*- coding: utf-8 -*-
"""Time source used by every poll, backoff and settle delay."""

from __future__ import annotations

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    """Injected timer abstraction; tests substitute a virtual clock."""

    def now_ms(self) -> int:
        """Wall-clock milliseconds since the epoch."""

    def monotonic(self) -> float:
        """Monotonic seconds, for measuring elapsed time."""

    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for the given number of seconds."""


class SystemClock:
    """Real clock backed by :mod:`time` and :func:`asyncio.sleep`."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)


system_clock = SystemClock()
