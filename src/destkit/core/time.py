# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
destkit.core.time
=================

Clock abstractions:
- Clock Protocol injected into polling loops and the reconciler.
- SystemClock: production default implementation.
- ManualClock: deterministic time control for tests (sleeping advances time).
"""

import asyncio
import time
from datetime import UTC, datetime
from typing import Protocol

from .types import Millis, MonotonicMs


class Clock(Protocol):
    """Minimal clock protocol used across the project."""

    def now_dt(self) -> datetime: ...
    def mono_ms(self) -> MonotonicMs: ...
    async def sleep_ms(self, ms: Millis) -> None: ...


class SystemClock:
    """Default production clock backed by system time."""

    def now_dt(self) -> datetime:
        """UTC datetime for wall-clock timestamps (deletion filters)."""
        return datetime.now(UTC)

    def mono_ms(self) -> MonotonicMs:
        """Process-local monotonic milliseconds, used to measure poll timeouts."""
        return time.monotonic_ns() // 1_000_000

    async def sleep_ms(self, ms: Millis) -> None:
        await asyncio.sleep(max(0.0, ms / 1000.0))


class ManualClock(SystemClock):
    """
    Controllable clock for tests.

    - Wall time starts at `start` (default: 2024-01-01T00:00:00Z) and, like
      monotonic time, advances only when `sleep_ms` or `advance_ms` is called.
    - `sleeps` records every requested sleep so tests can assert poll cadence.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._wall_ms: Millis = int((start or datetime(2024, 1, 1, tzinfo=UTC)).timestamp() * 1000)
        self._mono: Millis = 0
        self.sleeps: list[Millis] = []

    def now_dt(self) -> datetime:
        return datetime.fromtimestamp(self._wall_ms / 1000.0, tz=UTC)

    def mono_ms(self) -> MonotonicMs:
        return self._mono

    def advance_ms(self, ms: Millis) -> None:
        inc = max(0, int(ms))
        self._wall_ms += inc
        self._mono += inc

    async def sleep_ms(self, ms: Millis) -> None:
        # No actual sleeping: fast-forward.
        self.sleeps.append(int(ms))
        self.advance_ms(ms)
