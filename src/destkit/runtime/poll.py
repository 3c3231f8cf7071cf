# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
destkit.runtime.poll
====================

Generic "wait until a remote resource reaches a state" loop.

Remote provisioning and deletion are asynchronous: the API returns at once and
the resource moves through a small state vocabulary. `wait_for_state` polls a
refresh coroutine until a *target* label shows up, tolerating *pending* labels
in between, and fails on anything else or when the deadline passes.

No retries: a refresh error propagates on the first occurrence.
"""

from collections.abc import Awaitable, Callable, Collection
from dataclasses import dataclass
from typing import Generic, TypeVar

from ..api.errors import PollTimeoutError, UnexpectedStateError
from ..core.logging import get_logger
from ..core.time import Clock, SystemClock
from ..core.types import Millis, StateLabel

T = TypeVar("T")

log = get_logger("runtime.poll")


@dataclass(frozen=True)
class StateChangeOps(Generic[T]):
    """
    Parameters of one wait.

    Fields:
        refresh: zero-arg coroutine returning ``(resource, state_label)``.
        pending: labels meaning "keep waiting".
        target: labels meaning "done"; the resource is returned as-is.
        timeout_ms: overall deadline, measured from loop entry.
        delay_ms: sleep between two refreshes.
        resource: label used in error messages (e.g. "table 'x'").
    """

    refresh: Callable[[], Awaitable[tuple[T, StateLabel]]]
    pending: Collection[StateLabel]
    target: Collection[StateLabel]
    timeout_ms: Millis
    delay_ms: Millis
    resource: str | None = None


async def wait_for_state(ops: StateChangeOps[T], *, clock: Clock | None = None) -> T:
    """
    Poll until `ops.refresh` reports a target label and return the resource.

    Raises:
        PollTimeoutError: elapsed time exceeded `timeout_ms` before a target label.
        UnexpectedStateError: a label outside pending ∪ target was reported.
        Exception: whatever `refresh` raised, unchanged.
    """
    clock = clock or SystemClock()
    started = clock.mono_ms()
    polls = 0

    while True:
        if clock.mono_ms() - started > ops.timeout_ms:
            raise PollTimeoutError(ops.target, ops.resource)

        resource, state = await ops.refresh()
        polls += 1

        if state in ops.target:
            log.debug("state reached", state=state, polls=polls)
            return resource
        if state not in ops.pending:
            raise UnexpectedStateError(state, ops.target, ops.resource)

        await clock.sleep_ms(ops.delay_ms)


__all__ = ["StateChangeOps", "wait_for_state"]
