"""Provisioning state polling.

After a load balancer update completes, ARM may still report the
aggregate as Accepted or Updating for a while. The poller keeps reading
the state with a bounded exponential backoff until it reaches a target
state, sees an unexpected state, or runs out of time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Collection

from .config import (
    DEFAULT_PENDING_STATES,
    DEFAULT_POLL_MAX_INTERVAL_SECONDS,
    DEFAULT_POLL_MIN_INTERVAL_SECONDS,
    DEFAULT_POLL_TIMEOUT_SECONDS,
    DEFAULT_TARGET_STATES,
    PollingConfig,
)
from .errors import CompletionTimeoutError, UnexpectedStateError

logger = logging.getLogger(__name__)


async def await_terminal(
    poll_fn: Callable[[], Awaitable[str | None]],
    pending_states: Collection[str] = DEFAULT_PENDING_STATES,
    target_states: Collection[str] = DEFAULT_TARGET_STATES,
    timeout_seconds: float = DEFAULT_POLL_TIMEOUT_SECONDS,
    *,
    min_interval_seconds: float = DEFAULT_POLL_MIN_INTERVAL_SECONDS,
    max_interval_seconds: float = DEFAULT_POLL_MAX_INTERVAL_SECONDS,
    description: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> str:
    """Poll until a target state is observed.

    Args:
        poll_fn: Coroutine function returning the current state.
        pending_states: States that mean "not done yet, keep waiting".
        target_states: States that mean success.
        timeout_seconds: Overall budget, measured with ``clock``.
        min_interval_seconds: First wait between polls.
        max_interval_seconds: Ceiling for the doubling backoff.
        description: What is being waited for, used in logs and errors.
        sleep: Awaitable sleep, injectable for tests.
        clock: Monotonic clock, injectable for tests.

    Returns:
        The target state that was reached.

    Raises:
        UnexpectedStateError: If a state outside both sets is observed.
        CompletionTimeoutError: If the budget is exhausted while pending.
    """
    start = clock()
    interval = min_interval_seconds
    polls = 0

    while True:
        state = await poll_fn()
        polls += 1

        if state in target_states:
            logger.debug(
                "Reached target state",
                extra={"target": description, "state": state, "polls": polls},
            )
            return state

        if state not in pending_states:
            raise UnexpectedStateError(
                f"Unexpected state {state!r} while waiting for {description}; "
                f"expected one of {sorted(target_states)}",
                state=state,
                operation="poll",
            )

        elapsed = clock() - start
        remaining = timeout_seconds - elapsed
        if remaining <= 0:
            raise CompletionTimeoutError(
                f"Timed out after {timeout_seconds}s waiting for {description} "
                f"(last state {state!r})",
                timeout_seconds=timeout_seconds,
                operation="poll",
            )

        wait = min(interval, remaining)
        logger.debug(
            "Still pending, waiting",
            extra={"target": description, "state": state, "wait_seconds": wait},
        )
        await sleep(wait)
        interval = min(interval * 2, max_interval_seconds)


async def await_with_config(
    poll_fn: Callable[[], Awaitable[str | None]],
    config: PollingConfig,
    description: str,
) -> str:
    """await_terminal() with settings taken from a PollingConfig."""
    return await await_terminal(
        poll_fn,
        pending_states=config.pending_states,
        target_states=config.target_states,
        timeout_seconds=config.timeout_seconds,
        min_interval_seconds=config.min_interval_seconds,
        max_interval_seconds=config.max_interval_seconds,
        description=description,
    )
