"""
Readiness polling — wait for a service instead of sleeping blindly.

Polling only proves what the probe checks: a database that answers
``mysqladmin ping`` may still be finishing startup work.  Probes should
exercise what the next step needs.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def wait_for_ready(
    poll_fn: Callable[[], T],
    ready_check: Callable[[T], bool],
    *,
    timeout: float = 60.0,
    interval: float = 1.0,
    description: str = "resource",
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> tuple[T, int]:
    """Poll until ``poll_fn()`` returns something that passes ``ready_check``.

    The first poll happens immediately; later polls are ``interval``
    seconds apart.  A poll is always attempted at the deadline.

    Args:
        poll_fn: Function that observes the resource state.
        ready_check: Returns True when the observed state is ready.
        timeout: Maximum time to wait in seconds.
        interval: Time between polls in seconds.
        description: Description for log and error messages.
        sleep: Sleep function (injectable for tests).
        clock: Monotonic clock (injectable for tests).

    Returns:
        ``(last_result, attempts)``.

    Raises:
        TimeoutError: If the resource is not ready before the deadline.
    """
    deadline = clock() + timeout
    attempts = 0

    while True:
        attempts += 1
        result = poll_fn()
        if ready_check(result):
            logger.debug("%s ready after %d attempt(s)", description, attempts)
            return result, attempts

        remaining = deadline - clock()
        if remaining <= 0:
            raise TimeoutError(
                f"Timeout waiting for {description} after {timeout:.1f}s "
                f"({attempts} attempts)"
            )

        sleep(min(interval, remaining))
