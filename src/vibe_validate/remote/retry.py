# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Bounded exponential-backoff retry for remote log fetches."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final, TypeAlias

from ..constants import REMOTE_FETCH_ATTEMPTS, REMOTE_FETCH_BASE_DELAY
from ..errors import RemoteLogNotReadyError

LOGGER = logging.getLogger(__name__)

RunId: TypeAlias = int | str
LogFetcher: TypeAlias = Callable[[RunId], str]
Sleeper: TypeAlias = Callable[[float], None]

_BACKOFF_FACTOR: Final[int] = 2


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Attempt cap and base delay for remote fetch retries.

    Attributes:
        attempts: Total number of calls, including the first.
        base_delay: Seconds slept after the first failed attempt; doubled
            after each subsequent one.
    """

    attempts: int = REMOTE_FETCH_ATTEMPTS
    base_delay: float = REMOTE_FETCH_BASE_DELAY

    def delay_after(self, attempt: int) -> float:
        """Return the delay slept after failed attempt number ``attempt`` (1-based)."""

        return self.base_delay * _BACKOFF_FACTOR ** (attempt - 1)


DEFAULT_RETRY_POLICY: Final[RetryPolicy] = RetryPolicy()


def fetch_logs_with_retry(
    fetch: LogFetcher,
    run_id: RunId,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    *,
    sleep: Sleeper = time.sleep,
) -> str | None:
    """Call ``fetch(run_id)``, retrying while the logs are not ready yet.

    Only :class:`RemoteLogNotReadyError` is retried; any other exception
    propagates immediately. No delay follows the final attempt.

    Args:
        fetch: Callable returning the logs for a run.
        run_id: Identifier of the remote run.
        policy: Attempt cap and backoff schedule.
        sleep: Callable used to wait between attempts.

    Returns:
        str | None: Logs, or ``None`` when every attempt reported not ready.
    """

    for attempt in range(1, policy.attempts + 1):
        try:
            return fetch(run_id)
        except RemoteLogNotReadyError as exc:
            if attempt == policy.attempts:
                LOGGER.debug("Giving up on logs for run %s after %d attempts: %s", run_id, attempt, exc)
                break
            delay = policy.delay_after(attempt)
            LOGGER.debug("Logs for run %s not ready (attempt %d); retrying in %.1fs", run_id, attempt, delay)
            sleep(delay)
    return None


__all__ = ["DEFAULT_RETRY_POLICY", "LogFetcher", "RetryPolicy", "RunId", "Sleeper", "fetch_logs_with_retry"]
