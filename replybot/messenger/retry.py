"""Bounded retry with exponential backoff for Messenger sends."""

from __future__ import annotations

import time
from typing import Callable

from ..app_logging import StructuredLogger, get_logger
from .models import TRANSPORT_ERROR_CODE, SendResult

RATE_LIMIT_COOLDOWN_SECONDS = 60.0
BASE_RETRY_DELAY_SECONDS = 1.0
MAX_RETRY_DELAY_SECONDS = 4.0


def backoff_delay(step: int) -> float:
    """Delay before the retry following the ``step``-th ordinary failure."""

    return min(BASE_RETRY_DELAY_SECONDS * (2**step), MAX_RETRY_DELAY_SECONDS)


def send_with_retry(
    sender: Callable[[], SendResult],
    max_retries: int = 3,
    *,
    sleep: Callable[[float], None] = time.sleep,
    logger: StructuredLogger | None = None,
) -> SendResult:
    """Call ``sender`` until it succeeds or ``max_retries`` attempts are used.

    Rate-limit failures (code 613) wait :data:`RATE_LIMIT_COOLDOWN_SECONDS`
    and leave the backoff step untouched; other failures wait 1, 2, 4, 4 ...
    seconds. Nothing waits after the final attempt. An exception raised by
    ``sender`` counts as a failed attempt with code ``-1``.
    """

    log = logger or get_logger("MESSENGER")
    result = SendResult.failed(TRANSPORT_ERROR_CODE, "No attempts made")
    step = 0

    for attempt in range(1, max_retries + 1):
        try:
            result = sender()
        except Exception as exc:
            log.error("Sender raised", attempt=attempt, error=str(exc))
            result = SendResult.failed(TRANSPORT_ERROR_CODE, str(exc) or "Network error")

        if result.success:
            return result
        if attempt == max_retries:
            break

        if result.is_rate_limited:
            delay = RATE_LIMIT_COOLDOWN_SECONDS
            log.warning("Rate limited, waiting", attempt=attempt, next_in=delay)
        else:
            delay = backoff_delay(step)
            step += 1
            log.info("Retry attempt", attempt=attempt, next_in=delay)
        sleep(delay)

    log.error("All retries exhausted", attempts=max_retries)
    return result
