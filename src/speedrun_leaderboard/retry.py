"""Retry helpers for transient speedrun.com failures."""

from __future__ import annotations

import requests

# speedrun.com answers 420 when a client is being throttled
THROTTLE_STATUS_CODES = {420, 429}


def backoff_delay(
    attempt: int,
    base_delay: float,
    *,
    factor: float = 2.0,
    max_delay: float | None = None,
) -> float:
    delay = base_delay * (factor ** max(0, attempt - 1))
    if max_delay is not None:
        delay = min(max_delay, delay)
    return max(0.0, delay)


def _status_code(exc: Exception) -> int | None:
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return status_code
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return status_code
    return None


def is_transient_error(exc: Exception) -> bool:
    if isinstance(exc, (requests.Timeout, requests.ConnectionError)):
        return True

    status_code = _status_code(exc)
    if status_code is None:
        return False
    return status_code in THROTTLE_STATUS_CODES or 500 <= status_code <= 599
