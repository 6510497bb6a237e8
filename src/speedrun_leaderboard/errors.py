"""Error types and normalization for the leaderboard toolkit."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit, urlunsplit

HINT_RATE_LIMIT = "speedrun.com is throttling requests; raise SRC_MIN_INTERVAL_SECONDS or retry later."
HINT_NOT_FOUND = "Check the id or abbreviation exists on speedrun.com."
HINT_QUEUE_FULL = "Too many queued requests; raise SRC_QUEUE_MAX_SIZE or slow down."
HINT_SERVER = "speedrun.com is unavailable; retry later."
HINT_PARAMS = "Check required parameters."
HINT_RUN = "Check the run id with the leaderboard command."


class SpeedrunApiError(RuntimeError):
    def __init__(self, status_code: int, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class GameNotFoundError(LookupError):
    def __init__(self, abbreviation: str) -> None:
        super().__init__(f"Could not find game '{abbreviation}' on speedrun.com")
        self.abbreviation = abbreviation


class RunNotFoundError(LookupError):
    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run not found: {run_id}")
        self.run_id = run_id


class QueueFullError(RuntimeError):
    """Raised through a limiter future when the pending queue is at capacity."""


def sanitize_url(url: str | None) -> str | None:
    if not url:
        return None
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return url
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def api_error_from_response(response: Any) -> SpeedrunApiError:
    message = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message")
    if not message:
        reason = getattr(response, "reason", None) or "speedrun.com API error"
        message = f"{response.status_code} {reason}"
    return SpeedrunApiError(
        response.status_code,
        str(message),
        url=sanitize_url(getattr(response, "url", None)),
    )


def normalize_error(operation: str, exc: Exception) -> dict[str, Any]:
    payload: dict[str, Any] = {"operation": operation, "type": exc.__class__.__name__}
    payload["message"] = str(exc)

    if isinstance(exc, SpeedrunApiError):
        payload["http_status"] = exc.status_code
        if exc.url:
            payload["endpoint"] = exc.url
        if exc.status_code in {420, 429}:
            payload["hint"] = HINT_RATE_LIMIT
        elif exc.status_code == 404:
            payload["hint"] = HINT_NOT_FOUND
        elif exc.status_code >= 500:
            payload["hint"] = HINT_SERVER
    elif isinstance(exc, GameNotFoundError):
        payload["hint"] = HINT_NOT_FOUND
    elif isinstance(exc, RunNotFoundError):
        payload["hint"] = HINT_RUN
    elif isinstance(exc, QueueFullError):
        payload["hint"] = HINT_QUEUE_FULL
    elif isinstance(exc, ValueError):
        payload["hint"] = HINT_PARAMS

    return {"error": payload}
