from requests import Response

from speedrun_leaderboard.errors import (
    HINT_NOT_FOUND,
    HINT_QUEUE_FULL,
    HINT_RATE_LIMIT,
    GameNotFoundError,
    QueueFullError,
    RunNotFoundError,
    SpeedrunApiError,
    api_error_from_response,
    normalize_error,
    sanitize_url,
)


def _response(status: int, body: bytes, url: str = "https://www.speedrun.com/api/v1/runs?game=abc&offset=200") -> Response:
    response = Response()
    response.status_code = status
    response.reason = "Enhance Your Calm" if status == 420 else "Error"
    response.url = url
    response._content = body
    return response


def test_api_error_from_response_uses_body_message():
    exc = api_error_from_response(_response(420, b'{"status": 420, "message": "You are being throttled."}'))
    assert exc.status_code == 420
    assert str(exc) == "You are being throttled."
    assert exc.url == "https://www.speedrun.com/api/v1/runs"


def test_api_error_from_response_falls_back_to_reason():
    exc = api_error_from_response(_response(503, b"<html>down</html>"))
    assert exc.status_code == 503
    assert str(exc) == "503 Error"


def test_sanitize_url_strips_query():
    assert sanitize_url("https://example.com/a?b=1#c") == "https://example.com/a"
    assert sanitize_url(None) is None
    assert sanitize_url("not a url") == "not a url"


def test_normalize_throttled_api_error():
    exc = SpeedrunApiError(420, "Throttled", url="https://www.speedrun.com/api/v1/runs")
    payload = normalize_error("import-runs", exc)["error"]
    assert payload["operation"] == "import-runs"
    assert payload["type"] == "SpeedrunApiError"
    assert payload["http_status"] == 420
    assert payload["endpoint"] == "https://www.speedrun.com/api/v1/runs"
    assert payload["hint"] == HINT_RATE_LIMIT


def test_normalize_game_not_found():
    payload = normalize_error("import-runs", GameNotFoundError("nope"))["error"]
    assert "nope" in payload["message"]
    assert payload["hint"] == HINT_NOT_FOUND


def test_normalize_queue_full():
    payload = normalize_error("import-runs", QueueFullError("full"))["error"]
    assert payload["hint"] == HINT_QUEUE_FULL


def test_normalize_run_not_found_and_plain_errors():
    payload = normalize_error("verify", RunNotFoundError("r1"))["error"]
    assert payload["message"] == "Run not found: r1"
    assert "hint" in payload

    payload = normalize_error("verify", RuntimeError("boom"))["error"]
    assert payload == {"operation": "verify", "type": "RuntimeError", "message": "boom"}
