import pytest

from speedrun_leaderboard.config import AppConfig


@pytest.fixture
def make_config():
    def _make(**overrides) -> AppConfig:
        values = {
            "src_api_base_url": "https://src.test/api/v1",
            "src_game_abbreviation": "lsw",
            "src_user_agent": "speedrun-leaderboard-tests",
            "src_request_timeout_seconds": 5.0,
            "src_min_interval_seconds": 0.0,
            "src_max_retries": 2,
            "src_retry_delay_seconds": 0.0,
            "src_retry_backoff": 1.0,
            "src_retry_max_delay_seconds": 0.0,
            "src_queue_max_size": 0,
            "src_page_size": 200,
            "data_file": "leaderboard.json",
        }
        values.update(overrides)
        return AppConfig(**values)

    return _make
