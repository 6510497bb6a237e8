import pytest

from speedrun_leaderboard import __version__
from speedrun_leaderboard.config import DEFAULT_SRC_API_BASE_URL, load_config

_ENV_VARS = (
    "SRC_API_BASE_URL",
    "SRC_GAME_ABBREVIATION",
    "SRC_USER_AGENT",
    "SRC_MIN_INTERVAL_SECONDS",
    "SRC_MAX_RETRIES",
    "SRC_PAGE_SIZE",
    "SRC_QUEUE_MAX_SIZE",
    "LEADERBOARD_DATA_FILE",
    "CACHE_ENABLED",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_load_config_defaults():
    config = load_config()
    assert config.src_api_base_url == DEFAULT_SRC_API_BASE_URL
    assert config.src_game_abbreviation == "lsw"
    assert config.src_user_agent == f"speedrun-leaderboard/{__version__}"
    assert config.src_min_interval_seconds == 0.6
    assert config.src_max_retries == 3
    assert config.src_queue_max_size == 0
    assert config.src_page_size == 200
    assert config.data_file == "leaderboard.json"
    assert config.cache_enabled is True


def test_load_config_overrides(monkeypatch):
    monkeypatch.setenv("SRC_API_BASE_URL", "http://localhost:8080/api/v1/")
    monkeypatch.setenv("SRC_GAME_ABBREVIATION", " lsw2 ")
    monkeypatch.setenv("SRC_MIN_INTERVAL_SECONDS", "1.5")
    monkeypatch.setenv("SRC_MAX_RETRIES", "0")
    monkeypatch.setenv("LEADERBOARD_DATA_FILE", "/tmp/board.json")
    monkeypatch.setenv("CACHE_ENABLED", "no")
    config = load_config()
    assert config.src_api_base_url == "http://localhost:8080/api/v1"
    assert config.src_game_abbreviation == "lsw2"
    assert config.src_min_interval_seconds == 1.5
    assert config.src_max_retries == 0
    assert config.data_file == "/tmp/board.json"
    assert config.cache_enabled is False


def test_load_config_clamps_page_size(monkeypatch):
    monkeypatch.setenv("SRC_PAGE_SIZE", "1000")
    assert load_config().src_page_size == 200
    monkeypatch.setenv("SRC_PAGE_SIZE", "0")
    assert load_config().src_page_size == 1


def test_load_config_rejects_non_numeric(monkeypatch):
    monkeypatch.setenv("SRC_MAX_RETRIES", "many")
    with pytest.raises(ValueError):
        load_config()
