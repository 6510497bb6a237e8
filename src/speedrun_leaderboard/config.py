"""Configuration helpers for the speedrun leaderboard toolkit."""

from dataclasses import dataclass
import os

DEFAULT_SRC_API_BASE_URL = "https://www.speedrun.com/api/v1"
DEFAULT_GAME_ABBREVIATION = "lsw"


@dataclass(frozen=True)
class AppConfig:
    src_api_base_url: str
    src_game_abbreviation: str
    src_user_agent: str
    src_request_timeout_seconds: float
    src_min_interval_seconds: float
    src_max_retries: int
    src_retry_delay_seconds: float
    src_retry_backoff: float
    src_retry_max_delay_seconds: float
    src_queue_max_size: int
    src_page_size: int
    data_file: str
    cache_enabled: bool = True
    cache_ttl_seconds: int = 300
    points_config_ttl_seconds: int = 300


def _env_bool(name: str, default: str) -> bool:
    return (os.getenv(name, default) or default).strip().lower() in {"1", "true", "yes"}


def _default_user_agent() -> str:
    from . import __version__

    return f"speedrun-leaderboard/{__version__}"


def load_config() -> AppConfig:
    base_url = (os.getenv("SRC_API_BASE_URL") or DEFAULT_SRC_API_BASE_URL).strip().rstrip("/")
    page_size = int(os.getenv("SRC_PAGE_SIZE", "200"))
    return AppConfig(
        src_api_base_url=base_url,
        src_game_abbreviation=(
            os.getenv("SRC_GAME_ABBREVIATION") or DEFAULT_GAME_ABBREVIATION
        ).strip(),
        src_user_agent=os.getenv("SRC_USER_AGENT") or _default_user_agent(),
        src_request_timeout_seconds=float(os.getenv("SRC_REQUEST_TIMEOUT_SECONDS", "30")),
        src_min_interval_seconds=float(os.getenv("SRC_MIN_INTERVAL_SECONDS", "0.6")),
        src_max_retries=int(os.getenv("SRC_MAX_RETRIES", "3")),
        src_retry_delay_seconds=float(os.getenv("SRC_RETRY_DELAY_SECONDS", "1.0")),
        src_retry_backoff=float(os.getenv("SRC_RETRY_BACKOFF", "2.0")),
        src_retry_max_delay_seconds=float(os.getenv("SRC_RETRY_MAX_DELAY_SECONDS", "30")),
        src_queue_max_size=int(os.getenv("SRC_QUEUE_MAX_SIZE", "0")),
        # speedrun.com caps page size at 200
        src_page_size=max(1, min(200, page_size)),
        data_file=os.getenv("LEADERBOARD_DATA_FILE") or "leaderboard.json",
        cache_enabled=_env_bool("CACHE_ENABLED", "true"),
        cache_ttl_seconds=int(os.getenv("CACHE_TTL_SECONDS", "300")),
        points_config_ttl_seconds=int(os.getenv("POINTS_CONFIG_TTL_SECONDS", "300")),
    )
