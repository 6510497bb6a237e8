"""Rate-limited speedrun.com REST API client.

Every HTTP request is queued on one ``RateLimiter`` so consecutive calls are
spaced out and throttled/5xx responses are retried with backoff. Requests run
in a worker thread; the public API is async.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Any, Awaitable, Callable

import requests

from .cache import TTLCache
from .config import AppConfig
from .errors import GameNotFoundError, api_error_from_response
from .models import Category, LeaderboardEntry, Level, Platform
from .ratelimit import RateLimiter
from .retry import is_transient_error
from .timefmt import format_seconds_to_time

logger = logging.getLogger("speedrun-leaderboard")

RUN_EMBEDS = "players,category,level,platform"


@dataclass
class SRCMappings:
    """speedrun.com id/name → local id lookups."""

    category_ids: dict[str, str] = field(default_factory=dict)
    platform_ids: dict[str, str] = field(default_factory=dict)
    level_ids: dict[str, str] = field(default_factory=dict)
    category_names: dict[str, str] = field(default_factory=dict)
    platform_names: dict[str, str] = field(default_factory=dict)
    level_names: dict[str, str] = field(default_factory=dict)


def build_limiter(config: AppConfig) -> RateLimiter:
    return RateLimiter(
        config.src_min_interval_seconds,
        config.src_max_retries,
        config.src_retry_delay_seconds,
        backoff=config.src_retry_backoff,
        max_retry_delay=config.src_retry_max_delay_seconds,
        retry_if=is_transient_error,
        max_queue_size=config.src_queue_max_size or None,
    )


def _name_of(data: dict[str, Any]) -> str:
    names = data.get("names")
    if isinstance(names, dict) and names.get("international"):
        return str(names["international"])
    return str(data.get("name") or "")


def extract_id_and_name(value: Any) -> tuple[str, str]:
    """Return ``(id, name)`` from a bare id or an embedded ``{"data": {...}}`` resource."""
    if value is None:
        return "", ""
    if isinstance(value, str):
        return value, ""
    if isinstance(value, dict):
        data = value.get("data", value)
        if isinstance(data, dict):
            return str(data.get("id") or ""), _name_of(data)
    # embedded-but-empty resources come back as {"data": []}
    return "", ""


def _player_names(run: dict[str, Any]) -> list[str]:
    players = run.get("players")
    if isinstance(players, dict):
        players = players.get("data")
    names: list[str] = []
    for player in players or []:
        if not isinstance(player, dict):
            continue
        name = _name_of(player).strip()
        if name:
            names.append(name)
    return names


def _video_url(run: dict[str, Any]) -> str | None:
    videos = run.get("videos") or {}
    for link in videos.get("links") or []:
        uri = link.get("uri") if isinstance(link, dict) else None
        if uri:
            return str(uri)
    return None


def _match(src_id: str, src_name: str, ids: dict[str, str], names: dict[str, str]) -> str:
    if src_id and src_id in ids:
        return ids[src_id]
    key = src_name.strip().lower()
    if key and key in names:
        return names[key]
    return ""


def src_platform(run: dict[str, Any]) -> tuple[str, str]:
    platform_id, platform_name = extract_id_and_name(run.get("platform"))
    if platform_id:
        return platform_id, platform_name
    system = run.get("system") or {}
    return extract_id_and_name(system.get("platform"))


def map_src_run(run: dict[str, Any], mappings: SRCMappings) -> LeaderboardEntry:
    category_id, category_name = extract_id_and_name(run.get("category"))
    level_id, level_name = extract_id_and_name(run.get("level"))
    platform_id, platform_name = src_platform(run)
    players = _player_names(run)

    times = run.get("times") or {}
    seconds = times.get("primary_t") or 0

    return LeaderboardEntry(
        player_name=players[0] if players else "Unknown",
        player2_name=players[1] if len(players) > 1 else None,
        category=_match(category_id, category_name, mappings.category_ids, mappings.category_names),
        platform=_match(platform_id, platform_name, mappings.platform_ids, mappings.platform_names),
        level=_match(level_id, level_name, mappings.level_ids, mappings.level_names) or None,
        run_type="co-op" if len(players) > 1 else "solo",
        leaderboard_type="individual-level" if level_id else "regular",
        time=format_seconds_to_time(float(seconds)),
        date=run.get("date"),
        video_url=_video_url(run),
        comment=run.get("comment"),
        verified=False,
        imported_from_src=True,
        src_run_id=run.get("id"),
    )


class SpeedrunComClient:
    def __init__(
        self,
        config: AppConfig,
        *,
        session: requests.Session | None = None,
        limiter: RateLimiter | None = None,
        cache: TTLCache | None = None,
    ) -> None:
        self._base_url = config.src_api_base_url.rstrip("/")
        self._timeout = config.src_request_timeout_seconds
        self._page_size = config.src_page_size
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": config.src_user_agent, "Accept": "application/json"})
        self._session = session
        self._limiter = limiter or build_limiter(config)
        if cache is None and config.cache_enabled:
            cache = TTLCache(config.cache_ttl_seconds)
        self._cache = cache

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        url = f"{self._base_url}/{path.lstrip('/')}"

        def _call() -> dict[str, Any]:
            logger.debug("GET %s %s", url, params or {})
            response = self._session.get(url, params=params, timeout=self._timeout)
            if response.status_code >= 400:
                raise api_error_from_response(response)
            return response.json()

        return await self._limiter.execute(lambda: asyncio.to_thread(_call))

    async def _cached(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        if self._cache is None:
            return await factory()
        return await self._cache.get_or_set_async(key, factory)

    async def _get_paginated(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        offset = 0
        while True:
            page_params = dict(params or {})
            page_params.update({"max": self._page_size, "offset": offset})
            payload = await self._get(path, page_params)
            data = payload.get("data") or []
            items.extend(x for x in data if isinstance(x, dict))
            if limit is not None and len(items) >= limit:
                return items[:limit]

            pagination = payload.get("pagination") or {}
            links = pagination.get("links") or []
            if not data or not any(link.get("rel") == "next" for link in links):
                return items
            offset += int(pagination.get("size") or len(data))

    async def get_game_id(self, abbreviation: str) -> str:
        async def _load() -> str:
            payload = await self._get("games", {"abbreviation": abbreviation})
            games = payload.get("data") or []
            for game in games:
                if str(game.get("abbreviation", "")).lower() == abbreviation.lower():
                    return str(game["id"])
            if games:
                return str(games[0]["id"])
            raise GameNotFoundError(abbreviation)

        return await self._cached(f"game:{abbreviation.lower()}", _load)

    async def fetch_categories(self, game_id: str) -> list[Category]:
        async def _load() -> list[Category]:
            payload = await self._get(f"games/{game_id}/categories")
            return [
                Category(id=str(c["id"]), name=str(c.get("name") or ""), type=str(c.get("type") or "per-game"))
                for c in payload.get("data") or []
            ]

        return await self._cached(f"categories:{game_id}", _load)

    async def fetch_levels(self, game_id: str) -> list[Level]:
        async def _load() -> list[Level]:
            payload = await self._get(f"games/{game_id}/levels")
            return [Level(id=str(lv["id"]), name=str(lv.get("name") or "")) for lv in payload.get("data") or []]

        return await self._cached(f"levels:{game_id}", _load)

    async def fetch_platforms(self) -> list[Platform]:
        async def _load() -> list[Platform]:
            items = await self._get_paginated("platforms")
            return [Platform(id=str(p["id"]), name=_name_of(p)) for p in items]

        return await self._cached("platforms", _load)

    async def fetch_platform_name(self, platform_id: str) -> str:
        async def _load() -> str:
            payload = await self._get(f"platforms/{platform_id}")
            return _name_of(payload.get("data") or {})

        return await self._cached(f"platform:{platform_id}", _load)

    async def fetch_runs(
        self,
        game_id: str,
        *,
        status: str = "verified",
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        params = {
            "game": game_id,
            "status": status,
            "orderby": "submitted",
            "direction": "desc",
            "embed": RUN_EMBEDS,
        }
        runs = await self._get_paginated("runs", params, limit=limit)
        logger.info("Fetched %d %s runs for game %s", len(runs), status, game_id)
        return runs
