"""Studs (points) calculation for verified runs.

A run earns the configured base studs, scaled for obsolete, individual-level
and community-gold runs. Top-three ranks add a bonus on full-game boards, and
on IL or community-gold boards only when enabled. Co-op studs are split
between both players, so the returned value is per player.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
import math
from typing import Any

from .cache import TTLCache
from .models import Document

logger = logging.getLogger("speedrun-leaderboard")

_CONFIG_CACHE_KEY = "points_config"


@dataclass(frozen=True)
class PointsConfig(Document):
    id: str = "default"
    base_points: float = 100
    rank1_bonus: float = 50
    rank2_bonus: float = 30
    rank3_bonus: float = 15
    co_op_multiplier: float = 0.5
    il_multiplier: float = 1.0
    community_golds_multiplier: float = 1.0
    obsolete_multiplier: float = 0.5
    apply_rank_bonuses_to_il: bool = False
    apply_rank_bonuses_to_community_golds: bool = False

    def with_updates(self, **changes: Any) -> "PointsConfig":
        return replace(self, **changes)


DEFAULT_POINTS_CONFIG = PointsConfig()


def is_co_op(run_type: str | None) -> bool:
    if not run_type:
        return False
    value = run_type.strip().lower()
    return "co-op" in value or value == "coop"


def _numeric_rank(rank: Any) -> int | None:
    if rank is None or isinstance(rank, bool):
        return None
    if isinstance(rank, str):
        try:
            rank = float(rank.strip())
        except ValueError:
            return None
    if not isinstance(rank, (int, float)) or math.isnan(rank):
        return None
    if not float(rank).is_integer():
        return None
    return int(rank)


def _rank_bonus(config: PointsConfig, rank: int) -> float:
    if rank == 1:
        return config.rank1_bonus
    if rank == 2:
        return config.rank2_bonus
    if rank == 3:
        return config.rank3_bonus
    return 0


def calculate_points(
    config: PointsConfig | None = None,
    *,
    rank: Any = None,
    run_type: str | None = None,
    leaderboard_type: str | None = "regular",
    is_obsolete: bool = False,
) -> int:
    config = config or DEFAULT_POINTS_CONFIG
    is_il = leaderboard_type == "individual-level"
    is_community_gold = leaderboard_type == "community-golds"

    points = float(config.base_points)
    if is_obsolete:
        points *= config.obsolete_multiplier
    elif is_il:
        points *= config.il_multiplier
    elif is_community_gold:
        points *= config.community_golds_multiplier

    # Obsolete runs never receive rank bonuses.
    numeric_rank = _numeric_rank(rank)
    if numeric_rank is not None and 1 <= numeric_rank <= 3 and not is_obsolete:
        bonus_applies = (
            leaderboard_type == "regular"
            or (is_il and config.apply_rank_bonuses_to_il)
            or (is_community_gold and config.apply_rank_bonuses_to_community_golds)
        )
        if bonus_applies:
            points += _rank_bonus(config, numeric_rank)

    if is_co_op(run_type):
        points *= config.co_op_multiplier

    return max(0, int(math.floor(points + 0.5)))


class PointsConfigProvider:
    """Cached access to the stored points configuration."""

    def __init__(self, store: Any, *, ttl_seconds: float = 300, cache: TTLCache | None = None) -> None:
        self._store = store
        self._cache = cache or TTLCache(ttl_seconds)

    def get(self) -> PointsConfig:
        return self._cache.get_or_set(_CONFIG_CACHE_KEY, self._load)

    def update(self, config: PointsConfig) -> None:
        self._store.set_points_config(config)
        self.clear()

    def clear(self) -> None:
        self._cache.invalidate(_CONFIG_CACHE_KEY)

    def _load(self) -> PointsConfig:
        try:
            stored = self._store.get_points_config()
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Failed to read points config, using defaults: %s", exc)
            return DEFAULT_POINTS_CONFIG
        return stored or DEFAULT_POINTS_CONFIG
