"""Leaderboard ranking, run verification and points backfill."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field, replace
import logging

from .models import LEADERBOARD_TYPES, RUN_TYPES, LeaderboardEntry, Player
from .points import PointsConfig, calculate_points
from .store import LeaderboardStore
from .timefmt import is_valid_time, parse_time_to_seconds

logger = logging.getLogger("speedrun-leaderboard")

BoardKey = tuple[str, str, str, str, str]


@dataclass
class BackfillResult:
    runs_updated: int = 0
    players_updated: int = 0
    errors: list[str] = field(default_factory=list)


def _normalize_name(name: str | None) -> str:
    return (name or "").strip().lower()


def board_key(entry: LeaderboardEntry) -> BoardKey:
    return (
        entry.category,
        entry.platform,
        entry.run_type,
        entry.leaderboard_type or "regular",
        entry.level or "",
    )


def _sort_key(entry: LeaderboardEntry) -> tuple[int, str]:
    return (parse_time_to_seconds(entry.time), entry.date or "")


def rank_entries(entries: list[LeaderboardEntry]) -> list[LeaderboardEntry]:
    """Rank one board: equal times share a rank, obsolete runs are unranked and last."""
    current = sorted((e for e in entries if not e.is_obsolete), key=_sort_key)
    obsolete = sorted((e for e in entries if e.is_obsolete), key=_sort_key)

    ranked: list[LeaderboardEntry] = []
    previous_seconds: int | None = None
    rank = 0
    for position, entry in enumerate(current, start=1):
        seconds = parse_time_to_seconds(entry.time)
        if seconds != previous_seconds:
            rank = position
            previous_seconds = seconds
        ranked.append(replace(entry, rank=rank))
    ranked.extend(replace(e, rank=None) for e in obsolete)
    return ranked


def get_leaderboard(
    store: LeaderboardStore,
    *,
    category: str | None = None,
    platform: str | None = None,
    run_type: str | None = None,
    leaderboard_type: str = "regular",
    level: str | None = None,
    include_obsolete: bool = False,
) -> list[LeaderboardEntry]:
    def matches(entry: LeaderboardEntry) -> bool:
        if not entry.verified:
            return False
        if (entry.leaderboard_type or "regular") != leaderboard_type:
            return False
        if category and entry.category != category:
            return False
        if platform and entry.platform != platform:
            return False
        if run_type and entry.run_type != run_type:
            return False
        if level and entry.level != level:
            return False
        return include_obsolete or not entry.is_obsolete

    boards: dict[BoardKey, list[LeaderboardEntry]] = defaultdict(list)
    for entry in store.list_runs():
        if matches(entry):
            boards[board_key(entry)].append(entry)

    result: list[LeaderboardEntry] = []
    for key in sorted(boards):
        result.extend(rank_entries(boards[key]))
    return result


def submit_run(store: LeaderboardStore, entry: LeaderboardEntry) -> str:
    if not entry.player_name.strip():
        raise ValueError("player_name is required.")
    if not entry.category or not entry.platform:
        raise ValueError("category and platform are required.")
    if entry.run_type not in RUN_TYPES:
        raise ValueError(f"run_type must be one of: {', '.join(RUN_TYPES)}")
    if entry.leaderboard_type not in LEADERBOARD_TYPES:
        raise ValueError(f"leaderboard_type must be one of: {', '.join(LEADERBOARD_TYPES)}")
    if entry.leaderboard_type != "regular" and not entry.level:
        raise ValueError("level is required for individual-level and community-golds runs.")
    if entry.run_type == "co-op" and not (entry.player2_name or "").strip():
        raise ValueError("player2_name is required for co-op runs.")
    if not is_valid_time(entry.time):
        raise ValueError(f"time must be HH:MM:SS, got {entry.time!r}")

    pending = replace(
        entry,
        id=None,
        player_name=entry.player_name.strip(),
        verified=False,
        verified_by=None,
        points=None,
        rank=None,
    )
    return store.add_run(pending)


def verify_run(store: LeaderboardStore, run_id: str, verifier: str | None = None) -> LeaderboardEntry:
    entry = store.update_run(run_id, {"verified": True, "verified_by": verifier})
    logger.info("Run %s verified by %s", run_id, verifier or "unknown")
    return entry


def reject_run(store: LeaderboardStore, run_id: str) -> None:
    # raises RunNotFoundError for unknown ids
    store.get_run(run_id)
    store.delete_run(run_id)
    logger.info("Run %s rejected", run_id)


def set_obsolete(store: LeaderboardStore, run_id: str, is_obsolete: bool = True) -> LeaderboardEntry:
    return store.update_run(run_id, {"is_obsolete": is_obsolete})


def _owns_run(player: Player, entry: LeaderboardEntry) -> bool:
    if player.id in (entry.player_id, entry.player2_id):
        return True
    name = _normalize_name(player.display_name)
    if not name:
        return False
    if entry.player_id is None and _normalize_name(entry.player_name) == name:
        return True
    return entry.player2_id is None and _normalize_name(entry.player2_name) == name


def backfill_points(store: LeaderboardStore, config: PointsConfig) -> BackfillResult:
    """Recompute rank and studs for every verified run, then player totals."""
    result = BackfillResult()
    boards: dict[BoardKey, list[LeaderboardEntry]] = defaultdict(list)
    stored: dict[str, LeaderboardEntry] = {}
    for entry in store.list_runs():
        if not entry.verified:
            continue
        if not entry.id:
            result.errors.append(f"Run by {entry.player_name} at {entry.time} has no id")
            continue
        stored[entry.id] = entry
        if not is_valid_time(entry.time):
            result.errors.append(f"Run {entry.id}: invalid time {entry.time!r}")
            continue
        boards[board_key(entry)].append(entry)

    scored: list[LeaderboardEntry] = []
    changed: list[LeaderboardEntry] = []
    for entries in boards.values():
        for entry in rank_entries(entries):
            points = calculate_points(
                config,
                rank=entry.rank,
                run_type=entry.run_type,
                leaderboard_type=entry.leaderboard_type,
                is_obsolete=entry.is_obsolete,
            )
            updated = replace(entry, points=points)
            scored.append(updated)
            before = stored[entry.id]
            if (updated.points, updated.rank) != (before.points, before.rank):
                changed.append(updated)

    if changed:
        store.update_runs(changed)
    result.runs_updated = len(changed)

    for player in store.list_players():
        owned = [e for e in scored if _owns_run(player, e)]
        total_points = sum(e.points or 0 for e in owned)
        if (player.total_points, player.total_runs) == (total_points, len(owned)):
            continue
        store.upsert_player(replace(player, total_points=total_points, total_runs=len(owned)))
        result.players_updated += 1

    logger.info(
        "Backfill updated %d runs and %d players (%d errors)",
        result.runs_updated,
        result.players_updated,
        len(result.errors),
    )
    return result


def auto_claim_runs(store: LeaderboardStore) -> int:
    """Link unclaimed imported runs to players by their speedrun.com username."""
    by_src_name = {
        _normalize_name(p.src_username): p for p in store.list_players() if p.src_username
    }
    if not by_src_name:
        return 0

    claimed: list[LeaderboardEntry] = []
    for entry in store.list_runs():
        if not entry.imported_from_src:
            continue
        patch: dict[str, str] = {}
        player = by_src_name.get(_normalize_name(entry.player_name))
        if entry.player_id is None and player is not None:
            patch["player_id"] = player.id
        player2 = by_src_name.get(_normalize_name(entry.player2_name))
        if entry.player2_name and entry.player2_id is None and player2 is not None:
            patch["player2_id"] = player2.id
        if patch:
            claimed.append(replace(entry, **patch))

    if claimed:
        store.update_runs(claimed)
    logger.info("Auto-claimed %d imported runs", len(claimed))
    return len(claimed)
