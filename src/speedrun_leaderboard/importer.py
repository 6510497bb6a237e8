"""Import verified speedrun.com runs into the local leaderboard store.

Imported runs land unverified so an admin reviews them like any submission.
Runs already imported, runs that cannot be placed on a category/platform, and
duplicates of verified local runs are skipped.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Any, Callable, Iterable

from .models import LeaderboardEntry
from .speedruncom import SpeedrunComClient, SRCMappings, extract_id_and_name, map_src_run, src_platform
from .store import LeaderboardStore

logger = logging.getLogger("speedrun-leaderboard")


@dataclass
class ImportProgress:
    total: int
    imported: int
    skipped: int


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0
    unmatched_players: dict[str, dict[str, str]] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "imported": self.imported,
            "skipped": self.skipped,
            "unmatched_players": self.unmatched_players,
            "errors": self.errors,
        }


def _normalize(name: str | None) -> str:
    return (name or "").strip().lower()


def _build_maps(src_items: Iterable[Any], our_items: Iterable[Any]) -> tuple[dict[str, str], dict[str, str]]:
    ours = {_normalize(item.name): item.id for item in our_items if _normalize(item.name)}
    id_map: dict[str, str] = {}
    name_map: dict[str, str] = {}
    for src in src_items:
        key = _normalize(src.name)
        if key in ours:
            id_map[src.id] = ours[key]
            name_map[key] = ours[key]
    return id_map, name_map


async def create_src_mappings(
    client: SpeedrunComClient,
    store: LeaderboardStore,
    game_id: str,
) -> SRCMappings:
    src_categories, src_levels, src_platforms = await asyncio.gather(
        client.fetch_categories(game_id),
        client.fetch_levels(game_id),
        client.fetch_platforms(),
    )
    category_ids, category_names = _build_maps(src_categories, store.list_categories())
    platform_ids, platform_names = _build_maps(src_platforms, store.list_platforms())
    level_ids, level_names = _build_maps(src_levels, store.list_levels())
    return SRCMappings(
        category_ids=category_ids,
        platform_ids=platform_ids,
        level_ids=level_ids,
        category_names=category_names,
        platform_names=platform_names,
        level_names=level_names,
    )


def run_key(entry: LeaderboardEntry, *, swap: bool = False) -> str:
    player = entry.player2_name if swap else entry.player_name
    return "|".join(
        [
            _normalize(player),
            entry.category,
            entry.platform,
            entry.run_type,
            entry.time,
            entry.leaderboard_type or "regular",
            entry.level or "",
        ]
    )


def run_keys(entry: LeaderboardEntry) -> list[str]:
    keys = [run_key(entry)]
    if entry.run_type == "co-op" and entry.player2_name:
        keys.append(run_key(entry, swap=True))
    return keys


def is_duplicate_run(entry: LeaderboardEntry, existing_keys: set[str]) -> bool:
    return any(key in existing_keys for key in run_keys(entry))


def _placement_error(entry: LeaderboardEntry, run: dict[str, Any]) -> str | None:
    if not entry.category:
        name = extract_id_and_name(run.get("category"))[1]
        return f"category '{name}' is not configured" if name else "missing category"
    if not entry.platform:
        name = src_platform(run)[1]
        return f"platform '{name}' is not configured" if name else "missing platform"
    if entry.leaderboard_type != "regular" and not entry.level:
        name = extract_id_and_name(run.get("level"))[1]
        return f"level '{name}' is not configured" if name else "missing level"
    return None


async def import_src_runs(
    client: SpeedrunComClient,
    store: LeaderboardStore,
    *,
    game_abbreviation: str,
    limit: int | None = None,
    dry_run: bool = False,
    on_progress: Callable[[ImportProgress], None] | None = None,
) -> ImportResult:
    result = ImportResult()

    game_id = await client.get_game_id(game_abbreviation)
    src_runs = await client.fetch_runs(game_id, limit=limit)
    if not src_runs:
        return result

    mappings = await create_src_mappings(client, store, game_id)

    existing = store.list_runs()
    imported_ids = {r.src_run_id for r in existing if r.src_run_id}
    existing_keys: set[str] = set()
    for run in existing:
        if run.verified:
            existing_keys.update(run_keys(run))

    def report() -> None:
        if on_progress is not None:
            on_progress(ImportProgress(len(src_runs), result.imported, result.skipped))

    report()
    for src_run in src_runs:
        src_id = str(src_run.get("id") or "")
        try:
            if src_id in imported_ids:
                result.skipped += 1
                continue

            entry = map_src_run(src_run, mappings)
            problem = _placement_error(entry, src_run)
            if problem:
                result.skipped += 1
                result.errors.append(f"Run {src_id}: {problem}")
                continue

            entry.player_name = (entry.player_name or "Unknown").strip()
            entry.player2_name = (entry.player2_name or "").strip() or None

            if is_duplicate_run(entry, existing_keys):
                result.skipped += 1
                continue

            unmatched: dict[str, str] = {}
            if store.get_player_by_display_name(entry.player_name) is None:
                unmatched["player1"] = entry.player_name
            if entry.player2_name and store.get_player_by_display_name(entry.player2_name) is None:
                unmatched["player2"] = entry.player2_name

            run_id = src_id if dry_run else store.add_run(entry)
            if unmatched:
                result.unmatched_players[run_id] = unmatched

            # guard against duplicates within the same batch
            existing_keys.add(run_key(entry))
            imported_ids.add(src_id)
            result.imported += 1
        except (ValueError, TypeError, KeyError) as exc:
            result.skipped += 1
            result.errors.append(f"Run {src_id}: {exc}")
            logger.warning("Failed to import run %s: %s", src_id, exc)
        finally:
            report()

    logger.info(
        "Import finished: %d imported, %d skipped, %d errors",
        result.imported,
        result.skipped,
        len(result.errors),
    )
    return result
