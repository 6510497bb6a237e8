"""Back-office operations behind the CLI commands.

Each function returns a JSON-serializable payload; the CLI prints it.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any

from .config import AppConfig
from .importer import ImportProgress, import_src_runs
from .leaderboard import auto_claim_runs, backfill_points, get_leaderboard, verify_run
from .models import LeaderboardEntry
from .points import PointsConfigProvider, calculate_points
from .speedruncom import SpeedrunComClient
from .store import LeaderboardStore
from .timefmt import format_time

logger = logging.getLogger("speedrun-leaderboard")


@dataclass
class AppContext:
    config: AppConfig
    store: LeaderboardStore
    points: PointsConfigProvider


def build_context(config: AppConfig) -> AppContext:
    store = LeaderboardStore(config.data_file)
    return AppContext(
        config=config,
        store=store,
        points=PointsConfigProvider(store, ttl_seconds=config.points_config_ttl_seconds),
    )


def check(config: AppConfig) -> dict[str, Any]:
    """Validate configuration without calling speedrun.com."""
    errors: list[str] = []
    warnings: list[str] = []

    if not config.src_api_base_url.startswith(("http://", "https://")):
        errors.append("SRC_API_BASE_URL must be an http(s) URL")
    if not config.src_game_abbreviation:
        errors.append("SRC_GAME_ABBREVIATION is empty")
    if config.src_min_interval_seconds < 0:
        errors.append("SRC_MIN_INTERVAL_SECONDS must be >= 0")
    elif config.src_min_interval_seconds < 0.6:
        warnings.append("SRC_MIN_INTERVAL_SECONDS below 0.6 may exceed speedrun.com's 100 requests/minute")
    if config.src_max_retries < 0:
        errors.append("SRC_MAX_RETRIES must be >= 0")

    data_dir = Path(config.data_file).resolve().parent
    if not data_dir.exists():
        errors.append(f"Data directory does not exist: {data_dir}")
    elif not Path(config.data_file).exists():
        warnings.append(f"Data file not found, it will be created: {config.data_file}")

    return {"ok": not errors, "errors": errors, "warnings": warnings}


def _entry_row(entry: LeaderboardEntry) -> dict[str, Any]:
    row = entry.to_dict()
    row["display_time"] = format_time(entry.time)
    return row


def leaderboard(ctx: AppContext, **filters: Any) -> dict[str, Any]:
    entries = get_leaderboard(ctx.store, **filters)
    return {"count": len(entries), "runs": [_entry_row(e) for e in entries]}


def points(
    ctx: AppContext,
    *,
    rank: int | None,
    run_type: str,
    leaderboard_type: str,
    is_obsolete: bool,
) -> dict[str, Any]:
    value = calculate_points(
        ctx.points.get(),
        rank=rank,
        run_type=run_type,
        leaderboard_type=leaderboard_type,
        is_obsolete=is_obsolete,
    )
    return {
        "points": value,
        "rank": rank,
        "run_type": run_type,
        "leaderboard_type": leaderboard_type,
        "is_obsolete": is_obsolete,
    }


def verify(ctx: AppContext, run_id: str, verifier: str | None) -> dict[str, Any]:
    entry = verify_run(ctx.store, run_id, verifier)
    return {"run": _entry_row(entry)}


def backfill(ctx: AppContext) -> dict[str, Any]:
    result = backfill_points(ctx.store, ctx.points.get())
    return {
        "runs_updated": result.runs_updated,
        "players_updated": result.players_updated,
        "errors": result.errors,
    }


def auto_claim(ctx: AppContext) -> dict[str, Any]:
    return {"claimed": auto_claim_runs(ctx.store)}


async def import_runs(
    ctx: AppContext,
    *,
    limit: int | None = None,
    dry_run: bool = False,
    client: SpeedrunComClient | None = None,
) -> dict[str, Any]:
    client = client or SpeedrunComClient(ctx.config)

    def _progress(progress: ImportProgress) -> None:
        logger.debug(
            "Import progress: %d/%d imported, %d skipped",
            progress.imported,
            progress.total,
            progress.skipped,
        )

    result = await import_src_runs(
        client,
        ctx.store,
        game_abbreviation=ctx.config.src_game_abbreviation,
        limit=limit,
        dry_run=dry_run,
        on_progress=_progress,
    )
    payload = result.to_dict()
    payload["dry_run"] = dry_run
    return payload
