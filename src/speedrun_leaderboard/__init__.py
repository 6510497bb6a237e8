"""Speedrun leaderboard back-office toolkit (Python)."""

import asyncio
import inspect
import json
import logging
from typing import Any, Callable

import click
from dotenv import load_dotenv

__version__ = "0.1.0"

logger = logging.getLogger("speedrun-leaderboard")

RUN_TYPE_CHOICE = click.Choice(["solo", "co-op"])
BOARD_CHOICE = click.Choice(["regular", "individual-level", "community-golds"])


def _emit(operation: str, config: Any, handler: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    """Run a ``service`` handler (sync or coroutine) and print its JSON payload."""
    from . import service
    from .errors import normalize_error

    try:
        result = handler(service.build_context(config), *args, **kwargs)
        if inspect.isawaitable(result):
            result = asyncio.run(result)
    except Exception as exc:
        payload = normalize_error(operation, exc)
        logger.error("%s failed: %s", operation, payload["error"].get("message", exc.__class__.__name__))
        click.echo(json.dumps(payload, ensure_ascii=False, indent=2), err=True)
        raise click.exceptions.Exit(1) from exc
    click.echo(json.dumps(result, ensure_ascii=False, indent=2))


@click.group()
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase verbosity (can be used multiple times)",
)
@click.option(
    "--env-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to .env file",
)
@click.version_option(__version__)
@click.pass_context
def main(ctx: click.Context, verbose: int, env_file: str | None) -> None:
    """Back-office tools for a community speedrun leaderboard."""
    logging_level = logging.WARNING
    if verbose == 1:
        logging_level = logging.INFO
    elif verbose >= 2:
        logging_level = logging.DEBUG

    logging.basicConfig(
        level=logging_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if env_file:
        logger.debug("Loading environment from file: %s", env_file)
        load_dotenv(env_file)
    else:
        load_dotenv()

    from .config import load_config

    try:
        ctx.obj = load_config()
    except ValueError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc


@main.command("check")
@click.pass_obj
def check_command(config: Any) -> None:
    """Validate configuration (no API calls)."""
    from . import service

    payload = service.check(config)
    click.echo(json.dumps(payload, ensure_ascii=False, indent=2))
    if not payload["ok"]:
        raise click.exceptions.Exit(1)


@main.command("import-runs")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Fetch at most N runs")
@click.option("--dry-run", is_flag=True, help="Map and de-duplicate runs without storing them")
@click.pass_obj
def import_runs_command(config: Any, limit: int | None, dry_run: bool) -> None:
    """Import verified runs from speedrun.com as unverified entries."""
    from . import service

    _emit("import-runs", config, service.import_runs, limit=limit, dry_run=dry_run)


@main.command("leaderboard")
@click.option("--category", default=None)
@click.option("--platform", default=None)
@click.option("--run-type", type=RUN_TYPE_CHOICE, default=None)
@click.option("--type", "leaderboard_type", type=BOARD_CHOICE, default="regular", show_default=True)
@click.option("--level", default=None)
@click.option("--include-obsolete", is_flag=True)
@click.pass_obj
def leaderboard_command(
    config: Any,
    category: str | None,
    platform: str | None,
    run_type: str | None,
    leaderboard_type: str,
    level: str | None,
    include_obsolete: bool,
) -> None:
    """Show ranked verified runs."""
    from . import service

    _emit(
        "leaderboard",
        config,
        service.leaderboard,
        category=category,
        platform=platform,
        run_type=run_type,
        leaderboard_type=leaderboard_type,
        level=level,
        include_obsolete=include_obsolete,
    )


@main.command("points")
@click.option("--rank", type=int, default=None)
@click.option("--run-type", type=RUN_TYPE_CHOICE, default="solo", show_default=True)
@click.option("--type", "leaderboard_type", type=BOARD_CHOICE, default="regular", show_default=True)
@click.option("--obsolete", is_flag=True)
@click.pass_obj
def points_command(
    config: Any,
    rank: int | None,
    run_type: str,
    leaderboard_type: str,
    obsolete: bool,
) -> None:
    """Calculate studs for a run with the stored points configuration."""
    from . import service

    _emit(
        "points",
        config,
        service.points,
        rank=rank,
        run_type=run_type,
        leaderboard_type=leaderboard_type,
        is_obsolete=obsolete,
    )


@main.command("verify")
@click.argument("run_id")
@click.option("--by", "verifier", default=None, help="Name of the verifying admin")
@click.pass_obj
def verify_command(config: Any, run_id: str, verifier: str | None) -> None:
    """Mark a submitted or imported run as verified."""
    from . import service

    _emit("verify", config, service.verify, run_id, verifier)


@main.command("backfill-points")
@click.pass_obj
def backfill_points_command(config: Any) -> None:
    """Recompute ranks, run studs and player totals."""
    from . import service

    _emit("backfill-points", config, service.backfill)


@main.command("auto-claim")
@click.pass_obj
def auto_claim_command(config: Any) -> None:
    """Link imported runs to players by speedrun.com username."""
    from . import service

    _emit("auto-claim", config, service.auto_claim)


__all__ = ["__version__", "main"]

if __name__ == "__main__":
    main()
