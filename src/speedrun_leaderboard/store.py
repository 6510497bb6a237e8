"""JSON document store for runs, players and game configuration.

A single JSON file holds every collection. It plays the part of the hosted
document database for local tooling and tests; ``path=None`` keeps the data in
memory only.
"""

from __future__ import annotations

import errno
import json
import logging
from pathlib import Path
from typing import Any, Callable
import uuid

from .errors import RunNotFoundError
from .models import Category, LeaderboardEntry, Level, Platform, Player
from .points import PointsConfig

logger = logging.getLogger("speedrun-leaderboard")

COLLECTIONS = ("runs", "players", "categories", "platforms", "levels")


def _empty_payload() -> dict[str, Any]:
    payload: dict[str, Any] = {name: [] for name in COLLECTIONS}
    payload["points_config"] = None
    return payload


def _normalize_name(name: str | None) -> str:
    return (name or "").strip().lower()


def _write_atomic(path: Path, payload: dict[str, Any]) -> None:
    if not path.parent.exists():
        raise FileNotFoundError(f"Data directory does not exist: {path.parent}")
    tmp_path = path.with_name(f"{path.name}.tmp")
    data = json.dumps(payload, ensure_ascii=False, indent=2) + "\n"
    try:
        tmp_path.write_text(data, encoding="utf-8")
        tmp_path.replace(path)
    except OSError as exc:
        # A writable file mounted inside a read-only directory cannot get a temp sibling.
        if exc.errno in {errno.EROFS, errno.EACCES}:
            path.write_text(data, encoding="utf-8")
            return
        raise


def _load_payload(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return _empty_payload()
    payload = json.loads(raw) if raw.strip() else {}
    if not isinstance(payload, dict):
        raise ValueError(f"Data file must contain a JSON object: {path}")
    merged = _empty_payload()
    for name in COLLECTIONS:
        items = payload.get(name) or []
        merged[name] = [x for x in items if isinstance(x, dict)]
    merged["points_config"] = payload.get("points_config") or payload.get("pointsConfig")
    return merged


class LeaderboardStore:
    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else None
        self._data = _load_payload(self._path) if self._path else _empty_payload()
        if self._path:
            logger.debug(
                "Loaded %d runs and %d players from %s",
                len(self._data["runs"]),
                len(self._data["players"]),
                self._path,
            )

    @property
    def path(self) -> Path | None:
        return self._path

    def _save(self) -> None:
        if self._path is None:
            return
        _write_atomic(self._path, self._data)

    def _find(self, collection: str, predicate: Callable[[dict[str, Any]], bool]) -> dict[str, Any] | None:
        for item in self._data[collection]:
            if predicate(item):
                return item
        return None

    # Runs

    def list_runs(self) -> list[LeaderboardEntry]:
        return [LeaderboardEntry.from_dict(item) for item in self._data["runs"]]

    def get_run(self, run_id: str) -> LeaderboardEntry:
        item = self._find("runs", lambda x: x.get("id") == run_id)
        if item is None:
            raise RunNotFoundError(run_id)
        return LeaderboardEntry.from_dict(item)

    def add_run(self, entry: LeaderboardEntry) -> str:
        entry.id = entry.id or uuid.uuid4().hex
        if self._find("runs", lambda x: x.get("id") == entry.id) is not None:
            raise ValueError(f"Run id already exists: {entry.id}")
        self._data["runs"].append(entry.to_dict())
        self._save()
        return entry.id

    def update_run(self, run_id: str, patch: dict[str, Any]) -> LeaderboardEntry:
        item = self._find("runs", lambda x: x.get("id") == run_id)
        if item is None:
            raise RunNotFoundError(run_id)
        updated = LeaderboardEntry.from_dict({**item, **patch, "id": run_id})
        item.clear()
        item.update(updated.to_dict())
        self._save()
        return updated

    def update_runs(self, entries: list[LeaderboardEntry]) -> None:
        by_id = {e.id: e for e in entries if e.id}
        self._data["runs"] = [
            by_id[item["id"]].to_dict() if item.get("id") in by_id else item
            for item in self._data["runs"]
        ]
        self._save()

    def delete_run(self, run_id: str) -> bool:
        before = len(self._data["runs"])
        self._data["runs"] = [x for x in self._data["runs"] if x.get("id") != run_id]
        if len(self._data["runs"]) == before:
            return False
        self._save()
        return True

    # Players

    def list_players(self) -> list[Player]:
        return [Player.from_dict(item) for item in self._data["players"]]

    def get_player(self, player_id: str) -> Player | None:
        item = self._find("players", lambda x: x.get("id") == player_id)
        return Player.from_dict(item) if item else None

    def get_player_by_display_name(self, display_name: str) -> Player | None:
        wanted = _normalize_name(display_name)
        if not wanted:
            return None
        item = self._find(
            "players",
            lambda x: _normalize_name(x.get("display_name") or x.get("displayName")) == wanted,
        )
        return Player.from_dict(item) if item else None

    def upsert_player(self, player: Player) -> Player:
        self._data["players"] = [x for x in self._data["players"] if x.get("id") != player.id]
        self._data["players"].append(player.to_dict())
        self._save()
        return player

    # Game configuration

    def list_categories(self) -> list[Category]:
        return [Category.from_dict(item) for item in self._data["categories"]]

    def add_category(self, category: Category) -> Category:
        self._data["categories"].append(category.to_dict())
        self._save()
        return category

    def list_platforms(self) -> list[Platform]:
        return [Platform.from_dict(item) for item in self._data["platforms"]]

    def add_platform(self, platform: Platform) -> Platform:
        self._data["platforms"].append(platform.to_dict())
        self._save()
        return platform

    def list_levels(self) -> list[Level]:
        return [Level.from_dict(item) for item in self._data["levels"]]

    def add_level(self, level: Level) -> Level:
        self._data["levels"].append(level.to_dict())
        self._save()
        return level

    def get_points_config(self) -> PointsConfig | None:
        raw = self._data.get("points_config")
        if not isinstance(raw, dict):
            return None
        return PointsConfig.from_dict(raw)

    def set_points_config(self, config: PointsConfig) -> None:
        self._data["points_config"] = config.to_dict()
        self._save()
