"""Stored document types.

Documents are written with snake_case keys. Reads also accept the camelCase
keys used by exports of the hosted database.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any

RUN_TYPES = ("solo", "co-op")
LEADERBOARD_TYPES = ("regular", "individual-level", "community-golds")


def _fold(key: str) -> str:
    return key.replace("_", "").lower()


def _pick(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    # applyRankBonusesToIL, player2Name and player2_name all fold to one key
    folded = {_fold(k): v for k, v in data.items()}
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if f.name in data:
            kwargs[f.name] = data[f.name]
        elif _fold(f.name) in folded:
            kwargs[f.name] = folded[_fold(f.name)]
    return kwargs


class Document:
    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)  # type: ignore[call-overload]
        # Keep file clean: drop nulls.
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]):  # type: ignore[no-untyped-def]
        return cls(**_pick(cls, data))


@dataclass
class Category(Document):
    id: str
    name: str
    type: str = "regular"


@dataclass
class Platform(Document):
    id: str
    name: str


@dataclass
class Level(Document):
    id: str
    name: str


@dataclass
class Player(Document):
    id: str
    display_name: str
    src_username: str | None = None
    total_points: int = 0
    total_runs: int = 0
    is_admin: bool = False


@dataclass
class LeaderboardEntry(Document):
    player_name: str
    category: str
    platform: str
    time: str
    id: str | None = None
    player2_name: str | None = None
    run_type: str = "solo"
    leaderboard_type: str = "regular"
    level: str | None = None
    date: str | None = None
    video_url: str | None = None
    comment: str | None = None
    verified: bool = False
    verified_by: str | None = None
    is_obsolete: bool = False
    points: int | None = None
    rank: int | None = None
    player_id: str | None = None
    player2_id: str | None = None
    imported_from_src: bool = False
    src_run_id: str | None = None

    @property
    def is_co_op(self) -> bool:
        return self.run_type == "co-op"
