import asyncio

import pytest

from speedrun_leaderboard import service
from speedrun_leaderboard.importer import import_src_runs, is_duplicate_run, run_keys
from speedrun_leaderboard.models import Category, LeaderboardEntry, Level, Platform, Player
from speedrun_leaderboard.store import LeaderboardStore


class FakeClient:
    def __init__(self, runs):
        self.runs = runs
        self.abbreviations: list[str] = []
        self.mapping_calls = 0

    async def get_game_id(self, abbreviation):
        self.abbreviations.append(abbreviation)
        return "g1"

    async def fetch_runs(self, game_id, *, status="verified", limit=None):
        return self.runs[:limit] if limit else list(self.runs)

    async def fetch_categories(self, game_id):
        self.mapping_calls += 1
        return [Category(id="srccat", name="Any%"), Category(id="srcglitch", name="Glitchless")]

    async def fetch_levels(self, game_id):
        return [Level(id="srclvl", name="Negotiations")]

    async def fetch_platforms(self):
        return [Platform(id="srcpc", name="PC")]


def _src_run(run_id, players, seconds, *, category="srccat", level=None):
    return {
        "id": run_id,
        "category": {"data": {"id": category, "name": "Any%" if category == "srccat" else "Glitchless"}},
        "level": {"data": {"id": level, "name": "Negotiations"}} if level else {"data": []},
        "platform": {"data": {"id": "srcpc", "name": "PC"}},
        "players": {"data": [{"names": {"international": name}} for name in players]},
        "times": {"primary_t": seconds},
    }


def _store():
    store = LeaderboardStore()
    store.add_category(Category(id="cat-any", name="any%"))
    store.add_platform(Platform(id="pc", name="PC"))
    store.upsert_player(Player(id="u1", display_name="Alice"))
    store.add_run(
        LeaderboardEntry(
            player_name="Bob",
            player2_name="Carol",
            run_type="co-op",
            category="cat-any",
            platform="pc",
            time="00:50:00",
            verified=True,
        )
    )
    store.add_run(
        LeaderboardEntry(
            player_name="Alice",
            category="cat-any",
            platform="pc",
            time="01:00:00",
            imported_from_src=True,
            src_run_id="run2",
        )
    )
    return store


def test_run_keys_cover_both_co_op_orders():
    entry = LeaderboardEntry(
        player_name="Bob", player2_name="Carol", run_type="co-op", category="c", platform="p", time="00:50:00"
    )
    swapped = LeaderboardEntry(
        player_name="carol", player2_name="bob", run_type="co-op", category="c", platform="p", time="00:50:00"
    )
    assert len(run_keys(entry)) == 2
    assert is_duplicate_run(swapped, set(run_keys(entry)))


def test_import_src_runs_skips_and_imports():
    store = _store()
    client = FakeClient(
        [
            _src_run("run1", ["Alice"], 2700),
            _src_run("run2", ["Alice"], 3600),
            _src_run("run3", ["Carol", "Bob"], 3000),
            _src_run("run4", ["Alice"], 2000, category="srcglitch"),
            _src_run("run5", ["Dave"], 2500),
            _src_run("run6", ["Eve"], 100, level="srclvl"),
        ]
    )
    progress = []

    result = asyncio.run(
        import_src_runs(client, store, game_abbreviation="lsw", on_progress=progress.append)
    )

    assert client.abbreviations == ["lsw"]
    assert result.imported == 2
    assert result.skipped == 4
    assert result.errors == [
        "Run run4: category 'Glitchless' is not configured",
        "Run run6: level 'Negotiations' is not configured",
    ]

    imported = {r.src_run_id: r for r in store.list_runs() if r.src_run_id in {"run1", "run5"}}
    assert set(imported) == {"run1", "run5"}
    assert imported["run1"].verified is False
    assert imported["run1"].category == "cat-any"
    assert imported["run1"].platform == "pc"
    assert imported["run1"].time == "00:45:00"
    assert result.unmatched_players == {imported["run5"].id: {"player1": "Dave"}}
    assert len(store.list_runs()) == 4

    last = progress[-1]
    assert (last.total, last.imported, last.skipped) == (6, 2, 4)


def test_import_src_runs_skips_duplicates_within_batch():
    store = _store()
    client = FakeClient([_src_run("a", ["Alice"], 2700), _src_run("b", ["alice"], 2700)])
    result = asyncio.run(import_src_runs(client, store, game_abbreviation="lsw"))
    assert (result.imported, result.skipped) == (1, 1)


def test_import_src_runs_dry_run_leaves_store_untouched():
    store = _store()
    client = FakeClient([_src_run("run5", ["Dave"], 2500)])
    result = asyncio.run(import_src_runs(client, store, game_abbreviation="lsw", dry_run=True))
    assert result.imported == 1
    assert result.unmatched_players == {"run5": {"player1": "Dave"}}
    assert len(store.list_runs()) == 2


def test_import_src_runs_without_runs_skips_mapping():
    client = FakeClient([])
    result = asyncio.run(import_src_runs(client, _store(), game_abbreviation="lsw"))
    assert result.to_dict() == {"imported": 0, "skipped": 0, "unmatched_players": {}, "errors": []}
    assert client.mapping_calls == 0


def test_service_import_runs_reports_dry_run(make_config, tmp_path):
    config = make_config(data_file=str(tmp_path / "board.json"))
    ctx = service.build_context(config)
    client = FakeClient([_src_run("run1", ["Alice"], 2700)])
    ctx.store.add_category(Category(id="cat-any", name="Any%"))
    ctx.store.add_platform(Platform(id="pc", name="PC"))

    payload = asyncio.run(service.import_runs(ctx, limit=5, dry_run=True, client=client))
    assert payload["imported"] == 1
    assert payload["dry_run"] is True
    assert ctx.store.list_runs() == []


def test_import_src_runs_stops_when_store_cannot_write(monkeypatch):
    store = _store()
    client = FakeClient([_src_run("run1", ["Alice"], 2700), _src_run("run5", ["Dave"], 2500)])
    attempts = []

    def read_only(entry):
        attempts.append(entry.src_run_id)
        raise OSError("Read-only file system")

    monkeypatch.setattr(store, "add_run", read_only)
    with pytest.raises(OSError):
        asyncio.run(import_src_runs(client, store, game_abbreviation="lsw"))
    assert attempts == ["run1"]
