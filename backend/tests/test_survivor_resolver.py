from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pymongo.errors import PyMongoError, ServerSelectionTimeoutError

from nerdfootball.config import settings
from nerdfootball.models.survivor import ALIVE_SENTINEL
from nerdfootball.utils import utcnow
from nerdfootball.workers import survivor_resolver
from nerdfootball.workers.survivor_resolver import recompute_all

# Inside week 3 of the 2025 season.
NOW = datetime(2025, 9, 20, 15, 0, tzinfo=timezone.utc)


def _member(user_id: str, picks: dict[int, str], **survivor) -> dict:
    record = {
        "alive": ALIVE_SENTINEL,
        "picks": {str(w): {"team": t} for w, t in picks.items()},
        "pick_history": [picks[w] for w in sorted(picks)],
        "total_picks": len(picks),
        "manual_override": False,
        "version": 0,
    }
    record.update(survivor)
    return {"_id": user_id, "pool_id": settings.POOL_ID, "display_name": user_id.title(), "survivor": record}


def _game(week: int, winner: str, loser: str) -> dict:
    return {
        "_id": f"{week}-{winner}",
        "season": settings.SEASON,
        "week": week,
        "home_team": winner,
        "away_team": loser,
        "home_score": 24,
        "away_score": 10,
        "winner": winner,
        "status": "final",
    }


@pytest.fixture
def season(install_db):
    install_db.game_results.docs = [
        _game(1, "Buffalo Bills", "Baltimore Ravens"),
        _game(1, "Indianapolis Colts", "Miami Dolphins"),
        _game(2, "Carolina Panthers", "Arizona Cardinals"),
        _game(2, "Detroit Lions", "Chicago Bears"),
        _game(3, "Seattle Seahawks", "Denver Broncos"),
    ]
    removed = _member("rob", {1: "Buffalo Bills"})
    removed["participation"] = {"survivor": {"enabled": False, "status": "removed"}}
    install_db.pool_members.docs = [
        _member("ann", {1: "Buffalo Bills", 2: "Detroit Lions", 3: "Seattle Seahawks"}),
        _member("ben", {1: "Buffalo Bills", 2: "Arizona Cardinals"}),
        _member("cat", {1: "Miami Dolphins"}, manual_override=True),
        _member("dan", {1: "Buffalo Bills", 2: "Detroit Lions", 3: "Seattle Seahawks"}, total_picks=5),
        _member("eve", {1: "Buffalo Bills"}, alive=99),
        removed,
    ]
    return install_db


def _stored(db, user_id: str) -> dict:
    return next(d for d in db.pool_members.docs if d["_id"] == user_id)["survivor"]


@pytest.mark.asyncio
async def test_batch_counts_and_continues_past_bad_member(season):
    report = await recompute_all(now=NOW)

    assert report.through_week == 3
    assert report.attempted == 5
    assert report.skipped == 1
    assert report.changed == 1       # ben lost week 2
    assert report.protected == 1     # cat
    assert report.unchanged == 2     # ann, dan (counter healed only)
    assert report.written == 2       # ben, dan
    assert [e.user_id for e in report.errors] == ["eve"]
    assert not report.ok

    assert _stored(season, "ben")["alive"] == 2
    assert _stored(season, "dan")["total_picks"] == 3
    assert _stored(season, "cat")["alive"] == ALIVE_SENTINEL
    assert _stored(season, "eve")["alive"] == 99


@pytest.mark.asyncio
async def test_second_run_writes_nothing(season):
    await recompute_all(now=NOW)
    writes_after_first = len(season.pool_members.updates)

    report = await recompute_all(now=NOW)

    assert report.written == 0
    assert report.changed == 0
    assert len(season.pool_members.updates) == writes_after_first


@pytest.mark.asyncio
async def test_missing_current_week_pick_is_not_eliminated_early(season):
    season.pool_members.docs.append(_member("fay", {1: "Buffalo Bills", 2: "Detroit Lions"}))

    await recompute_all(through_week=3, now=datetime(2025, 9, 16, tzinfo=timezone.utc))

    # Week 3 has not kicked off on the 16th.
    assert _stored(season, "fay")["alive"] == ALIVE_SENTINEL


@pytest.mark.asyncio
async def test_missed_started_week_eliminates(season):
    season.pool_members.docs.append(_member("fay", {1: "Buffalo Bills", 2: "Detroit Lions"}))

    await recompute_all(now=NOW)

    stored = _stored(season, "fay")
    assert (stored["alive"], stored["elimination_reason"]) == (3, "missed pick")


@pytest.mark.asyncio
async def test_report_is_stored(season):
    report = await recompute_all(now=NOW)

    assert len(season.survivor_recompute_runs.docs) == 1
    stored = season.survivor_recompute_runs.docs[0]
    assert stored["pool_id"] == settings.POOL_ID
    assert stored["attempted"] == report.attempted


@pytest.mark.asyncio
async def test_report_store_failure_does_not_fail_run(season):
    season.survivor_recompute_runs.fail_with = PyMongoError("write concern timeout")

    report = await recompute_all(now=NOW)

    assert report.attempted == 5


@pytest.mark.asyncio
async def test_results_load_failure_aborts(season):
    season.game_results.fail_with = ServerSelectionTimeoutError("no primary")

    with pytest.raises(ServerSelectionTimeoutError):
        await recompute_all(now=NOW)
    assert season.pool_members.updates == []


@pytest.mark.asyncio
async def test_scheduled_run_sleeps_when_nothing_changed(install_db, monkeypatch):
    install_db.worker_state.docs = [{"_id": "survivor_recompute", "synced_at": utcnow() - timedelta(minutes=5)}]
    called = []

    async def _fake_recompute_all(*args, **kwargs):
        called.append(kwargs)

    monkeypatch.setattr(survivor_resolver, "recompute_all", _fake_recompute_all)

    assert await survivor_resolver.run_scheduled_recompute() is None
    assert called == []


@pytest.mark.asyncio
async def test_scheduled_run_wakes_on_new_results(install_db, monkeypatch):
    last = utcnow() - timedelta(minutes=5)
    install_db.worker_state.docs = [{"_id": "survivor_recompute", "synced_at": last}]
    install_db.game_results.docs = [{
        "_id": "g1", "season": settings.SEASON, "week": 1, "updated_at": last + timedelta(minutes=1),
    }]
    called = []

    async def _fake_recompute_all(*args, **kwargs):
        called.append(kwargs)
        return "report"

    monkeypatch.setattr(survivor_resolver, "recompute_all", _fake_recompute_all)

    assert await survivor_resolver.run_scheduled_recompute() == "report"
    assert len(called) == 1
    assert install_db.worker_state.docs[0]["synced_at"] > last
