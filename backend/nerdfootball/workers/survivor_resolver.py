"""Recompute survivor status for every pool member.

Results are loaded once and shared read-only; members are processed
concurrently. One member's failure is recorded in the run report and the
batch moves on. Only a failure to load results or the member list aborts.
"""

import asyncio
import logging
from datetime import datetime, timedelta

from pydantic import BaseModel
from pymongo.errors import PyMongoError

import nerdfootball.database as _db
from nerdfootball.config import settings
from nerdfootball.models.survivor import MAX_WEEK
from nerdfootball.services.survivor_service import list_member_docs, load_resolver, recompute_member
from nerdfootball.services.week_clock import current_week
from nerdfootball.utils import utcnow
from nerdfootball.workers._state import get_synced_at, set_synced

logger = logging.getLogger("nerdfootball.survivor_resolver")

_STATE_KEY = "survivor_recompute"


class RecomputeError(BaseModel):
    user_id: str
    error: str


class RecomputeReport(BaseModel):
    pool_id: str
    through_week: int
    attempted: int = 0
    changed: int = 0
    unchanged: int = 0
    protected: int = 0
    skipped: int = 0
    written: int = 0
    errors: list[RecomputeError] = []
    started_at: datetime
    finished_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return not self.errors


async def recompute_all(
    through_week: int | None = None,
    *,
    concurrency: int | None = None,
    now: datetime | None = None,
) -> RecomputeReport:
    """Recompute weeks 1..through_week (default: current week) for all members."""
    now = now or utcnow()
    started = current_week(now)
    through = started if through_week is None else max(0, min(int(through_week), MAX_WEEK))

    resolver = await load_resolver(through)
    docs = await list_member_docs()

    report = RecomputeReport(pool_id=settings.POOL_ID, through_week=through, started_at=now)
    semaphore = asyncio.Semaphore(max(1, concurrency or settings.SURVIVOR_RECOMPUTE_CONCURRENCY))

    async def _one(doc: dict) -> None:
        user_id = str(doc.get("_id"))
        async with semaphore:
            try:
                outcome = await recompute_member(
                    user_id, resolver, through,
                    started_through=min(started, through),
                    doc=doc,
                    now=now,
                )
            except Exception as exc:
                logger.error("Survivor recompute failed for %s: %s", user_id, exc)
                report.errors.append(RecomputeError(user_id=user_id, error=f"{type(exc).__name__}: {exc}"))
                return

        if outcome.skipped:
            report.skipped += 1
            return
        report.attempted += 1
        report.written += int(outcome.written)
        if outcome.action == "applied":
            report.changed += 1
        elif outcome.action == "protected":
            report.protected += 1
        else:
            report.unchanged += 1

    await asyncio.gather(*(_one(doc) for doc in docs))
    report.attempted += len(report.errors)
    report.finished_at = utcnow()

    logger.info(
        "Survivor recompute through week %d: attempted=%d changed=%d protected=%d unchanged=%d skipped=%d errors=%d",
        through, report.attempted, report.changed, report.protected,
        report.unchanged, report.skipped, len(report.errors),
    )
    try:
        await _db.db.survivor_recompute_runs.insert_one(report.model_dump())
    except PyMongoError as exc:
        logger.error("Could not store survivor recompute report: %s", exc)
    return report


async def run_scheduled_recompute() -> RecomputeReport | None:
    """Scheduler entry point.

    Smart sleep: skips when the last run is recent and no game result has
    changed since.
    """
    last = await get_synced_at(_STATE_KEY)
    if last and utcnow() - last < timedelta(minutes=settings.SURVIVOR_SMART_SLEEP_MINUTES):
        changed = await _db.db.game_results.find_one({
            "season": settings.SEASON,
            "updated_at": {"$gt": last},
        })
        if not changed:
            logger.debug("Smart sleep: no game results changed since %s", last.isoformat())
            return None

    run_start = utcnow()
    report = await recompute_all(now=run_start)
    await set_synced(_STATE_KEY, run_start)
    return report
