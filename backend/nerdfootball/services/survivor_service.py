"""
backend/nerdfootball/services/survivor_service.py

Purpose:
    Boundary between the pure survivor core (pick history, engine,
    reconciliation) and MongoDB. Loads and validates pool member documents,
    writes the survivor sub-record back as one version-guarded update, and
    implements pick submission plus the administrator operations (override,
    forced elimination, removal, legacy pick import).

    Canonical pick storage is `survivor.picks` on the member document;
    `survivor.pick_history` and `survivor.total_picks` are rebuilt from it on
    every write. The legacy `survivor_picks` collection is only ever read.

Dependencies:
    - nerdfootball.database
    - nerdfootball.services.survivor_engine
    - nerdfootball.services.reconciliation
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from fastapi import HTTPException, status

import nerdfootball.database as _db
from nerdfootball.config import settings
from nerdfootball.models.survivor import (
    ALIVE_SENTINEL,
    MAX_WEEK,
    EliminationReason,
    PoolMember,
    SurvivorParticipation,
    SurvivorRecord,
    SurvivorStatus,
    SurvivorStatusView,
)
from nerdfootball.services.game_result_resolver import GameResultResolver, MongoResultsProvider
from nerdfootball.services.pick_history import PickHistory
from nerdfootball.services.reconciliation import ReconcileAction, reconcile
from nerdfootball.services.survivor_engine import compute_status
from nerdfootball.services.team_name_normalizer import is_known_team, normalize
from nerdfootball.services.week_clock import current_week, has_started, week_start
from nerdfootball.utils import utcnow

logger = logging.getLogger("nerdfootball.survivor_service")


class SurvivorWriteConflict(Exception):
    """The member document kept changing underneath a read-modify-write."""

    def __init__(self, user_id: str, attempts: int):
        super().__init__(f"Survivor record for {user_id} changed concurrently ({attempts} attempts)")
        self.user_id = user_id
        self.attempts = attempts


@dataclass(frozen=True)
class MemberRecomputeOutcome:
    user_id: str
    action: ReconcileAction | None  # None when the member is not in the survivor pool
    written: bool
    status: Optional[SurvivorStatus] = None

    @property
    def skipped(self) -> bool:
        return self.action is None


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_history(member: PoolMember) -> PickHistory:
    """Pick history from the canonical picks map, falling back to the legacy summary."""
    record = member.survivor
    if record.picks:
        return PickHistory.from_picks_map(record.picks)
    if record.pick_history:
        logger.info("Member %s: building picks from legacy pick_history summary", member.user_id)
        return PickHistory.from_summary(record.pick_history)
    return PickHistory()


async def _find_member_doc(user_id: str) -> dict:
    doc = await _db.db.pool_members.find_one({"_id": user_id})
    if not doc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Pool member not found.")
    return doc


async def get_member(user_id: str) -> PoolMember:
    return PoolMember.from_doc(await _find_member_doc(user_id))


async def list_member_docs() -> list[dict]:
    """Raw member documents for this pool; validation happens per member."""
    return await _db.db.pool_members.find({"pool_id": settings.POOL_ID}).to_list(length=5000)


async def load_resolver(through_week: int) -> GameResultResolver:
    return await GameResultResolver.load(MongoResultsProvider(), range(1, through_week + 1))


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def _version_filter(user_id: str, version: int) -> dict:
    # Records written before versioning have no version field; null matches missing.
    expected = {"$in": [0, None]} if version == 0 else version
    return {"_id": user_id, "survivor.version": expected}


async def _write_survivor(user_id: str, expected_version: int, record: SurvivorRecord) -> bool:
    """Replace the whole survivor sub-record if nobody else wrote it first."""
    result = await _db.db.pool_members.update_one(
        _version_filter(user_id, expected_version),
        {"$set": {"survivor": record.to_doc(), "updated_at": record.last_updated or utcnow()}},
    )
    return result.matched_count == 1


def _with_history(record: SurvivorRecord, history: PickHistory, now: datetime, **changes) -> SurvivorRecord:
    return record.model_copy(update={
        "picks": history.to_picks_map(),
        "pick_history": history.summary(),
        "total_picks": len(history.summary()),
        **changes,
        "last_updated": now,
        "version": record.version + 1,
    })


async def _mutate_survivor(
    user_id: str,
    build: Callable[[PoolMember, PickHistory], SurvivorRecord],
) -> SurvivorRecord:
    """Read-modify-write of one member's survivor record with optimistic retries."""
    attempts = max(1, settings.SURVIVOR_WRITE_RETRIES)
    for attempt in range(1, attempts + 1):
        member = PoolMember.from_doc(await _find_member_doc(user_id))
        record = build(member, load_history(member))
        if await _write_survivor(user_id, member.survivor.version, record):
            return record
        logger.info("Survivor write conflict for %s (attempt %d/%d)", user_id, attempt, attempts)
    raise SurvivorWriteConflict(user_id, attempts)


# ---------------------------------------------------------------------------
# Provisioning and picks
# ---------------------------------------------------------------------------

async def provision_member(user_id: str, display_name: str, email: str | None = None) -> PoolMember:
    """Create a member with default survivor data. Re-provisioning only refreshes the profile."""
    now = utcnow()
    await _db.db.pool_members.update_one(
        {"_id": user_id},
        {
            "$set": {"display_name": display_name, "email": email, "updated_at": now},
            "$setOnInsert": {
                "pool_id": settings.POOL_ID,
                "participation": {"survivor": SurvivorParticipation().model_dump()},
                "survivor": SurvivorRecord(last_updated=now).to_doc(),
                "created_at": now,
            },
        },
        upsert=True,
    )
    logger.info("Provisioned pool member %s (%s)", user_id, display_name)
    return await get_member(user_id)


def _check_open_week(week: int, now: datetime) -> None:
    if not 1 <= week <= MAX_WEEK:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, f"Week must be between 1 and {MAX_WEEK}.")
    if has_started(week, now):
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            f"Week {week} started on {week_start(week):%Y-%m-%d}; picks are locked.",
        )


async def submit_pick(user_id: str, week: int, team: str, now: datetime | None = None) -> SurvivorRecord:
    """Make or replace the member's pick for a week that has not started yet."""
    now = now or utcnow()
    _check_open_week(week, now)
    canonical = normalize(team)
    if not is_known_team(canonical):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, f"Unknown team '{team}'.")

    def build(member: PoolMember, history: PickHistory) -> SurvivorRecord:
        if not member.in_survivor:
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Member is not in the survivor pool.")
        if not member.survivor.is_alive:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "You have been eliminated.")
        if canonical in history.used_teams(excluding_week=week):
            raise HTTPException(
                status.HTTP_400_BAD_REQUEST,
                f"'{canonical}' has already been used. Choose a different team.",
            )
        return _with_history(member.survivor, history.with_pick(week, canonical, now), now)

    record = await _mutate_survivor(user_id, build)
    logger.info("Survivor pick: user=%s week=%d team=%s", user_id, week, canonical)
    return record


async def clear_pick(user_id: str, week: int, now: datetime | None = None) -> SurvivorRecord:
    now = now or utcnow()
    _check_open_week(week, now)

    def build(member: PoolMember, history: PickHistory) -> SurvivorRecord:
        if history.pick_for_week(week) is None:
            raise HTTPException(status.HTTP_404_NOT_FOUND, f"No pick for week {week}.")
        return _with_history(member.survivor, history.without_pick(week), now)

    record = await _mutate_survivor(user_id, build)
    logger.info("Survivor pick cleared: user=%s week=%d", user_id, week)
    return record


# ---------------------------------------------------------------------------
# Recompute
# ---------------------------------------------------------------------------

async def recompute_member(
    user_id: str,
    resolver: GameResultResolver,
    through_week: int,
    *,
    started_through: int | None = None,
    doc: dict | None = None,
    now: datetime | None = None,
) -> MemberRecomputeOutcome:
    """Compute, reconcile and persist one member's status.

    `doc` may be passed in from a batch listing to save a read; it is
    re-read after a version conflict.
    """
    attempts = max(1, settings.SURVIVOR_WRITE_RETRIES)
    for attempt in range(1, attempts + 1):
        if doc is None:
            doc = await _find_member_doc(user_id)
        member = PoolMember.from_doc(doc)
        if not member.in_survivor:
            return MemberRecomputeOutcome(user_id=member.user_id, action=None, written=False)

        history = load_history(member)
        computed = compute_status(
            history.picks_through(through_week), resolver, through_week,
            started_through=started_through,
        )
        result = reconcile(computed, member.survivor, history, now=now)
        if not result.write_needed:
            return MemberRecomputeOutcome(member.user_id, result.action, False, computed)

        if await _write_survivor(member.user_id, member.survivor.version, result.record):
            if result.status_changed:
                logger.info(
                    "Survivor status: user=%s alive=%d week=%s reason=%s",
                    member.user_id, result.record.alive,
                    result.record.elimination_week, result.record.elimination_reason,
                )
            return MemberRecomputeOutcome(member.user_id, result.action, True, computed)

        logger.info("Recompute write conflict for %s (attempt %d/%d)", user_id, attempt, attempts)
        doc = None
    raise SurvivorWriteConflict(user_id, attempts)


async def get_status_view(user_id: str, now: datetime | None = None) -> SurvivorStatusView:
    """Stored status next to a fresh computation, without writing anything."""
    week = current_week(now)
    member = await get_member(user_id)
    history = load_history(member)
    resolver = await load_resolver(week)
    computed = compute_status(history.picks_through(week), resolver, week)
    stored = member.survivor
    return SurvivorStatusView(
        user_id=member.user_id,
        display_name=member.display_name,
        in_survivor=member.in_survivor,
        stored={
            "alive": stored.alive,
            "elimination_week": stored.elimination_week,
            "elimination_reason": stored.elimination_reason,
            "pick_history": stored.pick_history,
            "total_picks": stored.total_picks,
            "last_updated": stored.last_updated,
        },
        computed={
            "alive": computed.alive_value,
            "elimination_week": computed.elimination_week,
            "elimination_reason": computed.elimination_reason,
            "resolved_through": computed.resolved_through,
            "pending_weeks": computed.pending_weeks,
            "weeks": [v.model_dump() for v in computed.weeks],
        },
        matches=stored.alive == computed.alive_value,
        manual_override=stored.manual_override,
        current_week=week,
    )


# ---------------------------------------------------------------------------
# Administrator operations
# ---------------------------------------------------------------------------

async def set_override(
    user_id: str,
    *,
    alive: bool,
    admin_id: str,
    elimination_week: int | None = None,
    reason: str | None = None,
) -> SurvivorRecord:
    """Force a status and protect it from automated recomputes."""
    if not alive and not (elimination_week and 1 <= elimination_week <= MAX_WEEK):
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            f"An elimination week between 1 and {MAX_WEEK} is required.",
        )
    now = utcnow()
    fields = {
        "alive": ALIVE_SENTINEL if alive else elimination_week,
        "elimination_week": None if alive else elimination_week,
        "elimination_reason": None if alive else (reason or EliminationReason.ADMIN),
        "manual_override": True,
        "override_reason": reason,
        "overridden_by": admin_id,
        "overridden_at": now,
    }

    record = await _mutate_survivor(
        user_id,
        lambda member, history: _with_history(member.survivor, history, now, **fields),
    )
    logger.warning(
        "Manual override set: user=%s alive=%d week=%s by=%s reason=%s",
        user_id, record.alive, record.elimination_week, admin_id, reason,
    )
    return record


async def force_eliminate(user_id: str, week: int, admin_id: str, reason: str | None = None) -> SurvivorRecord:
    return await set_override(
        user_id, alive=False, elimination_week=week, admin_id=admin_id,
        reason=reason or EliminationReason.ADMIN,
    )


async def clear_override(user_id: str, admin_id: str, now: datetime | None = None) -> MemberRecomputeOutcome:
    """Drop the override and let the computed status apply right away."""
    clear_at = utcnow()
    fields = {
        "manual_override": False,
        "override_reason": None,
        "overridden_by": None,
        "overridden_at": None,
    }
    await _mutate_survivor(
        user_id,
        lambda member, history: _with_history(member.survivor, history, clear_at, **fields),
    )
    logger.warning("Manual override cleared: user=%s by=%s", user_id, admin_id)

    week = current_week(now)
    resolver = await load_resolver(week)
    return await recompute_member(user_id, resolver, week, now=now)


async def remove_from_survivor(user_id: str, admin_id: str, now: datetime | None = None) -> PoolMember:
    """Take a member out of survivor participation; their survivor data is kept."""
    now = now or utcnow()
    await _find_member_doc(user_id)
    participation = SurvivorParticipation(
        enabled=False,
        status="removed",
        end_week=current_week(now),
        removed_at=now,
        removed_by=admin_id,
    )
    await _db.db.pool_members.update_one(
        {"_id": user_id},
        {"$set": {"participation.survivor": participation.model_dump(), "updated_at": now}},
    )
    logger.warning("Removed from survivor: user=%s by=%s", user_id, admin_id)
    return await get_member(user_id)


async def import_legacy_picks(user_id: str) -> dict:
    """Fold the legacy per-week survivor_picks document into the canonical picks map.

    Weeks already present on the member record win; conflicts are logged.
    """
    legacy = await _db.db.survivor_picks.find_one({"_id": user_id})
    if not legacy:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "No legacy picks for this member.")
    legacy_history = PickHistory.from_picks_map(legacy.get("picks") or {})
    counts = {"imported": 0, "conflicts": 0, "already_present": 0}
    now = utcnow()

    def build(member: PoolMember, history: PickHistory) -> SurvivorRecord:
        counts.update(imported=0, conflicts=0, already_present=0)
        merged = history
        for pick in legacy_history:
            existing = history.pick_for_week(pick.week)
            if existing is None:
                merged = merged.with_pick(pick.week, pick.team, pick.submitted_at)
                counts["imported"] += 1
            elif existing.team == pick.team:
                counts["already_present"] += 1
            else:
                counts["conflicts"] += 1
                logger.warning(
                    "Legacy pick conflict: user=%s week=%d member=%s legacy=%s (member kept)",
                    user_id, pick.week, existing.team, pick.team,
                )
        return _with_history(member.survivor, merged, now)

    await _mutate_survivor(user_id, build)
    logger.info("Legacy picks imported for %s: %s", user_id, counts)
    return counts
