"""
backend/nerdfootball/services/audit_service.py

Purpose:
    Read-only verification of stored survivor status against a fresh engine
    run. Every participating member lands in one of four buckets
    (correct elimination, missed elimination, incorrect elimination, correct
    survivor), with per-week pick detail for follow-up.

Dependencies:
    - nerdfootball.services.survivor_service
    - nerdfootball.services.survivor_engine
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ValidationError

from nerdfootball.models.survivor import ALIVE_SENTINEL, MAX_WEEK, PoolMember, WeekVerdict
from nerdfootball.services.game_result_resolver import GameResultResolver
from nerdfootball.services.survivor_engine import compute_status
from nerdfootball.services.survivor_service import list_member_docs, load_history, load_resolver
from nerdfootball.services.week_clock import current_week

logger = logging.getLogger("nerdfootball.audit_service")

AuditCategory = Literal[
    "correct_elimination",
    "missed_elimination",
    "incorrect_elimination",
    "correct_survivor",
]


class AuditRow(BaseModel):
    user_id: str
    display_name: str
    email: Optional[str] = None
    category: AuditCategory
    stored_alive: int
    computed_alive: int
    elimination_reason: Optional[str] = None
    mismatch: bool
    manual_override: bool
    pick_history: list[str]
    weeks: list[WeekVerdict]


class AuditReport(BaseModel):
    through_week: int
    rows: list[AuditRow]
    invalid_members: list[str] = []
    summary: dict


def classify(stored_alive: int, computed_alive: int) -> AuditCategory:
    stored_out = stored_alive != ALIVE_SENTINEL
    computed_out = computed_alive != ALIVE_SENTINEL
    if computed_out and stored_out:
        return "correct_elimination"
    if computed_out:
        return "missed_elimination"
    if stored_out:
        return "incorrect_elimination"
    return "correct_survivor"


def audit_member(
    member: PoolMember,
    resolver: GameResultResolver,
    through_week: int,
    started_through: int | None = None,
) -> AuditRow:
    history = load_history(member)
    computed = compute_status(
        history.picks_through(through_week), resolver, through_week,
        started_through=started_through,
    )
    stored = member.survivor
    return AuditRow(
        user_id=member.user_id,
        display_name=member.display_name,
        email=member.email,
        category=classify(stored.alive, computed.alive_value),
        stored_alive=stored.alive,
        computed_alive=computed.alive_value,
        elimination_reason=computed.elimination_reason,
        mismatch=stored.alive != computed.alive_value,
        manual_override=stored.manual_override,
        pick_history=history.summary(),
        weeks=computed.weeks,
    )


def summarize(rows: list[AuditRow]) -> dict:
    eliminated_by_week = Counter(r.computed_alive for r in rows if r.computed_alive != ALIVE_SENTINEL)
    return {
        "members": len(rows),
        "alive": sum(1 for r in rows if r.computed_alive == ALIVE_SENTINEL),
        "eliminated_by_week": {week: eliminated_by_week[week] for week in sorted(eliminated_by_week)},
        "mismatches": sum(1 for r in rows if r.mismatch),
        "overridden_mismatches": sum(1 for r in rows if r.mismatch and r.manual_override),
        "categories": dict(Counter(r.category for r in rows)),
    }


def _sort_key(row: AuditRow) -> tuple:
    # Alive first, then later eliminations first, then by name.
    return (row.computed_alive != ALIVE_SENTINEL, -row.computed_alive, row.display_name.lower())


async def build_verification_report(
    through_week: int | None = None,
    now: datetime | None = None,
) -> AuditReport:
    started = current_week(now)
    week = started if through_week is None else max(0, min(int(through_week), MAX_WEEK))
    resolver = await load_resolver(week)

    rows: list[AuditRow] = []
    invalid: list[str] = []
    for doc in await list_member_docs():
        try:
            member = PoolMember.from_doc(doc)
        except ValidationError as exc:
            logger.warning("Audit: member %s failed validation: %s", doc.get("_id"), exc)
            invalid.append(str(doc.get("_id")))
            continue
        if member.in_survivor:
            rows.append(audit_member(member, resolver, week, started_through=min(started, week)))

    rows.sort(key=_sort_key)
    return AuditReport(through_week=week, rows=rows, invalid_members=invalid, summary=summarize(rows))
