"""
backend/nerdfootball/services/survivor_engine.py

Purpose:
    Survivor elimination state machine. Walks a member's pick history against
    resolved weekly outcomes and derives ALIVE or ELIMINATED(week, reason).

    ALIVE -> ELIMINATED is the only transition and it is terminal here; only
    an administrator override (reconciliation layer) can bring a member back.

    Per week, in ascending order:
        - no pick for a started week   -> eliminated, "missed pick"
        - team already used            -> eliminated, "team reused"
        - team lost                    -> eliminated, "team lost"
        - win / tie                    -> survives
        - undetermined                 -> survives for now, week stays pending

Dependencies:
    - nerdfootball.services.pick_history
    - nerdfootball.services.game_result_resolver (any object with
      resolve_team_outcome(team, week))
"""

from __future__ import annotations

import logging
from typing import Protocol

from nerdfootball.models.game_result import TeamOutcome
from nerdfootball.models.survivor import MAX_WEEK, EliminationReason, SurvivorStatus, WeekVerdict
from nerdfootball.services.pick_history import PickHistory

logger = logging.getLogger("nerdfootball.survivor_engine")


class OutcomeLookup(Protocol):
    def resolve_team_outcome(self, team: str, week: int) -> TeamOutcome: ...


def compute_status(
    history: PickHistory | None,
    resolver: OutcomeLookup,
    as_of_week: int,
    *,
    started_through: int | None = None,
) -> SurvivorStatus:
    """Derive survivor status for weeks 1..as_of_week.

    `started_through` bounds the weeks that count as started for the
    missed-pick rule (defaults to `as_of_week`). Pure; never raises for data
    problems.
    """
    history = history or PickHistory()
    as_of_week = max(0, min(int(as_of_week), MAX_WEEK))
    started = as_of_week if started_through is None else min(int(started_through), as_of_week)

    used: set[str] = set()
    verdicts: list[WeekVerdict] = []
    pending: list[int] = []
    resolved_through = 0

    def _eliminated(week: int, reason: str) -> SurvivorStatus:
        logger.debug("Eliminated in week %d: %s", week, reason)
        return SurvivorStatus(
            alive=False,
            elimination_week=week,
            elimination_reason=reason,
            resolved_through=week,
            pending_weeks=pending,
            weeks=verdicts,
        )

    for week in range(1, as_of_week + 1):
        pick = history.pick_for_week(week)

        if pick is None:
            if week <= started:
                verdicts.append(WeekVerdict(week=week, note=EliminationReason.MISSED_PICK))
                return _eliminated(week, EliminationReason.MISSED_PICK)
            verdicts.append(WeekVerdict(week=week, note="not started"))
            continue

        if pick.team in used:
            verdicts.append(WeekVerdict(week=week, team=pick.team, note=EliminationReason.TEAM_REUSED))
            return _eliminated(week, EliminationReason.TEAM_REUSED)
        used.add(pick.team)

        outcome = resolver.resolve_team_outcome(pick.team, week)
        verdicts.append(WeekVerdict(week=week, team=pick.team, outcome=outcome))

        if outcome == TeamOutcome.LOSS:
            return _eliminated(week, EliminationReason.TEAM_LOST)
        if outcome == TeamOutcome.UNDETERMINED:
            pending.append(week)
        elif not pending:
            resolved_through = week

    return SurvivorStatus(
        alive=True,
        resolved_through=resolved_through,
        pending_weeks=pending,
        weeks=verdicts,
    )
