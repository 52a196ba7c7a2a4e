"""
backend/nerdfootball/services/pick_history.py

Purpose:
    Ordered, normalized view of one member's survivor picks. Builds from the
    canonical per-week picks map or from the legacy comma-joined summary, and
    re-derives the summary/total_picks cache fields written alongside it.

Dependencies:
    - nerdfootball.services.team_name_normalizer
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping

from nerdfootball.models.survivor import StoredPick
from nerdfootball.services.team_name_normalizer import normalize

logger = logging.getLogger("nerdfootball.pick_history")


@dataclass(frozen=True)
class SurvivorPick:
    week: int
    team: str
    raw_team: str
    submitted_at: datetime | None = None
    game_id: str | None = None


class PickHistory:
    """Immutable week-ordered pick list; at most one pick per week."""

    def __init__(self, picks: Iterable[SurvivorPick] = ()):
        by_week: dict[int, SurvivorPick] = {}
        for pick in picks:
            if pick.week in by_week:
                logger.warning(
                    "Duplicate pick for week %d (%s replaced by %s)",
                    pick.week, by_week[pick.week].team, pick.team,
                )
            by_week[pick.week] = pick
        self._picks: tuple[SurvivorPick, ...] = tuple(by_week[w] for w in sorted(by_week))

    @classmethod
    def from_picks_map(cls, picks: Mapping[int, StoredPick | dict]) -> "PickHistory":
        items = []
        for week, stored in (picks or {}).items():
            if isinstance(stored, dict):
                stored = StoredPick.model_validate(stored)
            items.append(SurvivorPick(
                week=int(week),
                team=normalize(stored.team),
                raw_team=stored.team,
                submitted_at=stored.submitted_at,
                game_id=stored.game_id,
            ))
        return cls(items)

    @classmethod
    def from_summary(cls, summary: str | list[str] | None) -> "PickHistory":
        """Legacy comma-joined history; index 0 is week 1, blank entries mean no pick."""
        if not summary:
            return cls()
        entries = summary.split(",") if isinstance(summary, str) else list(summary)
        return cls(
            SurvivorPick(week=index + 1, team=normalize(raw.strip()), raw_team=raw.strip())
            for index, raw in enumerate(entries)
            if raw and raw.strip()
        )

    def __len__(self) -> int:
        return len(self._picks)

    def __iter__(self):
        return iter(self._picks)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PickHistory):
            return NotImplemented
        return [(p.week, p.team) for p in self] == [(p.week, p.team) for p in other]

    def __repr__(self) -> str:
        return f"PickHistory({[(p.week, p.team) for p in self]!r})"

    def weeks(self) -> list[int]:
        return [p.week for p in self._picks]

    def teams(self) -> list[str]:
        return [p.team for p in self._picks]

    def pick_for_week(self, week: int) -> SurvivorPick | None:
        for pick in self._picks:
            if pick.week == week:
                return pick
        return None

    def picks_through(self, max_week: int) -> "PickHistory":
        """Only weeks <= max_week; keeps future picks out of current-week views."""
        return PickHistory(p for p in self._picks if p.week <= max_week)

    def has_duplicate_team(self) -> bool:
        teams = self.teams()
        return len(set(teams)) != len(teams)

    def used_teams(self, excluding_week: int | None = None) -> set[str]:
        return {p.team for p in self._picks if p.week != excluding_week}

    def with_pick(self, week: int, team: str, submitted_at: datetime | None = None) -> "PickHistory":
        pick = SurvivorPick(week=week, team=normalize(team), raw_team=team, submitted_at=submitted_at)
        return PickHistory([*(p for p in self._picks if p.week != week), pick])

    def without_pick(self, week: int) -> "PickHistory":
        return PickHistory(p for p in self._picks if p.week != week)

    def summary(self) -> list[str]:
        """Cached pick_history field: index 0 is week 1, a week without a pick is blank.

        Positional so that `from_summary(summary())` rebuilds the same weeks.
        """
        if not self._picks:
            return []
        by_week = {p.week: p.team for p in self._picks}
        return [by_week.get(week, "") for week in range(1, self._picks[-1].week + 1)]

    def to_picks_map(self) -> dict[int, StoredPick]:
        return {
            p.week: StoredPick(team=p.team, submitted_at=p.submitted_at, game_id=p.game_id)
            for p in self._picks
        }

    def reconcile_total(self, stored_total: int | None) -> int:
        """Trust the summary length; log drift in the stored counter."""
        actual = len(self.summary())
        if stored_total is not None and stored_total != actual:
            logger.warning(
                "total_picks drift: stored=%s actual=%d (self-healing to list length)",
                stored_total, actual,
            )
        return actual

