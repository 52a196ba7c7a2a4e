"""
backend/tests/test_survivor_engine.py

Purpose:
    Survivor state machine behavior: elimination rules, precedence, pending
    weeks, determinism and monotonic elimination.
"""

from __future__ import annotations

from nerdfootball.models.game_result import GameResult, TeamOutcome
from nerdfootball.models.survivor import ALIVE_SENTINEL, EliminationReason
from nerdfootball.services.game_result_resolver import GameResultResolver
from nerdfootball.services.pick_history import PickHistory
from nerdfootball.services.survivor_engine import compute_status


def _final(week, winner, loser, *, tie=False):
    return GameResult(
        week=week,
        game_id=f"{week}-{winner}",
        home_team=winner,
        away_team=loser,
        home_score=20,
        away_score=20 if tie else 10,
        winner=None if tie else winner,
        status="final",
    )


class _StaticOutcomes:
    """Resolver stub returning fixed outcomes and recording lookups."""

    def __init__(self, outcomes: dict[tuple[str, int], TeamOutcome]):
        self.outcomes = outcomes
        self.calls: list[tuple[str, int]] = []

    def resolve_team_outcome(self, team, week):
        self.calls.append((team, week))
        return self.outcomes.get((team, week), TeamOutcome.UNDETERMINED)


def test_scenario_two_wins_alive():
    resolver = GameResultResolver.from_games([
        _final(1, "Buffalo Bills", "Baltimore Ravens"),
        _final(2, "Arizona Cardinals", "Carolina Panthers"),
    ])
    status = compute_status(PickHistory.from_summary(["Buffalo Bills", "Arizona Cardinals"]), resolver, 2)

    assert status.alive is True
    assert status.elimination_week is None
    assert status.elimination_reason is None
    assert status.resolved_through == 2
    assert status.alive_value == ALIVE_SENTINEL


def test_scenario_loss_eliminates():
    resolver = GameResultResolver.from_games([_final(1, "Indianapolis Colts", "Miami Dolphins")])
    status = compute_status(PickHistory.from_summary(["Miami Dolphins"]), resolver, 1)

    assert status.alive is False
    assert status.elimination_week == 1
    assert status.elimination_reason == EliminationReason.TEAM_LOST
    assert status.alive_value == 1


def test_scenario_reuse_fires_at_second_occurrence():
    resolver = GameResultResolver.from_games([
        _final(1, "Buffalo Bills", "Baltimore Ravens"),
        _final(2, "Buffalo Bills", "New York Jets"),
    ])
    status = compute_status(PickHistory.from_summary(["Buffalo Bills", "Buffalo Bills"]), resolver, 2)

    assert status.alive is False
    assert status.elimination_week == 2
    assert status.elimination_reason == EliminationReason.TEAM_REUSED


def test_scenario_empty_history_misses_week_one():
    status = compute_status(PickHistory(), GameResultResolver(), 1)

    assert status.alive is False
    assert status.elimination_week == 1
    assert status.elimination_reason == EliminationReason.MISSED_PICK


def test_scenario_in_progress_then_final_loss():
    history = PickHistory.from_summary(["Dallas Cowboys"])
    live = GameResultResolver.from_games([
        GameResult(week=1, game_id="g1", home_team="Philadelphia Eagles", away_team="Dallas Cowboys",
                   home_score=17, away_score=14, status="in_progress"),
    ])

    during = compute_status(history, live, 1)
    assert during.alive is True
    assert during.pending_weeks == [1]
    assert during.resolved_through == 0

    final = GameResultResolver.from_games([
        GameResult(week=1, game_id="g1", home_team="Philadelphia Eagles", away_team="Dallas Cowboys",
                   home_score=24, away_score=20, winner="Philadelphia Eagles", status="final"),
    ])
    after = compute_status(history, final, 1)
    assert after.alive is False
    assert after.elimination_week == 1
    assert after.elimination_reason == EliminationReason.TEAM_LOST


def test_reuse_takes_precedence_over_loss_and_skips_outcome_lookup():
    resolver = _StaticOutcomes({
        ("Buffalo Bills", 1): TeamOutcome.WIN,
        ("Buffalo Bills", 2): TeamOutcome.LOSS,
    })
    status = compute_status(PickHistory.from_summary(["Buffalo Bills", "BUF"]), resolver, 2)

    assert status.elimination_reason == EliminationReason.TEAM_REUSED
    assert status.elimination_week == 2
    assert resolver.calls == [("Buffalo Bills", 1)]


def test_missed_pick_in_the_middle_of_the_season():
    resolver = _StaticOutcomes({
        ("Buffalo Bills", 1): TeamOutcome.WIN,
        ("Detroit Lions", 3): TeamOutcome.WIN,
    })
    history = PickHistory.from_picks_map({1: {"team": "Buffalo Bills"}, 3: {"team": "Detroit Lions"}})
    status = compute_status(history, resolver, 3)

    assert status.alive is False
    assert status.elimination_week == 2
    assert status.elimination_reason == EliminationReason.MISSED_PICK


def test_missing_pick_for_week_not_started_is_not_fatal():
    resolver = _StaticOutcomes({("Buffalo Bills", 1): TeamOutcome.WIN})
    status = compute_status(PickHistory.from_summary(["Buffalo Bills"]), resolver, 2, started_through=1)

    assert status.alive is True
    assert status.weeks[-1].note == "not started"


def test_tie_survives():
    resolver = GameResultResolver.from_games([_final(1, "Green Bay Packers", "Chicago Bears", tie=True)])
    status = compute_status(PickHistory.from_summary(["Chicago Bears"]), resolver, 1)

    assert status.alive is True
    assert status.weeks[0].outcome == TeamOutcome.TIE


def test_unknown_team_is_undetermined_but_still_counts_for_reuse():
    resolver = _StaticOutcomes({})
    history = PickHistory.from_summary(["Springfield Atoms", "Springfield Atoms"])
    status = compute_status(history, resolver, 2)

    assert status.alive is False
    assert status.elimination_reason == EliminationReason.TEAM_REUSED
    assert status.pending_weeks == [1]

    single = compute_status(PickHistory.from_summary(["Springfield Atoms"]), GameResultResolver(), 1)
    assert single.alive is True
    assert single.weeks[0].outcome == TeamOutcome.UNDETERMINED


def test_pending_week_stops_resolved_through_but_later_loss_still_eliminates():
    resolver = _StaticOutcomes({
        ("Buffalo Bills", 1): TeamOutcome.WIN,
        ("Detroit Lions", 3): TeamOutcome.WIN,
        ("Denver Broncos", 4): TeamOutcome.LOSS,
    })
    history = PickHistory.from_summary(["Buffalo Bills", "Kansas City Chiefs", "Detroit Lions", "Denver Broncos"])

    through_three = compute_status(history, resolver, 3)
    assert through_three.alive is True
    assert through_three.resolved_through == 1
    assert through_three.pending_weeks == [2]

    through_four = compute_status(history, resolver, 4)
    assert through_four.elimination_week == 4


def test_elimination_is_monotonic_across_later_weeks():
    resolver = _StaticOutcomes({
        ("Buffalo Bills", 1): TeamOutcome.WIN,
        ("Miami Dolphins", 2): TeamOutcome.LOSS,
        ("Detroit Lions", 3): TeamOutcome.WIN,
    })
    history = PickHistory.from_summary(["Buffalo Bills", "Miami Dolphins", "Detroit Lions"])

    first = compute_status(history, resolver, 2)
    for as_of in range(2, 18):
        later = compute_status(history, resolver, as_of)
        assert (later.elimination_week, later.elimination_reason) == (first.elimination_week, first.elimination_reason)


def test_compute_status_is_deterministic():
    resolver = _StaticOutcomes({("Buffalo Bills", 1): TeamOutcome.WIN, ("Arizona Cardinals", 2): TeamOutcome.TIE})
    history = PickHistory.from_summary(["Buffalo Bills", "Arizona Cardinals"])

    assert compute_status(history, resolver, 2) == compute_status(history, resolver, 2)


def test_none_history_and_week_zero():
    assert compute_status(None, GameResultResolver(), 0).alive is True
    assert compute_status(None, GameResultResolver(), 0).weeks == []
