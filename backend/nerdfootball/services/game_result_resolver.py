"""
backend/nerdfootball/services/game_result_resolver.py

Purpose:
    Project the weekly game_results store onto a per-team outcome
    (WIN/LOSS/TIE/UNDETERMINED). Loading is async and happens once at the
    boundary; lookups are synchronous so the survivor engine stays pure.

Dependencies:
    - nerdfootball.database (MongoResultsProvider only)
    - nerdfootball.services.team_name_normalizer
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Protocol

from pydantic import ValidationError

import nerdfootball.database as _db
from nerdfootball.config import settings
from nerdfootball.models.game_result import GameResult, TeamOutcome
from nerdfootball.services.team_name_normalizer import is_known_team, normalize

logger = logging.getLogger("nerdfootball.game_result_resolver")


class ResultsProvider(Protocol):
    async def load_week(self, week: int) -> list[GameResult]: ...


class MongoResultsProvider:
    """Reads one season's game_results documents."""

    def __init__(self, season: int | None = None):
        self.season = season or settings.SEASON

    async def load_week(self, week: int) -> list[GameResult]:
        docs = await _db.db.game_results.find(
            {"season": self.season, "week": week},
        ).to_list(length=100)

        games: list[GameResult] = []
        for doc in docs:
            try:
                games.append(GameResult.model_validate(doc))
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed game result season=%s week=%s id=%s: %s",
                    self.season, week, doc.get("_id"), exc.errors()[0].get("msg"),
                )
        return games


def outcome_for(game: GameResult, team: str) -> TeamOutcome:
    """Outcome of `team` (canonical) in a game it took part in."""
    if not game.is_final:
        return TeamOutcome.UNDETERMINED

    home = normalize(game.home_team)
    away = normalize(game.away_team)
    if game.winner:
        winner = normalize(game.winner)
        if winner not in (home, away):
            if game.is_tied:
                return TeamOutcome.TIE
            logger.warning(
                "Game %s week %d winner %r is not a participant (%s vs %s)",
                game.game_id, game.week, game.winner, away, home,
            )
            return TeamOutcome.UNDETERMINED
        return TeamOutcome.WIN if winner == team else TeamOutcome.LOSS

    if game.home_score is None or game.away_score is None:
        return TeamOutcome.UNDETERMINED
    if game.home_score == game.away_score:
        return TeamOutcome.TIE
    leader = home if game.home_score > game.away_score else away
    return TeamOutcome.WIN if leader == team else TeamOutcome.LOSS


class GameResultResolver:
    """Per-week index of games keyed by canonical team name."""

    def __init__(self, games: Iterable[GameResult] = ()):
        self._by_week: dict[int, dict[str, list[GameResult]]] = defaultdict(lambda: defaultdict(list))
        self._loaded_weeks: set[int] = set()
        for game in games:
            self.add(game)

    @classmethod
    def from_games(cls, games: Iterable[GameResult]) -> "GameResultResolver":
        return cls(games)

    @classmethod
    async def load(cls, provider: ResultsProvider, weeks: Iterable[int]) -> "GameResultResolver":
        """Preload the given weeks. Provider failures propagate to the caller."""
        resolver = cls()
        for week in weeks:
            games = await provider.load_week(week)
            for game in games:
                resolver.add(game)
            resolver._loaded_weeks.add(week)
            logger.debug("Week %d: loaded %d game results", week, len(games))
        return resolver

    def add(self, game: GameResult) -> None:
        week_index = self._by_week[game.week]
        for raw in (game.home_team, game.away_team):
            team = normalize(raw)
            if any(existing.game_id == game.game_id for existing in week_index[team]):
                continue
            week_index[team].append(game)
        self._loaded_weeks.add(game.week)

    @property
    def loaded_weeks(self) -> list[int]:
        return sorted(self._loaded_weeks)

    def resolve_team_outcome(self, team: str, week: int) -> TeamOutcome:
        """Outcome of `team` in `week`. Never raises; missing data is UNDETERMINED."""
        canonical = normalize(team)
        if not is_known_team(canonical):
            logger.warning("Week %d: unknown team %r treated as undetermined", week, team)
            return TeamOutcome.UNDETERMINED

        games = self._by_week.get(week, {}).get(canonical, [])
        if not games:
            return TeamOutcome.UNDETERMINED
        if len(games) > 1:
            logger.warning(
                "Week %d: %s appears in %d games (%s); outcome undetermined",
                week, canonical, len(games), ", ".join(g.game_id for g in games),
            )
            return TeamOutcome.UNDETERMINED
        return outcome_for(games[0], canonical)

