"""
backend/nerdfootball/models/game_result.py

Purpose:
    Validated weekly game result records. All field-presence and legacy-shape
    handling for the game_results collection happens here, once, on load.

Dependencies:
    - pydantic
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, model_validator


class GameStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINAL = "final"


class TeamOutcome(str, Enum):
    WIN = "WIN"
    LOSS = "LOSS"
    TIE = "TIE"
    UNDETERMINED = "UNDETERMINED"


_FINAL_STATUSES = {"final", "complete", "completed", "f", "status_final", "final/ot", "post"}
_SCHEDULED_STATUSES = {"scheduled", "not started", "pre", "status_scheduled", "pregame"}

# Older week documents used camelCase keys written by the browser client.
_LEGACY_KEYS = {
    "homeTeam": "home_team",
    "awayTeam": "away_team",
    "homeScore": "home_score",
    "awayScore": "away_score",
    "gameId": "game_id",
    "game_status": "status",
    "updatedAt": "updated_at",
}


def normalize_game_status(raw: Any) -> GameStatus:
    """Fold provider status strings (Final, FINAL, Q3, Half, ...) into GameStatus."""
    if isinstance(raw, GameStatus):
        return raw
    text = str(raw or "").strip().lower()
    if text in _FINAL_STATUSES:
        return GameStatus.FINAL
    if not text or text in _SCHEDULED_STATUSES:
        return GameStatus.SCHEDULED
    return GameStatus.IN_PROGRESS


class GameResult(BaseModel):
    """One game in one week of the season."""
    season: Optional[int] = None
    week: int
    game_id: str
    home_team: str
    away_team: str
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    winner: Optional[str] = None
    status: GameStatus = GameStatus.SCHEDULED

    @model_validator(mode="before")
    @classmethod
    def _coerce_legacy(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        row = dict(data)
        for old, new in _LEGACY_KEYS.items():
            if old in row and row.get(new) is None:
                row[new] = row.pop(old)
        if row.get("game_id") is None and row.get("_id") is not None:
            row["game_id"] = row["_id"]
        if row.get("game_id") is not None:
            row["game_id"] = str(row["game_id"])

        for key in ("home_score", "away_score"):
            value = row.get(key)
            if value in ("", None):
                row[key] = None
            else:
                row[key] = int(value)

        raw_status = row.get("status")
        if raw_status in (None, "") and row.get("winner") and row.get("home_score") is not None \
                and row.get("away_score") is not None:
            # Week 1-2 documents carry only winner + scores; they were written after the final whistle.
            row["status"] = GameStatus.FINAL
        else:
            row["status"] = normalize_game_status(raw_status)

        if not row.get("winner"):
            row["winner"] = None
        return row

    @property
    def is_final(self) -> bool:
        return self.status == GameStatus.FINAL

    @property
    def is_tied(self) -> bool:
        return (
            self.is_final
            and self.home_score is not None
            and self.away_score is not None
            and self.home_score == self.away_score
        )
