"""
backend/nerdfootball/models/survivor.py

Purpose:
    Survivor pool models: the embedded survivor sub-record of a pool member,
    participation flags, the engine's computed status and the API payloads.
    Raw Mongo documents are validated here once so the engine and
    reconciliation code can assume well-formed input.

Dependencies:
    - pydantic
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from nerdfootball.models.game_result import TeamOutcome

# Stored `alive` value for a member who is still in the pool; one past the last week.
ALIVE_SENTINEL = 18
MAX_WEEK = ALIVE_SENTINEL - 1


class EliminationReason:
    TEAM_REUSED = "team reused"
    TEAM_LOST = "team lost"
    MISSED_PICK = "missed pick"
    ADMIN = "admin override"


class StoredPick(BaseModel):
    team: str
    submitted_at: Optional[datetime] = None
    game_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_legacy(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"team": data}
        if isinstance(data, dict):
            row = dict(data)
            if row.get("submitted_at") is None and row.get("timestamp") is not None:
                row["submitted_at"] = row.pop("timestamp")
            if row.get("game_id") is None and row.get("gameId") is not None:
                row["game_id"] = str(row.pop("gameId"))
            return row
        return data


class SurvivorRecord(BaseModel):
    """Survivor sub-record embedded in a pool member document."""
    alive: int = ALIVE_SENTINEL
    picks: dict[int, StoredPick] = {}
    pick_history: list[str] = []
    total_picks: int = 0
    elimination_week: Optional[int] = None
    elimination_reason: Optional[str] = None
    manual_override: bool = False
    override_reason: Optional[str] = None
    overridden_by: Optional[str] = None
    overridden_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    version: int = 0

    @field_validator("pick_history", mode="before")
    @classmethod
    def _split_summary(cls, value: Any) -> Any:
        # Persisted form used to be one comma-joined string.
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",")] if value.strip() else []
        return value

    @field_validator("picks", mode="before")
    @classmethod
    def _drop_empty_weeks(cls, value: Any) -> Any:
        if not value:
            return {}
        return {
            int(week): pick
            for week, pick in dict(value).items()
            if pick and (not isinstance(pick, dict) or pick.get("team"))
        }

    @field_validator("alive", mode="before")
    @classmethod
    def _coerce_alive(cls, value: Any) -> Any:
        # Some early records stored a boolean instead of the week number.
        if value is None or value is True:
            return ALIVE_SENTINEL
        return value

    @model_validator(mode="after")
    def _check_alive_range(self) -> "SurvivorRecord":
        if not 1 <= self.alive <= ALIVE_SENTINEL:
            raise ValueError(f"alive must be within 1..{ALIVE_SENTINEL}, got {self.alive}")
        return self

    @property
    def is_alive(self) -> bool:
        return self.alive == ALIVE_SENTINEL

    def status_fields(self) -> tuple:
        return (self.alive, self.elimination_week, self.elimination_reason)

    def to_doc(self) -> dict:
        """Serialize for a whole-sub-record $set (week keys become strings for Mongo)."""
        doc = self.model_dump()
        doc["picks"] = {
            str(week): pick.model_dump(exclude_none=True)
            for week, pick in sorted(self.picks.items())
        }
        return doc


class SurvivorParticipation(BaseModel):
    enabled: bool = True
    status: str = "active"  # active | removed
    end_week: Optional[int] = None
    removed_at: Optional[datetime] = None
    removed_by: Optional[str] = None


class PoolMember(BaseModel):
    user_id: str
    pool_id: Optional[str] = None
    display_name: str = "Unknown"
    email: Optional[str] = None
    participation: SurvivorParticipation = Field(default_factory=SurvivorParticipation)
    survivor: SurvivorRecord = Field(default_factory=SurvivorRecord)

    @classmethod
    def from_doc(cls, doc: dict) -> "PoolMember":
        """Single validation pass over a raw pool_members document."""
        participation = (doc.get("participation") or {}).get("survivor") or {}
        return cls(
            user_id=str(doc["_id"]),
            pool_id=doc.get("pool_id"),
            display_name=doc.get("display_name") or doc.get("displayName") or doc.get("name") or "Unknown",
            email=doc.get("email") or doc.get("emailAddress"),
            participation=participation,
            survivor=doc.get("survivor") or {},
        )

    @property
    def in_survivor(self) -> bool:
        return self.participation.enabled


class WeekVerdict(BaseModel):
    """Per-week line of an engine run."""
    week: int
    team: Optional[str] = None
    outcome: Optional[TeamOutcome] = None
    note: Optional[str] = None


class SurvivorStatus(BaseModel):
    """Computed survivor status for one member."""
    alive: bool
    elimination_week: Optional[int] = None
    elimination_reason: Optional[str] = None
    resolved_through: int = 0
    pending_weeks: list[int] = []
    weeks: list[WeekVerdict] = []

    model_config = {"frozen": True}

    @property
    def alive_value(self) -> int:
        return ALIVE_SENTINEL if self.alive else int(self.elimination_week)


class ProvisionMemberRequest(BaseModel):
    user_id: str
    display_name: str
    email: Optional[str] = None


class SurvivorPickRequest(BaseModel):
    team: str


class OverrideRequest(BaseModel):
    """Force a status and protect it from automated recomputes."""
    alive: bool
    elimination_week: Optional[int] = None
    reason: Optional[str] = None
    admin_id: str


class EliminateRequest(BaseModel):
    week: int
    reason: str = EliminationReason.ADMIN
    admin_id: str


class AdminActionRequest(BaseModel):
    admin_id: str


class SurvivorStatusView(BaseModel):
    """Stored vs computed status for the admin console."""
    user_id: str
    display_name: str
    in_survivor: bool
    stored: dict
    computed: dict
    matches: bool
    manual_override: bool
    current_week: int
