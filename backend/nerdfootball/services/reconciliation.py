"""
backend/nerdfootball/services/reconciliation.py

Purpose:
    Merge a computed survivor status with the stored sub-record. A manual
    override keeps the stored alive/elimination fields no matter what the
    engine says; otherwise the computed status is applied. The pick caches
    (pick_history, total_picks) are always re-derived from the pick list.

    The result is a complete replacement sub-record, written by the caller as
    one version-guarded $set, or nothing at all when no field changed.

Dependencies:
    - nerdfootball.models.survivor
    - nerdfootball.services.pick_history
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from nerdfootball.models.survivor import SurvivorRecord, SurvivorStatus
from nerdfootball.services.pick_history import PickHistory
from nerdfootball.utils import utcnow

logger = logging.getLogger("nerdfootball.reconciliation")

ReconcileAction = Literal["applied", "unchanged", "protected"]


@dataclass(frozen=True)
class ReconcileResult:
    record: SurvivorRecord
    action: ReconcileAction
    write_needed: bool
    computed: SurvivorStatus

    @property
    def status_changed(self) -> bool:
        return self.action == "applied"


def _with_caches(stored: SurvivorRecord, history: PickHistory) -> dict:
    return {
        "picks": history.to_picks_map(),
        "pick_history": history.summary(),
        "total_picks": history.reconcile_total(stored.total_picks),
    }


def _caches_differ(stored: SurvivorRecord, caches: dict) -> bool:
    return (
        stored.picks != caches["picks"]
        or stored.pick_history != caches["pick_history"]
        or stored.total_picks != caches["total_picks"]
    )


def reconcile(
    computed: SurvivorStatus,
    stored: SurvivorRecord,
    history: PickHistory,
    *,
    now: datetime | None = None,
) -> ReconcileResult:
    now = now or utcnow()
    caches = _with_caches(stored, history)
    caches_changed = _caches_differ(stored, caches)

    if stored.manual_override:
        if computed.alive_value != stored.alive:
            logger.info(
                "Override kept: stored alive=%d week=%s, computed alive=%d week=%s reason=%s (discarded)",
                stored.alive, stored.elimination_week,
                computed.alive_value, computed.elimination_week, computed.elimination_reason,
            )
        record = stored
        if caches_changed:
            record = stored.model_copy(update={
                **caches,
                "last_updated": now,
                "version": stored.version + 1,
            })
        return ReconcileResult(record=record, action="protected", write_needed=caches_changed, computed=computed)

    status_fields = {
        "alive": computed.alive_value,
        "elimination_week": None if computed.alive else computed.elimination_week,
        "elimination_reason": None if computed.alive else computed.elimination_reason,
    }
    status_changed = stored.status_fields() != (
        status_fields["alive"], status_fields["elimination_week"], status_fields["elimination_reason"],
    )
    if not status_changed and not caches_changed:
        return ReconcileResult(record=stored, action="unchanged", write_needed=False, computed=computed)

    record = stored.model_copy(update={
        **caches,
        **status_fields,
        "last_updated": now,
        "version": stored.version + 1,
    })
    return ReconcileResult(
        record=record,
        action="applied" if status_changed else "unchanged",
        write_needed=True,
        computed=computed,
    )
