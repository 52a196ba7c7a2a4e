"""Persistent worker state: tracks synced_at per worker across restarts.

Lets scheduled jobs skip a run when nothing changed since the last one.
Uses a lightweight `worker_state` collection in MongoDB.
"""

from datetime import datetime

import nerdfootball.database as _db
from nerdfootball.utils import ensure_utc, utcnow


async def get_synced_at(worker_id: str) -> datetime | None:
    """Get the last synced_at timestamp for a worker."""
    doc = await _db.db.worker_state.find_one({"_id": worker_id})
    return ensure_utc(doc["synced_at"]) if doc else None


async def set_synced(worker_id: str, at: datetime | None = None) -> None:
    """Mark a worker as synced (now, or at the given run start)."""
    await _db.db.worker_state.update_one(
        {"_id": worker_id},
        {"$set": {"synced_at": at or utcnow()}},
        upsert=True,
    )

