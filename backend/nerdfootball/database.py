"""
backend/nerdfootball/database.py

Purpose:
    MongoDB connection bootstrap and index management for pool members,
    weekly game results, legacy pick documents and worker bookkeeping.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - nerdfootball.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, OperationFailure

from nerdfootball.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("nerdfootball.database")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=5,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()


async def close_db() -> None:
    global client
    if client:
        client.close()


async def get_db() -> AsyncIOMotorDatabase:
    return db


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent."""

    # ---- Pool members (one document per member, survivor sub-record embedded) ----

    await db.pool_members.create_index("pool_id")
    await db.pool_members.create_index([("pool_id", 1), ("participation.survivor.enabled", 1)])
    await db.pool_members.create_index([("pool_id", 1), ("survivor.alive", 1)])
    await db.pool_members.create_index("survivor.manual_override", sparse=True)

    # ---- Game results (one document per game) ----

    # A game appears once per season/week; duplicate provider rows are
    # tolerated at read time, so fall back to a plain index if old data clashes.
    game_key = [("season", 1), ("week", 1), ("game_id", 1)]
    try:
        await db.game_results.create_index(game_key, unique=True)
    except (DuplicateKeyError, OperationFailure) as exc:
        logger.warning("Skipped unique game_results index due to duplicate data: %s", exc)
        await db.game_results.create_index(game_key, name="game_key_lookup", unique=False)
    await db.game_results.create_index([("season", 1), ("week", 1), ("home_team", 1)])
    await db.game_results.create_index([("season", 1), ("week", 1), ("away_team", 1)])
    # Smart sleep (recompute worker: results changed since last run)
    await db.game_results.create_index([("season", 1), ("updated_at", -1)])

    # ---- Recompute runs ----

    await db.survivor_recompute_runs.create_index([("pool_id", 1), ("started_at", -1)])
    await db.survivor_recompute_runs.create_index(
        "started_at", expireAfterSeconds=60 * 60 * 24 * 365  # TTL: one season
    )

    logger.info("Indexes ensured for database %s", settings.MONGO_DB)
