"""
backend/nerdfootball/main.py

Purpose:
    FastAPI application bootstrap: logging, database lifecycle, router wiring,
    error mapping and the scheduled survivor recompute job.

Dependencies:
    - nerdfootball.database
    - nerdfootball.workers.survivor_resolver
"""

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    OperationFailure,
    ServerSelectionTimeoutError,
)

import nerdfootball.database as _db
from nerdfootball.config import settings
from nerdfootball.database import close_db, connect_db
from nerdfootball.middleware.logging import StructuredLoggingMiddleware, setup_logging
from nerdfootball.services.survivor_service import SurvivorWriteConflict

logger = logging.getLogger("nerdfootball")
scheduler = AsyncIOScheduler()
_RECOMPUTE_JOB_ID = "survivor_recompute"


def _register_recompute_job() -> bool:
    from nerdfootball.workers.survivor_resolver import run_scheduled_recompute

    if scheduler.get_job(_RECOMPUTE_JOB_ID):
        return False
    scheduler.add_job(
        run_scheduled_recompute,
        "interval",
        id=_RECOMPUTE_JOB_ID,
        replace_existing=True,
        minutes=settings.SURVIVOR_RECOMPUTE_INTERVAL_MINUTES,
    )
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await connect_db()

    scheduler.start()
    if settings.SURVIVOR_AUTOMATION_ENABLED:
        _register_recompute_job()
        logger.info(
            "Survivor recompute scheduled every %d minutes",
            settings.SURVIVOR_RECOMPUTE_INTERVAL_MINUTES,
        )
    else:
        logger.info("Survivor recompute automation disabled via config")

    yield

    if scheduler.running:
        scheduler.shutdown(wait=False)
    await close_db()


app = FastAPI(
    title="NerdFootball",
    description="NFL survivor pool backend",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Admin-Key"],
)

# Structured logging
app.add_middleware(StructuredLoggingMiddleware)

# Routers
from nerdfootball.routers.survivor import router as survivor_router

app.include_router(survivor_router)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Return clean validation errors without leaking internal field paths."""
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ".".join(str(l) for l in loc[1:]) if len(loc) > 1 else str(loc[-1]) if loc else "unknown"
        errors.append({"field": field, "message": err.get("msg", "Invalid value.")})
    return JSONResponse(status_code=422, content={"detail": "Validation error.", "errors": errors})


@app.exception_handler(ValidationError)
async def stored_data_error_handler(request: Request, exc: ValidationError):
    logger.error("Malformed stored data on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=422, content={"detail": "Stored record failed validation."})


@app.exception_handler(SurvivorWriteConflict)
async def write_conflict_handler(request: Request, exc: SurvivorWriteConflict):
    logger.warning("Write conflict on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=409, content={"detail": "Record changed concurrently, retry."})


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    return JSONResponse(status_code=409, content={"detail": "Duplicate entry."})


@app.exception_handler(ServerSelectionTimeoutError)
async def db_timeout_handler(request: Request, exc: ServerSelectionTimeoutError):
    logger.error("Database timeout: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(ConnectionFailure)
async def db_connection_handler(request: Request, exc: ConnectionFailure):
    logger.error("Database connection failure: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(OperationFailure)
async def db_operation_handler(request: Request, exc: OperationFailure):
    logger.error("Database operation error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning("ValueError on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": "Invalid input."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the real error, return a safe generic message."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.get("/health")
async def health():
    """Health check -- verifies DB connection and scheduler state."""
    try:
        result = await _db.db.command("ping")
        db_ok = result.get("ok") == 1.0
    except Exception:
        db_ok = False

    return {
        "status": "healthy" if db_ok else "degraded",
        "db": "connected" if db_ok else "disconnected",
        "survivor_automation": bool(scheduler.get_job(_RECOMPUTE_JOB_ID)),
    }
