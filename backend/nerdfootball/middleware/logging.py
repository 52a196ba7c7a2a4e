"""JSON access log for the admin API, one line per request."""

import hashlib
import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("nerdfootball.access")

# Routine reads the admin console polls; kept at DEBUG.
_QUIET_PATHS = ("/health",)


def _member_from_path(path: str) -> str | None:
    # /api/survivor/members/{user_id}/...
    parts = path.strip("/").split("/")
    if len(parts) >= 4 and parts[:3] == ["api", "survivor", "members"]:
        return parts[3]
    return None


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        started = time.perf_counter()

        response: Response = await call_next(request)

        entry = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "member": _member_from_path(request.url.path),
            "status": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            "admin_key": "X-Admin-Key" in request.headers,
            "client": hashlib.sha256(request.client.host.encode()).hexdigest()[:12]
            if request.client and request.client.host else None,
        }

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        elif request.url.path in _QUIET_PATHS:
            level = logging.DEBUG
        else:
            level = logging.INFO
        logger.log(level, json.dumps(entry))

        response.headers["X-Request-ID"] = request_id
        return response


def setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    # Motor/pymongo heartbeat chatter drowns the recompute logs at DEBUG.
    logging.getLogger("pymongo").setLevel(max(level, logging.INFO))
