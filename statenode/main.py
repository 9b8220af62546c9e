"""
main.py - statenode FastAPI application entry point.

Start with: uvicorn statenode.main:app --port 3000
       or:  python -m statenode.main

The process holds no session data between requests: everything lives in the
shared Redis store, so any instance can serve any client.
"""
import logging
import math
import re
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from statenode import health, identity
from statenode.cache import SessionStore
from statenode.config import settings
from statenode.deps import get_session, get_store
from statenode.errors import AppError
from statenode.files.routes import router as files_router
from statenode.files.uploads import LocalDirectoryTransport
from statenode.identity import ResolvedSession
from statenode.store import session_scope
from statenode.tasks.routes import router as tasks_router

# ---------------------------------------------------------------------------
# Logging - configured before anything else
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-Token"
INSTANCE_HEADER = "X-Instance-Id"
MAX_LOAD_MS = 30_000
DEFAULT_LOAD_MS = 5000
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_duration_ms(raw: Optional[str]) -> int:
    """Leading integer of `raw`; unparseable or zero falls back to DEFAULT_LOAD_MS."""
    match = _LEADING_INT.match(raw or "")
    return (int(match.group(1)) if match else 0) or DEFAULT_LOAD_MS


# ---------------------------------------------------------------------------
# Lifespan - startup & shutdown hooks
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1. Session store - first PING, then background supervisor (never fails startup)
      2. Upload transport
    Shutdown:
      1. Close the session store exactly once
    """
    app.state.store = SessionStore()
    await app.state.store.start()
    if not app.state.store.available:
        logger.warning("Session store not reachable at startup - serving degraded until it recovers")

    app.state.upload_transport = LocalDirectoryTransport(settings.upload_dir, settings.upload_max_bytes)

    logger.info(
        "statenode v%s starting instance=%s port=%d",
        settings.app_version, settings.instance_id, settings.port,
    )
    yield

    # --- Shutdown ---
    await app.state.store.close()
    logger.info("statenode shutting down instance=%s", settings.instance_id)


# ---------------------------------------------------------------------------
# FastAPI application instance
# ---------------------------------------------------------------------------
app = FastAPI(
    title="statenode",
    version=settings.app_version,
    description=(
        "Stateless application node. Tasks, uploaded-file metadata and visit counters "
        "are kept per session in a shared Redis store."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.cors_origins_list != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[SESSION_HEADER, INSTANCE_HEADER],
)


@app.middleware("http")
async def session_identity_middleware(request: Request, call_next):
    """
    Resolve the session token before routing. The cookie is re-issued on every
    response that used the session so its Max-Age slides with activity; the
    token header is only sent when the identity was just minted.
    Every response carries the serving instance's identity header.
    """
    resolved = identity.resolve(
        identity.first_valid_token(
            request.cookies.get(settings.session_cookie_name),
            request.headers.get(SESSION_HEADER),
        )
    )
    request.state.session = resolved
    request.state.session_used = False

    response = await call_next(request)

    if request.state.session_used and response.status_code < 500:
        response.set_cookie(
            settings.session_cookie_name,
            resolved.token,
            max_age=settings.session_ttl_seconds,
            httponly=True,
            secure=settings.is_production,
            samesite="lax",
        )
        if resolved.is_new:
            response.headers[SESSION_HEADER] = resolved.token
    response.headers[INSTANCE_HEADER] = settings.instance_id
    return response


# ---------------------------------------------------------------------------
# Error response helper
# ---------------------------------------------------------------------------
def _make_error_response(
    code: str,
    message: str,
    details: Optional[list[dict[str, Any]]] = None,
    status_code: int = 500,
) -> JSONResponse:
    """Build a standard {error, code, details, instance} response."""
    body = {
        "error": message,
        "code": code,
        "details": details or [],
        "instance": settings.instance_id,
    }
    return JSONResponse(status_code=status_code, content=body)


# ---------------------------------------------------------------------------
# Global exception handlers - registered BEFORE routers
# ---------------------------------------------------------------------------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """ValidationError 400, NotFound 404, PayloadTooLarge 413, StoreUnavailable 503."""
    if exc.status_code >= 500:
        logger.warning("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return _make_error_response(exc.code, exc.message, exc.details, exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Malformed request bodies are client errors: 400, with every field violation listed.
    """
    details = []
    for error in exc.errors():
        # Build dot-notation field path, excluding the top-level 'body' loc
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        details.append({"field": field or None, "issue": error["msg"]})
    return _make_error_response(
        code="VALIDATION_ERROR",
        message="Request validation failed",
        details=details,
        status_code=400,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code_map = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        413: "FILE_TOO_LARGE",
    }
    code = code_map.get(exc.status_code, f"HTTP_{exc.status_code}")
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return _make_error_response(code=code, message=message, status_code=exc.status_code)


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Catch-all for unexpected errors.
    development / DEBUG=true → exception type & message in details.
    otherwise                → generic message; full traceback logged server-side only.
    """
    logger.error(
        "Unhandled exception on %s %s",
        request.method,
        request.url.path,
        exc_info=True,
    )
    details = []
    if settings.expose_error_details:
        details = [{"issue": f"{type(exc).__name__}: {exc}"}]
    return _make_error_response(
        code="INTERNAL_ERROR",
        message="Internal server error",
        details=details,
        status_code=500,
    )


# ---------------------------------------------------------------------------
# Health endpoint - must answer even when the store is down
# ---------------------------------------------------------------------------
@app.get("/health", tags=["System"])
async def health_check(request: Request) -> JSONResponse:
    """200 when the session store is available, 503 (DEGRADED) otherwise."""
    payload = health.report(getattr(request.app.state, "store", None), settings.instance_id)
    payload["instance"] = settings.instance_id
    status_code = 200 if payload["status"] == health.STATUS_UP else 503
    return JSONResponse(status_code=status_code, content=payload)


# ---------------------------------------------------------------------------
# Session demo - view counter stored in the shared store
# ---------------------------------------------------------------------------
@app.get("/session", tags=["Session"])
async def session_demo(
    store: SessionStore = Depends(get_store),
    session: ResolvedSession = Depends(get_session),
) -> JSONResponse:
    async with session_scope(store, session.session_id) as record:
        views = record.register_view()
    first_seen = record.first_seen_at.isoformat()
    return JSONResponse(
        status_code=200,
        content={
            "message": "Session data stored in Redis (shared across all instances)",
            "sessionId": session.session_id,
            "views": views,
            "firstVisit": first_seen,
            "viewCount": views,
            "firstSeenAt": first_seen,
            "instance": settings.instance_id,
        },
    )


# ---------------------------------------------------------------------------
# Demo data & synthetic load
# ---------------------------------------------------------------------------
@app.get("/api/data", tags=["System"])
async def demo_data() -> dict:
    return {
        "data": [
            {"id": 1, "name": "Item 1", "value": 100},
            {"id": 2, "name": "Item 2", "value": 200},
            {"id": 3, "name": "Item 3", "value": 300},
        ],
        "instance": settings.instance_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/load", tags=["System"])
@app.get("/load/{duration_ms}", tags=["System"])
def synthetic_load(duration_ms: str = str(DEFAULT_LOAD_MS)) -> dict:
    """
    Burn CPU for duration_ms (capped at 30s) to exercise auto-scaling.
    Plain `def` so FastAPI runs it in the worker thread pool, off the event loop.
    """
    duration_ms = max(0, min(parse_duration_ms(duration_ms), MAX_LOAD_MS))
    deadline = time.monotonic() + duration_ms / 1000
    while time.monotonic() < deadline:
        math.sqrt(time.perf_counter())
    return {
        "message": "Load test completed",
        "duration": f"{duration_ms}ms",
        "instance": settings.instance_id,
    }


# ---------------------------------------------------------------------------
# Resource routers - served at the root and under /api
# ---------------------------------------------------------------------------
app.include_router(tasks_router)
app.include_router(files_router)
app.include_router(tasks_router, prefix="/api", include_in_schema=False)
app.include_router(files_router, prefix="/api", include_in_schema=False)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("statenode.main:app", host=settings.host, port=settings.port)
