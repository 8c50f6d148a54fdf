"""
api/main.py -- FastAPI application entry point for the task tracker.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost; each registration wraps the previous):
  1. enforce_deadline      -- fails a request that runs past request_timeout_seconds
  2. log_requests          -- method, path, status, latency
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. CORSMiddleware        -- CORS headers (credentials allowed) for the browser client
  5. TrustedHostMiddleware -- rejects requests with unexpected Host headers

Lifespan builds the credential store, the tracker store and the TokenService
from Settings and disposes the stores on shutdown. Handlers reach them through
request.app.state; nothing reads the signing secret from module globals.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.responses import error_response
from api.routes.auth import router as auth_router
from api.routes.projects import router as projects_router
from api.routes.tasks import router as tasks_router
from auth.dependencies import get_current_principal
from auth.models import Principal
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from core.errors import INTERNAL_ERROR, REQUEST_TIMEOUT, InternalError, TrackerError
from tracker.store import TrackerStore

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tasktracker.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create shared resources on startup and release them on shutdown.

    The TokenService is built exactly once here; its secret is immutable for
    the life of the process and shared by every request without locking.
    """
    logger.info("Task tracker API starting up")
    app.state.user_store = UserStore(_settings.database_url)
    app.state.tracker = TrackerStore(_settings.database_url)
    app.state.token_service = TokenService(_settings.secret_key, _settings.token_expire_seconds)
    logger.info("Stores initialized (token lifetime %ds)", _settings.token_expire_seconds)

    yield

    app.state.tracker.close()
    app.state.user_store.close()
    logger.info("Task tracker API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Task Tracker API",
    description="Multi-tenant task and project tracking. Every record is visible to its creator only.",
    version=VERSION,
    lifespan=lifespan,
    # Built-in /docs and /redoc are replaced below by auth-protected routes.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


@app.middleware("http")
async def enforce_deadline(request: Request, call_next):
    """Fail the request with a generic 500 once request_timeout_seconds elapse.

    The client gets no partial result; a handler still running in the
    threadpool finishes in the background and its response is discarded.
    """
    try:
        return await asyncio.wait_for(call_next(request), timeout=_settings.request_timeout_seconds)
    except asyncio.TimeoutError:
        logger.error("Request deadline exceeded on %s %s", request.method, request.url.path)
        return error_response(InternalError(REQUEST_TIMEOUT, code="timeout"))


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/auth", tags=["Auth"])
app.include_router(tasks_router, prefix="/tasks", tags=["Tasks"])
app.include_router(projects_router, prefix="/projects", tags=["Projects"])


# ---------------------------------------------------------------------------
# Auth-protected API documentation
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
async def docs(principal: Principal = Depends(get_current_principal)):
    """Swagger UI -- requires authentication."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="Task Tracker API")


@app.get("/redoc", include_in_schema=False)
async def redoc(principal: Principal = Depends(get_current_principal)):
    """ReDoc UI -- requires authentication."""
    return get_redoc_html(openapi_url="/openapi.json", title="Task Tracker API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {"message", "code"} envelope.
# ---------------------------------------------------------------------------


@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    """Translate service-layer errors into HTTP responses.

    Only the error kind is logged -- messages here are the public ones and
    never include credentials or tokens.
    """
    principal = getattr(request.state, "principal", None)
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "%s on %s %s (principal=%s)",
        exc.code,
        request.method,
        request.url.path,
        principal.id if principal else "-",
    )
    return error_response(exc)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a Retry-After header when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(message="Too many requests", code="rate_limited", detail=str(exc.detail)).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with the first validation problem as the message."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
        text = str(first.get("msg", "")).removeprefix("Value error, ")
        message = f"{field}: {text}" if field else text
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(message=message, code="validation_error").model_dump(exclude_none=True),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured body for framework-level errors (unknown route, wrong method)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=str(exc.detail), code=f"http_{exc.status_code}").model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The stack trace goes to the log only; the client receives a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(message=INTERNAL_ERROR, code="internal_error").model_dump(exclude_none=True),
    )


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version. Public, not rate limited."""
    return HealthResponse(version=VERSION)
