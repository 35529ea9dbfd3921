import json
import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from confessions.backends import get_backend
from confessions.config import settings
from confessions.errors import (
    ConfessionError,
    InvalidJSONError,
    RateLimitExceededError,
    UpstreamServiceError,
)
from confessions.logging_utils import RequestLoggingMiddleware, log_confession_data, setup_logging
from confessions.metrics import (
    get_metrics,
    get_metrics_content_type,
    outcome_for_code,
    record_confession_outcome,
)
from confessions.moderation import check_banned_terms, validate_message
from confessions.rate_limit import RateLimiter, build_rate_limiter
from confessions.schemas import (
    ConfessionCreateRequest,
    ConfessionCreateResponse,
    ConfessionListResponse,
    ErrorResponse,
    HealthResponse,
)
from confessions.storage import init_db
from confessions.utils import get_client_ip


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

rate_limiter = build_rate_limiter()


def get_rate_limiter() -> RateLimiter:
    return rate_limiter


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: Initialize database tables when the SQL backend is active
    """
    if settings.CONFESSION_BACKEND == "database":
        init_db()
    logger.info(f"Confessions API started (backend={settings.CONFESSION_BACKEND})")
    yield


app = FastAPI(
    title="Confessions API",
    description="Anonymous confession feed with server-side content moderation",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(ConfessionError)
async def confession_error_handler(request: Request, exc: ConfessionError) -> JSONResponse:
    """Render every ConfessionError as a structured error body."""
    body = ErrorResponse(error=exc.message, code=exc.code, notification=exc.notification)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
    )


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation or content-policy rejection"},
    429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    500: {"model": ErrorResponse, "description": "Backend failure"},
}


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """
    Liveness probe - always returns 200 once the app is running.
    """
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response, backend=Depends(get_backend)) -> HealthResponse:
    """
    Readiness probe - returns 200 only if the configured backend is usable:
    - database: DB reachable and schema applied
    - appsync: endpoint and API key configured

    Otherwise returns 503 (Service Unavailable).
    """
    ready, reason = backend.is_ready()
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not_ready", reason=reason)

    return HealthResponse(status="ready")


# =============================================================================
# Confessions Routes
# =============================================================================

@app.get(
    "/api/confessions",
    response_model=ConfessionListResponse,
    responses={500: ERROR_RESPONSES[500]},
)
async def list_confessions(
    limit: Annotated[int, Query(ge=1, le=100, description="Maximum number of confessions to return")] = settings.DEFAULT_LIST_LIMIT,
    next_token: Annotated[str | None, Query(alias="nextToken", description="Token from the previous page")] = None,
    backend=Depends(get_backend),
) -> ConfessionListResponse:
    """
    List approved confessions, newest first.

    Only public fields are returned: id, message, createdAt.
    """
    try:
        items, token = await backend.list(limit=limit, next_token=next_token)
    except UpstreamServiceError as e:
        logger.error(f"GET /api/confessions failed: {e.message}")
        raise UpstreamServiceError("Failed to fetch") from e

    logger.info(f"GET /api/confessions: returned {len(items)} confessions (limit={limit})")
    return ConfessionListResponse(items=items, next_token=token)


@app.post(
    "/api/confessions",
    response_model=ConfessionCreateResponse,
    responses={code: ERROR_RESPONSES[code] for code in (400, 429, 500)},
)
async def create_confession(
    request: Request,
    backend=Depends(get_backend),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> ConfessionCreateResponse:
    """
    Post an anonymous confession.

    Steps:
    - Rate limit by client address
    - Validate the message (required, max 500 characters after trimming)
    - Screen it against the banned-term list
    - Hand it to the backend (sentiment screen + storage)
    """
    try:
        if limiter.is_rate_limited(get_client_ip(request)):
            raise RateLimitExceededError()

        raw_body = await request.body()
        try:
            body = ConfessionCreateRequest.model_validate(json.loads(raw_body or b"null"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.info(f"Invalid JSON body: {e}")
            raise InvalidJSONError()
        except ValidationError:
            # Not a JSON object: treat as a missing message
            body = ConfessionCreateRequest()

        message = validate_message(body.message)
        check_banned_terms(message)

        try:
            confession = await backend.create(message)
        except UpstreamServiceError as e:
            logger.error(f"POST /api/confessions failed: {e.message}")
            raise UpstreamServiceError("Failed to save") from e

    except ConfessionError as e:
        record_confession_outcome(outcome_for_code(e.code))
        log_confession_data(request, result=outcome_for_code(e.code), code=e.code)
        raise

    record_confession_outcome("created")
    log_confession_data(request, result="created", confession_id=confession.id)
    return ConfessionCreateResponse(confession=confession)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
