import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from pythonjsonlogger import jsonlogger

from confessions.metrics import record_http_request


# Context variable to store request_id for the current request
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Third-party loggers that are chatty below WARNING
QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "httpcore")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding an ISO-8601 `ts`, `level` and the current request_id."""

    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)
        if not log_record.get('ts'):
            log_record['ts'] = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'
        log_record['level'] = record.levelname

        if 'request_id' not in log_record and request_id_ctx.get():
            log_record['request_id'] = request_id_ctx.get()


def setup_logging(log_level: str = "INFO"):
    """
    Send every log record to stdout as one JSON object per line.

    Used by both the API process and the Lambda resolver. Uvicorn's own
    loggers propagate to the root handler; its access log is replaced by
    RequestLoggingMiddleware.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter('%(ts)s %(level)s %(name)s %(message)s'))

    root = logging.getLogger()
    root.setLevel(log_level.upper())
    root.handlers = [handler]

    for name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True
    logging.getLogger("uvicorn.access").disabled = True

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One JSON log line per request: request_id, method, path, status, latency_ms.

    Confession submissions add result, code and confession_id from
    log_confession_data. Message text is never logged. An incoming
    X-Request-ID is reused so ids line up with the proxy's logs.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = request_id_ctx.set(request_id)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            latency_seconds = time.perf_counter() - start_time

            if request.url.path != "/metrics":
                record_http_request(
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    latency_seconds=latency_seconds
                )

            log_data = {
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_ms": round(latency_seconds * 1000, 2),
            }
            log_data.update(getattr(request.state, "confession_log_data", {}))

            logging.getLogger("confessions.requests").log(
                _level_for_status(response.status_code), "Request completed", extra=log_data
            )
            return response
        finally:
            request_id_ctx.reset(token)


def _level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


def log_confession_data(request: Request, result: str, confession_id: str = None, code: str = None):
    """Attach the submission outcome to the request log line."""
    confession_data = {"result": result}
    if confession_id is not None:
        confession_data["confession_id"] = confession_id
    if code is not None:
        confession_data["code"] = code
    request.state.confession_log_data = confession_data
