"""
Observability Middleware.

Adds correlation IDs to requests and to every log line emitted while the
request is handled, so a settlement can be traced from the HTTP call through
the engine and audit writes.
"""

import time
import uuid
import logging
from contextvars import ContextVar
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")

# Configure structured logger
logger = logging.getLogger("delivery.requests")


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id_var.get()
        return True


def configure_logging(level: str) -> None:
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s %(message)s"
    ))
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not any(isinstance(f, CorrelationIdFilter) for h in root.handlers for f in h.filters):
        root.addHandler(handler)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
        token = correlation_id_var.set(correlation_id)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)

        process_time = (time.perf_counter() - start_time) * 1000  # ms
        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Process-Time"] = f"{process_time:.2f}"

        log_data = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "actor_id": request.headers.get("X-Actor-Id"),
            "status_code": response.status_code,
            "duration_ms": round(process_time, 2),
        }

        # 409 is an expected outcome (finalized commission), not a client bug
        if response.status_code >= 500:
            logger.error("Request failed %s %s", request.method, request.url.path, extra=log_data)
        elif response.status_code >= 400 and response.status_code != 409:
            logger.warning("Request rejected %s %s", request.method, request.url.path, extra=log_data)
        else:
            logger.info("Request %s %s -> %d", request.method, request.url.path, response.status_code, extra=log_data)

        return response
