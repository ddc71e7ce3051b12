"""Structured logging setup and request middleware with correlation IDs."""
import structlog
import uuid
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable
import time

TRACE_HEADER = "X-Trace-ID"


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog for JSON output at the given level."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False
    )


logger = structlog.get_logger()


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation IDs and log all requests.

    Reuses an incoming X-Trace-ID header so a client session can follow one
    send across its retries; otherwise a fresh id is generated.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        trace_id = request.headers.get(TRACE_HEADER) or str(uuid.uuid4())
        request.state.trace_id = trace_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(trace_id=trace_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None
        )

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=int((time.time() - start_time) * 1000)
            )
            raise

        logger.info(
            "request_completed",
            status_code=response.status_code,
            latency_ms=int((time.time() - start_time) * 1000)
        )
        response.headers[TRACE_HEADER] = trace_id
        return response


def get_logger():
    """Get configured structured logger."""
    return logger
