"""Structured logging setup and per-request trace middleware."""
import structlog
import uuid
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable
import time


def configure_logging(debug: bool = False) -> None:
    """Configure structlog for JSON output. Safe to call more than once."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False
    )


configure_logging()

logger = structlog.get_logger()


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Binds a trace id (and the shop, when the request names one) to every log
    line emitted while handling the request.

    The trace id is returned in `X-Trace-ID` so a storefront price lookup can
    be matched with the resolver's warnings.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        trace_id = request.headers.get("x-trace-id") or str(uuid.uuid4())
        request.state.trace_id = trace_id

        structlog.contextvars.clear_contextvars()
        context = {"trace_id": trace_id}
        shop = request.query_params.get("shop") or request.query_params.get("tenant")
        if shop:
            context["tenant"] = shop
        structlog.contextvars.bind_contextvars(**context)

        logger.debug("request_started", method=request.method, path=request.url.path)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=int((time.perf_counter() - started) * 1000)
            )
            raise

        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            latency_ms=int((time.perf_counter() - started) * 1000)
        )
        response.headers["X-Trace-ID"] = trace_id
        return response


def get_logger():
    """Get configured structured logger."""
    return logger
