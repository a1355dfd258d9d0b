"""Middleware for FastAPI application."""

import logging
import time
from typing import Callable

from fastapi import HTTPException, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from oncall_alert_service.clients.transport import TransportError
from oncall_alert_service.config.logging import (
    LoggingService,
    generate_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)
logging_service = LoggingService(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def _schedule_of(request: Request):
    # Whichever identifier the caller used, for log lines only
    return request.query_params.get("name") or request.query_params.get("id")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tags every request with a correlation id and echoes it back."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or generate_correlation_id()
        set_correlation_id(correlation_id)

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request, at a level matching the response status."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        response = await call_next(request)

        if response.status_code >= 500:
            level = "error"
        elif response.status_code >= 400:
            level = "warning"
        else:
            level = "info"

        logging_service.log_operation(
            level,
            f"{request.method} {request.url.path} -> {response.status_code}",
            operation="request",
            schedule=_schedule_of(request),
            method=request.method,
            path=request.url.path,
            workflow=request.query_params.get("workflow"),
            status_code=response.status_code,
            process_time_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turns exceptions no route claimed into JSON error responses.

    The services translate or absorb every ``TransportError`` themselves, so
    the 502 branch is a backstop for provider errors from code that does not.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except HTTPException:
            raise

        except TransportError as e:
            logging_service.log_error(
                "Upstream provider error",
                e,
                operation="error_handling",
                schedule=_schedule_of(request),
                path=request.url.path,
            )
            return JSONResponse(
                status_code=502,
                content={"error": "Bad Gateway", "message": "Upstream provider error"},
            )

        except Exception:
            logger.exception(
                "Unexpected error",
                extra={"operation": "error_handling", "path": request.url.path},
            )
            return JSONResponse(
                status_code=500,
                content={"error": "Internal Server Error", "message": "An unexpected error occurred"},
            )
