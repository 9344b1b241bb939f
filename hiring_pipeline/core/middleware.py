"""
Request middleware: correlation ids, access logging, error rendering
"""
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
import structlog

from hiring_pipeline.core.exceptions import PipelineException

logger = structlog.get_logger()

CORRELATION_HEADER = "X-Correlation-ID"


def error_response(exc: PipelineException) -> JSONResponse:
    """Render a pipeline exception as the API error body"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.message,
                "details": exc.details,
                "type": exc.__class__.__name__,
            }
        },
    )


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id to every log line of the request"""

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log request start and finish with timing"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        path_params = {"path": request.url.path, "method": request.method}

        logger.info("request_started", **path_params)
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                process_time=round(time.perf_counter() - start_time, 4),
                **path_params,
            )
            raise

        process_time = round(time.perf_counter() - start_time, 4)
        logger.info(
            "request_completed",
            status_code=response.status_code,
            process_time=process_time,
            **path_params,
        )
        response.headers["X-Process-Time"] = str(process_time)
        return response


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Last-resort rendering for errors that escape the route handlers"""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except PipelineException as e:
            return error_response(e)
        except Exception as e:
            logger.exception("unhandled_exception", error=str(e))
            return JSONResponse(
                status_code=500,
                content={
                    "error": {
                        "message": "Internal server error",
                        "type": "InternalServerError",
                    }
                },
            )
