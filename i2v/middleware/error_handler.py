"""Global exception handling and request ids."""

import logging
import uuid

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from i2v.errors import ServiceError
from i2v.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "-")
    logger.info("[%s] %s %s -> %d %s", request_id, request.method, request.url.path, exc.status_code, exc.code)
    body = ErrorResponse(code=exc.code, message=exc.public_message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
    return JSONResponse(status_code=400, content=ErrorResponse(code="VALIDATION_ERROR", message=message).model_dump())


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except Exception:
            request_id = getattr(request.state, "request_id", "-")
            logger.exception("[%s] Unhandled error on %s %s", request_id, request.method, request.url.path)
            return JSONResponse(
                status_code=500,
                content=ErrorResponse(code="INTERNAL_ERROR", message="Internal server error").model_dump(),
            )


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
