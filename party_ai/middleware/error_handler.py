"""
Party AI - Error Handler Middleware
Formats engine and request errors into structured JSON responses.
"""
import traceback
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from party_ai.core.errors import PartyAIError, ErrorCode

logger = logging.getLogger("party_ai.errors")

# Map status codes to error codes
STATUS_ERROR_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    404: ErrorCode.NOT_FOUND,
    422: ErrorCode.VALIDATION_ERROR,
    500: ErrorCode.UNKNOWN,
}


def _error_id() -> str:
    """Short id for correlating a response with the log line."""
    return str(uuid.uuid4())[:8]


def _error_response(
    status_code: int,
    body: Dict[str, Any],
    error_id: Optional[str] = None,
) -> JSONResponse:
    """Stamp an error body with an id and timestamp and wrap it in a response."""
    body["error_id"] = error_id or _error_id()
    body["timestamp"] = datetime.now(timezone.utc).isoformat()
    return JSONResponse(status_code=status_code, content={"error": body})


def _validation_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    errors = []
    for error in exc.errors():
        errors.append({
            "field": " -> ".join(str(loc) for loc in error.get("loc", [])),
            "message": error.get("msg", "Invalid value"),
            "type": error.get("type", "validation_error"),
        })
    return errors


def setup_error_handlers(app: FastAPI, debug: bool = False):
    """
    Register the Party AI exception handlers on an app.

    Engine errors keep their own code and status. Request validation,
    routing errors and anything unhandled are mapped onto the same
    ``{"error": {...}}`` envelope so clients only parse one shape.
    """

    @app.exception_handler(PartyAIError)
    async def party_ai_error_handler(request: Request, exc: PartyAIError):
        error_id = _error_id()
        logger.warning(
            f"[{error_id}] {exc.code.value} on {request.url.path}: {exc.message}"
        )
        return _error_response(exc.http_status, exc.to_dict()["error"], error_id)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = _validation_errors(exc)
        logger.info(f"Rejected request to {request.url.path}: {len(errors)} invalid field(s)")
        return _error_response(422, {
            "code": ErrorCode.VALIDATION_ERROR.value,
            "message": "Request validation failed",
            "details": {"errors": errors},
            "recoverable": True,
            "recovery_hint": "Check the request data and correct any invalid fields",
        })

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        error_code = STATUS_ERROR_CODES.get(exc.status_code, ErrorCode.UNKNOWN)
        return _error_response(exc.status_code, {
            "code": error_code.value,
            "message": str(exc.detail) if exc.detail else "An error occurred",
            "details": {},
            "recoverable": exc.status_code < 500,
            "recovery_hint": None,
        })

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        error_id = _error_id()
        logger.error(
            f"[{error_id}] Unhandled {type(exc).__name__} on {request.method} "
            f"{request.url.path}: {exc}",
            exc_info=True,
        )

        body = {
            "code": ErrorCode.UNKNOWN.value,
            "message": "An unexpected error occurred",
            "details": {},
            "recoverable": False,
            "recovery_hint": "Check the server log for the error id",
        }
        if debug:
            body["debug"] = {
                "exception_type": type(exc).__name__,
                "traceback": traceback.format_exception(type(exc), exc, exc.__traceback__),
            }
        return _error_response(500, body, error_id)

    return app
