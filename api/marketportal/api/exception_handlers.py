"""Translate workflow errors into HTTP responses."""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from marketportal.core.errors import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    WorkflowError,
)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    ValidationError: 422,
    AuthorizationError: 403,
    NotFoundError: 404,
    InvalidStateError: 409,
    PersistenceError: 503,
}


def status_code_for(exc: WorkflowError) -> int:
    for error_type, status_code in STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    status_code = status_code_for(exc)
    body = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, InvalidStateError) and exc.current_status is not None:
        body["current_status"] = exc.current_status

    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)

    headers = {"Retry-After": "1"} if isinstance(exc, PersistenceError) else None
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def register_exception_handlers(app) -> None:
    app.add_exception_handler(WorkflowError, workflow_error_handler)
