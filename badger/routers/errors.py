import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse

from badger.domain.errors import (
    BadgerError, Forbidden, InconsistentState, InternalError, InvalidPrecondition,
    InvalidTransition, NotFound, ValidationError, ValidationFailed,
)

log = logging.getLogger("http")

STATUS_BY_ERROR = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    InvalidPrecondition: status.HTTP_400_BAD_REQUEST,
    Forbidden: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    InvalidTransition: status.HTTP_409_CONFLICT,
    ValidationFailed: status.HTTP_409_CONFLICT,
    InconsistentState: status.HTTP_500_INTERNAL_SERVER_ERROR,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

def status_for(exc: BadgerError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR

async def badger_error_handler(request: Request, exc: BadgerError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        # el detalle ya quedó en el log de la operación
        log.error("%s %s -> %s (%s)", request.method, request.url.path, code, exc.code)
        return JSONResponse(status_code=code, content={"error": "internal_error", "message": "An unexpected error occurred"})
    return JSONResponse(status_code=code, content=exc.to_dict())

async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled error in %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "message": "An unexpected error occurred"},
    )
