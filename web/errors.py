"""
Register error -> HTTP error mapping

ConflictError   -> 409 (with expected/current version, refetch and retry)
ValidationError -> 422 (every issue listed)
NotFoundError   -> 404
"""

from fastapi import HTTPException

from core.register import ConflictError, NotFoundError, RegisterError, ValidationError
from web.models.responses import ErrorResponse


def http_error(error: RegisterError) -> HTTPException:
    """HTTPException for a register error"""
    if isinstance(error, ConflictError):
        body = ErrorResponse(
            error="conflict",
            message=str(error),
            expected_version=error.expected_version,
            current_version=error.actual_version,
        )
        status_code = 409
    elif isinstance(error, ValidationError):
        body = ErrorResponse(error="validation", message=str(error), issues=error.issues)
        status_code = 422
    elif isinstance(error, NotFoundError):
        body = ErrorResponse(error="not_found", message=str(error))
        status_code = 404
    else:
        body = ErrorResponse(error="register_error", message=str(error))
        status_code = 400

    return HTTPException(status_code=status_code, detail=body.model_dump())
