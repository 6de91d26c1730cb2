"""
Error rendering for the sessions API

Engine failures, request validation errors and unexpected exceptions all
leave the service in one shape: {"error": {"code", "message", "details"}}.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from scoresmart.services.results import ErrorCode, Failure

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ErrorCode.SESSION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SESSION_NOT_JOINABLE: status.HTTP_409_CONFLICT,
    ErrorCode.SESSION_FULL: status.HTTP_409_CONFLICT,
    ErrorCode.FEATURE_DISABLED: status.HTTP_403_FORBIDDEN,
    ErrorCode.ALREADY_ENROLLED: status.HTTP_409_CONFLICT,
    ErrorCode.NOT_ENROLLED: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_CAPACITY: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.NOT_PERMITTED: status.HTTP_403_FORBIDDEN,
    ErrorCode.INVALID_SESSION: status.HTTP_400_BAD_REQUEST,
}


def failure_response(failure: Failure) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_STATUS_CODES[failure.code],
        content={"error": failure.to_dict()},
    )


def _error_body(code: str, message: str, details=None) -> dict:
    return {"error": {"code": code, "message": message, "details": details}}


def _validation_details(exc: RequestValidationError):
    # ctx may hold exception instances, which JSON cannot encode
    return [
        {key: (str(value) if key == "ctx" else value) for key, value in error.items()}
        for error in exc.errors()
    ]


async def _on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(f"Rejected {request.method} {request.url.path}: {len(exc.errors())} invalid field(s)")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body("VALIDATION_ERROR", "Request parameters are invalid", _validation_details(exc)),
    )


async def _on_unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            "INTERNAL_ERROR",
            "The sessions service failed to process the request",
            str(exc) if request.app.debug else None,
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _on_validation_error)
    app.add_exception_handler(Exception, _on_unhandled_error)
