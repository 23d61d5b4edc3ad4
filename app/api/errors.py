"""Exception handlers and OpResult-to-HTTP mapping for the API."""

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger

from app.domain.utils.op_result import OpOutcome, OpResult
from app.shared.api.utils import ApiFailure, make_response
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

_OUTCOME_ERRORS: dict[OpOutcome, tuple[AppErrorCode, HttpStatusCode]] = {
    OpOutcome.NOT_FOUND: (AppErrorCode.E_NOT_FOUND, HttpStatusCode.NOT_FOUND),
    OpOutcome.CONFLICT: (AppErrorCode.E_STATE_CONFLICT, HttpStatusCode.CONFLICT),
    OpOutcome.DROPPED: (AppErrorCode.E_STATE_CONFLICT, HttpStatusCode.CONFLICT),
    OpOutcome.BACKEND_UNAVAILABLE: (
        AppErrorCode.E_BACKEND_UNAVAILABLE,
        HttpStatusCode.SERVICE_UNAVAILABLE,
    ),
}


def unwrap(result: OpResult):
    """Return the value of a successful result, raising AppError otherwise."""
    if result.ok:
        return result.value

    errcode, status_code = _OUTCOME_ERRORS.get(
        result.outcome, (AppErrorCode.E_INTERNAL_ERROR, HttpStatusCode.INTERNAL_SERVER_ERROR)
    )
    raise AppError(
        errcode=errcode,
        errmesg=result.reason or str(result.outcome),
        status_code=status_code,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """
    Custom exception handler for AppError.
    Converts AppError to ApiFailure and returns via make_response.
    """
    # Log with the caller info captured when AppError was raised
    log_msg = f"{exc.errcode} {exc.erresid} msg={exc.errmesg} caller={exc.caller_info}"
    if exc.status_code >= HttpStatusCode.INTERNAL_SERVER_ERROR:
        logger.error(log_msg)
    else:
        logger.warning(log_msg)

    failure = ApiFailure(errcode=exc.errcode, errmesg=exc.errmesg, erresid=exc.erresid)
    return make_response(failure, status_code=exc.status_code)
