"""Application error types shared by the domain, services and API layers."""

import inspect
from enum import Enum, IntEnum
from uuid import uuid4


class AppErrorCode(str, Enum):
    """Error codes surfaced in ApiFailure.errcode."""

    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"
    E_INVALID_PARAMS = "E_INVALID_PARAMS"
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"
    E_FORBIDDEN = "E_FORBIDDEN"
    E_NOT_FOUND = "E_NOT_FOUND"
    E_STATE_CONFLICT = "E_STATE_CONFLICT"
    E_BACKEND_UNAVAILABLE = "E_BACKEND_UNAVAILABLE"

    # Streams
    E_STREAM_NOT_FOUND = "E_STREAM_NOT_FOUND"
    E_STREAM_KEY_NOT_FOUND = "E_STREAM_KEY_NOT_FOUND"
    E_STREAM_UNAVAILABLE = "E_STREAM_UNAVAILABLE"

    # Recordings
    E_RECORDING_NOT_FOUND = "E_RECORDING_NOT_FOUND"
    E_RECORDING_UNAVAILABLE = "E_RECORDING_UNAVAILABLE"

    # Provider
    E_PROVIDER_ERROR = "E_PROVIDER_ERROR"
    E_PROVIDER_NOT_CONFIGURED = "E_PROVIDER_NOT_CONFIGURED"

    # Webhooks
    E_WEBHOOK_ERROR = "E_WEBHOOK_ERROR"
    E_WEBHOOK_INVALID_JSON = "E_WEBHOOK_INVALID_JSON"
    E_WEBHOOK_INVALID_SIGNATURE = "E_WEBHOOK_INVALID_SIGNATURE"
    E_WEBHOOK_MISSING_EVENT_TYPE = "E_WEBHOOK_MISSING_EVENT_TYPE"
    E_WEBHOOK_VALIDATION_ERROR = "E_WEBHOOK_VALIDATION_ERROR"

    def __str__(self) -> str:
        return self.value


class HttpStatusCode(IntEnum):
    OK = 200
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE_ENTITY = 422
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503


class AppError(Exception):
    """Error raised by application code and rendered as an ApiFailure.

    The caller location is captured at construction time so the exception
    handler can log where the error originated.
    """

    def __init__(
        self,
        errcode: AppErrorCode | str = AppErrorCode.E_INTERNAL_ERROR,
        errmesg: str | None = None,
        status_code: int = HttpStatusCode.BAD_REQUEST,
    ):
        self.errcode = errcode.value if isinstance(errcode, AppErrorCode) else str(errcode)
        self.errmesg = errmesg or "We are sorry, an error occurred."
        self.status_code = int(status_code)
        self.erresid = uuid4().hex[:10]

        frame = inspect.currentframe()
        caller = frame.f_back if frame else None
        # Skip subclass __init__ frames so the raise site is reported
        while caller is not None and caller.f_code.co_name == "__init__":
            caller = caller.f_back
        if caller is not None:
            module_name = caller.f_globals.get("__name__", caller.f_code.co_filename)
            self.caller_info = f"{module_name}:{caller.f_code.co_name}:{caller.f_lineno}"
        else:
            self.caller_info = "unknown"

        super().__init__(self.errmesg)

    def __repr__(self) -> str:
        return f"AppError(errcode={self.errcode!r}, errmesg={self.errmesg!r}, status_code={self.status_code})"


__all__ = ["AppError", "AppErrorCode", "HttpStatusCode"]
