from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.request_context import request_id_ctx_var


class SchedulingError(Exception):
    """Base class for failures raised by the scheduling core.

    Every subclass carries a stable ``code`` (the error kind) and the HTTP
    status it maps to, so callers always get a readable message plus a kind.
    """

    code = "scheduling_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, detail=None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail if detail is not None else message


class InvalidRangeError(SchedulingError):
    code = "invalid_range"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class SlotUnavailableError(SchedulingError):
    code = "slot_unavailable"
    status_code = status.HTTP_409_CONFLICT


class InvalidTransitionError(SchedulingError):
    code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT


class NotReschedulableError(InvalidTransitionError):
    code = "not_reschedulable"


class NotCancellableError(InvalidTransitionError):
    code = "not_cancellable"


class InvalidPriceError(SchedulingError):
    code = "invalid_price"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidRecurrenceError(SchedulingError):
    code = "invalid_recurrence"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidAvailabilityError(SchedulingError):
    code = "invalid_availability"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class PaymentDeclinedError(SchedulingError):
    code = "payment_declined"
    status_code = status.HTTP_402_PAYMENT_REQUIRED


class NetworkError(SchedulingError):
    code = "network_error"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class NotFoundError(SchedulingError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(SchedulingError):
    code = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN


def _error_payload(code: str, message: str, detail):
    return {
        "error": {
            "code": code,
            "message": message,
            "detail": detail,
        },
        "detail": detail,
        "request_id": request_id_ctx_var.get(),
    }


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(
            code=f"http_{exc.status_code}",
            message=str(exc.detail),
            detail=exc.detail,
        ),
        headers=exc.headers,
    )


async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_payload(
            code="validation_error",
            message="Request validation failed",
            detail=jsonable_encoder(exc.errors()),
        ),
    )


async def scheduling_exception_handler(_: Request, exc: SchedulingError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(
            code=exc.code,
            message=exc.message,
            detail=exc.detail,
        ),
    )

