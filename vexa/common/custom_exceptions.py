from typing import Any, Optional
from fastapi import FastAPI, HTTPException, Request,status
from fastapi.exceptions import RequestValidationError
from vexa.common.constants import request_id_ctx
from vexa.common.logging_setup import get_logger
from vexa.common.utils import build_error, json_error

logger = get_logger("vexa.errors")


class AppError(Exception):
    """Expected business-rule failure. Carries a stable code and the HTTP status the API layer maps it to."""

    code = "APP_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_details(self) -> dict:
        body = {"message": self.message}
        if self.details:
            body.update(self.details)
        return body


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class BadRequestError(AppError):
    code = "BAD_REQUEST"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidStateError(BadRequestError):
    code = "INVALID_STATE"


class EmptyCartError(BadRequestError):
    code = "EMPTY_CART"

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class PriceUnavailableError(BadRequestError):
    code = "PRICE_UNAVAILABLE"


class InsufficientStockError(AppError):
    code = "INSUFFICIENT_STOCK"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, product_id: int, variant_id: Optional[int], requested: int, available: int):
        super().__init__(
            "Insufficient stock",
            {"product_id": product_id, "variant_id": variant_id, "requested": requested, "available": available},
        )
        self.product_id = product_id
        self.variant_id = variant_id
        self.requested = requested
        self.available = available


class ConcurrentUpdateError(AppError):
    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class UnauthorizedError(AppError):
    code = "UNAUTHORIZED"
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(AppError):
    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class CouponInvalidError(AppError):
    code = "COUPON_INVALID"
    status_code = status.HTTP_400_BAD_REQUEST

    INACTIVE = "inactive"
    EXPIRED = "expired"
    LIMIT_REACHED = "limit_reached"

    def __init__(self, message: str, reason: str):
        super().__init__(message, {"reason": reason})
        self.reason = reason


async def app_error_handler(request: Request, exc: AppError):
    rid = request_id_ctx.get(None)
    logger.info(
        "request.business_error",
        extra={
            "code": exc.code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    payload = build_error(code=exc.code, details=exc.to_details(), request_id=rid)
    return json_error(payload, status_code=exc.status_code)


async def fallback_handler(request: Request, exc: Exception):

    rid = request_id_ctx.get(None)
    body = {"message": "Internal Server Error"}

    logger.error(
        "unexpected.exception",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=exc,
    )

    payload = build_error(code="SERVER_ERROR", details=body, request_id=rid)
    return json_error(payload, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    rid = request_id_ctx.get(None)
    logger.warning(
        "request.validation_failed",
        extra={
            "errors": exc.errors(),
            "path": request.url.path,
        },
    )

    payload = build_error(code="UNPROCESSABLE_ENTITY", details={"message":"invalid request"}, request_id=rid)
    return json_error(payload, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


async def http_exception_handler(request: Request, exc: HTTPException):

    rid = request_id_ctx.get(None)
    payload = build_error(code=f"HTTP_{exc.status_code}", details={"message":exc.detail}, request_id=rid)
    return json_error(payload, status_code=exc.status_code)


def register_all_exceptions(app: FastAPI):

    app.add_exception_handler(
        Exception, # catch all unidentified/unhandled exceptions
        fallback_handler
    )

    app.add_exception_handler(
        AppError,
        app_error_handler
    )

    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler
    )

    app.add_exception_handler(
        HTTPException,
        http_exception_handler
    )
