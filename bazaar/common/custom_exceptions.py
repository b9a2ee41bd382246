from typing import Any, Optional
from fastapi import FastAPI, HTTPException, Request,status
from fastapi.exceptions import RequestValidationError
from bazaar import logger
from bazaar.common.utils import build_error, json_error
from bazaar.common.constants import request_id_ctx


class DomainError(Exception):
    """Business rule violation raised where it is detected and rendered at the HTTP boundary."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "DOMAIN_ERROR"
    default_message: str = "Request could not be processed"

    def __init__(self, message: Optional[str] = None, details: Optional[Any] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationFailed(DomainError):
    code = "VALIDATION_ERROR"
    default_message = "Invalid input"


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Resource not found"


class Forbidden(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_message = "Not allowed to perform this action"


class InvalidTransition(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "INVALID_TRANSITION"
    default_message = "Status change not allowed"


class AlreadyAssigned(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "ALREADY_ASSIGNED"
    default_message = "Order is not available for delivery"


class OutOfStock(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "OUT_OF_STOCK"
    default_message = "Insufficient stock"


class ProductUnavailable(DomainError):
    code = "PRODUCT_UNAVAILABLE"
    default_message = "Product is not available"


class InsufficientBalance(DomainError):
    code = "INSUFFICIENT_BALANCE"
    default_message = "Insufficient balance"


class InvalidAmount(DomainError):
    code = "INVALID_AMOUNT"
    default_message = "Amount must be positive"


class ConfigurationError(DomainError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "CONFIGURATION_ERROR"
    default_message = "Service is misconfigured"


async def domain_exception_handler(request: Request, exc: DomainError):
    rid = request_id_ctx.get(None)
    logger.warning(
        "request.domain_error",
        extra={
            "code": exc.code,
            "reason": exc.message,
            "path": request.url.path,
            "request_id": rid,
        },
    )
    payload = build_error(code=exc.code, details=exc.details, message=exc.message, request_id=rid)
    return json_error(payload, status_code=exc.status_code)


async def fallback_handler(request: Request, exc: Exception):

    rid = request_id_ctx.get(None)

    logger.error(
        "unexpected.exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "request_id": rid,
        },
        exc_info=exc,
    )

    payload = build_error(code="SERVER_ERROR", message="Internal Server Error", request_id=rid)
    return json_error(payload, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    rid = request_id_ctx.get(None)
    logger.warning(
        "request.validation_failed",
        extra={
            "errors": exc.errors(),
            "path": request.url.path,
            "request_id": rid,
        },
    )

    details = [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()]
    payload = build_error(code="UNPROCESSABLE_ENTITY", details=details, message="invalid request", request_id=rid)
    return json_error(payload, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


async def http_exception_handler(request: Request, exc: HTTPException):

    rid = request_id_ctx.get(None)

    payload = build_error(code=f"HTTP_{exc.status_code}", message=str(exc.detail), request_id=rid)
    return json_error(payload, status_code=exc.status_code, headers=getattr(exc, "headers", None))


def register_all_exceptions(app: FastAPI):

    app.add_exception_handler(
        Exception, # catch all unidentified/unhandled exceptions
        fallback_handler
    )

    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler
    )

    app.add_exception_handler(
        HTTPException,
        http_exception_handler
    )

    app.add_exception_handler(
        DomainError,
        domain_exception_handler
    )
