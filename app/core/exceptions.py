# app/core/exceptions.py
"""
Typed HTTP exceptions for the pharmacy API.

Services raise these instead of bare HTTPException so that the
exception handlers in app.main can render a stable `error.code`
(and any extra fields) inside the response envelope.
"""

from typing import Any

from fastapi import HTTPException, status


class PharmacyException(HTTPException):
    """Base exception carrying a machine-readable error code."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: str,
        extra: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.extra = extra or {}


class BadRequestException(PharmacyException):
    """400 Bad Request"""

    def __init__(self, detail: str, error_code: str = "BAD_REQUEST"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code,
        )


class UnauthorizedException(PharmacyException):
    """401 Unauthorized"""

    def __init__(self, detail: str = "Unauthorized", error_code: str = "UNAUTHORIZED"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code=error_code,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenException(PharmacyException):
    """403 Forbidden"""

    def __init__(self, detail: str = "Forbidden", error_code: str = "FORBIDDEN"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code=error_code,
        )


class NotFoundException(PharmacyException):
    """404 Not Found"""

    def __init__(self, detail: str = "Not found", error_code: str = "NOT_FOUND"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code=error_code,
        )


class ConflictException(PharmacyException):
    """409 Conflict"""

    def __init__(self, detail: str, error_code: str = "CONFLICT"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code,
        )


class PayloadTooLargeException(PharmacyException):
    """413 Request Entity Too Large"""

    def __init__(self, detail: str, error_code: str = "PAYLOAD_TOO_LARGE"):
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=detail,
            error_code=error_code,
        )


# Business logic exceptions


class ProductUnavailableException(BadRequestException):
    """Medication exists but is not sellable (inactive)."""

    def __init__(self, detail: str = "Medication is not available"):
        super().__init__(detail=detail, error_code="PRODUCT_UNAVAILABLE")


class StockExceededException(BadRequestException):
    """
    Requested quantity is above what the catalog can supply.

    `max_addable` is the largest quantity the caller may still request,
    so the client can show an actionable message.
    """

    def __init__(self, detail: str, max_addable: int):
        super().__init__(detail=detail, error_code="STOCK_EXCEEDED")
        self.max_addable = max_addable
        self.extra = {"maxAddable": max_addable}
