"""
Custom exception classes and error handlers
Provides consistent error responses across the application
"""

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional

class StorefrontException(HTTPException):
    """Base exception class for the storefront"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code

class BadRequestException(StorefrontException):
    """400 Bad Request"""

    def __init__(self, detail: str, error_code: str = "BAD_REQUEST"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code
        )

class UnauthorizedException(StorefrontException):
    """401 Unauthorized"""

    def __init__(self, detail: str = "Please authenticate", error_code: str = "AUTH_REQUIRED"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code=error_code,
            headers={"WWW-Authenticate": "Bearer"}
        )

class ForbiddenException(StorefrontException):
    """403 Forbidden"""

    def __init__(self, detail: str = "Forbidden", error_code: str = "FORBIDDEN"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code=error_code
        )

class NotFoundException(StorefrontException):
    """404 Not Found"""

    def __init__(self, detail: str = "Not found", error_code: str = "NOT_FOUND"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code=error_code
        )

class ConflictException(StorefrontException):
    """409 Conflict"""

    def __init__(self, detail: str, error_code: str = "CONFLICT"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code
        )

class ValidationException(StorefrontException):
    """422 Unprocessable Entity"""

    def __init__(self, detail: str, error_code: str = "VALIDATION_ERROR"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )

# Business logic exceptions
class EmptyCartException(BadRequestException):
    """Checkout attempted with nothing in the cart"""

    def __init__(self, detail: str = "Cart is empty"):
        super().__init__(
            detail=detail,
            error_code="EMPTY_CART"
        )

class InvalidStatusTransitionException(ConflictException):
    """Order cannot move to the requested status"""

    def __init__(self, current: str, requested: str):
        super().__init__(
            detail=f"Order cannot move from {current} to {requested}",
            error_code="INVALID_STATUS_TRANSITION"
        )

class ConcurrentModificationException(ConflictException):
    """Pending order or cart row changed underneath the request"""

    def __init__(self, detail: str = "Order was modified by another request, please retry"):
        super().__init__(
            detail=detail,
            error_code="CONCURRENT_MODIFICATION"
        )

async def storefront_exception_handler(request: Request, exc: StorefrontException) -> JSONResponse:
    """Render service errors with the success/error envelope clients expect"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "error_code": exc.error_code,
        },
        headers=exc.headers,
    )

def register_exception_handlers(app: FastAPI) -> None:
    """Attach the storefront error envelope to the app"""
    app.add_exception_handler(StorefrontException, storefront_exception_handler)
