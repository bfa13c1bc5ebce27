"""Custom exceptions for the ShopRec API.

Defines specific exception types for better error handling and reporting,
and the FastAPI handler that renders them as JSON.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ShopRecException(Exception):
    """Base exception for ShopRec API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class CatalogNotLoadedError(ShopRecException):
    """Raised when no catalog is available to score or assemble."""

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="Catalog is empty. Set SHOPREC_CATALOG_PATH to a catalog CSV.",
            status_code=503,
            details=details or {},
        )


class ProductNotFoundError(ShopRecException):
    """Raised when a request references products missing from the catalog."""

    def __init__(self, product_ids: list):
        super().__init__(
            message=f"Products not found in catalog: {product_ids}",
            status_code=404,
            details={"product_ids": product_ids},
        )


class UnknownMetricKindError(ShopRecException):
    """Raised for metric kinds other than impression and click."""

    def __init__(self, kind: str):
        super().__init__(
            message=f"Unknown metric kind '{kind}'. Expected 'impression' or 'click'.",
            status_code=400,
            details={"kind": kind},
        )


class InvalidSettingsError(ShopRecException):
    """Raised when a settings update fails validation."""

    def __init__(self, errors: Any):
        super().__init__(
            message="Invalid personalization settings",
            status_code=422,
            details={"errors": errors},
        )


async def shoprec_exception_handler(request: Request, exc: ShopRecException) -> JSONResponse:
    logger.warning(
        "Request failed with handled error",
        extra={
            "path": str(request.url.path),
            "status_code": exc.status_code,
            "error_type": type(exc).__name__,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": type(exc).__name__,
            "message": exc.message,
            "details": exc.details,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShopRecException, shoprec_exception_handler)
