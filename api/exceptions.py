"""
Exception hierarchy and FastAPI exception handlers.
"""

import functools
import logging
from typing import Any, Callable, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

logger = logging.getLogger(__name__)


class ExtractionException(Exception):
    """Base exception for the extraction service."""

    status_code = 500
    error_code = "extraction_error"

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class ImageDecodeException(ExtractionException):
    """Source bytes are not a decodable raster image."""

    status_code = 400
    error_code = "image_decode_failed"


class InvalidParametersException(ExtractionException):
    """Mode parameters failed validation."""

    status_code = 422
    error_code = "invalid_parameters"


class RegionTooSmallException(ExtractionException):
    """A bounding box cannot be cropped to a usable image."""

    status_code = 400
    error_code = "region_too_small"


def _error_body(error: str, detail: Any, error_code: str) -> dict:
    return {"error": error, "detail": detail, "error_code": error_code}


def safe_endpoint(func: Callable) -> Callable:
    """
    Wrap an async route so unexpected errors become clean HTTP responses.

    HTTPException and ExtractionException are re-raised untouched so their
    registered handlers format them. Pydantic validation errors raised inside
    the route become 422, everything else is logged and becomes 500.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (HTTPException, ExtractionException):
            raise
        except ValidationError as e:
            raise InvalidParametersException(str(e))
        except Exception as e:
            logger.error(f"Unhandled error in {func.__name__}: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Internal server error: {e}")

    return wrapper


def register_exception_handlers(app: FastAPI) -> None:
    """Register JSON handlers for the extraction exception hierarchy."""

    @app.exception_handler(ExtractionException)
    async def extraction_exception_handler(request: Request, exc: ExtractionException):
        logger.warning(f"{exc.error_code} on {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(type(exc).__name__, exc.detail, exc.error_code),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Global exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body("InternalServerError", f"Internal server error: {exc}", "internal"),
        )
