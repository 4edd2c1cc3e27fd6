"""
Shared FastAPI dependencies for the region extraction service.
"""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request

from api.exceptions import ImageDecodeException, InvalidParametersException
from config import ExtractionConfig
from core.constants import ErrorMessages
from core.pixel_buffer import decode_base64_image
from services.extraction_service import ExtractionService
from services.providers import CloudVisionAnalyzer, VisionCompletionProvider

logger = logging.getLogger(__name__)


class Providers:
    """Container for the external collaborators and extraction settings."""

    def __init__(
        self,
        completion_provider: Optional[VisionCompletionProvider],
        cloud_analyzer: Optional[CloudVisionAnalyzer],
        extraction_settings: ExtractionConfig,
    ):
        self.completion_provider = completion_provider
        self.cloud_analyzer = cloud_analyzer
        self.extraction_settings = extraction_settings

    def status(self) -> Dict[str, bool]:
        return {
            "completion_provider": self.completion_provider is not None,
            "cloud_analyzer": self.cloud_analyzer is not None,
        }


def get_providers(request: Request) -> Providers:
    """
    Get the provider container from app state.

    Args:
        request: FastAPI request object

    Returns:
        Providers container

    Raises:
        HTTPException: If the application state was not initialized
    """
    try:
        return Providers(
            completion_provider=request.app.state.completion_provider,
            cloud_analyzer=request.app.state.cloud_analyzer,
            extraction_settings=request.app.state.extraction_settings,
        )
    except AttributeError as e:
        logger.error(f"Providers not initialized in app state: {e}")
        raise HTTPException(
            status_code=500, detail="Internal server error: Providers not initialized"
        )


def get_extraction_settings(providers: Providers = Depends(get_providers)) -> ExtractionConfig:
    """Get the extraction settings section."""
    return providers.extraction_settings


def get_extraction_service(providers: Providers = Depends(get_providers)) -> ExtractionService:
    """
    Build an ExtractionService for the request.

    The service holds no per-image state, but building it per request keeps
    provider swaps in app state (tests, reconfiguration) effective at once.
    """
    return ExtractionService(
        completion_provider=providers.completion_provider,
        cloud_analyzer=providers.cloud_analyzer,
        settings=providers.extraction_settings,
    )


def check_image_size(data: bytes, settings: ExtractionConfig) -> bytes:
    """
    Reject images larger than the configured limit.

    Raises:
        ImageDecodeException: If the payload is empty or too large
    """
    if not data:
        raise ImageDecodeException(ErrorMessages.DECODE_FAILED)
    size_mb = len(data) / (1024 * 1024)
    if size_mb > settings.max_image_mb:
        raise ImageDecodeException(
            f"Image is {size_mb:.1f} MB, the limit is {settings.max_image_mb} MB", status_code=413
        )
    return data


def decode_request_image(image_base64: str, settings: ExtractionConfig) -> bytes:
    """
    Decode a request's base64 image and validate its size.

    Args:
        image_base64: Base64 payload, optionally with a data URL prefix
        settings: Extraction settings (for max_image_mb)

    Returns:
        Raw image bytes
    """
    return check_image_size(decode_base64_image(image_base64), settings)


def mode_parameters(raw: Optional[str]) -> Dict[str, Any]:
    """
    Parse the JSON ``parameters`` form field of a multipart upload.

    Raises:
        InvalidParametersException: If it is not a JSON object
    """
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidParametersException(f"parameters is not valid JSON: {e}")
    if not isinstance(parsed, dict):
        raise InvalidParametersException("parameters must be a JSON object")
    return parsed
