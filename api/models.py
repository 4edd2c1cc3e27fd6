"""
Pydantic models for API requests and responses
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from core.constants import ImageConstants
from core.enums import ExtractionMode
from schemas import BoundingBox

__all__ = [
    "ExtractionRequest",
    "RefineRequest",
    "CropRequest",
    "CropResponse",
    "ModeInfo",
    "SystemStatus",
]


class ImageRequest(BaseModel):
    """Base for requests that carry the source image inline."""

    image_base64: str = Field(..., min_length=1, description="Base64 image, data URL prefix allowed")
    mime_type: str = Field(default=ImageConstants.DEFAULT_MIME_TYPE, description="Source MIME type")

    @field_validator("mime_type")
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        """Only image MIME types make sense for a vision provider."""
        if not v.startswith("image/"):
            raise ValueError(f"Not an image MIME type: {v}")
        return v


class ExtractionRequest(ImageRequest):
    """Request for /extract and /detect."""

    mode: ExtractionMode = Field(default=ExtractionMode.CONTOUR, description="Extraction mode")
    parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Mode parameters, see GET /modes for defaults"
    )


class RefineRequest(ImageRequest):
    """Request for /refine."""

    bounding_box: BoundingBox
    threshold: Optional[int] = Field(
        default=None, ge=1, le=255, description="Edge threshold (configured default when omitted)"
    )


class CropRequest(ImageRequest):
    """Request for /crop."""

    bounding_box: BoundingBox
    padding: Optional[int] = Field(
        default=None, ge=0, le=100, description="Padding in pixels (configured default when omitted)"
    )


class CropResponse(BaseModel):
    """A single exact crop."""

    success: bool
    base64_data: str
    width: int
    height: int
    bounding_box: Optional[BoundingBox] = None


class ModeInfo(BaseModel):
    """Description of one extraction mode."""

    mode: ExtractionMode
    description: str
    requires: Optional[str] = Field(default=None, description="'oracle', 'cloud' or None")
    available: bool = True
    parameters: Dict[str, Any] = Field(default_factory=dict)


class SystemStatus(BaseModel):
    """System status information"""

    status: str
    version: str
    uptime: float
    memory_usage: Dict[str, float]
    providers: Dict[str, bool]
    modes: List[str]
