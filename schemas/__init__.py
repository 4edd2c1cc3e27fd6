"""
Schemas Package

Pydantic schemas shared across all application layers:
- API (routers, dependencies)
- Services (extraction orchestration)
- Core (pixel buffer, cropper)
- Vision (detection strategies)

Detection parameter models live next to their detectors in ``vision/``.
"""

from core.enums import (
    AIExtractionType,
    CloudProvenance,
    ComponentMethod,
    ExtractionMode,
    RegionSource,
)

from .base import BaseDetectionParams
from .common import (
    BoundingBox,
    CropResult,
    DetectedRegion,
    DetectionResult,
    ExtractedImage,
    ExtractionResult,
    normalize_confidence,
)
from .cloud import CloudAnalysis, CloudRegion, TextRegion

__all__ = [
    # Common models
    "BoundingBox",
    "DetectedRegion",
    "ExtractedImage",
    "CropResult",
    "DetectionResult",
    "ExtractionResult",
    "normalize_confidence",
    # Cloud analyzer results
    "CloudAnalysis",
    "CloudRegion",
    "TextRegion",
    # Base schemas
    "BaseDetectionParams",
    # Enums (re-exported from core.enums)
    "AIExtractionType",
    "CloudProvenance",
    "ComponentMethod",
    "ExtractionMode",
    "RegionSource",
]
