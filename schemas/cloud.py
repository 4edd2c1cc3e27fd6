"""
Cloud vision analyzer result schemas.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from core.enums import CloudProvenance


class CloudRegion(BaseModel):
    """A pixel-space box reported by the cloud analyzer."""

    x: int = Field(ge=0)
    y: int = Field(ge=0)
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    caption: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    tags: List[str] = Field(default_factory=list)
    provenance: CloudProvenance = CloudProvenance.OBJECTS


class TextRegion(BaseModel):
    """A line of recognized text, used to suppress text-only regions."""

    x: int = Field(ge=0)
    y: int = Field(ge=0)
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    text: str = ""


class CloudAnalysis(BaseModel):
    """Outcome of one cloud analyzer call."""

    success: bool = True
    regions: List[CloudRegion] = Field(default_factory=list)
    text_regions: List[TextRegion] = Field(default_factory=list)
    image_width: int = 0
    image_height: int = 0
    error: Optional[str] = None
