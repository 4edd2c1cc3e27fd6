"""
Core data structures shared by every layer.

BoundingBox carries the box algebra used by the detectors, the reconciler
and the cropper. DetectedRegion is the transient output of a strategy;
ExtractedImage is the immutable record returned to callers.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.enums import RegionSource


def normalize_confidence(value: Any) -> float:
    """
    Map a confidence on either the 0..1 or the 0..100 scale onto 0..1.

    Values above 1 are treated as percentages. Non-numeric input becomes 0.
    """
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if confidence > 1.0:
        confidence /= 100.0
    return max(0.0, min(1.0, confidence))


class BoundingBox(BaseModel):
    """
    Axis-aligned rectangle in pixel and image-relative coordinates.

    When both representations are populated, ``normalized_x == x / W`` and so
    on for the other fields. Boxes produced by box algebra (union, tighten)
    carry pixel coordinates only until ``with_normalized`` is applied.
    """

    x: int = Field(default=0, ge=0, description="Left edge in pixels")
    y: int = Field(default=0, ge=0, description="Top edge in pixels")
    width: int = Field(default=0, ge=0, description="Width in pixels")
    height: int = Field(default=0, ge=0, description="Height in pixels")
    normalized_x: float = Field(default=0.0, ge=0.0, le=1.0)
    normalized_y: float = Field(default=0.0, ge=0.0, le=1.0)
    normalized_width: float = Field(default=0.0, ge=0.0, le=1.0)
    normalized_height: float = Field(default=0.0, ge=0.0, le=1.0)

    @classmethod
    def from_pixels(
        cls, x: int, y: int, width: int, height: int, image_width: int, image_height: int
    ) -> "BoundingBox":
        """Create a box from pixel values and fill in normalized coordinates."""
        return cls(x=x, y=y, width=width, height=height).with_normalized(
            image_width, image_height
        )

    @classmethod
    def from_normalized(
        cls, nx: float, ny: float, nw: float, nh: float, image_width: int, image_height: int
    ) -> "BoundingBox":
        """Create a box from image-relative values, rounding to pixels."""
        return cls(
            x=int(round(nx * image_width)),
            y=int(round(ny * image_height)),
            width=int(round(nw * image_width)),
            height=int(round(nh * image_height)),
            normalized_x=nx,
            normalized_y=ny,
            normalized_width=nw,
            normalized_height=nh,
        )

    @property
    def x2(self) -> int:
        """Right edge (exclusive)."""
        return self.x + self.width

    @property
    def y2(self) -> int:
        """Bottom edge (exclusive)."""
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def has_normalized(self) -> bool:
        return self.normalized_width > 0 and self.normalized_height > 0

    def is_valid(self, min_size: int = 4) -> bool:
        """True if both sides are at least ``min_size`` pixels."""
        return self.width >= min_size and self.height >= min_size

    def overlap_area(self, other: "BoundingBox") -> int:
        overlap_w = max(0, min(self.x2, other.x2) - max(self.x, other.x))
        overlap_h = max(0, min(self.y2, other.y2) - max(self.y, other.y))
        return overlap_w * overlap_h

    def significantly_overlaps(self, other: "BoundingBox", threshold: float) -> bool:
        """
        Check whether the intersection exceeds a fraction of the smaller box.

        Args:
            other: Box to compare against
            threshold: Fraction of ``min(area(a), area(b))`` that must be exceeded

        Returns:
            True if ``overlap_area > threshold * min(area)``
        """
        return self.overlap_area(other) > threshold * min(self.area, other.area)

    def is_adjacent(self, other: "BoundingBox", margin: int) -> bool:
        """
        True if the boxes share a row or column band and are at most
        ``margin`` pixels apart along the other axis.
        """
        horizontally_close = self.x2 + margin >= other.x and self.x <= other.x2 + margin
        vertically_close = self.y2 + margin >= other.y and self.y <= other.y2 + margin
        rows_overlap = self.y < other.y2 and self.y2 > other.y
        columns_overlap = self.x < other.x2 and self.x2 > other.x
        return (horizontally_close and rows_overlap) or (vertically_close and columns_overlap)

    def is_near(self, other: "BoundingBox", margin: int) -> bool:
        """True if the boxes overlap or their gap is within ``margin`` on both axes."""
        return not (
            self.x2 + margin < other.x
            or other.x2 + margin < self.x
            or self.y2 + margin < other.y
            or other.y2 + margin < self.y
        )

    def union(self, other: "BoundingBox") -> "BoundingBox":
        """Smallest box containing both (pixel coordinates only)."""
        x1 = min(self.x, other.x)
        y1 = min(self.y, other.y)
        return BoundingBox(
            x=x1,
            y=y1,
            width=max(self.x2, other.x2) - x1,
            height=max(self.y2, other.y2) - y1,
        )

    def with_normalized(self, image_width: int, image_height: int) -> "BoundingBox":
        """Return a copy whose normalized fields match the pixel fields."""
        if image_width <= 0 or image_height <= 0:
            return self.model_copy()
        return self.model_copy(
            update={
                "normalized_x": min(1.0, self.x / image_width),
                "normalized_y": min(1.0, self.y / image_height),
                "normalized_width": min(1.0, self.width / image_width),
                "normalized_height": min(1.0, self.height / image_height),
            }
        )

    def clip(self, image_width: int, image_height: int) -> "BoundingBox":
        """Clamp the box to ``[0, W) x [0, H)`` and re-normalize."""
        x1 = min(self.x, image_width)
        y1 = min(self.y, image_height)
        x2 = min(self.x2, image_width)
        y2 = min(self.y2, image_height)
        return BoundingBox(
            x=x1, y=y1, width=max(0, x2 - x1), height=max(0, y2 - y1)
        ).with_normalized(image_width, image_height)

    def pad(self, padding: int, image_width: int, image_height: int) -> "BoundingBox":
        """Grow the box by ``padding`` on every side, clamped to the image."""
        x = max(0, self.x - padding)
        y = max(0, self.y - padding)
        return BoundingBox(
            x=x,
            y=y,
            width=max(0, min(self.width + padding * 2, image_width - x)),
            height=max(0, min(self.height + padding * 2, image_height - y)),
        ).with_normalized(image_width, image_height)

    def to_dict(self) -> Dict[str, int]:
        """Pixel coordinates only."""
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


class DetectedRegion(BaseModel):
    """A candidate box produced by one detection source."""

    bounding_box: BoundingBox
    source: RegionSource
    description: str = ""
    shape: str = Field(default="image", description="Shape classification tag")
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    suggested_filename: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("confidence", mode="before")
    @classmethod
    def _normalize_confidence(cls, value: Any) -> float:
        return normalize_confidence(value)


class ExtractedImage(BaseModel):
    """A successfully cropped region. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    image_data: bytes = Field(default=b"", exclude=True, repr=False)
    base64_data: str = Field(repr=False)
    description: str
    image_type: str
    source: RegionSource
    bounding_box: BoundingBox
    suggested_filename: str
    confidence: float = Field(ge=0.0, le=1.0)
    width: int
    height: int


class CropResult(BaseModel):
    """Outcome of cropping a single box."""

    success: bool
    image_data: Optional[bytes] = Field(default=None, exclude=True, repr=False)
    base64_data: Optional[str] = Field(default=None, repr=False)
    width: int = 0
    height: int = 0
    bounding_box: Optional[BoundingBox] = None
    error: Optional[str] = None


class DetectionResult(BaseModel):
    """Regions found by a mode, without crop payloads."""

    success: bool
    mode: str
    regions: List[DetectedRegion] = Field(default_factory=list)
    total_found: int = 0
    summary: Optional[str] = None
    error: Optional[str] = None
    image_width: int = 0
    image_height: int = 0
    processing_time_ms: int = 0


class ExtractionResult(BaseModel):
    """Response of an extraction request."""

    success: bool
    mode: str
    images: List[ExtractedImage] = Field(default_factory=list)
    total_found: int = 0
    summary: Optional[str] = None
    error: Optional[str] = None
    processing_time_ms: int = 0
