"""
Conversion of cloud analyzer output into detected regions.
"""

import logging
from typing import List, Optional, Sequence

from pydantic import Field

from core.constants import OverlapThresholds
from core.enums import RegionSource
from schemas import BoundingBox, CloudRegion, DetectedRegion, TextRegion
from schemas.base import BaseDetectionParams
from vision.shape_classifier import CLOUD_PROFILE

logger = logging.getLogger(__name__)


class CloudRegionParams(BaseDetectionParams):
    """Parameters of the cloud_vision and people modes."""

    refine: bool = Field(default=True, description="Snap the analyzer boxes to luminance edges")
    refine_threshold: Optional[int] = Field(
        default=None,
        ge=1,
        le=255,
        description="Edge threshold; the mode default is used when omitted",
    )


# (keywords, label) in priority order
_TAG_RULES = (
    (("icon", "symbol"), "icon"),
    (("logo", "brand"), "logo"),
    (("chart", "graph"), "chart"),
    (("photo", "photograph"), "photo"),
    (("button",), "button"),
)

_CAPTION_RULES = (
    (("icon",), "icon"),
    (("logo",), "logo"),
    (("chart", "graph"), "chart"),
    (("button",), "button"),
    (("card",), "card"),
)


def classify_cloud_region(region: CloudRegion) -> str:
    """
    Label a cloud region from its tags, then its caption, then its shape.

    Args:
        region: Region reported by the analyzer

    Returns:
        Shape tag
    """
    tags = [tag.lower() for tag in region.tags]
    for keywords, label in _TAG_RULES:
        if any(keyword in tag for tag in tags for keyword in keywords):
            return label

    caption = (region.caption or "").lower()
    for keywords, label in _CAPTION_RULES:
        if any(keyword in caption for keyword in keywords):
            return label

    return CLOUD_PROFILE.classify(region.width, region.height)


def is_text_only(region: CloudRegion, text_regions: Sequence[TextRegion]) -> bool:
    """True when text boxes cover more than 80% of the region's area."""
    area = region.width * region.height
    if area <= 0 or not text_regions:
        return False

    covered = 0
    for text in text_regions:
        overlap_w = max(0, min(region.x + region.width, text.x + text.width) - max(region.x, text.x))
        overlap_h = max(0, min(region.y + region.height, text.y + text.height) - max(region.y, text.y))
        covered += overlap_w * overlap_h
    return covered / area > OverlapThresholds.TEXT_ONLY


def cloud_to_detected(
    regions: Sequence[CloudRegion],
    image_width: int,
    image_height: int,
    text_regions: Sequence[TextRegion] = (),
) -> List[DetectedRegion]:
    """
    Convert analyzer regions to DetectedRegions clipped to the image.

    Text-only regions and boxes under the minimum size are dropped.
    """
    detected = []
    skipped_text = 0
    for region in regions:
        if is_text_only(region, text_regions):
            skipped_text += 1
            logger.debug(f"Skipping text-only cloud region: {region.caption}")
            continue

        box = BoundingBox(
            x=region.x, y=region.y, width=region.width, height=region.height
        ).clip(image_width, image_height)
        if not box.is_valid():
            continue

        detected.append(
            DetectedRegion(
                bounding_box=box,
                source=RegionSource.CLOUD,
                description=region.caption or "",
                shape=classify_cloud_region(region),
                confidence=region.confidence,
                properties={"provenance": region.provenance.value, "tags": list(region.tags)},
            )
        )

    logger.info(
        f"Converted {len(detected)} of {len(regions)} cloud regions "
        f"({skipped_text} text-only skipped)"
    )
    return detected
