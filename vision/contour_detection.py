"""
Background-subtraction contour detection.

Finds connected foreground blobs that differ from the estimated background
color, tightens and merges them into rectangular regions.
"""

import logging
from typing import Any, Dict, Optional

import cv2
import numpy as np
from pydantic import Field

from core.constants import ContourDefaults
from core.enums import RegionSource
from core.image.colors import estimate_background_color, foreground_mask
from core.image.geometry import components_from_stats, merge_overlapping_regions, tighten_bounds
from core.pixel_buffer import PixelBuffer
from schemas import DetectedRegion
from schemas.base import BaseDetectionParams
from vision.shape_classifier import REGION_PROFILE

logger = logging.getLogger(__name__)


class ContourParams(BaseDetectionParams):
    """Background-subtraction contour detection parameters."""

    min_size: int = Field(
        default=ContourDefaults.MIN_SIZE,
        ge=1,
        le=10000,
        description="Minimum region width and height in pixels",
    )
    color_threshold: int = Field(
        default=ContourDefaults.COLOR_THRESHOLD,
        ge=0,
        le=255,
        description="Per-channel tolerance for background similarity",
    )


class ContourDetector:
    """Background-subtraction contour detector."""

    def detect(
        self, buffer: PixelBuffer, params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Detect foreground regions that differ from the background.

        Args:
            buffer: Decoded source image
            params: ContourParams as a dict

        Returns:
            Dictionary with the detected regions and the background color
        """
        if params is None:
            params = {}
        min_size = int(params.get("min_size", ContourDefaults.MIN_SIZE))
        threshold = int(params.get("color_threshold", ContourDefaults.COLOR_THRESHOLD))

        background = estimate_background_color(buffer)
        mask = foreground_mask(buffer, background, threshold)

        boxes = self._find_rectangular_regions(mask, min_size)
        merged = merge_overlapping_regions(boxes)

        regions = []
        for box in merged:
            box = box.clip(buffer.width, buffer.height)
            if not box.is_valid():
                continue
            shape = REGION_PROFILE.classify(box.width, box.height)
            regions.append(
                DetectedRegion(
                    bounding_box=box,
                    source=RegionSource.CONTOUR,
                    description=f"{shape} ({box.width}×{box.height})",
                    shape=shape,
                    confidence=ContourDefaults.CONFIDENCE,
                )
            )

        logger.info(
            f"Contour detection found {len(regions)} regions "
            f"({len(boxes)} before merge) on {buffer.width}x{buffer.height} image"
        )
        return {
            "success": True,
            "method": RegionSource.CONTOUR.value,
            "regions": regions,
            "background": background,
        }

    def _find_rectangular_regions(self, mask: np.ndarray, min_size: int) -> list:
        """4-connected components of the mask that pass the size filter after tightening."""
        if not mask.any():
            return []

        _, _, stats, _ = cv2.connectedComponentsWithStats(
            mask.astype(np.uint8), connectivity=4
        )

        boxes = []
        for box in components_from_stats(stats):
            if box.width < min_size or box.height < min_size:
                continue
            tight = tighten_bounds(mask, box)
            if tight.width >= min_size and tight.height >= min_size:
                boxes.append(tight)
        return boxes
