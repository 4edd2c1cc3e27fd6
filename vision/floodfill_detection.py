"""
Flood-fill color region detection.

Seeds a breadth-first fill from every non-background pixel on a stride-2
grid and keeps the bounding boxes of the filled areas.
"""

import logging
from collections import deque
from typing import Any, Dict, List, Optional

from pydantic import Field

from core.constants import FloodFillDefaults
from core.enums import RegionSource
from core.image.colors import estimate_background_color
from core.pixel_buffer import PixelBuffer, VisitedGrid
from schemas import BoundingBox, DetectedRegion
from schemas.base import BaseDetectionParams
from vision.shape_classifier import REGION_PROFILE

logger = logging.getLogger(__name__)


class FloodFillParams(BaseDetectionParams):
    """Flood-fill detection parameters."""

    min_size: int = Field(
        default=FloodFillDefaults.MIN_SIZE,
        ge=1,
        le=10000,
        description="Minimum region width and height in pixels",
    )
    tolerance: int = Field(
        default=FloodFillDefaults.TOLERANCE,
        ge=0,
        le=255,
        description="Background tolerance; the fill itself accepts tolerance + 20",
    )
    max_pixels: int = Field(
        default=FloodFillDefaults.MAX_PIXELS,
        ge=1,
        description="Maximum pixels visited by a single fill",
    )


class FloodFillDetector:
    """Flood-fill color region detector."""

    def detect(
        self, buffer: PixelBuffer, params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Detect uniformly colored regions.

        Args:
            buffer: Decoded source image
            params: FloodFillParams as a dict

        Returns:
            Dictionary with the detected regions
        """
        if params is None:
            params = {}
        min_size = int(params.get("min_size", FloodFillDefaults.MIN_SIZE))
        tolerance = int(params.get("tolerance", FloodFillDefaults.TOLERANCE))
        max_pixels = int(params.get("max_pixels", FloodFillDefaults.MAX_PIXELS))

        W, H = buffer.width, buffer.height
        red, green, blue = buffer.flat_channels()
        bg_r, bg_g, bg_b = estimate_background_color(buffer)
        visited = VisitedGrid(W, H)
        fill_tolerance = tolerance + FloodFillDefaults.TOLERANCE_BOOST

        boxes: List[BoundingBox] = []
        stride = FloodFillDefaults.STRIDE
        for y in range(0, H, stride):
            for x in range(0, W, stride):
                if visited.seen(x, y):
                    continue

                i = y * W + x
                r, g, b = red[i], green[i], blue[i]
                if abs(r - bg_r) <= tolerance and abs(g - bg_g) <= tolerance and abs(b - bg_b) <= tolerance:
                    visited.mark(x, y)
                    continue

                box = self._flood_fill(buffer, visited, x, y, (r, g, b), fill_tolerance, max_pixels)
                if box.width >= min_size and box.height >= min_size:
                    self._keep_larger(boxes, box)

        regions = []
        for box in boxes:
            box = box.clip(W, H)
            if not box.is_valid():
                continue
            shape = REGION_PROFILE.classify(box.width, box.height)
            regions.append(
                DetectedRegion(
                    bounding_box=box,
                    source=RegionSource.FLOODFILL,
                    description=f"{shape} ({box.width}×{box.height})",
                    shape=shape,
                    confidence=FloodFillDefaults.CONFIDENCE,
                )
            )

        logger.info(f"Flood-fill detection found {len(regions)} regions on {W}x{H} image")
        return {"success": True, "method": RegionSource.FLOODFILL.value, "regions": regions}

    @staticmethod
    def _keep_larger(boxes: List[BoundingBox], box: BoundingBox) -> None:
        """Add ``box`` unless it duplicates a kept region; a larger duplicate replaces it."""
        for index, existing in enumerate(boxes):
            if box.significantly_overlaps(existing, 0.5):
                if box.area > existing.area:
                    del boxes[index]
                    boxes.append(box)
                return
        boxes.append(box)

    @staticmethod
    def _flood_fill(
        buffer: PixelBuffer,
        visited: VisitedGrid,
        start_x: int,
        start_y: int,
        seed,
        tolerance: int,
        max_pixels: int,
    ) -> BoundingBox:
        """
        Breadth-first fill of 4-connected pixels similar to the seed color.

        Rejected pixels are left unvisited so a later seed can claim them.
        """
        W, H = buffer.width, buffer.height
        red, green, blue = buffer.flat_channels()
        cells = visited.cells
        seed_r, seed_g, seed_b = seed

        min_x = max_x = start_x
        min_y = max_y = start_y
        count = 0
        queue = deque([(start_x, start_y)])

        while queue and count < max_pixels:
            x, y = queue.popleft()
            if x < 0 or x >= W or y < 0 or y >= H:
                continue
            i = y * W + x
            if cells[i]:
                continue
            if (
                abs(red[i] - seed_r) > tolerance
                or abs(green[i] - seed_g) > tolerance
                or abs(blue[i] - seed_b) > tolerance
            ):
                continue

            cells[i] = 1
            count += 1
            if x < min_x:
                min_x = x
            elif x > max_x:
                max_x = x
            if y < min_y:
                min_y = y
            elif y > max_y:
                max_y = y

            queue.append((x - 1, y))
            queue.append((x + 1, y))
            queue.append((x, y - 1))
            queue.append((x, y + 1))

        return BoundingBox(
            x=min_x, y=min_y, width=max_x - min_x + 1, height=max_y - min_y + 1
        )
