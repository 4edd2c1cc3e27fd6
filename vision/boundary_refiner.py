"""
Boundary refinement by edge snapping.

Approximate boxes from the oracles are moved onto the nearest strong
luminance edge on each side. Refinement is best effort: any failure
returns the input box unchanged.
"""

import logging
from typing import Iterable, List, Optional

import numpy as np

from core.constants import RefineDefaults
from core.pixel_buffer import PixelBuffer
from schemas import BoundingBox, DetectedRegion

logger = logging.getLogger(__name__)


def _first_strong_line(strength: np.ndarray, candidates: Iterable[int], span: int) -> Optional[int]:
    """First candidate index whose edge count exceeds a quarter of ``span``."""
    limit = span // 4
    size = strength.shape[0]
    for index in candidates:
        if 0 <= index < size and strength[index] > limit:
            return index
    return None


class BoundaryRefiner:
    """Snaps box edges to nearby luminance edges."""

    def __init__(self, search_padding: int = RefineDefaults.SEARCH_PADDING):
        self.search_padding = search_padding

    def refine(
        self,
        buffer: PixelBuffer,
        box: BoundingBox,
        threshold: int = RefineDefaults.THRESHOLD,
    ) -> BoundingBox:
        """
        Refine one box.

        The left edge is searched left to right over the window from the
        padded search area to a third of the box width; the right edge right
        to left from two thirds of the width. Top and bottom work the same
        way over rows. A column counts as an edge when more than a quarter
        of the search window's rows have ``|g(x-1) - g(x+1)| > threshold``.

        Args:
            buffer: Source image
            box: Approximate box in pixel coordinates
            threshold: Luminance difference for an edge pixel

        Returns:
            Refined box clipped to the image, or ``box`` itself when no valid
            refinement exists
        """
        try:
            return self._refine(buffer, box, threshold)
        except Exception as e:
            logger.warning(f"Failed to refine bounds {box.to_dict()}, using original: {e}")
            return box

    def _refine(self, buffer: PixelBuffer, box: BoundingBox, threshold: int) -> BoundingBox:
        W, H = buffer.width, buffer.height
        x, y, width, height = box.x, box.y, box.width, box.height
        pad = self.search_padding

        search_left = max(0, x - pad)
        search_top = max(0, y - pad)
        search_right = min(W, x + width + pad)
        search_bottom = min(H, y + height + pad)

        gray = buffer.gray
        column_strength = np.zeros(W, dtype=np.int64)
        row_strength = np.zeros(H, dtype=np.int64)

        lo, hi = max(1, search_left), min(W - 1, search_right)
        if hi > lo:
            band = gray[search_top:search_bottom]
            column_strength[lo:hi] = (
                np.abs(band[:, lo - 1 : hi - 1] - band[:, lo + 1 : hi + 1]) > threshold
            ).sum(axis=0)

        lo, hi = max(1, search_top), min(H - 1, search_bottom)
        if hi > lo:
            band = gray[:, search_left:search_right]
            row_strength[lo:hi] = (
                np.abs(band[lo - 1 : hi - 1] - band[lo + 1 : hi + 1]) > threshold
            ).sum(axis=1)

        row_span = search_bottom - search_top
        column_span = search_right - search_left

        left = _first_strong_line(
            column_strength, range(search_left, x + width // 3), row_span
        )
        right = _first_strong_line(
            column_strength, reversed(range(x + width * 2 // 3, search_right)), row_span
        )
        top = _first_strong_line(
            row_strength, range(search_top, y + height // 3), column_span
        )
        bottom = _first_strong_line(
            row_strength, reversed(range(y + height * 2 // 3, search_bottom)), column_span
        )

        new_x = x if left is None else left
        new_y = y if top is None else top
        new_right = x + width if right is None else right
        new_bottom = y + height if bottom is None else bottom

        refined = BoundingBox(
            x=new_x,
            y=new_y,
            width=max(RefineDefaults.MIN_SIZE, new_right - new_x),
            height=max(RefineDefaults.MIN_SIZE, new_bottom - new_y),
        ).clip(W, H)

        if not refined.is_valid(RefineDefaults.MIN_SIZE):
            logger.debug(f"Refined box for {box.to_dict()} fell outside the image, keeping original")
            return box

        logger.debug(f"Refined bounds from {box.to_dict()} to {refined.to_dict()}")
        return refined

    def refine_region(
        self, buffer: PixelBuffer, region: DetectedRegion, threshold: int = RefineDefaults.THRESHOLD
    ) -> DetectedRegion:
        """Copy of ``region`` with a refined bounding box."""
        return region.model_copy(
            update={"bounding_box": self.refine(buffer, region.bounding_box, threshold)}
        )

    def refine_all(
        self,
        buffer: PixelBuffer,
        regions: Iterable[DetectedRegion],
        threshold: int = RefineDefaults.THRESHOLD,
    ) -> List[DetectedRegion]:
        """Refine every region, preserving order."""
        return [self.refine_region(buffer, region, threshold) for region in regions]
