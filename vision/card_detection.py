"""
Solid-color UI card detection.

Cards in flat UI screenshots are rectangles filled with one color that
differs from the page background. Seeds are sampled on a sparse grid; a
seed sitting in a solid patch is grown along its row and column and the
resulting rectangle is shrunk until its edges are mostly uniform. An
optional pass pairs up strong horizontal and vertical edge lines to catch
bordered cards that have no distinct fill.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from pydantic import Field

from core.constants import CardDefaults, OverlapThresholds
from core.enums import RegionSource
from core.image.colors import colors_similar, estimate_background_color, similarity_mask
from core.image.geometry import merge_overlapping_regions, suppress_overlaps
from core.pixel_buffer import Color, PixelBuffer, VisitedGrid
from schemas import BoundingBox, DetectedRegion
from schemas.base import BaseDetectionParams
from vision.shape_classifier import CARD_PROFILE

logger = logging.getLogger(__name__)


class CardParams(BaseDetectionParams):
    """UI card detection parameters."""

    min_size: int = Field(
        default=CardDefaults.MIN_SIZE,
        ge=1,
        le=10000,
        description="Minimum card width and height in pixels",
    )
    include_bordered: bool = Field(
        default=False,
        description="Also detect cards outlined by border lines",
    )
    max_border_lines: int = Field(
        default=CardDefaults.MAX_BORDER_LINES,
        ge=2,
        le=1000,
        description="Skip the bordered pass when more edge lines than this are found",
    )


class CardDetector:
    """Solid-color card detector."""

    def detect(
        self, buffer: PixelBuffer, params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Detect card-like rectangles.

        Args:
            buffer: Decoded source image
            params: CardParams as a dict

        Returns:
            Dictionary with the detected regions, largest first
        """
        if params is None:
            params = {}
        min_size = int(params.get("min_size", CardDefaults.MIN_SIZE))
        include_bordered = bool(params.get("include_bordered", False))
        max_border_lines = int(params.get("max_border_lines", CardDefaults.MAX_BORDER_LINES))

        W, H = buffer.width, buffer.height
        background = estimate_background_color(buffer)

        cards = self._find_solid_regions(buffer, background, min_size)
        solid_count = len(cards)

        if include_bordered:
            bordered = self._find_bordered_regions(buffer, background, min_size, max_border_lines)
            suppress_overlaps(bordered, OverlapThresholds.NEAR_DUPLICATE, accepted=cards)

        merged = merge_overlapping_regions(cards)
        merged.sort(key=lambda box: box.area, reverse=True)

        regions = []
        for box in merged:
            shape = CARD_PROFILE.classify(box.width, box.height)
            padded = box.pad(CardDefaults.PADDING, W, H)
            if not padded.is_valid():
                continue
            regions.append(
                DetectedRegion(
                    bounding_box=padded,
                    source=RegionSource.CARD,
                    description=f"{shape} card ({box.width}×{box.height})",
                    shape=shape,
                    confidence=CardDefaults.CONFIDENCE,
                )
            )

        logger.info(
            f"Card detection found {len(regions)} cards "
            f"({solid_count} solid, {len(cards) - solid_count} bordered before merge)"
        )
        return {
            "success": True,
            "method": RegionSource.CARD.value,
            "regions": regions,
            "background": background,
        }

    def _find_solid_regions(
        self, buffer: PixelBuffer, background: Color, min_size: int
    ) -> List[BoundingBox]:
        W, H = buffer.width, buffer.height
        rgb = buffer.rgb
        visited = VisitedGrid(W, H)
        inset = CardDefaults.SEED_INSET
        patch = CardDefaults.PATCH_SIZE

        cards: List[BoundingBox] = []
        for y in range(inset, H - inset, CardDefaults.SEED_STRIDE):
            for x in range(inset, W - inset, CardDefaults.SEED_STRIDE):
                if visited.seen(x, y):
                    continue

                seed = buffer.pixel(x, y)
                if colors_similar(seed, background, CardDefaults.BACKGROUND_TOLERANCE):
                    continue

                window = similarity_mask(
                    rgb[y : y + patch, x : x + patch], seed, CardDefaults.PATCH_TOLERANCE
                )
                if window.size == 0 or window.mean() <= CardDefaults.PATCH_SOLIDITY:
                    continue

                box = self._expand_solid_region(buffer, x, y, seed)
                visited.mark_box(box.x, box.y, box.width, box.height)

                if box.width < min_size or box.height < min_size:
                    continue
                if any(
                    box.significantly_overlaps(card, OverlapThresholds.NEAR_DUPLICATE)
                    for card in cards
                ):
                    continue
                cards.append(box)

        logger.debug(f"Solid pass kept {len(cards)} card candidates")
        return cards

    def _expand_solid_region(
        self, buffer: PixelBuffer, x: int, y: int, color: Color
    ) -> BoundingBox:
        """Grow along the seed row and column, then shrink non-uniform edges."""
        rgb = buffer.rgb
        tolerance = CardDefaults.EXPAND_TOLERANCE

        row = similarity_mask(rgb[y], color, tolerance)
        column = similarity_mask(rgb[:, x], color, tolerance)
        left, right = self._run_around(row, x)
        top, bottom = self._run_around(column, y)

        window = similarity_mask(rgb[top : bottom + 1, left : right + 1], color, tolerance)
        left, top, right, bottom = self._shrink_to_uniform(window, left, top, right, bottom)

        return BoundingBox(x=left, y=top, width=right - left + 1, height=bottom - top + 1)

    @staticmethod
    def _run_around(line: np.ndarray, start: int) -> Tuple[int, int]:
        """Inclusive extent of the True run containing ``start``."""
        before = np.flatnonzero(~line[: start + 1])
        after = np.flatnonzero(~line[start:])
        low = int(before[-1]) + 1 if before.size else 0
        high = start + int(after[0]) - 1 if after.size else line.shape[0] - 1
        return low, max(low, high)

    @staticmethod
    def _shrink_to_uniform(
        window: np.ndarray, left: int, top: int, right: int, bottom: int
    ) -> Tuple[int, int, int, int]:
        """
        Move each edge inwards while its line is less than 70% the card color.

        ``window`` covers the inclusive rectangle (left, top)..(right, bottom)
        as passed in. Edges are shrunk in the order left, right, top, bottom.
        """
        ox, oy = left, top
        threshold = CardDefaults.EDGE_UNIFORMITY

        def column_uniform(cx: int) -> bool:
            return window[top - oy : bottom - oy + 1, cx - ox].mean() >= threshold

        def row_uniform(cy: int) -> bool:
            return window[cy - oy, left - ox : right - ox + 1].mean() >= threshold

        while left < right and not column_uniform(left):
            left += 1
        while right > left and not column_uniform(right):
            right -= 1
        while top < bottom and not row_uniform(top):
            top += 1
        while bottom > top and not row_uniform(bottom):
            bottom -= 1
        return left, top, right, bottom

    def _find_bordered_regions(
        self, buffer: PixelBuffer, background: Color, min_size: int, max_lines: int
    ) -> List[BoundingBox]:
        """Cells between consecutive strong horizontal and vertical edge lines."""
        W, H = buffer.width, buffer.height
        rgb = buffer.rgb

        columns = rgb[:, :: max(1, W // CardDefaults.BORDER_SAMPLES)]
        rows = rgb[:: max(1, H // CardDefaults.BORDER_SAMPLES), :]
        horizontal = self._edge_lines(columns, background, axis=0)
        vertical = self._edge_lines(rows, background, axis=1)

        if len(horizontal) > max_lines or len(vertical) > max_lines:
            logger.debug(
                f"Skipping bordered pass: {len(horizontal)} horizontal and "
                f"{len(vertical)} vertical edge lines"
            )
            return []

        regions = []
        for top, bottom in zip(horizontal, horizontal[1:]):
            for left, right in zip(vertical, vertical[1:]):
                if right - left >= min_size and bottom - top >= min_size:
                    regions.append(
                        BoundingBox(x=left, y=top, width=right - left, height=bottom - top)
                    )
        return regions

    @staticmethod
    def _edge_lines(samples: np.ndarray, background: Color, axis: int) -> List[int]:
        """
        Indices of lines along ``axis`` where enough samples sit on an edge.

        A sample is an edge pixel if it is not background and it differs from
        its predecessor, or failing that its successor, across the line.
        """
        if samples.shape[axis] == 0:
            return []
        not_background = ~similarity_mask(samples, background, CardDefaults.BORDER_BACKGROUND_TOLERANCE)

        tolerance = CardDefaults.BORDER_NEIGHBOR_TOLERANCE
        step = np.any(np.abs(np.diff(samples, axis=axis)) > tolerance, axis=-1)
        differs = np.zeros(not_background.shape, dtype=bool)
        if axis == 0:
            differs[1:] |= step
            differs[:-1] |= step
        else:
            differs[:, 1:] |= step
            differs[:, :-1] |= step

        edge = not_background & differs
        ratio = edge.mean(axis=1 - axis)
        return np.flatnonzero(ratio >= CardDefaults.BORDER_LINE_RATIO).tolist()

