"""
Horizontal section divider detection.

Scans the image row by row looking for bands of uniform color. The end of
a long uniform band, or a jump in the uniform color, marks a boundary
between stacked page sections.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from pydantic import Field

from core.constants import SectionDefaults
from core.enums import RegionSource
from core.pixel_buffer import PixelBuffer
from schemas import BoundingBox, DetectedRegion
from schemas.base import BaseDetectionParams

logger = logging.getLogger(__name__)


class SectionParams(BaseDetectionParams):
    """Section detection parameters."""

    min_section_height: int = Field(
        default=SectionDefaults.MIN_SECTION_HEIGHT,
        ge=1,
        le=10000,
        description="Sections must be taller than this many pixels",
    )


def uniform_rows(buffer: PixelBuffer) -> Tuple[np.ndarray, np.ndarray]:
    """
    Classify every row as uniform or not.

    About 20 columns are sampled per row; a row is uniform when each sample
    is closer than the uniformity distance to the row's first sample.

    Returns:
        Tuple of a boolean (H,) array and the (H, 3) first-sample colors
    """
    step = max(1, buffer.width // SectionDefaults.ROW_SAMPLES)
    samples = buffer.rgb[:, ::step].astype(np.int32)
    first = samples[:, :1]
    distance = np.sqrt(((samples - first) ** 2).sum(axis=2))
    uniform = np.all(distance < SectionDefaults.ROW_UNIFORMITY, axis=1)
    return uniform, samples[:, 0]


def find_dividers(uniform: np.ndarray, colors: np.ndarray) -> List[int]:
    """
    Walk the rows and record divider positions.

    A uniform run that lasted more than 5 rows and ends at a non-uniform row
    yields a divider at its midpoint. A uniform row whose color is more than
    30 away from the open run's color yields a divider at that row when the
    run lasted more than 2 rows; either way a new run starts there.
    """
    dividers: List[int] = []
    run_start = -1
    run_color = None

    for y in range(uniform.shape[0]):
        color = colors[y]
        if uniform[y]:
            if run_start < 0:
                run_start, run_color = y, color
            elif np.sqrt(((color - run_color) ** 2).sum()) > SectionDefaults.COLOR_SHIFT:
                if y - run_start > SectionDefaults.MIN_SHIFT_RUN:
                    dividers.append(y)
                run_start, run_color = y, color
        else:
            if run_start >= 0 and y - run_start > SectionDefaults.MIN_UNIFORM_RUN:
                dividers.append((run_start + y) // 2)
            run_start = -1

    return dividers


def section_bounds(dividers: List[int], height: int, min_height: int) -> List[Tuple[int, int]]:
    """
    Turn dividers into (top, bottom) row spans.

    Implicit dividers are added at the top and bottom edges when the
    nearest real divider is further than ``min_height`` away.
    """
    rows = sorted(dividers)
    if not rows or rows[0] > min_height:
        rows.insert(0, 0)
    if rows[-1] < height - min_height:
        rows.append(height)
    return [
        (top, bottom)
        for top, bottom in zip(rows, rows[1:])
        if bottom - top > min_height
    ]


class SectionDetector:
    """Horizontal section detector."""

    def detect(
        self, buffer: PixelBuffer, params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Split the image into full-width horizontal sections.

        Args:
            buffer: Decoded source image
            params: SectionParams as a dict

        Returns:
            Dictionary with the section regions, the raw dividers and a
            ``fallback`` flag set when the whole image is returned
        """
        if params is None:
            params = {}
        min_height = int(params.get("min_section_height", SectionDefaults.MIN_SECTION_HEIGHT))

        W, H = buffer.width, buffer.height
        uniform, colors = uniform_rows(buffer)
        dividers = find_dividers(uniform, colors)

        regions = []
        for index, (top, bottom) in enumerate(section_bounds(dividers, H, min_height), start=1):
            box = BoundingBox.from_pixels(0, top, W, bottom - top, W, H)
            if not box.is_valid():
                continue
            regions.append(
                DetectedRegion(
                    bounding_box=box,
                    source=RegionSource.DIVIDER,
                    description=f"Section {index}",
                    shape="section",
                    confidence=SectionDefaults.CONFIDENCE,
                )
            )

        fallback = not regions
        if fallback:
            box = BoundingBox.from_pixels(0, 0, W, H, W, H)
            if box.is_valid():
                regions.append(
                    DetectedRegion(
                        bounding_box=box,
                        source=RegionSource.DIVIDER,
                        description="Full image (no sections detected)",
                        shape="section",
                        confidence=1.0,
                        suggested_filename="full-image.png",
                    )
                )

        logger.info(
            f"Section detection found {len(dividers)} dividers and "
            f"{len(regions)} sections{' (full image fallback)' if fallback else ''}"
        )
        return {
            "success": True,
            "method": RegionSource.DIVIDER.value,
            "regions": regions,
            "dividers": dividers,
            "fallback": fallback,
        }
