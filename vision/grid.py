"""
Grid splitter.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import Field

from core.constants import GridDefaults, ImageConstants
from core.enums import RegionSource
from core.pixel_buffer import PixelBuffer
from schemas import BoundingBox, DetectedRegion
from schemas.base import BaseDetectionParams

logger = logging.getLogger(__name__)


class GridParams(BaseDetectionParams):
    """Grid splitter parameters."""

    rows: int = Field(
        default=GridDefaults.ROWS,
        ge=1,
        le=GridDefaults.MAX_CELLS_PER_AXIS,
        description="Number of rows",
    )
    columns: int = Field(
        default=GridDefaults.COLUMNS,
        ge=1,
        le=GridDefaults.MAX_CELLS_PER_AXIS,
        description="Number of columns",
    )


def split_axis(length: int, parts: int) -> List[Tuple[int, int]]:
    """
    Split ``length`` pixels into ``parts`` (start, size) spans.

    Every span is ``length // parts`` long except the last one, which takes
    the remainder.
    """
    step = length // parts
    spans = []
    for i in range(parts):
        start = i * step
        size = length - start if i == parts - 1 else step
        spans.append((start, size))
    return spans


class GridSplitter:
    """Divides an image into equal cells."""

    def detect(
        self, buffer: PixelBuffer, params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Split the image into ``rows x columns`` cells.

        Rows and columns are clamped so every cell is at least
        MIN_REGION_SIZE pixels on each side; the cells then cover the image
        exactly.

        Args:
            buffer: Decoded source image
            params: GridParams as a dict

        Returns:
            Dictionary with the cell regions (row-major) and the effective
            rows and columns
        """
        if params is None:
            params = {}
        W, H = buffer.width, buffer.height
        min_cell = ImageConstants.MIN_REGION_SIZE
        rows = max(1, min(int(params.get("rows", GridDefaults.ROWS)), H // min_cell))
        columns = max(1, min(int(params.get("columns", GridDefaults.COLUMNS)), W // min_cell))

        regions = []
        for r, (y, height) in enumerate(split_axis(H, rows)):
            for c, (x, width) in enumerate(split_axis(W, columns)):
                box = BoundingBox.from_pixels(x, y, width, height, W, H)
                # Only an image under MIN_REGION_SIZE on an axis gets here
                if not box.is_valid(min_cell):
                    continue
                regions.append(
                    DetectedRegion(
                        bounding_box=box,
                        source=RegionSource.GRID,
                        description=f"Grid cell [{r},{c}]",
                        shape="grid-cell",
                        confidence=GridDefaults.CONFIDENCE,
                        suggested_filename=f"grid-{r}-{c}.png",
                        properties={"row": r, "column": c},
                    )
                )

        logger.debug(f"Grid split {W}x{H} image into {rows}x{columns} ({len(regions)} cells)")
        return {
            "success": True,
            "method": RegionSource.GRID.value,
            "regions": regions,
            "rows": rows,
            "columns": columns,
        }
