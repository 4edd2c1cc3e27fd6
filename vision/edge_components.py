"""
Sobel-edge connected components.

Edges are found with a 3x3 Sobel pair on the channel-average gray image,
grouped into 8-connected components and merged with any neighbour closer
than a few pixels.
"""

import logging
from typing import Any, Dict, List, Optional

import cv2
import numpy as np
from pydantic import Field

from core.constants import EdgeDefaults
from core.enums import ComponentMethod, RegionSource
from core.image.geometry import components_from_stats, merge_to_fixed_point
from core.pixel_buffer import PixelBuffer
from schemas import BoundingBox, DetectedRegion
from schemas.base import BaseDetectionParams
from vision.shape_classifier import COMPONENT_PROFILE

logger = logging.getLogger(__name__)


class ComponentParams(BaseDetectionParams):
    """Parameters of the components mode (either pixel analysis)."""

    min_size: int = Field(
        default=EdgeDefaults.MIN_SIZE,
        ge=1,
        le=10000,
        description="Minimum component width and height in pixels",
    )
    method: ComponentMethod = Field(
        default=ComponentMethod.SOBEL,
        description="Pixel analysis: Sobel edges or local color variance",
    )
    threshold: int = Field(
        default=EdgeDefaults.THRESHOLD,
        ge=0,
        le=2000,
        description="Sobel gradient magnitude threshold",
    )


def sobel_edge_map(gray: np.ndarray, threshold: float) -> np.ndarray:
    """
    Boolean edge map of a gray image.

    Only interior pixels can be edges; the one-pixel border is always False.

    Args:
        gray: (H, W) luminance array
        threshold: Minimum gradient magnitude

    Returns:
        Boolean (H, W) array
    """
    edges = np.zeros(gray.shape, dtype=bool)
    if gray.shape[0] < 3 or gray.shape[1] < 3:
        return edges

    source = gray.astype(np.float32)
    gx = cv2.Sobel(source, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(source, cv2.CV_32F, 0, 1, ksize=3)
    magnitude = np.hypot(gx, gy)

    edges[1:-1, 1:-1] = magnitude[1:-1, 1:-1] > threshold
    return edges


class EdgeComponentDetector:
    """Sobel-edge component detector."""

    def detect(
        self, buffer: PixelBuffer, params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Detect UI components bounded by strong edges.

        Args:
            buffer: Decoded source image
            params: ComponentParams as a dict

        Returns:
            Dictionary with the detected regions and the edge pixel count
        """
        if params is None:
            params = {}
        min_size = int(params.get("min_size", EdgeDefaults.MIN_SIZE))
        threshold = float(params.get("threshold", EdgeDefaults.THRESHOLD))

        edges = sobel_edge_map(buffer.gray, threshold)
        components = self._connected_components(edges, min_size)
        merged = merge_to_fixed_point(
            components, lambda a, b: a.is_near(b, EdgeDefaults.MERGE_MARGIN)
        )

        regions = []
        for box in merged:
            box = box.clip(buffer.width, buffer.height)
            if not box.is_valid():
                continue
            shape = COMPONENT_PROFILE.classify(box.width, box.height)
            regions.append(
                DetectedRegion(
                    bounding_box=box,
                    source=RegionSource.EDGE,
                    description=f"{shape} component ({box.width}×{box.height})",
                    shape=shape,
                    confidence=EdgeDefaults.CONFIDENCE,
                )
            )

        edge_pixels = int(edges.sum())
        logger.info(
            f"Edge detection found {len(regions)} components "
            f"from {edge_pixels} edge pixels (threshold {threshold})"
        )
        return {
            "success": True,
            "method": RegionSource.EDGE.value,
            "regions": regions,
            "edge_pixels": edge_pixels,
        }

    @staticmethod
    def _connected_components(edges: np.ndarray, min_size: int) -> List[BoundingBox]:
        if not edges.any():
            return []
        _, _, stats, _ = cv2.connectedComponentsWithStats(edges.astype(np.uint8), connectivity=8)
        return [
            box
            for box in components_from_stats(stats)
            if box.width >= min_size and box.height >= min_size
        ]
