"""
Local color variance component detection.

Marks non-background pixels whose 5x5 neighbourhood has moderate color
spread (photos, illustrations, icons), dilates the map to bridge small
gaps and reports the connected blobs. Flat fills score too low and hard
text edges too high, and blobs that still look like text are dropped.
"""

import logging
from typing import Any, Dict, List, Optional

import cv2
import numpy as np

from core.constants import VarianceDefaults
from core.enums import RegionSource
from core.image.colors import estimate_background_color, similarity_mask
from core.image.geometry import components_from_stats, merge_overlapping_regions
from core.pixel_buffer import Color, PixelBuffer
from schemas import BoundingBox, DetectedRegion
from vision.shape_classifier import COMPONENT_PROFILE

logger = logging.getLogger(__name__)


def local_color_deviation(rgb: np.ndarray, window: int) -> np.ndarray:
    """
    Per-pixel RGB standard deviation over a square window.

    Computed as ``sqrt(var(R) + var(G) + var(B))`` with box-filtered first
    and second moments. Values near the image border are not meaningful.
    """
    source = rgb.astype(np.float64)
    kernel = (window, window)
    mean = cv2.blur(source, kernel)
    mean_sq = cv2.blur(source * source, kernel)
    variance = np.clip(mean_sq - mean * mean, 0.0, None).sum(axis=2)
    return np.sqrt(variance)


class VarianceComponentDetector:
    """Color-variance component detector, the ``variance`` method of components mode."""

    def detect(
        self, buffer: PixelBuffer, params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Detect image-like components.

        Args:
            buffer: Decoded source image
            params: ComponentParams as a dict (only ``min_size`` is used)

        Returns:
            Dictionary with the detected regions
        """
        if params is None:
            params = {}
        min_size = int(params.get("min_size", VarianceDefaults.MIN_SIZE))

        W, H = buffer.width, buffer.height
        background = estimate_background_color(buffer)

        interesting = self._interesting_map(buffer, background)
        boxes = self._find_components(interesting, min_size)
        merged = merge_overlapping_regions(boxes)

        kept = [box for box in merged if not self._is_text_like(buffer, box)]

        regions = []
        for box in kept:
            shape = COMPONENT_PROFILE.classify(box.width, box.height)
            padded = box.pad(VarianceDefaults.PADDING, W, H)
            if not padded.is_valid():
                continue
            regions.append(
                DetectedRegion(
                    bounding_box=padded,
                    source=RegionSource.VARIANCE,
                    description=f"{shape} component ({box.width}×{box.height})",
                    shape=shape,
                    confidence=VarianceDefaults.CONFIDENCE,
                )
            )

        logger.info(
            f"Variance detection found {len(regions)} components "
            f"({len(merged) - len(kept)} text-like dropped)"
        )
        return {"success": True, "method": RegionSource.VARIANCE.value, "regions": regions}

    @staticmethod
    def _interesting_map(buffer: PixelBuffer, background: Color) -> np.ndarray:
        """Non-background interior pixels with moderate local deviation."""
        W, H = buffer.width, buffer.height
        interesting = np.zeros((H, W), dtype=bool)
        half = VarianceDefaults.WINDOW // 2
        if H <= 2 * half or W <= 2 * half:
            return interesting

        rgb = buffer.rgb
        deviation = local_color_deviation(rgb, VarianceDefaults.WINDOW)
        foreground = ~similarity_mask(rgb, background, VarianceDefaults.BACKGROUND_TOLERANCE)
        candidate = (
            foreground
            & (deviation > VarianceDefaults.MIN_STD)
            & (deviation < VarianceDefaults.MAX_STD)
        )
        interesting[half : H - half, half : W - half] = candidate[half : H - half, half : W - half]
        return interesting

    @staticmethod
    def _find_components(interesting: np.ndarray, min_size: int) -> List[BoundingBox]:
        H, W = interesting.shape
        radius = VarianceDefaults.DILATE_RADIUS

        # Only pixels at least `radius` from the border seed the dilation
        centers = np.zeros_like(interesting, dtype=np.uint8)
        if H > 2 * radius and W > 2 * radius:
            centers[radius : H - radius, radius : W - radius] = interesting[
                radius : H - radius, radius : W - radius
            ]
        if not centers.any():
            return []

        size = 2 * radius + 1
        dilated = cv2.dilate(centers, np.ones((size, size), dtype=np.uint8))
        _, _, stats, _ = cv2.connectedComponentsWithStats(dilated, connectivity=4)

        max_w = W * VarianceDefaults.MAX_EXTENT
        max_h = H * VarianceDefaults.MAX_EXTENT
        boxes = []
        for box in components_from_stats(stats):
            if box.width < min_size or box.height < min_size:
                continue
            if box.width > max_w or box.height > max_h:
                continue
            content = interesting[box.y : box.y2, box.x : box.x2].mean()
            if content > VarianceDefaults.MIN_CONTENT_RATIO:
                boxes.append(box)
        return boxes

    @staticmethod
    def _is_text_like(buffer: PixelBuffer, box: BoundingBox) -> bool:
        """Few quantized colors and mostly very dark or very light samples."""
        step = VarianceDefaults.TEXT_SAMPLE_STEP
        samples = buffer.rgb[box.y : box.y2 : step, box.x : box.x2 : step].reshape(-1, 3)
        if samples.shape[0] == 0:
            return False

        quantized = samples // VarianceDefaults.TEXT_COLOR_QUANTUM
        keys = (quantized[:, 0] << 10) | (quantized[:, 1] << 5) | quantized[:, 2]
        distinct = np.unique(keys).size

        brightness = samples.sum(axis=1) // 3
        extreme = (brightness < VarianceDefaults.TEXT_DARK) | (brightness > VarianceDefaults.TEXT_LIGHT)
        return distinct <= VarianceDefaults.TEXT_MAX_COLORS and extreme.mean() > VarianceDefaults.TEXT_EXTREME_RATIO
