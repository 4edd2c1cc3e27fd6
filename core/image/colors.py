"""
Color primitives: similarity tests, background estimation, foreground masks.
"""

import logging
import math
from collections import Counter
from typing import Sequence

import numpy as np

from core.constants import ColorConstants
from core.pixel_buffer import Color, PixelBuffer

logger = logging.getLogger(__name__)


def colors_similar(a: Sequence[int], b: Sequence[int], tolerance: int) -> bool:
    """Per-channel test: every channel differs by at most ``tolerance``."""
    return (
        abs(a[0] - b[0]) <= tolerance
        and abs(a[1] - b[1]) <= tolerance
        and abs(a[2] - b[2]) <= tolerance
    )


def color_distance(a: Sequence[int], b: Sequence[int]) -> float:
    """Euclidean distance in RGB space."""
    dr = a[0] - b[0]
    dg = a[1] - b[1]
    db = a[2] - b[2]
    return math.sqrt(dr * dr + dg * dg + db * db)


def similarity_mask(rgb: np.ndarray, color: Sequence[int], tolerance: int) -> np.ndarray:
    """
    Vectorized ``colors_similar`` against a single color.

    Args:
        rgb: int16 array of shape (..., 3)
        color: Reference color
        tolerance: Per-channel tolerance

    Returns:
        Boolean array with the leading shape of ``rgb``
    """
    reference = np.asarray(color[:3], dtype=np.int16)
    return np.all(np.abs(rgb - reference) <= tolerance, axis=-1)


def estimate_background_color(buffer: PixelBuffer) -> Color:
    """
    Estimate the dominant border color of an image.

    Samples the four corners plus evenly spaced points along each border,
    buckets every channel down to a multiple of 10 and returns the most
    frequent bucket. Ties go to the bucket seen first.
    """
    w, h = buffer.width, buffer.height
    samples = [
        buffer.pixel(0, 0),
        buffer.pixel(w - 1, 0),
        buffer.pixel(0, h - 1),
        buffer.pixel(w - 1, h - 1),
    ]
    for i in range(0, w, max(1, w // ColorConstants.BORDER_SAMPLES)):
        samples.append(buffer.pixel(i, 0))
        samples.append(buffer.pixel(i, h - 1))
    for i in range(0, h, max(1, h // ColorConstants.BORDER_SAMPLES)):
        samples.append(buffer.pixel(0, i))
        samples.append(buffer.pixel(w - 1, i))

    bucket = ColorConstants.BUCKET_SIZE
    counts = Counter(tuple(c // bucket * bucket for c in sample) for sample in samples)
    background = counts.most_common(1)[0][0]
    logger.debug(f"Background color estimated as {background} from {len(samples)} samples")
    return background


def foreground_mask(buffer: PixelBuffer, background: Sequence[int], threshold: int) -> np.ndarray:
    """Boolean (H, W) mask, True where a pixel is not similar to the background."""
    return ~similarity_mask(buffer.rgb, background, threshold)
