"""
Region cropper / exporter.

Turns a bounding box into a padded, clamped PNG crop of the source buffer.
Failures are reported through ``CropResult`` so one bad region never aborts
a batch.
"""

import logging
from typing import Optional, Tuple

from core.constants import ErrorMessages, ImageConstants
from core.image.converters import encode_png, to_base64
from core.pixel_buffer import PixelBuffer
from schemas import BoundingBox, CropResult

logger = logging.getLogger(__name__)


class RegionCropper:
    """Crop regions out of a decoded pixel buffer."""

    def __init__(
        self,
        padding: int = ImageConstants.DEFAULT_CROP_PADDING,
        min_size: int = ImageConstants.MIN_REGION_SIZE,
    ):
        self.padding = padding
        self.min_size = min_size

    def resolve_rect(
        self, buffer: PixelBuffer, box: BoundingBox, padding: Optional[int] = None
    ) -> Tuple[int, int, int, int]:
        """
        Compute the clamped source rectangle for a box.

        Normalized coordinates win when both normalized sizes exceed 0.001,
        otherwise the pixel fields are used.

        Args:
            buffer: Source image
            box: Region to crop
            padding: Pixels added on every side (defaults to the cropper padding)

        Returns:
            (x, y, width, height) inside the image

        Raises:
            ValueError: If the box has no usable coordinates or is too small
        """
        W, H = buffer.width, buffer.height
        pad = self.padding if padding is None else padding

        if (
            box.normalized_width > ImageConstants.NORMALIZED_EPSILON
            and box.normalized_height > ImageConstants.NORMALIZED_EPSILON
        ):
            x = int(round(box.normalized_x * W))
            y = int(round(box.normalized_y * H))
            width = int(round(box.normalized_width * W))
            height = int(round(box.normalized_height * H))
        elif box.width > 0 and box.height > 0:
            x, y, width, height = box.x, box.y, box.width, box.height
        else:
            raise ValueError(ErrorMessages.INVALID_BOX)

        x = max(0, x - pad)
        y = max(0, y - pad)
        width = min(width + pad * 2, W - x)
        height = min(height + pad * 2, H - y)

        if width < self.min_size or height < self.min_size:
            raise ValueError(ErrorMessages.REGION_TOO_SMALL)

        x = max(0, min(x, W - 1))
        y = max(0, min(y, H - 1))
        width = min(width, W - x)
        height = min(height, H - y)
        return x, y, width, height

    def crop(
        self, buffer: PixelBuffer, box: BoundingBox, padding: Optional[int] = None
    ) -> CropResult:
        """
        Crop a box to a standalone PNG.

        Args:
            buffer: Source image
            box: Region to crop
            padding: Optional padding override

        Returns:
            CropResult with PNG bytes and base64 on success, an error otherwise
        """
        try:
            x, y, width, height = self.resolve_rect(buffer, box, padding)
        except ValueError as e:
            logger.debug(f"Skipping crop of {box.to_dict()}: {e}")
            return CropResult(success=False, error=str(e))

        try:
            png_bytes = encode_png(buffer.crop(x, y, width, height))
        except (OSError, ValueError) as e:
            logger.error(f"Failed to crop image region at ({x},{y}) size ({width}x{height}): {e}")
            return CropResult(success=False, error=f"Crop failed: {e}")

        return CropResult(
            success=True,
            image_data=png_bytes,
            base64_data=to_base64(png_bytes),
            width=width,
            height=height,
            bounding_box=BoundingBox.from_pixels(x, y, width, height, buffer.width, buffer.height),
        )
