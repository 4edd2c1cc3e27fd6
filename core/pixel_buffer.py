"""
Decoded pixel buffer shared read-only by all detection strategies.

A buffer is created once per request from the raw image bytes and dropped
when the request finishes. Nothing here is cached across calls.
"""

import base64
import binascii
import io
import logging
from typing import List, Optional, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from api.exceptions import ImageDecodeException
from core.constants import ErrorMessages

logger = logging.getLogger(__name__)

Color = Tuple[int, int, int]


class PixelBuffer:
    """
    Immutable RGBA view of a decoded image.

    Detectors read either the int16 ``rgb`` array (so channel differences
    never wrap around) or the channel-average ``gray`` array. The BFS based
    strategies use ``flat_channels`` to avoid numpy scalar overhead in their
    inner loops.
    """

    def __init__(self, rgba: np.ndarray):
        if rgba.ndim != 3 or rgba.shape[2] != 4:
            raise ValueError(f"Expected HxWx4 RGBA array, got shape {rgba.shape}")
        if rgba.shape[0] == 0 or rgba.shape[1] == 0:
            raise ImageDecodeException(ErrorMessages.DECODE_FAILED)

        self._rgba = np.ascontiguousarray(rgba, dtype=np.uint8)
        self._rgba.setflags(write=False)
        self.height, self.width = self._rgba.shape[:2]

        self._rgb: Optional[np.ndarray] = None
        self._gray: Optional[np.ndarray] = None
        self._flat: Optional[Tuple[List[int], List[int], List[int]]] = None

    @classmethod
    def from_array(cls, image: np.ndarray) -> "PixelBuffer":
        """
        Build a buffer from an RGB, RGBA or single-channel uint8 array.

        Args:
            image: Array of shape (H, W), (H, W, 3) or (H, W, 4)

        Returns:
            PixelBuffer with an opaque alpha channel added where missing
        """
        array = np.asarray(image, dtype=np.uint8)
        if array.ndim == 2:
            array = np.stack([array, array, array], axis=2)
        if array.ndim != 3 or array.shape[2] not in (3, 4):
            raise ValueError(f"Unsupported image shape: {array.shape}")
        if array.shape[2] == 3:
            alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
            array = np.concatenate([array, alpha], axis=2)
        return cls(array)

    @classmethod
    def from_bytes(cls, data: bytes) -> "PixelBuffer":
        """
        Decode raw image bytes (PNG, JPEG, GIF, BMP, WebP...).

        Raises:
            ImageDecodeException: If the bytes are empty or not an image
        """
        if not data:
            raise ImageDecodeException(ErrorMessages.DECODE_FAILED)
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.load()
                rgba = np.array(image.convert("RGBA"))
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            logger.warning(f"Image decode failed: {e}")
            raise ImageDecodeException(ErrorMessages.DECODE_FAILED)
        return cls(rgba)

    @classmethod
    def from_base64(cls, value: str) -> "PixelBuffer":
        """Decode a base64 string, with or without a ``data:`` URL prefix."""
        return cls.from_bytes(decode_base64_image(value))

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height) of the image."""
        return self.width, self.height

    @property
    def rgba(self) -> np.ndarray:
        return self._rgba

    @property
    def rgb(self) -> np.ndarray:
        """Color channels as int16, shape (H, W, 3)."""
        if self._rgb is None:
            self._rgb = self._rgba[:, :, :3].astype(np.int16)
            self._rgb.setflags(write=False)
        return self._rgb

    @property
    def gray(self) -> np.ndarray:
        """Channel-average luminance ``(R + G + B) // 3`` as int16, shape (H, W)."""
        if self._gray is None:
            self._gray = (self.rgb.sum(axis=2) // 3).astype(np.int16)
            self._gray.setflags(write=False)
        return self._gray

    def pixel(self, x: int, y: int) -> Color:
        r, g, b = self._rgba[y, x, :3]
        return int(r), int(g), int(b)

    def flat_channels(self) -> Tuple[List[int], List[int], List[int]]:
        """Row-major python lists of the R, G and B channels."""
        if self._flat is None:
            self._flat = (
                self._rgba[:, :, 0].ravel().tolist(),
                self._rgba[:, :, 1].ravel().tolist(),
                self._rgba[:, :, 2].ravel().tolist(),
            )
        return self._flat

    def crop(self, x: int, y: int, width: int, height: int) -> Image.Image:
        """
        Copy a rectangle into a new RGBA image of exactly ``width x height``.

        The rectangle must already be clamped to the image.
        """
        region = self._rgba[y : y + height, x : x + width]
        canvas = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        canvas.paste(Image.fromarray(np.ascontiguousarray(region)), (0, 0))
        return canvas


class VisitedGrid:
    """Dense row-major visited map owned by a single detection call."""

    __slots__ = ("width", "height", "cells")

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self.cells = bytearray(width * height)

    def seen(self, x: int, y: int) -> bool:
        return self.cells[y * self.width + x] != 0

    def mark(self, x: int, y: int) -> None:
        self.cells[y * self.width + x] = 1

    def mark_box(self, x: int, y: int, width: int, height: int) -> None:
        """Mark every cell of a rectangle, clipped to the grid."""
        x1, y1 = max(0, x), max(0, y)
        x2, y2 = min(self.width, x + width), min(self.height, y + height)
        if x2 <= x1 or y2 <= y1:
            return
        run = b"\x01" * (x2 - x1)
        for row in range(y1, y2):
            start = row * self.width + x1
            self.cells[start : start + len(run)] = run


def decode_base64_image(value: str) -> bytes:
    """
    Decode a base64 image payload.

    Raises:
        ImageDecodeException: If the payload is not valid base64
    """
    if value.startswith("data:"):
        _, _, value = value.partition(",")
    try:
        return base64.b64decode(value, validate=False)
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Invalid base64 payload: {e}")
        raise ImageDecodeException(ErrorMessages.DECODE_FAILED)
