"""
Image format conversion utilities.

Handles conversions between the formats the extraction pipeline exchanges:
- NumPy arrays (RGB/RGBA, as held by PixelBuffer)
- PIL Images
- Encoded PNG bytes
- Base64 encoded strings
"""

import base64
import io
import logging
from typing import Union

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


def numpy_to_pil(image: np.ndarray) -> Image.Image:
    """
    Convert an RGB or RGBA NumPy array to a PIL Image.

    Args:
        image: uint8 array of shape (H, W), (H, W, 3) or (H, W, 4)

    Returns:
        PIL Image in L, RGB or RGBA mode
    """
    return Image.fromarray(np.ascontiguousarray(image, dtype=np.uint8))


def encode_png(image: Union[np.ndarray, Image.Image]) -> bytes:
    """
    Encode an image as lossless PNG, preserving the alpha channel.

    Args:
        image: PIL Image or NumPy array

    Returns:
        PNG bytes
    """
    if isinstance(image, np.ndarray):
        image = numpy_to_pil(image)

    buffer = io.BytesIO()
    try:
        image.save(buffer, format="PNG")
    except (OSError, ValueError) as e:
        logger.error(f"Failed to encode PNG: {e}")
        raise
    return buffer.getvalue()


def to_base64(image: Union[np.ndarray, Image.Image, bytes]) -> str:
    """
    Convert image to base64 string.

    Args:
        image: Raw encoded bytes, or an image to encode as PNG first

    Returns:
        Base64 encoded string
    """
    if not isinstance(image, bytes):
        image = encode_png(image)
    return base64.b64encode(image).decode("utf-8")


def to_data_url(image_bytes: bytes, mime_type: str) -> str:
    """Build a ``data:`` URL for sending an image to a vision API."""
    return f"data:{mime_type};base64,{to_base64(image_bytes)}"
