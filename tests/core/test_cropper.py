"""
Tests for RegionCropper
"""

import base64
import io

from PIL import Image

from core.constants import ErrorMessages
from core.cropper import RegionCropper
from schemas import BoundingBox


class TestRegionCropper:
    """Test padded, clamped PNG crops"""

    def test_pixel_box_gets_padding(self, red_rect_buffer):
        """A 100x60 box is cropped with 2px padding on every side"""
        result = RegionCropper().crop(red_rect_buffer, BoundingBox(x=50, y=50, width=100, height=60))

        assert result.success
        assert (result.width, result.height) == (104, 64)
        assert result.bounding_box.to_dict() == {"x": 48, "y": 48, "width": 104, "height": 64}

        image = Image.open(io.BytesIO(result.image_data))
        assert image.format == "PNG"
        assert image.size == (104, 64)
        assert image.mode == "RGBA"
        assert image.getpixel((10, 10))[:3] == (220, 30, 30)

    def test_normalized_coordinates_win(self, red_rect_buffer):
        """Normalized coordinates are preferred over pixel ones"""
        box = BoundingBox(
            x=0,
            y=0,
            width=10,
            height=10,
            normalized_x=0.125,
            normalized_y=50 / 300,
            normalized_width=0.25,
            normalized_height=0.2,
        )
        result = RegionCropper(padding=0).crop(red_rect_buffer, box)
        assert result.bounding_box.to_dict() == {"x": 50, "y": 50, "width": 100, "height": 60}

    def test_clamped_at_image_edge(self, red_rect_buffer):
        """Padding is clamped to the image bounds"""
        result = RegionCropper().crop(red_rect_buffer, BoundingBox(x=0, y=0, width=20, height=20))
        assert result.success
        assert result.bounding_box.to_dict() == {"x": 0, "y": 0, "width": 22, "height": 22}

    def test_region_too_small(self, red_rect_buffer):
        """A box that stays under 4px after padding fails"""
        result = RegionCropper(padding=0).crop(red_rect_buffer, BoundingBox(x=10, y=10, width=3, height=30))
        assert not result.success
        assert result.error == ErrorMessages.REGION_TOO_SMALL

    def test_box_outside_image(self, red_rect_buffer):
        """A box beyond the right edge clamps to nothing and fails"""
        result = RegionCropper().crop(red_rect_buffer, BoundingBox(x=420, y=10, width=30, height=30))
        assert not result.success

    def test_zero_box(self, red_rect_buffer):
        """A box without coordinates is rejected"""
        result = RegionCropper().crop(red_rect_buffer, BoundingBox())
        assert not result.success
        assert result.error == ErrorMessages.INVALID_BOX

    def test_base64_matches_bytes(self, red_rect_buffer):
        """base64_data encodes image_data"""
        result = RegionCropper().crop(red_rect_buffer, BoundingBox(x=50, y=50, width=100, height=60))
        assert base64.b64decode(result.base64_data) == result.image_data
