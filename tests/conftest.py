"""
Pytest configuration and fixtures for Image Region Extractor tests
"""

from unittest.mock import AsyncMock, MagicMock

import cv2
import numpy as np
import pytest

from config import ExtractionConfig
from core.pixel_buffer import PixelBuffer
from schemas import CloudAnalysis, CloudRegion
from services.extraction_service import ExtractionService
from tests.images import BLUE, RED, WHITE, blank, encode_png, oracle_reply


@pytest.fixture
def red_rect_image():
    """400x300 white image with a 100x60 red rectangle at (50, 50)"""
    image = blank(400, 300)
    cv2.rectangle(image, (50, 50), (149, 109), RED, -1)
    return image


@pytest.fixture
def red_rect_png(red_rect_image):
    return encode_png(red_rect_image)


@pytest.fixture
def red_rect_buffer(red_rect_image):
    return PixelBuffer.from_array(red_rect_image)


@pytest.fixture
def two_section_image():
    """200x200 image: red top half, a white line at row 100, blue bottom half"""
    image = blank(200, 200, RED)
    image[100:] = BLUE
    image[100] = WHITE
    return image


@pytest.fixture
def uniform_buffer():
    """50x50 single-color image"""
    return PixelBuffer.from_array(blank(50, 50, (120, 180, 90)))


@pytest.fixture
def tiny_buffer():
    """1x1 image"""
    return PixelBuffer.from_array(blank(1, 1, (10, 20, 30)))


@pytest.fixture
def card_image():
    """400x300 white page with one solid 150x100 card at (40, 40)"""
    image = blank(400, 300)
    cv2.rectangle(image, (40, 40), (189, 139), (60, 120, 200), -1)
    return image


@pytest.fixture
def noisy_patch_image():
    """White page with an 80x60 noise patch (photo-like texture) at (100, 100)"""
    rng = np.random.default_rng(7)
    image = blank(320, 240)
    image[100:160, 100:180] = rng.integers(80, 121, size=(60, 80, 3), dtype=np.uint8)
    return image


@pytest.fixture
def screenshot_image():
    """
    Simple UI screenshot: white page, a blue header bar, a red photo block
    and a small dark icon.
    """
    image = blank(480, 360)
    cv2.rectangle(image, (0, 0), (479, 39), BLUE, -1)
    cv2.rectangle(image, (40, 80), (239, 219), RED, -1)
    cv2.rectangle(image, (320, 100), (351, 131), (30, 30, 30), -1)
    return image


@pytest.fixture
def screenshot_png(screenshot_image):
    return encode_png(screenshot_image)


@pytest.fixture
def mock_completion_provider():
    """Vision-completion provider mock locating the red rectangle of red_rect_image"""
    mock = MagicMock()
    # (50, 50, 100, 60) in a 400x300 image
    mock.complete = AsyncMock(return_value=oracle_reply((0.125, 0.1667, 0.25, 0.2)))
    return mock


@pytest.fixture
def mock_cloud_analyzer():
    """Cloud analyzer mock reporting one captioned object and one person"""
    mock = MagicMock()
    mock.analyze = AsyncMock(
        return_value=CloudAnalysis(
            success=True,
            regions=[
                CloudRegion(
                    x=48, y=48, width=104, height=64, caption="a red photo", confidence=0.8, tags=["photo"]
                )
            ],
            image_width=400,
            image_height=300,
        )
    )
    mock.detect_people = AsyncMock(
        return_value=CloudAnalysis(
            success=True,
            regions=[CloudRegion(x=50, y=50, width=100, height=60, confidence=0.9)],
            image_width=400,
            image_height=300,
        )
    )
    return mock


@pytest.fixture
def extraction_service():
    """ExtractionService without external providers"""
    return ExtractionService(settings=ExtractionConfig())
