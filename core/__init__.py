"""
Core modules for the image region extractor
"""

from .pixel_buffer import PixelBuffer, VisitedGrid

__all__ = [
    "PixelBuffer",
    "VisitedGrid",
]
