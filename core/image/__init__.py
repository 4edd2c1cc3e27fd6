"""
Image utilities - modular architecture.

This package provides focused helpers used by the detection strategies:
- colors: Color similarity, background estimation, foreground masks
- converters: Format conversions (NumPy, PIL, PNG, base64)
- geometry: Box merging, suppression and mask tightening
"""

from core.image.colors import (
    color_distance,
    colors_similar,
    estimate_background_color,
    foreground_mask,
    similarity_mask,
)
from core.image.converters import encode_png, numpy_to_pil, to_base64, to_data_url
from core.image.geometry import (
    DisjointSet,
    merge_overlapping_regions,
    merge_to_fixed_point,
    suppress_overlaps,
    tighten_bounds,
)

__all__ = [
    "color_distance",
    "colors_similar",
    "estimate_background_color",
    "foreground_mask",
    "similarity_mask",
    "encode_png",
    "numpy_to_pil",
    "to_base64",
    "to_data_url",
    "DisjointSet",
    "merge_overlapping_regions",
    "merge_to_fixed_point",
    "suppress_overlaps",
    "tighten_bounds",
]
