"""
Size and aspect-ratio based shape classification.

Every strategy labels its regions with the same rule sequence but its own
thresholds, so the thresholds live in named profiles instead of one
function per strategy. Rules are checked in order: small, avatar, wide,
tall, square, large, short, and finally the default label.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Union


@dataclass(frozen=True)
class ShapeProfile:
    """Threshold table for one family of detections."""

    name: str
    small_max: int
    small_label: str
    wide_ratio: float
    wide_label: str
    tall_ratio: float
    tall_label: str
    large_min_width: int
    large_min_height: int
    large_label: str
    default_label: str
    avatar_max: Optional[int] = None
    avatar_tolerance: float = 0.3
    avatar_label: str = "avatar"
    square_tolerance: Optional[float] = None
    square_label: str = "square"
    short_max_height: Optional[int] = None
    short_min_width: int = 0
    short_label: str = "button"

    def classify(self, width: int, height: int) -> str:
        aspect = width / height if height > 0 else 0.0

        if width <= self.small_max and height <= self.small_max:
            return self.small_label
        if (
            self.avatar_max is not None
            and width <= self.avatar_max
            and height <= self.avatar_max
            and abs(aspect - 1) < self.avatar_tolerance
        ):
            return self.avatar_label
        if aspect > self.wide_ratio:
            return self.wide_label
        if aspect < self.tall_ratio:
            return self.tall_label
        if self.square_tolerance is not None and abs(aspect - 1) < self.square_tolerance:
            return self.square_label
        if width > self.large_min_width and height > self.large_min_height:
            return self.large_label
        if (
            self.short_max_height is not None
            and height <= self.short_max_height
            and width > self.short_min_width
        ):
            return self.short_label
        return self.default_label


# Contour and flood-fill regions
REGION_PROFILE = ShapeProfile(
    name="region",
    small_max=64,
    small_label="icon",
    avatar_max=120,
    wide_ratio=3.0,
    wide_label="banner",
    tall_ratio=0.33,
    tall_label="sidebar",
    square_tolerance=0.2,
    square_label="square",
    large_min_width=200,
    large_min_height=150,
    large_label="card",
    short_max_height=80,
    short_min_width=100,
    default_label="image",
)

# Solid-color UI cards
CARD_PROFILE = ShapeProfile(
    name="card",
    small_max=80,
    small_label="widget-small",
    wide_ratio=2.5,
    wide_label="banner-card",
    tall_ratio=0.5,
    tall_label="vertical-card",
    square_tolerance=0.3,
    square_label="square-card",
    large_min_width=150,
    large_min_height=100,
    large_label="dashboard-card",
    default_label="card",
)

# Edge and variance components
COMPONENT_PROFILE = ShapeProfile(
    name="component",
    small_max=48,
    small_label="icon",
    avatar_max=100,
    wide_ratio=3.0,
    wide_label="banner",
    tall_ratio=0.3,
    tall_label="sidebar",
    large_min_width=200,
    large_min_height=100,
    large_label="card",
    short_max_height=60,
    short_min_width=100,
    default_label="component",
)

# Boxes reported by the cloud analyzer
CLOUD_PROFILE = ShapeProfile(
    name="cloud",
    small_max=64,
    small_label="icon",
    avatar_max=120,
    wide_ratio=3.0,
    wide_label="banner",
    tall_ratio=0.33,
    tall_label="vertical",
    large_min_width=150,
    large_min_height=100,
    large_label="card",
    default_label="image",
)

SHAPE_PROFILES: Dict[str, ShapeProfile] = {
    profile.name: profile
    for profile in (REGION_PROFILE, CARD_PROFILE, COMPONENT_PROFILE, CLOUD_PROFILE)
}


def classify_shape(width: int, height: int, profile: Union[str, ShapeProfile]) -> str:
    """
    Label a box by size and aspect ratio.

    Args:
        width: Box width in pixels
        height: Box height in pixels
        profile: Profile instance or registered profile name

    Returns:
        Shape tag such as "icon", "banner" or "card"
    """
    if isinstance(profile, str):
        try:
            profile = SHAPE_PROFILES[profile]
        except KeyError:
            raise ValueError(f"Unknown shape profile: {profile}")
    return profile.classify(width, height)
