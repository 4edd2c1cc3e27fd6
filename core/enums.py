"""
Centralized enums for the region extraction system.
"""

from enum import Enum


class ExtractionMode(str, Enum):
    """Extraction strategies selectable per request."""

    GRID = "grid"
    SECTIONS = "sections"
    COMPONENTS = "components"
    CONTOUR = "contour"
    FLOODFILL = "floodfill"
    UI_CARDS = "ui_cards"
    AI_REGIONS = "ai_regions"
    SMART_DETECT = "smart_detect"
    ICONS = "icons"
    LOGOS = "logos"
    CLOUD_VISION = "cloud_vision"
    PEOPLE = "people"
    HYBRID = "hybrid"


# Strategies that may feed hybrid fusion alongside the oracles
HYBRID_PIXEL_STRATEGIES = frozenset(
    {
        ExtractionMode.CONTOUR,
        ExtractionMode.FLOODFILL,
        ExtractionMode.UI_CARDS,
        ExtractionMode.COMPONENTS,
    }
)


class RegionSource(str, Enum):
    """Provenance of a detected region."""

    AI = "ai"
    CLOUD = "cloud"
    CONTOUR = "contour"
    FLOODFILL = "floodfill"
    CARD = "card"
    EDGE = "edge"
    VARIANCE = "variance"
    DIVIDER = "divider"
    GRID = "grid"


class ComponentMethod(str, Enum):
    """Pixel analysis used by the components mode."""

    SOBEL = "sobel"
    VARIANCE = "variance"


class AIExtractionType(str, Enum):
    """Prompt variants for the vision-completion oracle."""

    ALL = "all"
    ICONS = "icons"
    LOGOS = "logos"


class CloudProvenance(str, Enum):
    """Which cloud analysis feature produced a region."""

    OBJECTS = "objects"
    CAPTIONS = "captions"
    PEOPLE = "people"
    SMART_CROPS = "smartCrops"
