"""
Constants and tuning values for the region extraction system.
Centralizes all magic numbers used by the detection strategies.
"""


# Image / box constants
class ImageConstants:
    """Constants related to decoded images and bounding boxes."""

    # Boxes smaller than this on either axis never reach the cropper
    MIN_REGION_SIZE = 4

    # Cropping
    DEFAULT_CROP_PADDING = 2
    NORMALIZED_EPSILON = 0.001

    # Decoding
    DEFAULT_MAX_IMAGE_MB = 25
    DEFAULT_MIME_TYPE = "image/png"


class ColorConstants:
    """Background estimation parameters."""

    BUCKET_SIZE = 10
    BORDER_SAMPLES = 20


class OverlapThresholds:
    """Significant-overlap thresholds used by the different callers."""

    MERGE = 0.3
    DEDUP = 0.5
    NEAR_DUPLICATE = 0.7
    TEXT_ONLY = 0.8
    RECONCILE = 0.5

    ADJACENT_MARGIN = 5


# Strategy defaults
class ContourDefaults:
    """Background-subtraction contour detection."""

    MIN_SIZE = 20
    COLOR_THRESHOLD = 25
    CONFIDENCE = 0.95


class FloodFillDefaults:
    """Flood-fill color region detection."""

    MIN_SIZE = 30
    TOLERANCE = 15
    TOLERANCE_BOOST = 20
    STRIDE = 2
    MAX_PIXELS = 50000
    CONFIDENCE = 0.90


class CardDefaults:
    """Solid-color UI card detection."""

    MIN_SIZE = 40
    SEED_STRIDE = 10
    SEED_INSET = 5
    BACKGROUND_TOLERANCE = 15

    PATCH_SIZE = 20
    PATCH_TOLERANCE = 20
    PATCH_SOLIDITY = 0.8

    EXPAND_TOLERANCE = 25
    EDGE_UNIFORMITY = 0.7

    # Bordered-line pass
    BORDER_LINE_RATIO = 0.3
    BORDER_SAMPLES = 50
    BORDER_BACKGROUND_TOLERANCE = 30
    BORDER_NEIGHBOR_TOLERANCE = 20
    MAX_BORDER_LINES = 64

    PADDING = 6
    CONFIDENCE = 0.92


class EdgeDefaults:
    """Sobel-edge connected components."""

    THRESHOLD = 30
    MIN_SIZE = 20
    MERGE_MARGIN = 5
    CONFIDENCE = 0.85


class VarianceDefaults:
    """Local color variance component detection."""

    MIN_SIZE = 20
    BACKGROUND_TOLERANCE = 20
    WINDOW = 5
    MIN_STD = 5.0
    MAX_STD = 150.0
    DILATE_RADIUS = 3
    MAX_EXTENT = 0.9
    MIN_CONTENT_RATIO = 0.1

    # Text-like rejection
    TEXT_SAMPLE_STEP = 2
    TEXT_COLOR_QUANTUM = 32
    TEXT_MAX_COLORS = 5
    TEXT_DARK = 50
    TEXT_LIGHT = 220
    TEXT_EXTREME_RATIO = 0.4

    PADDING = 4
    CONFIDENCE = 0.85


class SectionDefaults:
    """Horizontal section divider detection."""

    ROW_SAMPLES = 20
    ROW_UNIFORMITY = 20
    COLOR_SHIFT = 30
    MIN_UNIFORM_RUN = 5
    MIN_SHIFT_RUN = 2
    MIN_SECTION_HEIGHT = 20
    CONFIDENCE = 0.90


class GridDefaults:
    """Grid splitter."""

    ROWS = 2
    COLUMNS = 2
    MAX_CELLS_PER_AXIS = 100
    CONFIDENCE = 1.0


class RefineDefaults:
    """Boundary refinement (edge snapping)."""

    SEARCH_PADDING = 10
    THRESHOLD = 30
    HYBRID_THRESHOLD = 25
    PEOPLE_THRESHOLD = 20
    MIN_SIZE = 4


class AIDefaults:
    """Vision-completion oracle response parsing."""

    DESCRIPTION = "Extracted image"
    IMAGE_TYPE = "image"
    CONFIDENCE = 70
    FILENAME = "extracted-image.png"
    BOUNDS_SLACK = 10
    MIN_NORMALIZED_SIZE = 0.01


# Error messages
class ErrorMessages:
    """Standard error and summary messages."""

    DECODE_FAILED = "Failed to decode source image"
    INVALID_BOX = "Invalid bounding box coordinates"
    REGION_TOO_SMALL = "Region too small to extract"
    NO_REGIONS = "No distinct images or graphics were detected in the source image"
    NO_CROPS = "No images could be extracted from the identified regions"
    ORACLE_NOT_CONFIGURED = "Vision completion provider is not configured"
    CLOUD_NOT_CONFIGURED = "Cloud vision analyzer is not configured"


# System Constants
class SystemConstants:
    """Constants for system operations."""

    LOG_LEVEL_DEFAULT = "INFO"
    LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    APP_NAME = "Image Region Extractor"
    APP_VERSION = "1.0.0"
