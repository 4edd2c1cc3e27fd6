"""
AI-oracle region prompts and response parsing.

The vision-completion provider is asked for a JSON array of regions with
normalized coordinates. Its reply is untrusted free text: everything in it
is validated and clamped before it becomes a DetectedRegion.
"""

import json
import logging
import math
import re
from typing import Any, List, Optional, Union

from pydantic import Field

from core.constants import AIDefaults, ImageConstants, RefineDefaults
from core.enums import AIExtractionType, RegionSource
from schemas import BoundingBox, DetectedRegion
from schemas.base import BaseDetectionParams

logger = logging.getLogger(__name__)


class AIRegionParams(BaseDetectionParams):
    """AI region extraction parameters."""

    extraction_type: AIExtractionType = Field(
        default=AIExtractionType.ALL,
        description="Which kind of visual element the prompt asks for",
    )


class SmartDetectParams(BaseDetectionParams):
    """Smart detection: AI regions snapped to nearby edges."""

    refine: bool = Field(default=True, description="Snap the oracle boxes to luminance edges")
    refine_threshold: int = Field(
        default=RefineDefaults.THRESHOLD,
        ge=1,
        le=255,
        description="Luminance difference that counts as an edge",
    )


SYSTEM_PROMPT = """You locate visual elements inside screenshots and composite images.

Find every distinct image, photo, icon, logo, illustration or other graphic
and report where it is.

Rules:
1. Reply with a JSON array only. No prose and no markdown fences.
2. Coordinates are normalized to the 0.0-1.0 range of the image size.
3. normalizedX and normalizedY are the top-left corner of the box.
4. Boxes are used to crop the image, so make them tight and accurate.
5. Report small elements too.
6. Reply with [] when there is nothing to report.
"""

_TYPE_INSTRUCTIONS = {
    AIExtractionType.ICONS: """Report ICONS and other small symbolic graphics only, for example:
- navigation icons such as home, menu, back or search
- action icons such as edit, delete, add, share or download
- status indicators such as notifications, battery or signal strength
- social media icons and media controls
- emoji and small decorative symbols

Icons are usually under 100x100 pixels.""",
    AIExtractionType.LOGOS: """Report LOGOS and branding only, for example:
- company, product and app logos
- brand marks and watermarks
- certification badges
- partner and sponsor logos

Logos often combine a symbol with text.""",
    AIExtractionType.ALL: """Report every distinct visual element, for example:
- photographs and product images
- icons and small graphics
- logos and brand marks
- illustrations, charts and diagrams
- embedded screenshots
- avatars and profile pictures
- background images with clear edges""",
}

_RESPONSE_FORMAT = """[
  {
    "description": "What the element shows",
    "imageType": "photo|icon|logo|illustration|chart|avatar|screenshot|background|graphic",
    "boundingBox": {
      "normalizedX": 0.15,
      "normalizedY": 0.20,
      "normalizedWidth": 0.25,
      "normalizedHeight": 0.30
    },
    "confidence": 85,
    "suggestedFilename": "short-descriptive-name.png"
  }
]"""


def build_extraction_prompt(
    image_width: int,
    image_height: int,
    extraction_type: Union[AIExtractionType, str] = AIExtractionType.ALL,
) -> str:
    """
    Build the user prompt sent with the image.

    Args:
        image_width: Source width in pixels
        image_height: Source height in pixels
        extraction_type: "all", "icons" or "logos"; unknown values mean "all"

    Returns:
        Prompt text
    """
    try:
        kind = AIExtractionType(extraction_type)
    except ValueError:
        kind = AIExtractionType.ALL

    return (
        f"This image is {image_width}x{image_height} pixels.\n\n"
        f"{_TYPE_INSTRUCTIONS[kind]}\n\n"
        "Give a bounding box for each element you find, as a JSON array shaped exactly like this:\n"
        f"{_RESPONSE_FORMAT}\n\n"
        "normalizedX runs from 0.0 at the left edge to 1.0 at the right edge and marks the left side of the box.\n"
        "normalizedY runs from 0.0 at the top edge to 1.0 at the bottom edge and marks the top of the box.\n"
        "normalizedWidth and normalizedHeight are fractions of the image width and height.\n\n"
        "Return [] if there are no elements."
    )


_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)
_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")
_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")
_TRAILING_COMMA_PATTERN = re.compile(r",\s*([\]}])")


def _number(value: Any) -> Optional[float]:
    """Finite float from a JSON number or numeric string, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return float(value)


def _text(element: dict, key: str, default: str) -> str:
    value = element.get(key)
    return value if isinstance(value, str) and value else default


class AIRegionParser:
    """Parses the vision-completion reply into validated regions."""

    def extract_json(self, response: str) -> Optional[str]:
        """
        Isolate the JSON array in a free-text reply.

        Code fences are removed first. A bare object is wrapped into a
        one-element array.

        Returns:
            JSON text, or None when the reply holds no array or object
        """
        cleaned = _FENCE_PATTERN.sub("", response).strip()

        match = _ARRAY_PATTERN.search(cleaned)
        if match:
            candidate = match.group(0)
        else:
            match = _OBJECT_PATTERN.search(cleaned)
            if not match:
                return None
            candidate = f"[{match.group(0)}]"

        return candidate

    def load_json(self, payload: str) -> Any:
        """
        Decode the isolated JSON.

        Trailing commas are only stripped when the payload does not decode
        as is, so commas inside description strings survive.
        """
        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            return json.loads(_TRAILING_COMMA_PATTERN.sub(r"\1", payload))

    def parse(self, response: Optional[str], image_width: int, image_height: int) -> List[DetectedRegion]:
        """
        Parse a reply into regions.

        Never raises: an unusable reply yields an empty list and each
        malformed element is skipped on its own.

        Args:
            response: Raw completion text
            image_width: Source width in pixels
            image_height: Source height in pixels

        Returns:
            Regions with source "ai", clipped to the image
        """
        if not response or not response.strip():
            logger.warning("Empty response from vision completion provider")
            return []

        payload = self.extract_json(response)
        if payload is None:
            logger.warning(f"No JSON found in completion response: {response[:200]}")
            return []

        try:
            elements = self.load_json(payload)
        except (ValueError, RecursionError) as e:
            logger.warning(f"Completion response is not valid JSON: {e}")
            return []
        if not isinstance(elements, list):
            return []

        regions = []
        for element in elements:
            region = self.parse_element(element, image_width, image_height)
            if region is not None:
                regions.append(region)

        logger.info(f"Parsed {len(regions)} of {len(elements)} AI regions")
        return regions

    def parse_element(self, element: Any, image_width: int, image_height: int) -> Optional[DetectedRegion]:
        """Validate one array element. Returns None when it must be skipped."""
        if not isinstance(element, dict):
            logger.debug(f"Skipping non-object region element: {element!r}")
            return None
        bbox = element.get("boundingBox")
        if not isinstance(bbox, dict):
            logger.debug("Skipping region element without boundingBox")
            return None

        nx = _number(bbox.get("normalizedX", 0))
        ny = _number(bbox.get("normalizedY", 0))
        nw = _number(bbox.get("normalizedWidth", 0))
        nh = _number(bbox.get("normalizedHeight", 0))
        if None in (nx, ny, nw, nh):
            logger.debug(f"Skipping region element with non-numeric box: {bbox}")
            return None
        if nw <= 0 or nh <= 0:
            logger.debug(f"Skipping region with non-positive size {nw}x{nh}")
            return None

        nx = max(0.0, min(nx, 1.0))
        ny = max(0.0, min(ny, 1.0))
        nw = max(AIDefaults.MIN_NORMALIZED_SIZE, min(nw, 1.0 - nx))
        nh = max(AIDefaults.MIN_NORMALIZED_SIZE, min(nh, 1.0 - ny))

        box = BoundingBox.from_normalized(nx, ny, nw, nh, image_width, image_height)
        if not self.is_within_image(box, image_width, image_height):
            logger.debug(f"Skipping out-of-bounds region {box.to_dict()}")
            return None

        box = box.clip(image_width, image_height)
        if not box.is_valid(ImageConstants.MIN_REGION_SIZE):
            return None

        confidence = _number(element.get("confidence"))
        if confidence is None:
            confidence = AIDefaults.CONFIDENCE

        return DetectedRegion(
            bounding_box=box,
            source=RegionSource.AI,
            description=_text(element, "description", AIDefaults.DESCRIPTION),
            shape=_text(element, "imageType", AIDefaults.IMAGE_TYPE),
            confidence=confidence,
            suggested_filename=_text(element, "suggestedFilename", AIDefaults.FILENAME),
        )

    @staticmethod
    def is_within_image(box: BoundingBox, image_width: int, image_height: int) -> bool:
        """At least 4px per axis and inside the image plus a small slack."""
        if box.width < ImageConstants.MIN_REGION_SIZE or box.height < ImageConstants.MIN_REGION_SIZE:
            return False
        if box.x < 0 or box.y < 0:
            return False
        slack = AIDefaults.BOUNDS_SLACK
        return box.x2 <= image_width + slack and box.y2 <= image_height + slack
