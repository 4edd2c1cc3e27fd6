"""
Cross-source region reconciliation.

Fuses the region lists of several detection sources into one set with no
significant overlaps. Sources are visited in a fixed priority order and
the first accepted box wins.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import Field, field_validator

from core.constants import OverlapThresholds
from core.enums import HYBRID_PIXEL_STRATEGIES, ExtractionMode, RegionSource
from core.image.geometry import suppress_overlaps
from schemas import DetectedRegion
from schemas.base import BaseDetectionParams

logger = logging.getLogger(__name__)

# Oracles first, then the pixel strategies
SOURCE_PRIORITY: Tuple[RegionSource, ...] = (
    RegionSource.CLOUD,
    RegionSource.AI,
    RegionSource.CONTOUR,
    RegionSource.CARD,
    RegionSource.FLOODFILL,
    RegionSource.EDGE,
    RegionSource.VARIANCE,
    RegionSource.DIVIDER,
    RegionSource.GRID,
)


class HybridParams(BaseDetectionParams):
    """Parameters of the hybrid mode."""

    pixel_strategies: Optional[List[ExtractionMode]] = Field(
        default=None,
        description="Pixel strategies fused with the oracles; the configured list when omitted",
    )
    refine_threshold: Optional[int] = Field(
        default=None, ge=1, le=255, description="Edge threshold for the final refinement"
    )

    @field_validator("pixel_strategies")
    @classmethod
    def _pixel_only(cls, value: Optional[List[ExtractionMode]]) -> Optional[List[ExtractionMode]]:
        if value is None:
            return value
        invalid = [mode.value for mode in value if mode not in HYBRID_PIXEL_STRATEGIES]
        if invalid:
            raise ValueError(f"Not usable as hybrid pixel strategies: {invalid}")
        return list(dict.fromkeys(value))


def order_by_priority(
    groups: Mapping[RegionSource, Sequence[DetectedRegion]],
) -> List[Sequence[DetectedRegion]]:
    """Arrange per-source lists by SOURCE_PRIORITY; unknown sources go last."""
    rank: Dict[RegionSource, int] = {source: i for i, source in enumerate(SOURCE_PRIORITY)}
    ordered = sorted(groups.items(), key=lambda item: rank.get(item[0], len(rank)))
    return [regions for _, regions in ordered]


class RegionReconciler:
    """First-accepted-wins suppression across detection sources."""

    def __init__(self, threshold: float = OverlapThresholds.RECONCILE):
        self.threshold = threshold

    def reconcile(
        self,
        groups: Union[
            Mapping[RegionSource, Sequence[DetectedRegion]],
            Iterable[Sequence[DetectedRegion]],
        ],
        threshold: Optional[float] = None,
    ) -> List[DetectedRegion]:
        """
        Merge region lists into one overlap-free list.

        Args:
            groups: Either a mapping of source to regions, which is ordered by
                SOURCE_PRIORITY, or region lists already in priority order
            threshold: Significant-overlap threshold (defaults to 0.5)

        Returns:
            Accepted regions in acceptance order. No two of them overlap
            significantly at ``threshold``.
        """
        if threshold is None:
            threshold = self.threshold

        if isinstance(groups, Mapping):
            ordered = order_by_priority(groups)
        else:
            ordered = list(groups)

        accepted: List[DetectedRegion] = []
        total = 0
        for regions in ordered:
            total += len(regions)
            suppress_overlaps(
                regions,
                threshold,
                key=lambda region: region.bounding_box,
                accepted=accepted,
            )

        logger.info(
            f"Reconciled {total} regions from {len(ordered)} sources into {len(accepted)} "
            f"(threshold {threshold})"
        )
        return accepted
