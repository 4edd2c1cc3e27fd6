"""
Geometric operations on bounding boxes and masks.

Provides the merge and suppression passes shared by the detection
strategies and the region reconciler.
"""

import functools
import logging
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

import cv2
import numpy as np

from core.constants import OverlapThresholds
from schemas import BoundingBox

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DisjointSet:
    """Union-find over ``0..size-1`` with path halving and union by rank."""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, item: int) -> int:
        parent = self.parent
        while parent[item] != item:
            parent[item] = parent[parent[item]]
            item = parent[item]
        return item

    def union(self, a: int, b: int) -> bool:
        """Join the sets of ``a`` and ``b``. Returns False if already joined."""
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return False
        if self.rank[root_a] < self.rank[root_b]:
            root_a, root_b = root_b, root_a
        self.parent[root_b] = root_a
        if self.rank[root_a] == self.rank[root_b]:
            self.rank[root_a] += 1
        return True

    def groups(self) -> List[List[int]]:
        """Members of each set, ordered by their smallest member."""
        grouped = {}
        for item in range(len(self.parent)):
            grouped.setdefault(self.find(item), []).append(item)
        return sorted(grouped.values(), key=lambda members: members[0])


def merge_to_fixed_point(
    boxes: Sequence[BoundingBox],
    should_merge: Callable[[BoundingBox, BoundingBox], bool],
) -> List[BoundingBox]:
    """
    Merge boxes until no pair satisfies ``should_merge``.

    Each pass unions every pair that satisfies the predicate and replaces
    each group with its bounding union. Merged boxes can grow into new
    neighbours, so passes repeat until the box count stops changing.

    Args:
        boxes: Input boxes in detection order
        should_merge: Symmetric pairwise predicate

    Returns:
        Merged boxes, ordered by the first member of each group
    """
    current = list(boxes)
    passes = 0
    while len(current) > 1:
        passes += 1
        sets = DisjointSet(len(current))
        for i in range(len(current)):
            for j in range(i + 1, len(current)):
                if sets.find(i) != sets.find(j) and should_merge(current[i], current[j]):
                    sets.union(i, j)

        groups = sets.groups()
        if len(groups) == len(current):
            break
        current = [
            functools.reduce(lambda a, b: a.union(b), (current[k] for k in members))
            for members in groups
        ]

    logger.debug(f"Merged {len(boxes)} boxes into {len(current)} after {passes} passes")
    return current


def overlaps_or_adjacent(a: BoundingBox, b: BoundingBox) -> bool:
    """Default merge predicate: 30% overlap or within 5px along a shared band."""
    return a.significantly_overlaps(b, OverlapThresholds.MERGE) or a.is_adjacent(
        b, OverlapThresholds.ADJACENT_MARGIN
    )


def merge_overlapping_regions(boxes: Sequence[BoundingBox]) -> List[BoundingBox]:
    """Merge with the default overlap-or-adjacent predicate."""
    return merge_to_fixed_point(boxes, overlaps_or_adjacent)


def suppress_overlaps(
    candidates: Iterable[T],
    threshold: float,
    key: Callable[[T], BoundingBox] = lambda candidate: candidate,
    accepted: Optional[List[T]] = None,
) -> List[T]:
    """
    First-accepted-wins non-maximum suppression.

    A candidate is kept only if it does not significantly overlap any
    previously kept candidate at ``threshold``.

    Args:
        candidates: Items in priority order
        threshold: Significant-overlap threshold
        key: Extracts the box from an item
        accepted: Already accepted items (extended in place)

    Returns:
        The accepted list
    """
    kept = accepted if accepted is not None else []
    kept_boxes = [key(item) for item in kept]
    for candidate in candidates:
        box = key(candidate)
        if any(box.significantly_overlaps(other, threshold) for other in kept_boxes):
            continue
        kept.append(candidate)
        kept_boxes.append(box)
    return kept


def tighten_bounds(mask: np.ndarray, box: BoundingBox) -> BoundingBox:
    """
    Shrink a box to the smallest rectangle holding any True mask pixel.

    Returns the box unchanged when it contains no masked pixel.
    """
    window = mask[box.y : box.y2, box.x : box.x2]
    if window.size == 0:
        return box
    rows = np.flatnonzero(window.any(axis=1))
    if rows.size == 0:
        return box
    cols = np.flatnonzero(window.any(axis=0))
    return BoundingBox(
        x=box.x + int(cols[0]),
        y=box.y + int(rows[0]),
        width=int(cols[-1] - cols[0]) + 1,
        height=int(rows[-1] - rows[0]) + 1,
    )


def components_from_stats(stats: np.ndarray) -> List[BoundingBox]:
    """
    Convert ``cv2.connectedComponentsWithStats`` stats into boxes.

    Label 0 is the background and is skipped. Components come back in label
    order, which follows a row-major scan of their first pixel.
    """
    boxes = []
    for label in range(1, stats.shape[0]):
        boxes.append(
            BoundingBox(
                x=int(stats[label, cv2.CC_STAT_LEFT]),
                y=int(stats[label, cv2.CC_STAT_TOP]),
                width=int(stats[label, cv2.CC_STAT_WIDTH]),
                height=int(stats[label, cv2.CC_STAT_HEIGHT]),
            )
        )
    return boxes
