"""
epimatch/matching/epilines.py

Groups query features whose epipolar lines are (nearly) the same so that the
spatial index is walked once per group instead of once per feature.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from epimatch.geometry import clip_line_to_box, compute_epipolar_lines


@dataclass
class EpilineGroup:
    """Holds a group of features with similar epilines as a single epiline."""
    endpoints: np.ndarray                           # (2,2) clipped representative segment
    features: List[int] = field(default_factory=list)  # image-1 indices, ascending

    @property
    def representative(self) -> int:
        return self.features[0]


def segments_coincide(a: np.ndarray, b: np.ndarray, tolerance: float) -> bool:
    """True if both endpoints of a lie within tolerance of b's, in either order."""
    d_same = max(np.linalg.norm(a[0] - b[0]), np.linalg.norm(a[1] - b[1]))
    if d_same <= tolerance:
        return True
    d_swap = max(np.linalg.norm(a[0] - b[1]), np.linalg.norm(a[1] - b[0]))
    return d_swap <= tolerance


def clipped_epipolar_segments(
    F: np.ndarray,
    kpts1: np.ndarray,
    query_indices: Iterable[int],
    top_left: np.ndarray,
    bottom_right: np.ndarray,
) -> Tuple[Dict[int, np.ndarray], List[int]]:
    """
    Clip the epipolar line of each query feature against the image-2 box.

    Returns:
        segments: feature index -> (2,2) endpoints
        skipped: feature indices whose line does not cross the box
    """
    query_indices = [int(i) for i in query_indices]
    segments: Dict[int, np.ndarray] = {}
    skipped: List[int] = []
    if not query_indices:
        return segments, skipped

    lines = compute_epipolar_lines(F, np.asarray(kpts1)[query_indices])
    for idx, line in zip(query_indices, lines):
        seg = clip_line_to_box(line, top_left, bottom_right)
        if seg is None:
            skipped.append(idx)
        else:
            segments[idx] = seg
    return segments, skipped


def group_epipolar_lines(
    F: np.ndarray,
    kpts1: np.ndarray,
    query_indices: Iterable[int],
    top_left: np.ndarray,
    bottom_right: np.ndarray,
    tolerance: float,
) -> Tuple[List[EpilineGroup], List[int]]:
    """
    Group features of image 1 by their clipped epipolar segment in image 2.

    Features are visited in ascending index. A feature joins the earliest
    created group whose representative segment coincides with its own within
    tolerance; otherwise it starts a new group. Groups are therefore ordered
    by their lowest member index.

    Returns:
        groups, skipped (features with no valid segment)
    """
    segments, skipped = clipped_epipolar_segments(
        F, kpts1, sorted(set(int(i) for i in query_indices)), top_left, bottom_right
    )

    # Buckets on the segment midpoint, which does not depend on endpoint order.
    # Coinciding segments have midpoints within tolerance -> neighbouring buckets.
    bucket = max(float(tolerance), 1e-6)
    buckets: Dict[Tuple[int, int], List[int]] = defaultdict(list)
    groups: List[EpilineGroup] = []

    for idx in sorted(segments):
        seg = segments[idx]
        mid = 0.5 * (seg[0] + seg[1])
        kx, ky = math.floor(mid[0] / bucket), math.floor(mid[1] / bucket)

        found: Optional[int] = None
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for gi in buckets.get((kx + dx, ky + dy), ()):
                    if (found is None or gi < found) and segments_coincide(
                        seg, groups[gi].endpoints, tolerance
                    ):
                        found = gi

        if found is None:
            groups.append(EpilineGroup(endpoints=seg, features=[idx]))
            buckets[(kx, ky)].append(len(groups) - 1)
        else:
            groups[found].features.append(idx)

    return groups, skipped
