"""
epimatch/matching/candidates.py

Collects image-2 features lying near an epipolar segment by walking the
segment through the spatial index.
"""

from __future__ import annotations

import math
from typing import AbstractSet, List, Set

import numpy as np

from .epilines import EpilineGroup
from .image_grid import SpatialIndex


def sample_segment(p0: np.ndarray, p1: np.ndarray, step: float) -> np.ndarray:
    """
    Points along p0 -> p1, both endpoints included, spaced at most `step` apart.
    Returns (M,2) with M >= 2 (M == 1 only for a zero-length segment).
    """
    if not step > 0:
        raise ValueError(f"step must be > 0, got {step}")
    p0 = np.asarray(p0, dtype=np.float64)
    p1 = np.asarray(p1, dtype=np.float64)
    length = float(np.linalg.norm(p1 - p0))
    if length == 0.0:
        return p0.reshape(1, 2)
    n_intervals = max(1, int(math.ceil(length / step)))
    s = np.linspace(0.0, 1.0, n_intervals + 1)
    return p0[None, :] + s[:, None] * (p1 - p0)[None, :]


def find_features_near_epipolar_line(
    epiline_group: EpilineGroup,
    spatial_index: SpatialIndex,
    step: float,
    excluded: AbstractSet[int] = frozenset(),
) -> List[int]:
    """
    Union of features near every sample of the group's segment, minus the
    already matched image-2 features. Sorted ascending.
    """
    p0, p1 = epiline_group.endpoints
    found: Set[int] = set()
    for x, y in sample_segment(p0, p1, step):
        found.update(spatial_index.features_near(float(x), float(y)))
    if excluded:
        found.difference_update(excluded)
    return sorted(found)
