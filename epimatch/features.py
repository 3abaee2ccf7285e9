from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Set, Tuple

import numpy as np


@dataclass
class Features:
    kpts_xy: np.ndarray   # (N,2) float32
    desc: np.ndarray      # (N,D) float32 (SIFT-like, L2) or uint8 (ORB-like, Hamming)

    def __len__(self) -> int:
        return 0 if self.kpts_xy is None else int(len(self.kpts_xy))

    @property
    def is_binary(self) -> bool:
        return self.desc is not None and self.desc.dtype == np.uint8

    def validate(self) -> None:
        """Raise ValueError if keypoints and descriptors do not line up or keypoints are not finite."""
        xy = np.asarray(self.kpts_xy)
        if xy.ndim != 2 or xy.shape[1] != 2:
            raise ValueError(f"kpts_xy must be (N,2), got {xy.shape}")
        if self.desc is None or self.desc.ndim != 2:
            raise ValueError("desc must be a (N,D) array")
        if len(self.desc) != len(xy):
            raise ValueError(
                f"{len(xy)} keypoints but {len(self.desc)} descriptors"
            )
        if not np.isfinite(xy).all():
            raise ValueError("kpts_xy contains non-finite values")


@dataclass(frozen=True)
class IndexedFeatureMatch:
    feature1_ind: int
    feature2_ind: int
    distance: float


def empty_features(dim: int = 128, binary: bool = False) -> Features:
    dtype = np.uint8 if binary else np.float32
    return Features(np.zeros((0, 2), np.float32), np.zeros((0, dim), dtype))


def descriptor_distances(query: np.ndarray, candidates: np.ndarray) -> np.ndarray:
    """
    Distances from one descriptor (D,) to each row of candidates (M,D).

    Floating descriptors use Euclidean distance; uint8 descriptors are
    packed binary strings compared by Hamming distance.
    """
    if candidates.shape[0] == 0:
        return np.zeros((0,), dtype=np.float64)

    if query.dtype == np.uint8 and candidates.dtype == np.uint8:
        xor = np.bitwise_xor(candidates, query[None, :])
        return np.unpackbits(xor, axis=1).sum(axis=1).astype(np.float64)

    diff = candidates.astype(np.float64) - query.astype(np.float64)[None, :]
    return np.sqrt(np.einsum("ij,ij->i", diff, diff))


def matched_index_sets(matches: Iterable[IndexedFeatureMatch]) -> Tuple[Set[int], Set[int]]:
    used_i: Set[int] = set()
    used_j: Set[int] = set()
    for m in matches:
        used_i.add(int(m.feature1_ind))
        used_j.add(int(m.feature2_ind))
    return used_i, used_j


def make_unique_matches(matches: List[IndexedFeatureMatch]) -> List[IndexedFeatureMatch]:
    """
    Enforce one-to-one mapping: each i and each j can appear at most once.
    Keeps the first occurrence (ordering matters).
    """
    used_i = set()
    used_j = set()
    out: List[IndexedFeatureMatch] = []
    for m in matches:
        if m.feature1_ind in used_i or m.feature2_ind in used_j:
            continue
        used_i.add(m.feature1_ind)
        used_j.add(m.feature2_ind)
        out.append(m)
    return out
