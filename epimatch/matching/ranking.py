"""
epimatch/matching/ranking.py

Nearest neighbour ranking of candidate descriptors and Lowe's ratio test.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Sequence, Set, Tuple

import numpy as np

from epimatch.features import Features, IndexedFeatureMatch, descriptor_distances


class MatchOutcome(Enum):
    """What happened to one query feature during a guided pass."""
    MATCHED = "matched"
    SKIPPED_NO_CANDIDATES = "skipped_no_candidates"
    SKIPPED_AMBIGUOUS = "skipped_ambiguous"


def find_k_nearest_neighbors(
    features1: Features,
    features2: Features,
    query_feature_indices: Sequence[int],
    candidate_feature_indices: Sequence[int],
    k: int = 2,
) -> Tuple[List[np.ndarray], List[np.ndarray]]:
    """
    Top-k candidates (in features2) for each query (in features1).

    Returns:
        nn_distances[q][n], nn_indices[q][n] with n == 0 the closest. Rows hold
        min(k, len(candidates)) entries. Equal distances keep the lower index.
    """
    cand = np.asarray(sorted(int(c) for c in candidate_feature_indices), dtype=np.int64)
    cand_desc = features2.desc[cand] if len(cand) else features2.desc[:0]

    nn_distances: List[np.ndarray] = []
    nn_indices: List[np.ndarray] = []
    for q in query_feature_indices:
        d = descriptor_distances(features1.desc[int(q)], cand_desc)
        order = np.argsort(d, kind="stable")[:k]
        nn_distances.append(d[order])
        nn_indices.append(cand[order])
    return nn_distances, nn_indices


def ratio_test(nn_distances: np.ndarray, lowes_ratio: float) -> bool:
    """nn0 < lowes_ratio * nn1. Needs two neighbours."""
    if len(nn_distances) < 2:
        return False
    return bool(nn_distances[0] < lowes_ratio * nn_distances[1])


def match_group(
    query_feature_indices: Sequence[int],
    candidate_feature_indices: Sequence[int],
    features1: Features,
    features2: Features,
    lowes_ratio: float,
    matched_features1: Set[int],
    matched_features2: Set[int],
) -> Tuple[List[IndexedFeatureMatch], Dict[int, MatchOutcome]]:
    """
    Match every query of a group against the group's candidates.

    Queries run in ascending order; an accepted match is recorded in both
    matched sets right away so later queries (and groups) cannot reuse it.
    """
    matches: List[IndexedFeatureMatch] = []
    outcomes: Dict[int, MatchOutcome] = {}

    for q in sorted(int(i) for i in query_feature_indices):
        if q in matched_features1:
            continue
        available = [c for c in candidate_feature_indices if c not in matched_features2]
        if len(available) < 2:
            outcomes[q] = MatchOutcome.SKIPPED_NO_CANDIDATES
            continue

        nn_distances, nn_indices = find_k_nearest_neighbors(
            features1, features2, [q], available, k=2
        )
        dists, idxs = nn_distances[0], nn_indices[0]
        if not ratio_test(dists, lowes_ratio):
            outcomes[q] = MatchOutcome.SKIPPED_AMBIGUOUS
            continue

        best = int(idxs[0])
        matches.append(IndexedFeatureMatch(q, best, float(dists[0])))
        matched_features1.add(q)
        matched_features2.add(best)
        outcomes[q] = MatchOutcome.MATCHED

    return matches, outcomes
