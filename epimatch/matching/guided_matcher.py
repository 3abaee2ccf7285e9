"""
epimatch/matching/guided_matcher.py

Guided matching between two calibrated views.

Features of image 1 that are not matched yet are matched against image-2
features lying near their epipolar lines. Cameras and features are borrowed:
the caller keeps them alive and unmodified during get_matches(). An instance
holds per-call grids and sets, so use one instance per thread.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

import numpy as np

from data_io.camera import Camera
from epimatch.features import Features, IndexedFeatureMatch, matched_index_sets
from epimatch.geometry import DegenerateGeometryError, compute_fundamental_matrix

from .candidates import find_features_near_epipolar_line
from .config import GuidedMatchingConfig
from .epilines import EpilineGroup, group_epipolar_lines
from .image_grid import SpatialIndex
from .ranking import MatchOutcome, match_group


class MatcherStage(Enum):
    UNINITIALIZED = 0
    INITIALIZED = 1
    GROUPED = 2
    MATCHED = 3
    DONE = 4


@dataclass
class GuidedMatchingReport:
    """Per-call counters, filled by GuidedEpipolarMatcher.get_matches()."""
    num_queries: int = 0
    num_groups: int = 0
    num_lines_outside_image: int = 0
    num_matched: int = 0
    num_no_candidates: int = 0
    num_ambiguous: int = 0

    def summary(self) -> str:
        return (
            f"queries={self.num_queries} groups={self.num_groups} "
            f"matched={self.num_matched} no_candidates={self.num_no_candidates} "
            f"(outside_image={self.num_lines_outside_image}) ambiguous={self.num_ambiguous}"
        )


class GuidedEpipolarMatcher:
    """
    Usage:
        matcher = GuidedEpipolarMatcher(config, cam1, cam2, feats1, feats2, logger)
        ok = matcher.get_matches(matches)   # appends to matches in place
        matcher.report.num_matched
    """

    def __init__(
        self,
        config: GuidedMatchingConfig,
        camera1: Camera,
        camera2: Camera,
        features1: Features,
        features2: Features,
        logger: Optional[logging.Logger] = None,
    ):
        config.validate()
        self.config = config
        self.camera1 = camera1
        self.camera2 = camera2
        self.features1 = features1
        self.features2 = features2
        self.logger = logger

        self.stage = MatcherStage.UNINITIALIZED
        self.report = GuidedMatchingReport()
        self.outcomes: Dict[int, MatchOutcome] = {}

        self._F: Optional[np.ndarray] = None
        self._top_left: Optional[np.ndarray] = None
        self._bottom_right: Optional[np.ndarray] = None
        self._spatial_index: Optional[SpatialIndex] = None
        self._matched_features1: Set[int] = set()
        self._matched_features2: Set[int] = set()

    # ------------------------------------------------------------
    # Public
    # ------------------------------------------------------------

    def get_matches(self, matches: List[IndexedFeatureMatch]) -> bool:
        """
        Find matches for the features not present in `matches` and append
        them to it. Returns False (leaving `matches` untouched) if either
        feature set is empty or the cameras are degenerate.
        """
        self._reset()
        if not self._initialize(matches):
            return False

        groups = self._group_epipolar_lines()

        new_matches: List[IndexedFeatureMatch] = []
        for group in groups:
            candidates = self._find_features_near_epipolar_lines(group)
            accepted, outcomes = match_group(
                group.features,
                candidates,
                self.features1,
                self.features2,
                self.config.lowes_ratio,
                self._matched_features1,
                self._matched_features2,
            )
            new_matches.extend(accepted)
            self.outcomes.update(outcomes)
        self.stage = MatcherStage.MATCHED

        for outcome in self.outcomes.values():
            if outcome is MatchOutcome.MATCHED:
                self.report.num_matched += 1
            elif outcome is MatchOutcome.SKIPPED_AMBIGUOUS:
                self.report.num_ambiguous += 1
            else:
                self.report.num_no_candidates += 1

        matches.extend(new_matches)
        self.stage = MatcherStage.DONE

        if self.logger:
            self.logger.info(f"[Guided] {self.report.summary()}")
        return True

    @property
    def fundamental_matrix(self) -> Optional[np.ndarray]:
        return self._F

    @property
    def bounding_box(self) -> Tuple[Optional[np.ndarray], Optional[np.ndarray]]:
        return self._top_left, self._bottom_right

    # ------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------

    def _reset(self) -> None:
        self.stage = MatcherStage.UNINITIALIZED
        self.report = GuidedMatchingReport()
        self.outcomes = {}
        self._F = None
        self._top_left = self._bottom_right = None
        self._spatial_index = None
        self._matched_features1 = set()
        self._matched_features2 = set()

    def _fail(self, reason: str) -> bool:
        if self.logger:
            self.logger.warning(f"[Guided] initialization failed: {reason}")
        self._reset()
        return False

    def _initialize(self, matches: List[IndexedFeatureMatch]) -> bool:
        """Seed the matched sets, compute F, build the spatial index."""
        if len(self.features1) == 0 or len(self.features2) == 0:
            return self._fail("empty feature set")
        try:
            self.features1.validate()
            self.features2.validate()
        except ValueError as e:
            return self._fail(str(e))
        if self.features1.desc.shape[1] != self.features2.desc.shape[1]:
            return self._fail(
                f"descriptor sizes differ ({self.features1.desc.shape[1]} vs "
                f"{self.features2.desc.shape[1]})"
            )

        try:
            self._F = compute_fundamental_matrix(
                self.camera1, self.camera2, baseline_eps=self.config.degenerate_baseline_eps
            )
        except DegenerateGeometryError as e:
            return self._fail(str(e))

        self._matched_features1, self._matched_features2 = matched_index_sets(matches)

        xy2 = np.asarray(self.features2.kpts_xy, dtype=np.float64)
        self._top_left, self._bottom_right = self._image_box(xy2)

        index = SpatialIndex(self.config.cell_size, self._top_left, self.config.num_grids)
        unmatched2 = [j for j in range(len(xy2)) if j not in self._matched_features2]
        index.add_features(unmatched2, xy2[unmatched2])
        self._spatial_index = index

        self.stage = MatcherStage.INITIALIZED
        if self.logger:
            self.logger.debug(
                f"[Guided] seeded={len(matches)} indexed={len(unmatched2)} "
                f"box=({self._top_left[0]:.1f},{self._top_left[1]:.1f})-"
                f"({self._bottom_right[0]:.1f},{self._bottom_right[1]:.1f}) "
                f"cell={self.config.cell_size:.2f}px grids={self.config.num_grids}"
            )
        return True

    def _image_box(self, xy2: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        # Image extent if the camera knows it, keypoint extent otherwise.
        if self.camera2.image_size is not None:
            w, h = self.camera2.image_size
            return np.zeros(2), np.array([float(w), float(h)])
        return xy2.min(axis=0), xy2.max(axis=0)

    def _group_epipolar_lines(self) -> List[EpilineGroup]:
        queries = [i for i in range(len(self.features1)) if i not in self._matched_features1]
        groups, skipped = group_epipolar_lines(
            self._F,
            self.features1.kpts_xy,
            queries,
            self._top_left,
            self._bottom_right,
            self.config.epiline_grouping_tolerance_pixels,
        )
        for idx in skipped:
            self.outcomes[idx] = MatchOutcome.SKIPPED_NO_CANDIDATES

        self.report.num_queries = len(queries)
        self.report.num_groups = len(groups)
        self.report.num_lines_outside_image = len(skipped)
        self.stage = MatcherStage.GROUPED
        return groups

    def _find_features_near_epipolar_lines(self, epiline_group: EpilineGroup) -> List[int]:
        return find_features_near_epipolar_line(
            epiline_group,
            self._spatial_index,
            self.config.sample_step,
            self._matched_features2,
        )


def match(
    config: GuidedMatchingConfig,
    camera1: Camera,
    camera2: Camera,
    features1: Features,
    features2: Features,
    matches: List[IndexedFeatureMatch],
    logger: Optional[logging.Logger] = None,
) -> bool:
    """Single-call entry point: run one guided pass and extend `matches` in place."""
    matcher = GuidedEpipolarMatcher(config, camera1, camera2, features1, features2, logger)
    return matcher.get_matches(matches)


def match_pairwise(
    config: GuidedMatchingConfig,
    cams: List[Camera],
    feats: List[Features],
    pairwise: Dict[Tuple[int, int], List[IndexedFeatureMatch]],
    logger: Optional[logging.Logger] = None,
) -> Dict[Tuple[int, int], int]:
    """
    Extend the seed matches of every image pair (i, j) in place.

    Returns the number of new matches per pair; pairs whose initialization
    failed are reported with -1 and keep their seed matches.
    """
    added: Dict[Tuple[int, int], int] = {}
    for (i, j) in sorted(pairwise):
        seeds = pairwise[(i, j)]
        before = len(seeds)
        ok = match(config, cams[i], cams[j], feats[i], feats[j], seeds)
        added[(i, j)] = len(seeds) - before if ok else -1
        if logger:
            logger.info(f"  guided ({i:2d},{j:2d}): seed={before} new={max(added[(i, j)], 0)}")

    if logger:
        total = sum(n for n in added.values() if n > 0)
        failed = sum(1 for n in added.values() if n < 0)
        logger.info(f"[Guided] pairs={len(added)} new_matches={total} failed={failed}")
    return added
