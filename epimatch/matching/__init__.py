"""
epimatch/matching/__init__.py

Guided epipolar matching.

Usage:
    from epimatch.matching import match, GuidedMatchingConfig

    # Simple usage: extend an existing match list in place
    ok = match(GuidedMatchingConfig(), cam1, cam2, feats1, feats2, matches)

    # Keep the matcher around to inspect what happened
    matcher = GuidedEpipolarMatcher(config, cam1, cam2, feats1, feats2, logger)
    ok = matcher.get_matches(matches)
    print(matcher.report.summary())
"""

from .config import (
    GuidedMatchingConfig,
    load_config,
    get_default_config,
    get_wide_corridor_config,
    get_strict_config,
)

from .image_grid import ImageGrid, SpatialIndex
from .epilines import EpilineGroup, group_epipolar_lines
from .candidates import find_features_near_epipolar_line, sample_segment
from .ranking import MatchOutcome, find_k_nearest_neighbors, ratio_test, match_group

from .guided_matcher import (
    GuidedEpipolarMatcher,
    GuidedMatchingReport,
    MatcherStage,
    match,
    match_pairwise,
)

__all__ = [
    # Config
    "GuidedMatchingConfig",
    "load_config",
    "get_default_config",
    "get_wide_corridor_config",
    "get_strict_config",
    # Building blocks
    "ImageGrid",
    "SpatialIndex",
    "EpilineGroup",
    "group_epipolar_lines",
    "find_features_near_epipolar_line",
    "sample_segment",
    "MatchOutcome",
    "find_k_nearest_neighbors",
    "ratio_test",
    "match_group",
    # Entry points
    "GuidedEpipolarMatcher",
    "GuidedMatchingReport",
    "MatcherStage",
    "match",
    "match_pairwise",
]
