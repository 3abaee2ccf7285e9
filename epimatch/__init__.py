"""Guided feature matching along epipolar lines for calibrated image pairs."""

from epimatch.features import Features, IndexedFeatureMatch
from epimatch.matching import GuidedEpipolarMatcher, GuidedMatchingConfig, match

__version__ = "0.1.0"

__all__ = [
    "Features",
    "IndexedFeatureMatch",
    "GuidedEpipolarMatcher",
    "GuidedMatchingConfig",
    "match",
]
