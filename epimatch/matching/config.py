"""
epimatch/matching/config.py

Configuration for guided epipolar matching.
Matcher defaults live here; the geometry helpers only carry fallbacks
for direct calls.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict, fields, replace
from pathlib import Path
from typing import Optional, Union

from data_io.parsing import load_data


@dataclass(frozen=True)
class GuidedMatchingConfig:
    """
    Parameters for guided matching along epipolar lines.

    Usage:
        config = GuidedMatchingConfig()
        config = GuidedMatchingConfig(lowes_ratio=0.75)
        config = load_config("guided.yaml")
    """
    # Features closer than this to the epipolar line are considered for matching.
    guided_matching_max_distance_pixels: float = 2.0

    # Keep a match only if nn0 < lowes_ratio * nn1.
    lowes_ratio: float = 0.8

    # Grid cell size = multiplier * guided_matching_max_distance_pixels
    grid_cell_size_multiplier: float = 2.0
    # Staggered grids: offsets (0,0), (s/2,0), (0,s/2), (s/2,s/2), first N used.
    # 2 uses (0,0), (s/2,s/2).
    num_grids: int = 4

    # Epilines whose endpoints all lie within this distance share one search.
    # Must stay below guided_matching_max_distance_pixels.
    epiline_grouping_tolerance_pixels: float = 0.5

    # Sampling interval along an epiline (None = max distance). Clamped to max distance.
    sample_step_pixels: Optional[float] = None

    # Relative baseline below which the camera pair is degenerate.
    degenerate_baseline_eps: float = 1e-9

    @property
    def cell_size(self) -> float:
        return self.grid_cell_size_multiplier * self.guided_matching_max_distance_pixels

    @property
    def sample_step(self) -> float:
        d = self.guided_matching_max_distance_pixels
        if self.sample_step_pixels is None:
            return d
        return min(self.sample_step_pixels, d)

    def validate(self) -> None:
        if not self.guided_matching_max_distance_pixels > 0:
            raise ValueError(
                f"guided_matching_max_distance_pixels must be > 0, "
                f"got {self.guided_matching_max_distance_pixels}"
            )
        if not 0.0 < self.lowes_ratio <= 1.0:
            raise ValueError(f"lowes_ratio must be in (0, 1], got {self.lowes_ratio}")
        if not self.grid_cell_size_multiplier > 0:
            raise ValueError(
                f"grid_cell_size_multiplier must be > 0, got {self.grid_cell_size_multiplier}"
            )
        if self.num_grids not in (1, 2, 4):
            raise ValueError(f"num_grids must be 1, 2 or 4, got {self.num_grids}")
        tol = self.epiline_grouping_tolerance_pixels
        if tol < 0 or tol >= self.guided_matching_max_distance_pixels:
            raise ValueError(
                f"epiline_grouping_tolerance_pixels must be in "
                f"[0, {self.guided_matching_max_distance_pixels}), got {tol}"
            )
        if self.sample_step_pixels is not None and not self.sample_step_pixels > 0:
            raise ValueError(f"sample_step_pixels must be > 0, got {self.sample_step_pixels}")
        if self.degenerate_baseline_eps < 0:
            raise ValueError("degenerate_baseline_eps must be >= 0")

    @classmethod
    def from_dict(cls, d: dict) -> "GuidedMatchingConfig":
        """Create config from dictionary (e.g., loaded from YAML/JSON)."""
        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        config = cls(**d)
        config.validate()
        return config

    def to_dict(self) -> dict:
        """Convert config to dictionary (for saving to YAML/JSON)."""
        return asdict(self)

    def with_overrides(self, **kwargs) -> "GuidedMatchingConfig":
        """Copy with the non-None keyword values replaced."""
        updates = {k: v for k, v in kwargs.items() if v is not None}
        config = replace(self, **updates)
        config.validate()
        return config


def load_config(path: Union[str, Path]) -> GuidedMatchingConfig:
    """
    Load a config from .json/.yaml. The values may sit at the top level or
    under a "guided_matching" key.
    """
    obj = load_data(path)
    if not isinstance(obj, dict):
        raise ValueError(f"Expected a mapping in {path}, got {type(obj).__name__}")
    if "guided_matching" in obj:
        obj = obj["guided_matching"]
    return GuidedMatchingConfig.from_dict(obj)


# ============================================================
# PRESET CONFIGURATIONS
# ============================================================

def get_default_config() -> GuidedMatchingConfig:
    """Defaults: 2px corridor, ratio 0.8."""
    return GuidedMatchingConfig()


def get_wide_corridor_config() -> GuidedMatchingConfig:
    """
    For cameras with less accurate calibration: a wider corridor with a
    stricter ratio to compensate for the larger candidate sets.
    """
    return GuidedMatchingConfig(
        guided_matching_max_distance_pixels=6.0,
        lowes_ratio=0.75,
        epiline_grouping_tolerance_pixels=1.0,
    )


def get_strict_config() -> GuidedMatchingConfig:
    """Tight corridor and ratio for precise rigs."""
    return GuidedMatchingConfig(
        guided_matching_max_distance_pixels=1.0,
        lowes_ratio=0.7,
        epiline_grouping_tolerance_pixels=0.25,
    )
