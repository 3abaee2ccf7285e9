"""
scripts/run_guided_matching.py

Extend the matches of one calibrated image pair by guided epipolar search.
Cameras, features and seed matches come from files; detection and the
unguided seed matching happen elsewhere.
"""

import argparse
import sys
from pathlib import Path

from data_io.camera import read_camera
from data_io.features_io import load_features, load_matches, save_matches
from epimatch.features import make_unique_matches
from epimatch.geometry import epipolar_distance
from epimatch.matching import (
    GuidedEpipolarMatcher,
    GuidedMatchingConfig,
    get_default_config,
    get_strict_config,
    get_wide_corridor_config,
    load_config,
)
from utils.logging_utils import level_from_verbosity, make_logger, timed

PRESETS = {
    "default": get_default_config,
    "wide": get_wide_corridor_config,
    "strict": get_strict_config,
}


def build_config_from_args(args) -> GuidedMatchingConfig:
    """
    Build the config from a file or preset, then override with any
    explicitly provided arguments.
    """
    if args.config is not None:
        config = load_config(args.config)
    else:
        config = PRESETS[args.preset]()

    return config.with_overrides(
        guided_matching_max_distance_pixels=args.max_distance_px,
        lowes_ratio=args.ratio,
        num_grids=args.num_grids,
        epiline_grouping_tolerance_pixels=args.grouping_tolerance_px,
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Guided epipolar matching for a calibrated image pair",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Extend existing matches
  python -m scripts.run_guided_matching --camera1 calib/cam0.json --camera2 calib/cam1.json \\
      --features1 feats/0.npz --features2 feats/1.npz --matches seeds.json --output guided.json

  # No seeds, wider corridor
  python -m scripts.run_guided_matching --camera1 P0.txt --camera2 P1.txt \\
      --features1 f0.npz --features2 f1.npz --preset wide --output guided.npz
        """
    )

    # =========================================================
    # INPUT PATHS
    # =========================================================
    parser.add_argument("--camera1", type=str, required=True,
                        help="Camera file of image 1 (P, or K/R/t) as .txt/.json/.yaml")
    parser.add_argument("--camera2", type=str, required=True,
                        help="Camera file of image 2")
    parser.add_argument("--features1", type=str, required=True,
                        help=".npz with kpts_xy and desc for image 1")
    parser.add_argument("--features2", type=str, required=True,
                        help=".npz with kpts_xy and desc for image 2")
    parser.add_argument("--matches", type=str, default=None,
                        help="Optional seed matches (.npz/.json/.yaml)")

    # =========================================================
    # OUTPUT
    # =========================================================
    parser.add_argument("--output", type=str, required=True,
                        help="Where to write seeds + guided matches (.npz/.json/.yaml)")

    # =========================================================
    # MATCHING CONFIG
    # =========================================================
    parser.add_argument("--config", type=str, default=None,
                        help="Config file (.json/.yaml); overrides --preset")
    parser.add_argument("--preset", type=str, default="default", choices=sorted(PRESETS))
    parser.add_argument("--max_distance_px", type=float, default=None,
                        help="Corridor half-width around the epipolar line (default: 2.0)")
    parser.add_argument("--ratio", type=float, default=None,
                        help="Lowe's ratio (default: 0.8)")
    parser.add_argument("--num_grids", type=int, default=None, choices=[1, 2, 4])
    parser.add_argument("--grouping_tolerance_px", type=float, default=None)

    parser.add_argument("-v", "--verbose", action="count", default=1)

    args = parser.parse_args(argv)
    logger = make_logger("epimatch", level=level_from_verbosity(args.verbose))

    try:
        config = build_config_from_args(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    cam1 = read_camera(args.camera1)
    cam2 = read_camera(args.camera2)
    feats1 = load_features(args.features1)
    feats2 = load_features(args.features2)

    matches = []
    if args.matches is not None:
        seeds = load_matches(args.matches)
        matches = make_unique_matches(seeds)
        if len(matches) != len(seeds):
            logger.warning(f"Dropped {len(seeds) - len(matches)} duplicate seed matches")

    logger.info(
        f"kpts1={len(feats1)} kpts2={len(feats2)} seeds={len(matches)} "
        f"max_dist={config.guided_matching_max_distance_pixels}px ratio={config.lowes_ratio}"
    )

    n_seed = len(matches)
    matcher = GuidedEpipolarMatcher(config, cam1, cam2, feats1, feats2, logger)
    with timed(logger, "Guided matching"):
        ok = matcher.get_matches(matches)
    if not ok:
        logger.error("Guided matching failed (empty features or degenerate cameras)")
        return 1

    new = matches[n_seed:]
    if new:
        F = matcher.fundamental_matrix
        errs = sorted(
            epipolar_distance(feats1.kpts_xy[m.feature1_ind], feats2.kpts_xy[m.feature2_ind], F)
            for m in new
        )
        logger.info(f"New matches: {len(new)} median epipolar dist={errs[len(errs) // 2]:.2f}px")
    else:
        logger.info("New matches: 0")

    save_matches(args.output, matches)
    logger.info(f"Wrote {len(matches)} matches to {Path(args.output)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
