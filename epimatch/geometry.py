# epimatch/geometry.py
"""
Public geometry API.

Internals live in epimatch/geometry_utils/.
Import from here in the rest of the codebase to avoid deep-path imports.
"""

from epimatch.geometry_utils.epipolar import (
    DegenerateGeometryError,
    clip_line_to_box,
    compute_epipolar_line,
    compute_epipolar_lines,
    compute_fundamental_matrix,
    epipolar_distance,
    point_line_distance,
    skew,
)
from epimatch.geometry_utils.projective import camera_center, project_points

__all__ = [
    "DegenerateGeometryError",
    "clip_line_to_box",
    "compute_epipolar_line",
    "compute_epipolar_lines",
    "compute_fundamental_matrix",
    "epipolar_distance",
    "point_line_distance",
    "skew",
    "camera_center",
    "project_points",
]
