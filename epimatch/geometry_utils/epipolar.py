from __future__ import annotations

from typing import Optional

import numpy as np

from data_io.camera import Camera

# Minimum |(a, b)| for a line to be considered finite in the image plane.
_EPS_LINE = 1e-12
# Intersections closer than this (in pixels) are the same point (box corner).
_EPS_CORNER = 1e-9
# Slack for "inside the box" tests on computed intersections.
_EPS_BOX = 1e-7


class DegenerateGeometryError(ValueError):
    """Raised when two cameras do not define a usable epipolar geometry."""


def skew(v: np.ndarray) -> np.ndarray:
    v = np.asarray(v, dtype=np.float64).reshape(3)
    return np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0],
    ], dtype=np.float64)


def _checked_inverse(K: np.ndarray, which: str) -> np.ndarray:
    if K.shape != (3, 3) or not np.isfinite(K).all():
        raise DegenerateGeometryError(f"{which}: intrinsics must be a finite 3x3 matrix")
    if abs(np.linalg.det(K)) < 1e-12:
        raise DegenerateGeometryError(f"{which}: intrinsics are not invertible")
    return np.linalg.inv(K)


def compute_fundamental_matrix(
    cam_i: Camera,
    cam_j: Camera,
    baseline_eps: float = 1e-9,
) -> np.ndarray:
    """Compute the fundamental matrix F such that p2^T F p1 = 0
    for corresponding points p1 in image i and p2 in image j.

    Raises DegenerateGeometryError for invalid intrinsics or a (relative)
    zero baseline, where F carries no epipolar information.
    """

    Ki, Ri, ti = cam_i.K, cam_i.R, cam_i.t
    Kj, Rj, tj = cam_j.K, cam_j.R, cam_j.t

    Ki = np.asarray(Ki, np.float64)
    Kj = np.asarray(Kj, np.float64)
    Ri = np.asarray(Ri, np.float64)
    Rj = np.asarray(Rj, np.float64)
    ti = np.asarray(ti, np.float64).reshape(3, 1)
    tj = np.asarray(tj, np.float64).reshape(3, 1)

    Ki_inv = _checked_inverse(Ki, "camera 1")
    Kj_inv = _checked_inverse(Kj, "camera 2")
    if not (np.isfinite(Ri).all() and np.isfinite(Rj).all()
            and np.isfinite(ti).all() and np.isfinite(tj).all()):
        raise DegenerateGeometryError("camera pose contains non-finite values")

    R_rel = Rj @ Ri.T
    t_rel = tj - R_rel @ ti

    # Relative to the scene scale implied by the camera positions.
    scale = max(float(np.linalg.norm(ti)), float(np.linalg.norm(tj)), 1.0)
    if np.linalg.norm(t_rel) <= baseline_eps * scale:
        raise DegenerateGeometryError("zero baseline between cameras")

    E = skew(t_rel) @ R_rel
    F = Kj_inv.T @ E @ Ki_inv
    norm = np.linalg.norm(F)
    if not np.isfinite(norm) or norm < 1e-300:
        raise DegenerateGeometryError("fundamental matrix vanished")
    F /= norm

    return F


def compute_epipolar_line(F: np.ndarray, p1: np.ndarray) -> np.ndarray:
    """Line (a, b, c) in image 2 with a*x + b*y + c = 0 for point p1 of image 1."""
    return F @ np.array([p1[0], p1[1], 1.0], dtype=np.float64)


def compute_epipolar_lines(F: np.ndarray, pts1: np.ndarray) -> np.ndarray:
    """Vectorised compute_epipolar_line. pts1: (N,2) -> (N,3)."""
    pts1 = np.asarray(pts1, dtype=np.float64).reshape(-1, 2)
    pts_h = np.hstack([pts1, np.ones((pts1.shape[0], 1))])
    return pts_h @ F.T


def point_line_distance(line: np.ndarray, pts: np.ndarray) -> np.ndarray:
    """Perpendicular pixel distance of (N,2) points to a line (a, b, c)."""
    pts = np.asarray(pts, dtype=np.float64).reshape(-1, 2)
    a, b, c = (float(v) for v in line)
    den = np.sqrt(a * a + b * b)
    if den < _EPS_LINE:
        return np.full((pts.shape[0],), np.inf)
    return np.abs(pts[:, 0] * a + pts[:, 1] * b + c) / den


def clip_line_to_box(
    line: np.ndarray,
    top_left: np.ndarray,
    bottom_right: np.ndarray,
) -> Optional[np.ndarray]:
    """
    Intersect a line with an axis aligned box.

    Args:
        line: (3,) line (a, b, c)
        top_left: (2,) minimum corner (x_min, y_min)
        bottom_right: (2,) maximum corner (x_max, y_max)
    Returns:
        (2,2) endpoints when the line crosses the box in exactly two distinct
        points, otherwise None (misses the box, or only touches a corner).
    """
    a, b, c = (float(v) for v in line)
    if np.hypot(a, b) < _EPS_LINE:
        return None

    x0, y0 = float(top_left[0]), float(top_left[1])
    x1, y1 = float(bottom_right[0]), float(bottom_right[1])

    candidates = []
    # vertical edges x = x0, x = x1
    if abs(b) > _EPS_LINE:
        for x in (x0, x1):
            y = -(a * x + c) / b
            if y0 - _EPS_BOX <= y <= y1 + _EPS_BOX:
                candidates.append((x, min(max(y, y0), y1)))
    # horizontal edges y = y0, y = y1
    if abs(a) > _EPS_LINE:
        for y in (y0, y1):
            x = -(b * y + c) / a
            if x0 - _EPS_BOX <= x <= x1 + _EPS_BOX:
                candidates.append((min(max(x, x0), x1), y))

    endpoints = []
    for p in candidates:
        if all(np.hypot(p[0] - q[0], p[1] - q[1]) > _EPS_CORNER for q in endpoints):
            endpoints.append(p)

    if len(endpoints) != 2:
        return None
    return np.array(endpoints, dtype=np.float64)


def epipolar_distance(
    p1: np.ndarray,  # (2,) point in image 1
    p2: np.ndarray,  # (2,) point in image 2
    F: np.ndarray,   # (3,3) fundamental matrix
) -> float:
    """
    Compute symmetric epipolar distance.

    Returns average of:
    - Distance from p2 to epipolar line of p1
    - Distance from p1 to epipolar line of p2
    """
    p1_h = np.array([p1[0], p1[1], 1.0])
    p2_h = np.array([p2[0], p2[1], 1.0])

    # Line in image 2 from p1
    l2 = F @ p1_h
    d2 = abs(p2_h @ l2) / (np.sqrt(l2[0]**2 + l2[1]**2) + 1e-12)

    # Line in image 1 from p2
    l1 = F.T @ p2_h
    d1 = abs(p1_h @ l1) / (np.sqrt(l1[0]**2 + l1[1]**2) + 1e-12)

    return (d1 + d2) / 2
