from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union

import cv2
import numpy as np
from scipy.spatial.transform import Rotation

from .parsing import extract_floats, load_data


@dataclass(frozen=True)
class Camera:
    """
    Calibrated pinhole camera, world->cam: Xc = R X + t.

    Cameras handed to the matcher are borrowed: the caller keeps them alive
    and unmodified for the duration of a matching call.
    """
    K: np.ndarray  # (3,3)
    R: np.ndarray  # (3,3)
    t: np.ndarray  # (3,1)
    C: np.ndarray  # (3,1)
    image_size: Optional[Tuple[int, int]] = None  # (width, height)

    @property
    def fx(self) -> float:
        return float(self.K[0, 0])

    @property
    def fy(self) -> float:
        return float(self.K[1, 1])

    @property
    def cx(self) -> float:
        return float(self.K[0, 2])

    @property
    def cy(self) -> float:
        return float(self.K[1, 2])

    @property
    def P(self) -> np.ndarray:
        return self.K @ np.hstack([self.R, self.t])


# -------------------------
# Constructors
# -------------------------

def camera_from_KRt(
    K: np.ndarray,
    R: np.ndarray,
    t: np.ndarray,
    image_size: Optional[Tuple[int, int]] = None,
) -> Camera:
    K = np.asarray(K, dtype=np.float64).reshape(3, 3)
    R = np.asarray(R, dtype=np.float64).reshape(3, 3)
    t = np.asarray(t, dtype=np.float64).reshape(3, 1)
    C = -R.T @ t
    return Camera(K=K, R=R, t=t, C=C, image_size=image_size)


def camera_from_rotvec(
    K: np.ndarray,
    rotvec: np.ndarray,
    position: np.ndarray,
    image_size: Optional[Tuple[int, int]] = None,
) -> Camera:
    """
    Build a camera from an angle-axis world->cam rotation and a camera center
    given in world coordinates.
    """
    R = Rotation.from_rotvec(np.asarray(rotvec, dtype=np.float64).reshape(3)).as_matrix()
    C = np.asarray(position, dtype=np.float64).reshape(3, 1)
    return camera_from_KRt(K, R, -R @ C, image_size=image_size)


def decompose_projection_matrix(
    P: np.ndarray,
    image_size: Optional[Tuple[int, int]] = None,
) -> Camera:
    """
    Decomposes P into K, R, t (x_cam = R X + t) and camera center C in world coords.
    """
    K, R, Ch, *_ = cv2.decomposeProjectionMatrix(np.asarray(P, dtype=np.float64))

    # normalize K
    K = K / K[2, 2]

    # camera center in world coords
    C = (Ch[:3] / Ch[3]).reshape(3, 1)

    # translation for [R|t]
    t = -R @ C

    # enforce det(R)=+1
    if np.linalg.det(R) < 0:
        R = -R
        t = -t

    return Camera(K=K, R=R, t=t, C=C, image_size=image_size)


# -------------------------
# Public, format-agnostic API
# -------------------------

def read_intrinsics(path: Union[str, Path]) -> np.ndarray:
    """
    Read a 3x3 intrinsic matrix K from .txt/.json/.yaml.
    """
    obj = load_data(path)
    K = _k_from_obj(obj)
    _validate_K(K)
    return K


def read_projection_matrix(path: Union[str, Path]) -> np.ndarray:
    """
    Read a 3x4 projection matrix P from .txt/.json/.yaml.
    """
    obj = load_data(path)
    P = _p_from_obj(obj)
    if P.shape != (3, 4):
        raise ValueError(f"P must be 3x4, got {P.shape} from {path}")
    if not np.isfinite(P).all():
        raise ValueError("P contains non-finite values.")
    return P


def read_camera(path: Union[str, Path]) -> Camera:
    """
    Read a full camera from .txt/.json/.yaml.

    Accepted layouts:
      - raw text with 12 numbers (a 3x4 P)
      - {"P": ...} / {"projection": ...}
      - {"K": ..., "R": ..., "t": ...}
      - {"K": ..., "rotvec": ..., "position": ...}
    Any dict layout may carry "image_size": [width, height].
    """
    obj = load_data(path)

    image_size = None
    if isinstance(obj, Mapping) and obj.get("image_size") is not None:
        w, h = obj["image_size"]
        image_size = (int(w), int(h))

    if isinstance(obj, Mapping) and "R" in obj and "t" in obj:
        K = _k_from_obj(obj)
        _validate_K(K)
        return camera_from_KRt(K, _as_3x3(obj["R"]), _as_1d(obj["t"]), image_size=image_size)

    if isinstance(obj, Mapping) and "rotvec" in obj and "position" in obj:
        K = _k_from_obj(obj)
        _validate_K(K)
        return camera_from_rotvec(K, _as_1d(obj["rotvec"]), _as_1d(obj["position"]),
                                  image_size=image_size)

    P = _p_from_obj(obj)
    if not np.isfinite(P).all():
        raise ValueError("P contains non-finite values.")
    cam = decompose_projection_matrix(P, image_size=image_size)
    _validate_K(cam.K)
    return cam


# -------------------------
# Domain decoding helpers (private)
# -------------------------

def _k_from_obj(obj: Any) -> np.ndarray:
    """
    Extract K from:
      - raw text: expects >=9 floats
      - dict: supports {"K": ...} or {"intrinsics": {"K": ...}} or {fx,fy,cx,cy}
    """
    if isinstance(obj, str):
        vals = extract_floats(obj)
        if len(vals) < 9:
            raise ValueError(f"Expected >=9 numbers for K, got {len(vals)}")
        return np.array(vals[:9], dtype=np.float64).reshape(3, 3)

    if isinstance(obj, Mapping):
        if "K" in obj:
            return _as_3x3(obj["K"])

        intr = obj.get("intrinsics")
        if isinstance(intr, Mapping) and "K" in intr:
            return _as_3x3(intr["K"])

        if all(k in obj for k in ("fx", "fy", "cx", "cy")):
            fx = float(obj["fx"]); fy = float(obj["fy"])
            cx = float(obj["cx"]); cy = float(obj["cy"])
            return np.array([[fx, 0.0, cx],
                             [0.0, fy, cy],
                             [0.0, 0.0, 1.0]], dtype=np.float64)

    raise ValueError("Could not extract K from provided data.")


def _p_from_obj(obj: Any) -> np.ndarray:
    """
    Extract P from:
      - raw text: expects >=12 floats -> first 12 make 3x4
      - dict: supports {"P": ...} or {"projection": ...}
    """
    if isinstance(obj, str):
        vals = extract_floats(obj)
        if len(vals) < 12:
            raise ValueError(f"Expected >=12 numbers for P, got {len(vals)}")
        return np.array(vals[:12], dtype=np.float64).reshape(3, 4)

    if isinstance(obj, Mapping):
        if "P" in obj:
            return _as_3x4(obj["P"])
        if "projection" in obj:
            return _as_3x4(obj["projection"])

    raise ValueError("Could not extract P from provided data.")


def _as_3x3(x: Any) -> np.ndarray:
    arr = np.array(x, dtype=np.float64)
    if arr.size != 9:
        raise ValueError(f"Expected 9 values for 3x3, got {arr.size}")
    return arr.reshape(3, 3)


def _as_3x4(x: Any) -> np.ndarray:
    arr = np.array(x, dtype=np.float64)
    if arr.size != 12:
        raise ValueError(f"Expected 12 values for 3x4, got {arr.size}")
    return arr.reshape(3, 4)


def _as_1d(x: Any) -> np.ndarray:
    return np.array(x, dtype=np.float64).reshape(-1)


def _validate_K(K: np.ndarray) -> None:
    if K.shape != (3, 3):
        raise ValueError(f"K must be 3x3, got {K.shape}")

    if not np.isfinite(K).all():
        raise ValueError("K contains non-finite values.")

    if abs(K[2, 2] - 1.0) > 1e-6:
        raise ValueError(f"Expected K[2,2] ~ 1, got {K[2,2]}")

    fx, fy = K[0, 0], K[1, 1]
    if fx <= 0 or fy <= 0:
        raise ValueError(f"Invalid focal lengths fx={fx}, fy={fy}")
