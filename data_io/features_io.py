from __future__ import annotations

from pathlib import Path
from typing import List, Union

import numpy as np

from epimatch.features import Features, IndexedFeatureMatch

from .parsing import dump_data, load_data


def save_features(path: Union[str, Path], feats: Features) -> None:
    """
    Write keypoints/descriptors to .npz.

    Args:
        path: output file path
        feats: Features with kpts_xy (N,2) and desc (N,D)
    """
    feats.validate()
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez(path, kpts_xy=np.asarray(feats.kpts_xy, np.float32), desc=feats.desc)


def load_features(path: Union[str, Path]) -> Features:
    """
    Read keypoints/descriptors from an .npz holding `kpts_xy` and `desc`.
    uint8 descriptors stay binary; everything else is cast to float32.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with np.load(path) as data:
        missing = {"kpts_xy", "desc"} - set(data.files)
        if missing:
            raise ValueError(f"{path} is missing arrays: {sorted(missing)}")
        xy = np.asarray(data["kpts_xy"], dtype=np.float32).reshape(-1, 2)
        desc = np.asarray(data["desc"])

    if desc.dtype != np.uint8:
        desc = desc.astype(np.float32)
    if desc.ndim == 1:
        desc = desc.reshape(len(xy), -1) if len(xy) else desc.reshape(0, 0)

    feats = Features(xy, desc)
    feats.validate()
    return feats


def save_matches(path: Union[str, Path], matches: List[IndexedFeatureMatch]) -> None:
    """
    Write matches as rows [feature1_ind, feature2_ind, distance].
    .npz stores an (M,3) float64 array `matches`; .json/.yaml a list of rows.
    """
    path = Path(path)
    rows = [[int(m.feature1_ind), int(m.feature2_ind), float(m.distance)] for m in matches]

    if path.suffix.lower() == ".npz":
        path.parent.mkdir(parents=True, exist_ok=True)
        np.savez(path, matches=np.asarray(rows, dtype=np.float64).reshape(-1, 3))
        return
    dump_data({"matches": rows}, path)


def load_matches(path: Union[str, Path]) -> List[IndexedFeatureMatch]:
    """Read matches written by save_matches. Rows of two values get distance 0."""
    path = Path(path)
    if path.suffix.lower() == ".npz":
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        with np.load(path) as data:
            rows = np.asarray(data["matches"], dtype=np.float64).tolist()
    else:
        obj = load_data(path)
        if isinstance(obj, dict):
            obj = obj.get("matches", [])
        if not isinstance(obj, list):
            raise ValueError(f"Could not read matches from {path}")
        rows = obj

    out: List[IndexedFeatureMatch] = []
    for row in rows:
        if len(row) < 2:
            raise ValueError(f"Bad match row {row!r} in {path}")
        dist = float(row[2]) if len(row) > 2 else 0.0
        out.append(IndexedFeatureMatch(int(row[0]), int(row[1]), dist))
    return out
