import numpy as np

_EPS_Z = 1e-12


def camera_center(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Camera center in world coordinates from extrinsics R and t, shape (3,)."""
    # world->cam: Xc = R X + t  => C = -R^T t
    R = np.asarray(R, np.float64)
    t = np.asarray(t, np.float64).reshape(3, 1)
    return (-R.T @ t).reshape(3)


def project_points(
    X: np.ndarray,
    K: np.ndarray,
    R: np.ndarray,
    t: np.ndarray,
) -> np.ndarray:
    """
    Project 3D points to pixel coordinates.

    Returns:
      x: (N,2) float64. Points that are non-finite or behind the camera project to NaN.
    """
    X = np.asarray(X, dtype=np.float64)
    R = np.asarray(R, dtype=np.float64)
    t = np.asarray(t, dtype=np.float64).reshape(3, 1)
    K = np.asarray(K, dtype=np.float64)

    if X.ndim != 2 or X.shape[1] != 3:
        raise ValueError(f"X must be (N,3). Got {X.shape}")

    x_pix = np.full((X.shape[0], 2), np.nan, dtype=np.float64)

    finite = np.isfinite(X).all(axis=1)
    if not np.any(finite):
        return x_pix

    Xc = (R @ X[finite].T) + t  # (3,Nf)
    z = Xc[2, :]
    good_z = np.isfinite(z) & (z > _EPS_Z)

    if np.any(good_z):
        x_norm = Xc[:2, good_z] / z[good_z][None, :]
        x2 = (K[:2, :2] @ x_norm) + K[:2, 2:3]
        x_pix[np.where(finite)[0][good_z]] = x2.T

    return x_pix
