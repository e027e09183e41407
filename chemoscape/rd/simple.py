# chemoscape/rd/simple.py
from __future__ import annotations
import math
import numpy as np
from scipy import ndimage

# 6-neighbour (face) stencil: sum of neighbours minus 6 * centre
_FACE_STENCIL = np.zeros((3, 3, 3), dtype=np.float64)
_FACE_STENCIL[1, 1, 1] = -6.0
for _z, _y, _x in ((0, 1, 1), (2, 1, 1), (1, 0, 1), (1, 2, 1), (1, 1, 0), (1, 1, 2)):
    _FACE_STENCIL[_z, _y, _x] = 1.0


def _neighbour_excess(field: np.ndarray) -> np.ndarray:
    """sum(face neighbours) - 6*centre, with cells outside the grid read as 0."""
    return ndimage.correlate(field, _FACE_STENCIL, mode="constant", cval=0.0)


def laplacian_open(field: np.ndarray, dx: float) -> np.ndarray:
    """
    3D 6-neighbour Laplacian with an open (leaking) boundary:
    neighbours outside the grid have concentration 0.
    field: (Z, Y, X).
    """
    return _neighbour_excess(field) / (dx * dx)


def diffuse_step(field: np.ndarray, D: float, dt: float, dx: float) -> np.ndarray:
    """
    One explicit Euler step of du/dt = D * lap(u) on the face stencil.
    Reads only the pre-step snapshot and returns a NEW array.
    No stability check: keep D*dt/dx^2 <= 1/6 (see stable_dt_upper_bound).
    """
    field = np.asarray(field, dtype=np.float64)
    if D == 0.0:
        return field.copy()
    alpha = D * dt / (dx * dx)
    return field + alpha * _neighbour_excess(field)


def _axis_gradient(u: np.ndarray, out: np.ndarray, dx: float) -> None:
    """Fill `out` with d/dx along axis 0 of `u` (both viewed with the axis first)."""
    n = u.shape[0]
    if n == 1:
        out[...] = 0.0
        return
    if n == 2:
        out[...] = (u[1] - u[0]) / dx
        return
    inv = 1.0 / (2.0 * dx)
    out[1:-1] = (u[2:] - u[:-2]) * inv
    # boundary layers: difference over two cells towards the interior
    out[0] = (u[2] - u[0]) * inv
    out[-1] = (u[-1] - u[-3]) * inv


def central_gradient(field: np.ndarray, dx: float) -> np.ndarray:
    """
    Central differences (u[i+1] - u[i-1]) / (2 dx) on every axis.
    Boundary layers use (u[2] - u[0]) / (2 dx) on the low face and
    (u[-1] - u[-3]) / (2 dx) on the high face; an axis of two cells
    falls back to a plain forward difference, an axis of one cell gives 0.
    Returns (Z, Y, X, 3) with components ordered (x, y, z).
    """
    f = np.asarray(field, dtype=np.float64)
    grad = np.empty(f.shape + (3,), dtype=np.float64)
    # component k (x, y, z) differentiates array axis 2 - k of the (Z, Y, X) field
    for k in range(3):
        axis = 2 - k
        _axis_gradient(np.moveaxis(f, axis, 0), np.moveaxis(grad[..., k], axis, 0), dx)
    return grad


def stable_dt_upper_bound(D: float, dx: float, safety: float = 1.0) -> float:
    """
    Largest explicit step for the 3D face stencil: dt <= safety * dx^2 / (6 D).
    Returns inf when D == 0 (nothing diffuses).
    """
    if D <= 0:
        return math.inf
    return safety * (dx * dx) / (6.0 * D)
