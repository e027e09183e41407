from __future__ import annotations
from dataclasses import dataclass
import math
import operator
from typing import Iterable, Sequence, Tuple

import numpy as np

from ..errors import InvalidArgumentError, OutOfBoundsError

Bounds = Tuple[float, float, float, float, float, float]

# relative tolerance used when checking that an extent is a whole number of cells
_EPS = 1e-9


def as_bounds(values: Iterable[float]) -> Bounds:
    """
    Coerce `values` into [xmin,xmax,ymin,ymax,zmin,zmax].
    Raises InvalidArgumentError on wrong arity, non-finite values or min > max.
    """
    try:
        b = tuple(values)
    except TypeError as e:
        raise InvalidArgumentError(f"bounds must be a sequence of 6 numbers, got {values!r}") from e
    if len(b) != 6:
        raise InvalidArgumentError(f"bounds must have 6 entries, got {len(b)}")
    for v in b:
        if isinstance(v, bool) or not isinstance(v, (int, float, np.integer, np.floating)):
            raise InvalidArgumentError(f"bounds must be numeric, got {v!r}")
        if not math.isfinite(v):
            raise InvalidArgumentError(f"bounds must be finite, got {b}")
    for axis in range(3):
        if b[2 * axis] > b[2 * axis + 1]:
            raise InvalidArgumentError(f"bounds axis {axis}: min {b[2*axis]} > max {b[2*axis+1]}")
    return b  # type: ignore[return-value]


def check_spacing(spacing: float) -> float:
    if isinstance(spacing, bool) or not isinstance(spacing, (int, float, np.integer, np.floating)):
        raise InvalidArgumentError(f"spacing must be a number, got {spacing!r}")
    if not math.isfinite(spacing) or spacing <= 0:
        raise InvalidArgumentError(f"spacing must be positive and finite, got {spacing}")
    return spacing


@dataclass(frozen=True)
class CubeGrid:
    """
    Regular cubic lattice with cells of edge `spacing`. Axis a covers [lo[a], hi[a]];
    every axis has the same extent, but origins may differ per axis.
    Cell (ix, iy, iz) has flat index ix + n*(iy + n*iz); arrays are stored (Z, Y, X).
    """
    lo: Tuple[float, float, float]
    hi: Tuple[float, float, float]
    spacing: float

    @classmethod
    def from_bounds(cls, bounds: Iterable[float], spacing: float) -> "CubeGrid":
        b = as_bounds(bounds)
        h = check_spacing(spacing)
        extents = [b[1] - b[0], b[3] - b[2], b[5] - b[4]]
        if not (extents[0] == extents[1] == extents[2]):
            raise InvalidArgumentError(f"bounds must describe a cube, got extents {extents}")
        if extents[0] <= 0:
            raise InvalidArgumentError(f"bounds must have a positive extent, got {b}")
        cells = extents[0] / h
        if abs(cells - round(cells)) > _EPS * max(1.0, cells):
            raise InvalidArgumentError(f"extent {extents[0]} is not a multiple of spacing {h}")
        return cls((b[0], b[2], b[4]), (b[1], b[3], b[5]), h)

    @classmethod
    def shared(cls, lo: float, hi: float, spacing: float) -> "CubeGrid":
        """Cube with the same [lo, hi] on every axis."""
        return cls((lo, lo, lo), (hi, hi, hi), spacing)

    @property
    def bounds(self) -> Bounds:
        return (self.lo[0], self.hi[0], self.lo[1], self.hi[1], self.lo[2], self.hi[2])

    @property
    def extent(self) -> float:
        return self.hi[0] - self.lo[0]

    @property
    def resolution(self) -> int:
        return max(1, int(round(self.extent / self.spacing)))

    @property
    def shape(self) -> tuple[int, int, int]:
        n = self.resolution
        return (n, n, n)

    @property
    def n_cells(self) -> int:
        return self.resolution ** 3

    @property
    def cell_volume(self) -> float:
        return float(self.spacing) ** 3

    # ---------- indexing ----------

    def index(self, coord: Sequence[int]) -> int:
        ix, iy, iz = self._check_coord(coord)
        n = self.resolution
        return ix + n * (iy + n * iz)

    def coordinates(self, index: int) -> tuple[int, int, int]:
        i = operator.index(index)
        n = self.resolution
        if i < 0 or i >= self.n_cells:
            raise OutOfBoundsError(f"box index {i} outside [0, {self.n_cells})")
        iz, rem = divmod(i, n * n)
        iy, ix = divmod(rem, n)
        return ix, iy, iz

    def cell_of(self, position: Sequence[float]) -> tuple[int, int, int]:
        """Cell containing a real-space point; the upper face belongs to the last cell."""
        if len(position) != 3:
            raise InvalidArgumentError(f"position must have 3 components, got {position!r}")
        n = self.resolution
        out = []
        for axis, p in enumerate(position):
            p = float(p)
            if not math.isfinite(p):
                raise InvalidArgumentError(f"position must be finite, got {position!r}")
            lo, hi = self.lo[axis], self.hi[axis]
            if p < lo or p > hi:
                raise OutOfBoundsError(f"position {tuple(position)} outside domain {self.bounds}")
            out.append(min(int((p - lo) // self.spacing), n - 1))
        return tuple(out)  # type: ignore[return-value]

    def _check_coord(self, coord: Sequence[int]) -> tuple[int, int, int]:
        if len(coord) != 3:
            raise InvalidArgumentError(f"box coordinate must have 3 components, got {coord!r}")
        try:
            c = tuple(operator.index(v) for v in coord)
        except TypeError as e:
            raise InvalidArgumentError(f"box coordinate must be integers, got {coord!r}") from e
        n = self.resolution
        if any(v < 0 or v >= n for v in c):
            raise OutOfBoundsError(f"box coordinate {c} outside [0, {n})")
        return c  # type: ignore[return-value]

    # ---------- growth ----------

    @classmethod
    def enclosing(cls, external_bounds: Iterable[float], spacing: float) -> "CubeGrid":
        """Smallest cube starting at the lowest external face that covers `external_bounds`."""
        b = as_bounds(external_bounds)
        h = check_spacing(spacing)
        return _aligned(min(b[0], b[2], b[4]), max(b[1], b[3], b[5]), h)

    def contains(self, external_bounds: Iterable[float]) -> bool:
        b = as_bounds(external_bounds)
        return all(self.lo[a] <= b[2 * a] and b[2 * a + 1] <= self.hi[a] for a in range(3))

    def grown(self, external_bounds: Iterable[float]) -> "CubeGrid":
        """
        Smallest cube containing this grid and `external_bounds`.
        Unchanged if the box already fits. Otherwise lo/hi are the min/max over
        every axis (one shared origin), and hi is pushed outward until the extent
        is a whole number of cells. Never shrinks.
        """
        b = as_bounds(external_bounds)
        if self.contains(b):
            return self
        lo = min(min(self.lo), b[0], b[2], b[4])
        hi = max(max(self.hi), b[1], b[3], b[5])
        return _aligned(lo, hi, self.spacing)

    def offset_from(self, old: "CubeGrid") -> tuple[int, int, int]:
        """Per-axis (x, y, z) cells between the origin of `old` and this grid's, clamped to the growth."""
        growth = max(self.resolution - old.resolution, 0)
        out = []
        for a in range(3):
            shift = int(round((old.lo[a] - self.lo[a]) / self.spacing))
            out.append(min(max(shift, 0), growth))
        return tuple(out)  # type: ignore[return-value]


def _aligned(lo: float, hi: float, spacing: float) -> CubeGrid:
    if hi - lo <= 0:
        hi = lo + spacing
    r = math.fmod(hi - lo, spacing)
    if r > _EPS * spacing and spacing - r > _EPS * spacing:
        hi = hi + (spacing - r)
    return CubeGrid.shared(lo, hi, spacing)


def migrate(values: np.ndarray, resolution: int, offset: Sequence[int]) -> np.ndarray:
    """
    Copy a (n, n, n[, k]) (Z, Y, X) array into a zero-filled (resolution, ...) array
    so that old cell (ix, iy, iz) lands on (ix+ox, iy+oy, iz+oz), offset = (ox, oy, oz).
    """
    n = values.shape[0]
    ox, oy, oz = offset
    if any(o < 0 or o + n > resolution for o in (ox, oy, oz)):
        raise InvalidArgumentError(f"cannot place {n} cells at offset {tuple(offset)} in a grid of {resolution}")
    out = np.zeros((resolution, resolution, resolution) + values.shape[3:], dtype=values.dtype)
    out[oz:oz + n, oy:oy + n, ox:ox + n, ...] = values
    return out
