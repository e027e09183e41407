# chemoscape/core/field.py
from __future__ import annotations
import logging
import math
import threading
from typing import Iterable, Optional, Sequence

import numpy as np

from ..errors import InvalidArgumentError, InvalidStateError
from ..grid.core import Bounds, CubeGrid, migrate
from ..rd.simple import central_gradient, diffuse_step, stable_dt_upper_bound

log = logging.getLogger(__name__)


def _read_only(a: np.ndarray) -> np.ndarray:
    v = a.view()
    v.flags.writeable = False
    return v


def _check_amount(value: float, what: str) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"{what} must be a number, got {value!r}") from e
    if not math.isfinite(v) or v < 0:
        raise InvalidArgumentError(f"{what} must be finite and non-negative, got {value!r}")
    return v


class DiffusionField:
    """
    Concentration of one substance on a cubic grid that grows with the agents.

    Per step the caller runs: update(box) -> increase_concentration_at(...)* ->
    diffuse_step(dt) -> compute_gradient(). Concentrations are stored (Z, Y, X)
    so the flat view is indexed ix + n*(iy + n*iz); gradients are (Z, Y, X, 3).
    """

    def __init__(self, name: str, diffusion_coefficient: float):
        if not isinstance(name, str) or not name:
            raise InvalidArgumentError(f"substance name must be a non-empty string, got {name!r}")
        self._name = name
        self._D = _check_amount(diffusion_coefficient, "diffusion coefficient")
        self._grid: Optional[CubeGrid] = None
        self._c: Optional[np.ndarray] = None
        self._grad: Optional[np.ndarray] = None
        self._cap: Optional[float] = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        dims = self._grid.bounds if self._grid is not None else None
        return f"DiffusionField(name={self._name!r}, D={self._D}, bounds={dims})"

    # ---------- properties ----------

    @property
    def name(self) -> str:
        return self._name

    @property
    def diffusion_coefficient(self) -> float:
        return self._D

    @property
    def initialized(self) -> bool:
        return self._grid is not None

    @property
    def spacing(self) -> float:
        return self._require().spacing

    @property
    def resolution(self) -> int:
        return self._require().resolution

    @property
    def concentration_cap(self) -> Optional[float]:
        return self._cap

    @property
    def grid(self) -> CubeGrid:
        return self._require()

    def _require(self) -> CubeGrid:
        if self._grid is None:
            raise InvalidStateError(f"diffusion field '{self._name}' has not been initialized")
        return self._grid

    # ---------- lifecycle ----------

    def initialize(self, bounds: Iterable[float], spacing: float) -> None:
        if self._grid is not None:
            raise InvalidStateError(f"diffusion field '{self._name}' is already initialized")
        grid = CubeGrid.from_bounds(bounds, spacing)
        self._c = np.zeros(grid.shape, dtype=np.float64)
        self._grad = np.zeros(grid.shape + (3,), dtype=np.float64)
        self._grid = grid
        log.debug("%s: initialized %s with spacing %s (%d^3 cells)",
                  self._name, grid.bounds, grid.spacing, grid.resolution)

    def update(self, new_external_bounds: Iterable[float]) -> bool:
        """
        Grow the cube so it also covers `new_external_bounds` and migrate the data.
        Returns True if the grid changed; an unchanged cube is an exact no-op.
        """
        old = self._require()
        new = old.grown(new_external_bounds)
        if new == old:
            return False
        offset = new.offset_from(old)
        c = migrate(self._c, new.resolution, offset)
        grad = migrate(self._grad, new.resolution, offset)
        # swap everything in together; nothing above touched self
        self._grid, self._c, self._grad = new, c, grad
        log.debug("%s: grid grew %s -> %s (%d -> %d cells/axis, offset %s)",
                  self._name, old.bounds, new.bounds, old.resolution, new.resolution, offset)
        return True

    # ---------- sources ----------

    def increase_concentration_at(self, position: Sequence[float], amount: float) -> None:
        grid = self._require()
        amount = _check_amount(amount, "amount")
        ix, iy, iz = grid.cell_of(position)
        with self._lock:
            v = self._c[iz, iy, ix] + amount
            if self._cap is not None and v > self._cap:
                v = self._cap
            self._c[iz, iy, ix] = v

    def increase_concentrations_at(self, positions: Sequence[Sequence[float]],
                                   amounts: Sequence[float] | float) -> None:
        """Batch injection; duplicate cells accumulate."""
        grid = self._require()
        positions = list(positions)
        if np.isscalar(amounts):
            amounts = [amounts] * len(positions)
        amounts = [_check_amount(a, "amount") for a in amounts]
        if len(amounts) != len(positions):
            raise InvalidArgumentError(f"{len(positions)} positions but {len(amounts)} amounts")
        if not positions:
            return
        cells = np.array([grid.cell_of(p) for p in positions], dtype=np.intp)
        with self._lock:
            np.add.at(self._c, (cells[:, 2], cells[:, 1], cells[:, 0]), np.asarray(amounts, dtype=np.float64))
            if self._cap is not None:
                np.minimum(self._c, self._cap, out=self._c)

    # ---------- kernels ----------

    def diffuse_step(self, dt: float) -> None:
        grid = self._require()
        try:
            dt = float(dt)
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(f"dt must be a number, got {dt!r}") from e
        if not math.isfinite(dt) or dt <= 0:
            raise InvalidArgumentError(f"dt must be positive and finite, got {dt}")
        nxt = diffuse_step(self._c, self._D, dt, grid.spacing)
        if self._cap is not None:
            np.minimum(nxt, self._cap, out=nxt)
        self._c = nxt

    def compute_gradient(self) -> None:
        grid = self._require()
        self._grad = central_gradient(self._c, grid.spacing)

    def stable_time_step(self, safety: float = 1.0) -> float:
        return stable_dt_upper_bound(self._D, self._require().spacing, safety)

    # ---------- queries ----------

    def get_box_index(self, coord: Sequence[int]) -> int:
        return self._require().index(coord)

    def get_box_coordinates(self, index: int) -> tuple[int, int, int]:
        return self._require().coordinates(index)

    def get_box_coordinates_at(self, position: Sequence[float]) -> tuple[int, int, int]:
        return self._require().cell_of(position)

    def get_all_concentrations(self) -> np.ndarray:
        self._require()
        return _read_only(self._c.reshape(-1))

    def get_all_gradients(self) -> np.ndarray:
        self._require()
        return _read_only(self._grad.reshape(-1, 3))

    def get_concentration_grid(self) -> np.ndarray:
        self._require()
        return _read_only(self._c)

    def get_concentration_at(self, position: Sequence[float]) -> float:
        ix, iy, iz = self._require().cell_of(position)
        return float(self._c[iz, iy, ix])

    def get_gradient_at(self, position: Sequence[float]) -> np.ndarray:
        ix, iy, iz = self._require().cell_of(position)
        return self._grad[iz, iy, ix].copy()

    def set_concentration_threshold(self, value: float) -> None:
        self._cap = _check_amount(value, "concentration threshold")

    def get_dimensions(self) -> Bounds:
        return self._require().bounds

    def total_mass(self) -> float:
        grid = self._require()
        return float(self._c.sum()) * grid.cell_volume
