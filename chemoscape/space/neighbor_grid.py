# chemoscape/space/neighbor_grid.py
from __future__ import annotations
import math
from typing import Optional, Protocol, Sequence

import numpy as np

from ..errors import InvalidArgumentError, InvalidStateError
from ..grid.core import Bounds

class BoundingBoxProvider(Protocol):
    """Read-only snapshot of the agents' spatial index, taken once per step."""
    def get_dimensions(self) -> Bounds: ...
    def get_box_length(self) -> float: ...

class NeighborGrid:
    """
    Agent bounding box in whole boxes:
    - box length = largest agent diameter (rounded up), unless given; fixed after the first update
    - per axis: lo = floor(min) - box, n = floor((max - min) / box) + 1 + 2 padding boxes
    - dimensions only ever grow between updates
    """

    def __init__(self, box_length: Optional[float] = None):
        if box_length is not None and (not math.isfinite(box_length) or box_length <= 0):
            raise InvalidArgumentError(f"box_length must be positive, got {box_length}")
        self._box_length = box_length
        self._dims: Optional[list[float]] = None

    def update_grid(self, positions: Sequence[Sequence[float]], diameters: Sequence[float]) -> Bounds:
        pos = np.asarray(positions, dtype=float).reshape(-1, 3)
        dia = np.asarray(diameters, dtype=float).reshape(-1)
        if len(pos) == 0:
            raise InvalidArgumentError("cannot build a neighbor grid without agents")
        if len(dia) != len(pos):
            raise InvalidArgumentError(f"{len(pos)} positions but {len(dia)} diameters")
        if not np.isfinite(pos).all() or not np.isfinite(dia).all():
            raise InvalidArgumentError("agent positions and diameters must be finite")
        if self._box_length is None:
            largest = float(dia.max())
            if largest <= 0:
                raise InvalidArgumentError("largest agent diameter must be positive")
            self._box_length = float(math.ceil(largest))
        box = self._box_length

        dims = []
        for axis in range(3):
            mn = math.floor(float(pos[:, axis].min()))
            mx = float(pos[:, axis].max())
            n = math.floor((mx - mn) / box) + 1 + 2
            lo = mn - box
            dims += [lo, lo + n * box]
        if self._dims is not None:
            dims = [min(dims[i], self._dims[i]) if i % 2 == 0 else max(dims[i], self._dims[i])
                    for i in range(6)]
        self._dims = dims
        return self.get_dimensions()

    def get_dimensions(self) -> Bounds:
        if self._dims is None:
            raise InvalidStateError("neighbor grid has not been built yet")
        return tuple(self._dims)  # type: ignore[return-value]

    def get_box_length(self) -> float:
        if self._box_length is None:
            raise InvalidStateError("neighbor grid has not been built yet")
        return self._box_length
