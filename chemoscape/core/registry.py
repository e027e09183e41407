from __future__ import annotations
import logging
from typing import Callable, Dict, Iterator, List, Optional

from ..errors import InvalidArgumentError, InvalidStateError
from .field import DiffusionField

log = logging.getLogger(__name__)

# ---------- behavior factories (by config "type") ----------

BehaviorFactory = Callable[..., object]
_REGISTRY: Dict[str, BehaviorFactory] = {}

def register(name: str):
    def deco(fn: BehaviorFactory):
        _REGISTRY[name] = fn
        return fn
    return deco

def get(name: str) -> BehaviorFactory:
    if name not in _REGISTRY:
        raise KeyError(f"Unknown behavior '{name}'. Available: {', '.join(sorted(_REGISTRY))}")
    return _REGISTRY[name]

def available() -> List[str]:
    return sorted(_REGISTRY)


# ---------- substances ----------

class SubstanceRegistry:
    """Owns one DiffusionField per substance name; removing a substance drops its field."""

    def __init__(self):
        self._fields: Dict[str, DiffusionField] = {}

    def add(self, name: str, diffusion_coefficient: float,
            concentration_cap: Optional[float] = None) -> DiffusionField:
        if name in self._fields:
            raise InvalidStateError(f"substance '{name}' is already registered")
        field = DiffusionField(name, diffusion_coefficient)
        if concentration_cap is not None:
            field.set_concentration_threshold(concentration_cap)
        self._fields[name] = field
        log.debug("registered substance %s (D=%s)", name, diffusion_coefficient)
        return field

    def get(self, name: str) -> DiffusionField:
        try:
            return self._fields[name]
        except KeyError:
            raise InvalidArgumentError(
                f"Unknown substance '{name}'. Registered: {', '.join(sorted(self._fields)) or 'none'}"
            ) from None

    def remove(self, name: str) -> None:
        if self._fields.pop(name, None) is None:
            raise InvalidArgumentError(f"Unknown substance '{name}'")

    def names(self) -> List[str]:
        return list(self._fields)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[DiffusionField]:
        return iter(list(self._fields.values()))

    def __len__(self) -> int:
        return len(self._fields)

    # ---------- per-step fan-out ----------

    def initialize_all(self, bounds, spacing: float) -> None:
        for f in self._fields.values():
            if not f.initialized:
                f.initialize(bounds, spacing)

    def update_all(self, bounds) -> None:
        for f in self._fields.values():
            f.update(bounds)

    def diffuse_all(self, dt: float) -> None:
        for f in self._fields.values():
            f.diffuse_step(dt)
            f.compute_gradient()
