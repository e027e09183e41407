from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Protocol

import numpy as np

from ..core.registry import SubstanceRegistry, register
from ..errors import InvalidArgumentError


@dataclass
class Agent:
    id: str
    position: np.ndarray
    diameter: float
    behaviors: List["Behavior"] = field(default_factory=list)
    # displacement requested this step; applied by the loop after the injection phase
    pending_move: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=float).reshape(3)
        if not np.isfinite(self.position).all():
            raise InvalidArgumentError(f"agent {self.id}: position must be finite")
        if not self.diameter > 0:
            raise InvalidArgumentError(f"agent {self.id}: diameter must be positive, got {self.diameter}")

    def apply_move(self) -> None:
        self.position = self.position + self.pending_move
        self.pending_move = np.zeros(3)


class Behavior(Protocol):
    """Acts on one agent for one simulation tick, given the substance fields."""
    def run(self, agent: Agent, fields: SubstanceRegistry, dt: float) -> None: ...


@register("secretion")
@dataclass
class Secretion:
    """Adds `amount` of a substance at the agent's position every step."""
    substance: str
    amount: float

    def run(self, agent: Agent, fields: SubstanceRegistry, dt: float) -> None:
        fields.get(self.substance).increase_concentration_at(agent.position, self.amount)


@register("chemotaxis")
@dataclass
class Chemotaxis:
    """Moves the agent `speed` length units per step up the concentration gradient."""
    substance: str
    speed: float = 1.0

    def run(self, agent: Agent, fields: SubstanceRegistry, dt: float) -> None:
        g = fields.get(self.substance).get_gradient_at(agent.position)
        norm = float(np.linalg.norm(g))
        if norm == 0.0:
            return
        agent.pending_move = agent.pending_move + (self.speed / norm) * g
