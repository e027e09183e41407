# chemoscape/io/config.py
from __future__ import annotations
import math
from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..core import registry
from ..coupling import behaviors as _behaviors  # noqa: F401  (registers behavior types)
from ..errors import InvalidArgumentError

Vec3 = Tuple[float, float, float]


class SimulationSettings(BaseModel):
    steps: int = Field(100, ge=1)
    dt: Optional[float] = Field(None, gt=0)
    box_length: Optional[float] = Field(None, gt=0)


class SubstanceConfig(BaseModel):
    name: str = Field(..., min_length=1)
    diffusion_coefficient: float = Field(..., ge=0)
    concentration_cap: Optional[float] = Field(None, ge=0)


class BehaviorConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    substance: str

    @field_validator("type")
    @classmethod
    def _known_type(cls, v: str) -> str:
        if v not in registry.available():
            raise ValueError(f"unknown behavior '{v}' (available: {', '.join(registry.available())})")
        return v

    def params(self) -> dict:
        return dict(self.model_extra or {})


class AgentConfig(BaseModel):
    id: str
    position: Vec3
    diameter: float = Field(..., gt=0)
    behaviors: List[BehaviorConfig] = Field(default_factory=list)


class SourceConfig(BaseModel):
    substance: str
    position: Vec3
    amount: float = Field(..., ge=0)


class ScenarioConfig(BaseModel):
    simulation: SimulationSettings = Field(default_factory=SimulationSettings)
    substances: List[SubstanceConfig] = Field(..., min_length=1)
    agents: List[AgentConfig] = Field(..., min_length=1)
    sources: List[SourceConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_references(self) -> "ScenarioConfig":
        names = [s.name for s in self.substances]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"duplicate substance names: {', '.join(dupes)}")
        ids = [a.id for a in self.agents]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise ValueError(f"duplicate agent ids: {', '.join(dupes)}")
        known = set(names)
        for a in self.agents:
            for b in a.behaviors:
                if b.substance not in known:
                    raise ValueError(f"agent {a.id}: behavior '{b.type}' uses unknown substance '{b.substance}'")
        for s in self.sources:
            if s.substance not in known:
                raise ValueError(f"source at {s.position} uses unknown substance '{s.substance}'")
        return self

    def spacing(self) -> float:
        """Cell edge the neighbor grid will settle on (box_length, else largest diameter rounded up)."""
        if self.simulation.box_length is not None:
            return self.simulation.box_length
        return float(math.ceil(max(a.diameter for a in self.agents)))

    def time_step(self) -> float:
        """Configured dt, else the largest stable explicit step over all substances."""
        if self.simulation.dt is not None:
            return self.simulation.dt
        h = self.spacing()
        D = max(s.diffusion_coefficient for s in self.substances)
        if D <= 0:
            return 1.0
        return h * h / (6.0 * D)


def _format_errors(e: ValidationError) -> List[str]:
    out = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        out.append(f"{loc}: {err.get('msg')}")
    return out


def read_yaml(path: str | Path) -> dict:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Scenario config not found: {path}")
    with p.open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def parse_config(data: dict) -> ScenarioConfig:
    try:
        return ScenarioConfig.model_validate(data)
    except ValidationError as e:
        raise InvalidArgumentError("invalid scenario config:\n  " + "\n  ".join(_format_errors(e))) from e


def load_config(path: str | Path) -> ScenarioConfig:
    try:
        data = read_yaml(path)
    except yaml.YAMLError as e:
        raise InvalidArgumentError(f"YAML parse error in {path}: {e}") from e
    return parse_config(data)
