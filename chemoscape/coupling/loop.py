from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional
import csv
import logging

import numpy as np
import pandas as pd

from ..core import registry
from ..core.registry import SubstanceRegistry
from ..errors import InvalidArgumentError
from ..grid.core import CubeGrid
from ..io.config import ScenarioConfig
from ..space.neighbor_grid import NeighborGrid
from .behaviors import Agent

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class SimulationResult:
    fields: SubstanceRegistry
    agents: List[Agent]
    grid: NeighborGrid
    trace: pd.DataFrame
    steps: int
    dt: float


def build_registry(cfg: ScenarioConfig) -> SubstanceRegistry:
    reg = SubstanceRegistry()
    for s in cfg.substances:
        reg.add(s.name, s.diffusion_coefficient, s.concentration_cap)
    return reg


def build_agents(cfg: ScenarioConfig) -> List[Agent]:
    agents = []
    for a in cfg.agents:
        behaviors = []
        for b in a.behaviors:
            factory = registry.get(b.type)
            try:
                behaviors.append(factory(substance=b.substance, **b.params()))
            except TypeError as e:
                raise InvalidArgumentError(f"agent {a.id}: bad parameters for behavior '{b.type}': {e}") from e
        agents.append(Agent(id=a.id, position=np.array(a.position, float), diameter=a.diameter, behaviors=behaviors))
    return agents


def _snapshot_rows(step: int, fields: SubstanceRegistry) -> List[dict]:
    rows = []
    for f in fields:
        c = f.get_all_concentrations()
        rows.append({
            "step": step,
            "substance": f.name,
            "total_mass": f.total_mass(),
            "max_concentration": float(c.max()),
            "resolution": f.resolution,
        })
    return rows


def run_simulation(cfg: ScenarioConfig, progress_cb: Optional[ProgressCallback] = None) -> SimulationResult:
    """
    Per step:
    - rebuild the agents' bounding box and grow every field to cover it
    - run agent behaviors (secretion injects, chemotaxis requests a move), then fixed sources
    - diffuse and recompute gradients
    - apply the requested agent moves
    If provided, progress_cb(i, steps) is called after each step.
    """
    fields = build_registry(cfg)
    agents = build_agents(cfg)
    grid = NeighborGrid(cfg.simulation.box_length)
    dt = cfg.time_step()
    steps = cfg.simulation.steps
    src_pos = [s.position for s in cfg.sources]

    rows: List[dict] = []
    for i in range(steps):
        positions = [a.position for a in agents] + src_pos
        diameters = [a.diameter for a in agents] + [0.0] * len(src_pos)
        bounds = grid.update_grid(positions, diameters)
        if i == 0:
            cube = CubeGrid.enclosing(bounds, grid.get_box_length())
            fields.initialize_all(cube.bounds, cube.spacing)
        fields.update_all(bounds)

        for a in agents:
            for b in a.behaviors:
                b.run(a, fields, dt)
        for s in cfg.sources:
            fields.get(s.substance).increase_concentration_at(s.position, s.amount)

        fields.diffuse_all(dt)
        for a in agents:
            a.apply_move()

        rows.extend(_snapshot_rows(i + 1, fields))
        if progress_cb is not None:
            progress_cb(i + 1, steps)

    log.info("simulated %d steps (dt=%g) for %d substances", steps, dt, len(fields))
    trace = pd.DataFrame(rows, columns=["step", "substance", "total_mass", "max_concentration", "resolution"])
    return SimulationResult(fields=fields, agents=agents, grid=grid, trace=trace, steps=steps, dt=dt)


def compute_summary(result: SimulationResult) -> dict:
    substances: Dict[str, dict] = {}
    for f in result.fields:
        c = f.get_all_concentrations()
        substances[f.name] = {
            "bounds": [float(v) for v in f.get_dimensions()],
            "resolution": f.resolution,
            "total_mass": f.total_mass(),
            "max_concentration": float(c.max()),
            "mean_concentration": float(c.mean()),
        }
    return {
        "steps": result.steps,
        "dt": result.dt,
        "n_agents": len(result.agents),
        "substances": substances,
        "agents": {a.id: [float(v) for v in a.position] for a in result.agents},
    }


def save_summary_csv(summary: dict, out_csv: str | Path):
    Path(out_csv).parent.mkdir(parents=True, exist_ok=True)
    with open(out_csv, "w", newline="") as f:
        w = csv.writer(f)
        w.writerow(["metric", "value"])
        w.writerow(["steps", summary["steps"]])
        w.writerow(["dt", summary["dt"]])
        w.writerow(["n_agents", summary["n_agents"]])
        for name, s in summary["substances"].items():
            for k in ("resolution", "total_mass", "max_concentration", "mean_concentration"):
                w.writerow([f"{name}.{k}", s[k]])
