from __future__ import annotations
import inspect
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml
from pydantic import ValidationError

from ..core import registry
from ..io.config import ScenarioConfig, _format_errors, read_yaml
from ..rd.simple import stable_dt_upper_bound

def validate_config(path: Path) -> Tuple[Dict[str, Any], List[str], List[str]]:
    """
    Validate a chemoscape scenario YAML.

    Returns:
        summary: {path, substances, agents, sources, steps, spacing, dt}
        errors:  list of fatal issues (non-zero exit in CLI)
        warnings:list of non-fatal issues (e.g. an unstable dt)
    """
    errors: List[str] = []
    warnings: List[str] = []
    summary: Dict[str, Any] = {"path": str(path)}

    try:
        data = read_yaml(path)
    except FileNotFoundError:
        errors.append(f"File not found: {path}")
        return summary, errors, warnings
    except yaml.YAMLError as e:
        errors.append(f"YAML parse error in {path}: {e}")
        return summary, errors, warnings
    if not isinstance(data, dict):
        errors.append(f"{path}: top level must be a mapping.")
        return summary, errors, warnings

    try:
        cfg = ScenarioConfig.model_validate(data)
    except ValidationError as e:
        errors.extend(f"{path}: {m}" for m in _format_errors(e))
        return summary, errors, warnings

    h = cfg.spacing()
    dt = cfg.time_step()
    summary.update({
        "substances": [s.name for s in cfg.substances],
        "agents": len(cfg.agents),
        "sources": len(cfg.sources),
        "steps": cfg.simulation.steps,
        "spacing": h,
        "dt": dt,
    })

    for s in cfg.substances:
        limit = stable_dt_upper_bound(s.diffusion_coefficient, h)
        if dt > limit:
            warnings.append(
                f"substance {s.name}: dt={dt:g} exceeds the stable explicit step {limit:g} "
                f"(D*dt/h^2 = {s.diffusion_coefficient * dt / (h * h):.3f} > 1/6)"
            )
        if s.diffusion_coefficient == 0:
            warnings.append(f"substance {s.name}: diffusion coefficient is 0, it will not spread.")

    for a in cfg.agents:
        for b in a.behaviors:
            try:
                inspect.signature(registry.get(b.type)).bind(substance=b.substance, **b.params())
            except TypeError as e:
                errors.append(f"{path}: agent {a.id}: behavior '{b.type}': {e}")

    secreted = {b.substance for a in cfg.agents for b in a.behaviors if b.type == "secretion"}
    secreted |= {src.substance for src in cfg.sources}
    for s in cfg.substances:
        if s.name not in secreted:
            warnings.append(f"substance {s.name}: no secretion behavior or source feeds it.")

    return summary, errors, warnings
