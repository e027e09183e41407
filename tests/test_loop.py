import csv

import numpy as np
import pytest

from chemoscape.core.registry import SubstanceRegistry
from chemoscape.coupling.behaviors import Agent, Chemotaxis, Secretion
from chemoscape.coupling.loop import build_agents, compute_summary, run_simulation, save_summary_csv
from chemoscape.errors import InvalidArgumentError
from chemoscape.io.config import parse_config

CENTER = 9.7267657389657938


def leaking_edge_config(**overrides):
    data = {
        "simulation": {"steps": 100, "dt": 150.0},
        "substances": [{"name": "Kalium", "diffusion_coefficient": 0.4, "concentration_cap": 1e15}],
        "agents": [
            {"id": "a", "position": [0, 0, 0], "diameter": 30},
            {"id": "b", "position": [60, 60, 60], "diameter": 30},
        ],
        "sources": [{"substance": "Kalium", "position": [45, 45, 45], "amount": 4}],
    }
    data.update(overrides)
    return parse_config(data)


def test_loop_reproduces_point_source_run():
    calls = []
    result = run_simulation(leaking_edge_config(), progress_cb=lambda i, n: calls.append((i, n)))
    f = result.fields.get("Kalium")
    assert f.get_dimensions() == (-30, 120, -30, 120, -30, 120)
    assert f.get_all_concentrations()[f.get_box_index((2, 2, 2))] == pytest.approx(CENTER, rel=1e-10)
    assert calls[-1] == (100, 100) and len(calls) == 100
    assert list(result.trace.columns) == ["step", "substance", "total_mass", "max_concentration", "resolution"]
    assert len(result.trace) == 100
    assert (result.trace["resolution"] == 5).all()


def test_secreting_agent_matches_fixed_source():
    cfg = leaking_edge_config(
        sources=[],
        agents=[
            {"id": "a", "position": [0, 0, 0], "diameter": 30},
            {"id": "b", "position": [60, 60, 60], "diameter": 30},
            {"id": "s", "position": [45, 45, 45], "diameter": 30,
             "behaviors": [{"type": "secretion", "substance": "Kalium", "amount": 4}]},
        ],
    )
    f = run_simulation(cfg).fields.get("Kalium")
    assert f.get_concentration_at((45, 45, 45)) == pytest.approx(CENTER, rel=1e-10)


def test_chemotaxis_climbs_towards_source():
    cfg = leaking_edge_config(
        simulation={"steps": 10, "dt": 150.0},
        agents=[
            {"id": "seeker", "position": [0, 0, 0], "diameter": 30,
             "behaviors": [{"type": "chemotaxis", "substance": "Kalium", "speed": 1.0}]},
            {"id": "anchor", "position": [60, 60, 60], "diameter": 30},
        ],
    )
    result = run_simulation(cfg)
    seeker = next(a for a in result.agents if a.id == "seeker")
    target = np.array([45.0, 45.0, 45.0])
    assert np.linalg.norm(seeker.position - target) < np.linalg.norm(target)
    assert (seeker.position > 0).all()
    # symmetric set-up: moves along the diagonal
    assert seeker.position[0] == pytest.approx(seeker.position[1])
    assert seeker.position[1] == pytest.approx(seeker.position[2])


def test_behaviors_act_on_fields():
    reg = SubstanceRegistry()
    reg.add("Kalium", 0.4)
    reg.initialize_all((-30, 120, -30, 120, -30, 120), 30)
    agent = Agent(id="x", position=[45, 45, 15], diameter=10,
                  behaviors=[Secretion("Kalium", 2.0), Chemotaxis("Kalium", speed=2.0)])
    for b in agent.behaviors:
        b.run(agent, reg, 1.0)
    assert reg.get("Kalium").get_concentration_at(agent.position) == 2.0
    # gradient not computed yet -> no move requested
    assert not agent.pending_move.any()

    reg.diffuse_all(150)
    other = Agent(id="y", position=[45, 45, 45], diameter=10)
    Chemotaxis("Kalium", speed=2.0).run(other, reg, 1.0)
    assert other.pending_move[2] == pytest.approx(-2.0)
    other.apply_move()
    assert other.position.tolist() == pytest.approx([45, 45, 43])
    assert not other.pending_move.any()


def test_agent_validation():
    with pytest.raises(InvalidArgumentError):
        Agent(id="bad", position=[0, 0, 0], diameter=0)
    with pytest.raises(InvalidArgumentError):
        Agent(id="bad", position=[0, float("nan"), 0], diameter=1)


def test_bad_behavior_parameters():
    cfg = leaking_edge_config(agents=[
        {"id": "a", "position": [0, 0, 0], "diameter": 30,
         "behaviors": [{"type": "secretion", "substance": "Kalium", "speed": 3}]},
    ])
    with pytest.raises(InvalidArgumentError):
        build_agents(cfg)


def test_summary_and_csv(tmp_path):
    result = run_simulation(leaking_edge_config(simulation={"steps": 3, "dt": 150.0}))
    summary = compute_summary(result)
    assert summary["steps"] == 3 and summary["n_agents"] == 2
    k = summary["substances"]["Kalium"]
    assert k["resolution"] == 5
    assert k["bounds"] == [-30.0, 120.0, -30.0, 120.0, -30.0, 120.0]
    out = tmp_path / "out" / "summary.csv"
    save_summary_csv(summary, out)
    rows = list(csv.reader(out.open()))
    assert rows[0] == ["metric", "value"]
    assert ["steps", "3"] in rows
    assert any(r[0] == "Kalium.total_mass" for r in rows)
