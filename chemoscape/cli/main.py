from __future__ import annotations
from pathlib import Path
from typing import List
import json, logging
import typer
import numpy as np
from rich.logging import RichHandler
from rich.progress import Progress
from ..errors import ChemoscapeError
from ..io.config import load_config
from ..coupling.loop import run_simulation, compute_summary, save_summary_csv
from ..validation.config import validate_config

app = typer.Typer(add_completion=False, no_args_is_help=True)

@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs (grid growth etc.)."),
):
    """
    Diffusion of substances on a growing cubic grid shared with agents.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )

def _load_or_exit(config: Path):
    try:
        return load_config(config)
    except (ChemoscapeError, FileNotFoundError) as e:
        typer.secho(f"❌ {e}", fg=typer.colors.RED)
        raise typer.Exit(2)

"""
Validate a scenario YAML.
Exits with non-zero code if errors are found.
"""

@app.command("validate")
def validate_cmd(
    config: Path = typer.Argument(..., help="Path to scenario YAML"),
    json_out: bool = typer.Option(False, "--json", help="Emit JSON report"),
):
    summary, errors, warnings = validate_config(config.resolve())
    if json_out:
        typer.echo(json.dumps({"summary": summary, "errors": errors, "warnings": warnings}, indent=2))
    else:
        typer.echo("== chemoscape validation report ==")
        typer.echo(f"Config: {summary.get('path')}")
        if "substances" in summary:
            typer.echo(f"Substances: {', '.join(summary['substances'])}")
            typer.echo(f"Agents: {summary['agents']} | Sources: {summary['sources']}")
            typer.echo(f"Steps: {summary['steps']} | spacing: {summary['spacing']:g} | dt: {summary['dt']:g}")
        if warnings:
            typer.echo("")
            typer.secho(f"Warnings ({len(warnings)}):", fg=typer.colors.YELLOW)
            for w in warnings:
                typer.echo(f"  - {w}")
        if errors:
            typer.echo("")
            typer.secho(f"Errors ({len(errors)}):", fg=typer.colors.RED)
            for e in errors:
                typer.echo(f"  - {e}")
        typer.echo("")
        typer.secho("Result: " + ("FAILED" if errors else "OK"), fg=typer.colors.RED if errors else typer.colors.GREEN)
    raise typer.Exit(code=1 if errors else 0)


@app.command("simulate")
def simulate_cmd(
    config: Path = typer.Argument(..., help="Scenario YAML"),
    outdir: Path = typer.Option(Path("outputs/simulate"), help="Output directory"),
    plot: bool = typer.Option(False, help="Save heatmaps and mass traces"),
):
    """
    Run a scenario and write summary.json, summary.csv, trace.csv and fields.npz to OUTDIR.
    """
    cfg = _load_or_exit(config)
    outdir.mkdir(parents=True, exist_ok=True)
    steps = cfg.simulation.steps
    try:
        with Progress() as prog:
            task = prog.add_task("[cyan]Diffusing…", total=steps)
            result = run_simulation(cfg, progress_cb=lambda i, n: prog.update(task, completed=i))
    except ChemoscapeError as e:
        typer.secho(f"❌ Simulation failed: {e}", fg=typer.colors.RED)
        raise typer.Exit(2)

    summary = compute_summary(result)
    (outdir / "summary.json").write_text(json.dumps(summary, indent=2))
    save_summary_csv(summary, outdir / "summary.csv")
    result.trace.to_csv(outdir / "trace.csv", index=False)
    np.savez_compressed(outdir / "fields.npz",
                        **{f.name: np.array(f.get_concentration_grid()) for f in result.fields})
    if plot:
        from ..viz.plotting import save_heatmap, save_trace
        for f in result.fields:
            xmin, xmax, ymin, ymax = f.get_dimensions()[:4]
            save_heatmap(np.asarray(f.get_concentration_grid()), outdir / f"{f.name}_mid_z.png",
                         title=f"{f.name} (middle z slice)", extent=(xmin, xmax, ymin, ymax))
        save_trace(result.trace, outdir / "total_mass.png", title="Total mass")
    typer.secho(f"✅ Simulated {steps} steps → {outdir.resolve()}", fg=typer.colors.GREEN)


@app.command("sample")
def sample_cmd(
    config: Path = typer.Argument(..., help="Scenario YAML"),
    substance: str = typer.Option(..., "--substance", "-s", help="Substance to read"),
    at: List[float] = typer.Option(..., "--at", help="Position x y z (repeat --at three times)"),
):
    """
    Run a scenario and print the final concentration and gradient at one position.
    """
    if len(at) != 3:
        typer.secho("❌ --at must be given exactly three times (x, y, z).", fg=typer.colors.RED)
        raise typer.Exit(2)
    cfg = _load_or_exit(config)
    try:
        result = run_simulation(cfg)
        field = result.fields.get(substance)
        c = field.get_concentration_at(at)
        g = field.get_gradient_at(at)
    except ChemoscapeError as e:
        typer.secho(f"❌ {e}", fg=typer.colors.RED)
        raise typer.Exit(2)
    typer.echo(json.dumps({
        "substance": substance,
        "position": list(at),
        "cell": list(field.get_box_coordinates_at(at)),
        "concentration": c,
        "gradient": [float(v) for v in g],
    }, indent=2))
