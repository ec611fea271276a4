# src/wagner_impact/cli.py

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

import numpy as np
import typer

from .config import ConfigError, RunConfig, load_run_config, run_from_config
from .core.errors import ConvergenceError, DomainError
from .core.force import SigmaGrid
from .core.pressure import evaluate_pressure_profile
from .core.turnover import TimeSample, turnover_kinematics
from .export import write_force_history, write_pressure_profile

app = typer.Typer(
    add_completion=False,
    help=(
        "Wagner plate-impact CLI\n\n"
        "Composite (inner + outer - overlap) Wagner pressure and force on a\n"
        "plate during early liquid impact. Use 'force' for a force history,\n"
        "'pressure' for one pressure profile and 'compare' to line up\n"
        "flow-solver output with the stationary-plate baseline."
    ),
)

# Studies commands (compare / sigma-convergence)
from .studies.cli import register_study_commands
register_study_commands(app)

# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------


def _ensure_output_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _setup_logger(output_dir: Path, log_stem: str) -> logging.Logger:
    """
    Set up a per-run logger writing to <output_dir>/<log_stem>.log.

    The handler sits on the package logger, so records from every
    ``wagner_impact.*`` module (core, studies, cli) go to the same file. The
    previous run's file handler is closed and replaced.
    """
    _ensure_output_dir(output_dir)
    package_logger = logging.getLogger("wagner_impact")
    package_logger.setLevel(logging.INFO)
    for old in [h for h in package_logger.handlers if isinstance(h, logging.FileHandler)]:
        package_logger.removeHandler(old)
        old.close()

    log_file = output_dir / f"{log_stem}.log"
    handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    handler.setFormatter(formatter)
    package_logger.addHandler(handler)

    return logging.getLogger(f"wagner_impact.cli.{log_stem}")


def _print_and_log(logger: logging.Logger, msg: str) -> None:
    typer.echo(msg)
    logger.info(msg)


def _load_config(path: Optional[Path]) -> RunConfig:
    if path is None:
        return RunConfig()
    try:
        return load_run_config(path)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------

@app.command()
def force(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        readable=True,
        help="YAML/JSON run configuration (eps, time grid, sigma grid, trajectory).",
    ),
    eps: Optional[float] = typer.Option(None, "--eps", help="Override eps from the config."),
    t_max: Optional[float] = typer.Option(None, "--t-max", help="Override time_grid.t_max."),
    impact_time: Optional[float] = typer.Option(
        None, "--impact-time", help="Override time_grid.impact_time."
    ),
    n: Optional[int] = typer.Option(None, "--n", help="Override time_grid.n."),
    workers: Optional[int] = typer.Option(None, "--workers", "-j", help="Worker processes."),
    output_dir: Path = typer.Option(
        Path("results"),
        "--output-dir",
        "-o",
        help="Directory for result files.",
    ),
    prefix: str = typer.Option(
        "",
        "--prefix",
        "-p",
        help="Optional filename prefix for output files.",
    ),
) -> None:
    """
    Compute a composite Wagner force history.

    Example: stationary plate, impact at t = 0.125, up to t = 0.8

        wagner-impact force --t-max 0.8 --impact-time 0.125 -o results/wagner
    """
    _ensure_output_dir(output_dir)
    filename_prefix = f"{prefix}_" if prefix else ""
    log_stem = f"{filename_prefix}force"
    logger = _setup_logger(output_dir, log_stem)

    cfg = _load_config(config)
    if config is not None:
        _print_and_log(logger, f"Loaded config: {config}")

    grid_updates = {
        k: v
        for k, v in {"t_max": t_max, "impact_time": impact_time, "n": n}.items()
        if v is not None
    }
    updates = {}
    if grid_updates:
        updates["time_grid"] = cfg.time_grid.model_dump() | grid_updates
    if eps is not None:
        updates["eps"] = eps
    if workers is not None:
        updates["integration"] = cfg.integration.model_dump() | {"workers": workers}
    if updates:
        try:
            cfg = RunConfig.model_validate(cfg.model_dump() | updates)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc

    _print_and_log(
        logger,
        f"Running force history: eps={cfg.eps:g}, t in [{cfg.time_grid.t_min:g}, "
        f"{cfg.time_grid.t_max - cfg.time_grid.impact_time:g}], n={cfg.time_grid.n}",
    )
    t0 = time.perf_counter()
    try:
        df = run_from_config(cfg, config_dir=config.parent if config else None)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except (DomainError, ConvergenceError) as exc:
        logger.error("Force history aborted: %s", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)
    wall_time = time.perf_counter() - t0

    out_path = output_dir / f"{filename_prefix}force_history.txt"
    _print_and_log(logger, f"Writing force history to {out_path}")
    write_force_history(df, out_path)

    forces = df["Force"].to_numpy(dtype=float)
    n_failed = int(df.attrs.get("n_failed", 0))
    typer.echo("")
    typer.echo("Force history:")
    typer.echo(f"  Samples               : {len(df)} ({n_failed} failed)")
    if np.isfinite(forces).any():
        idx = int(np.nanargmax(forces))
        typer.echo(f"  Peak force            : {forces[idx]:.6g} at t = {df['Time'].iloc[idx]:.6g}")
        typer.echo(f"  Final force           : {forces[-1]:.6g}")
    typer.echo(f"  Wall-clock time       : {wall_time:.3f} s")
    logger.info("Samples=%d failed=%d wall_time=%.3fs", len(df), n_failed, wall_time)

    typer.echo(f"\nDetailed log written to {output_dir / f'{log_stem}.log'}")
    logger.info("Run completed.")


@app.command()
def pressure(
    t: float = typer.Option(..., "--t", help="Time after theoretical impact."),
    s: float = typer.Option(0.0, "--s", help="Plate penetration s(t)."),
    sdot: float = typer.Option(0.0, "--sdot", help="ds/dt."),
    sddot: float = typer.Option(0.0, "--sddot", help="d2s/dt2."),
    eps: float = typer.Option(1.0, "--eps", help="Expansion parameter."),
    n_sigma: int = typer.Option(2000, "--n-sigma", help="Number of sigma samples."),
    sigma_min: float = typer.Option(1.0e-8, "--sigma-min", help="Smallest sigma sample."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the profile (sigma, radius, pressure) to this file."
    ),
) -> None:
    """Evaluate the composite pressure profile at one time instant."""
    sample = TimeSample(t=t, s=s, sdot=sdot, sddot=sddot)
    try:
        state = turnover_kinematics(sample)
        sigmas = SigmaGrid(n=n_sigma, sigma_min=sigma_min).build(state, eps)
        profile = evaluate_pressure_profile(sigmas, sample, eps)
    except (DomainError, ConvergenceError) as exc:
        raise typer.BadParameter(str(exc)) from exc

    typer.echo(f"d = {state.d:.6g}, ddot = {state.ddot:.6g}, dddot = {state.dddot:.6g}")
    typer.echo(f"Peak pressure {profile.peak_pressure:.6g} at r = {profile.radius_at_peak:.6g} "
               f"(sigma = {profile.sigma_peak:.6g})")
    typer.echo(f"Retained samples: {profile.n_samples}")
    for note in profile.warnings:
        typer.echo(f"Warning: {note}", err=True)
    if output is not None:
        write_pressure_profile(profile, output)
        typer.echo(f"Profile written to {output}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
