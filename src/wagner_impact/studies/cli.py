"""
Typer CLI commands for studies.

Imported and registered from `wagner_impact.cli`.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import List, Tuple

import typer


def _parse_floats_csv(s: str) -> List[float]:
    """Parse comma/space-separated floats, e.g. "1e-4,5e-5"."""
    s = (s or '').strip()
    if not s:
        return []
    parts = [p for p in re.split(r'[\s,]+', s) if p]
    try:
        return [float(p) for p in parts]
    except ValueError as e:
        raise typer.BadParameter(f'Could not parse floats from: {s!r}') from e


def _parse_case_spec(spec: str) -> Tuple[str, Path]:
    """Parse "name=path/to/output.txt"; a bare path uses its parent directory name."""
    if "=" in spec:
        name, path = spec.split("=", 1)
        name = name.strip()
        if not name:
            raise typer.BadParameter(f"Empty case name in {spec!r}")
        return name, Path(path.strip())
    path = Path(spec.strip())
    return path.parent.name or path.stem, path


def register_study_commands(app: typer.Typer) -> None:
    @app.command("compare")
    def compare_cmd(
        cases: List[str] = typer.Option(
            ..., "--case", help='Flow-solver output as "name=path" (repeatable)'
        ),
        impact_time: float = typer.Option(..., "--impact-time", help="Theoretical impact time to shift by"),
        t_max: float = typer.Option(0.8, "--t-max", help="Maximum (unshifted) time"),
        eps: float = typer.Option(1.0, "--eps", help="Expansion parameter"),
        n: int = typer.Option(1000, "--n", help="Number of baseline time samples"),
        out: Path = typer.Option(..., "--out", "-o", help="Output directory"),
    ) -> None:
        """Compare flow-solver forces with the stationary-plate Wagner force."""
        from .comparison import ComparisonCase, run_force_comparison

        parsed = [_parse_case_spec(c) for c in cases]
        for name, path in parsed:
            if not path.is_file():
                raise typer.BadParameter(f"Case '{name}': file not found: {path}")
        _, summary = run_force_comparison(
            [ComparisonCase(name=name, path=path) for name, path in parsed],
            impact_time=impact_time,
            t_max=t_max,
            eps=eps,
            n=n,
            out_dir=out,
        )
        typer.echo(summary.to_string(index=False))
        typer.echo(f"Saved to: {out}")

    @app.command("sigma-convergence")
    def sigma_convergence_cmd(
        times: str = typer.Option("1e-4,1e-2,0.1,0.5", "--times", help="Comma/space-separated Wagner times"),
        ns: str = typer.Option("250,500,1000,2000,4000", "--ns", help="Comma/space-separated sigma grid sizes"),
        eps: float = typer.Option(1.0, "--eps", help="Expansion parameter"),
        out: Path = typer.Option(..., "--out", "-o", help="Output directory"),
    ) -> None:
        """Sweep the sigma grid size and report force convergence."""
        from .convergence import run_sigma_convergence_study

        n_values = [int(v) for v in _parse_floats_csv(ns)]
        summary = run_sigma_convergence_study(
            _parse_floats_csv(times), n_values, eps=eps, out_dir=out
        )
        typer.echo(summary.to_string(index=False))
        typer.echo(f"Saved to: {out}")
