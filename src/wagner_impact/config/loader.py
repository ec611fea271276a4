from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
import yaml
from pydantic import ValidationError

from ..core.force import SigmaGrid, compute_force_history
from ..core.trajectory import StationaryTrajectory, TabulatedTrajectory, Trajectory
from .models import (
    RunConfig,
    SigmaGridSpec,
    TabulatedTrajectorySpec,
    TrajectorySpec,
    format_validation_error,
)


class ConfigError(ValueError):
    pass


def load_run_config(path: Path) -> RunConfig:
    raw = _load_raw_config(path)
    return normalize_config_dict(raw, filename=path.name)


def _load_raw_config(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    elif suffix == ".json":
        data = json.loads(text)
    else:
        raise ConfigError(f"Unsupported config extension '{path.suffix}'.")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name}: configuration must be a mapping")
    return data


def normalize_config_dict(config: Dict[str, Any], *, filename: str) -> RunConfig:
    raw = deepcopy(config)
    try:
        return RunConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(format_validation_error(exc, filename=filename)) from exc


def build_trajectory(spec: TrajectorySpec, *, config_dir: Path) -> Trajectory:
    if isinstance(spec, TabulatedTrajectorySpec):
        csv_path = (config_dir / spec.csv_path).resolve()
        if not csv_path.is_file():
            raise ConfigError(f"Trajectory CSV not found: {csv_path}")
        try:
            return TabulatedTrajectory.from_csv(csv_path)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
    return StationaryTrajectory()


def build_sigma_grid(spec: SigmaGridSpec) -> SigmaGrid:
    return SigmaGrid(n=spec.n, sigma_min=spec.sigma_min, sigma_max=spec.sigma_max)


def run_from_config(cfg: RunConfig, *, config_dir: Optional[Path] = None) -> pd.DataFrame:
    """Compute the force history described by a run config.

    The time grid runs from ``t_min`` to ``t_max - impact_time`` (already
    shifted to the theoretical impact instant).
    """
    config_dir = config_dir or Path.cwd()
    grid = cfg.time_grid
    times = np.linspace(grid.t_min, grid.t_max - grid.impact_time, grid.n)
    df = compute_force_history(
        times,
        build_trajectory(cfg.trajectory, config_dir=config_dir),
        cfg.eps,
        sigma_grid=build_sigma_grid(cfg.sigma_grid),
        pressure_ceiling=cfg.integration.pressure_ceiling,
        failure_policy=cfg.integration.failure_policy,
        workers=cfg.integration.workers,
        maxiter=cfg.integration.root_maxiter,
    )
    if cfg.case_name:
        df.attrs["case_name"] = cfg.case_name
    return df
