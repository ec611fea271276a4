"""
Plain-text table exchange.

Force histories are written as whitespace-delimited columns with time in
column 1 and force in column 3, the same layout the flow solver uses for its
cleaned ``output.txt`` (time, ..., force, ..., ..., penetration s in column
6). That layout is read back by `read_solver_output` for comparison.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pandas as pd

from .core.force import FORCE_HISTORY_COLUMNS
from .core.pressure import PressureProfile

# 1-based column positions in flow-solver output tables
SOLVER_TIME_COLUMN = 1
SOLVER_FORCE_COLUMN = 3
SOLVER_PENETRATION_COLUMN = 6


def write_force_history(df: pd.DataFrame, path: Path, *, header: bool = True) -> Path:
    """Write a force history as a whitespace-delimited table."""
    path.parent.mkdir(parents=True, exist_ok=True)
    cols = [c for c in FORCE_HISTORY_COLUMNS if c in df.columns]
    df.to_csv(
        path,
        sep=" ",
        columns=cols,
        index=False,
        header=header,
        float_format="%.10e",
        na_rep="nan",
    )
    return path


def read_force_history(path: Path) -> pd.DataFrame:
    df = pd.read_csv(path, sep=r"\s+", na_values=["nan"])
    missing = [c for c in ("Time", "Force") if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: not a force history table (missing {missing})")
    return df


def write_pressure_profile(profile: PressureProfile, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    df = profile.to_frame().sort_values("Radius").reset_index(drop=True)
    df.to_csv(path, sep=" ", index=False, float_format="%.10e")
    return path


def read_solver_output(path: Path, *, time_offset: float = 0.0) -> pd.DataFrame:
    """
    Read a flow-solver time series.

    The file has no header; column 1 is time, column 3 the plate force and
    column 6 (when present) the penetration ``s``. ``time_offset`` is
    subtracted from the times, which lines the data up with a Wagner
    baseline whose impact is at t = 0.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Flow-solver output not found: {path}")
    raw = pd.read_csv(path, sep=r"\s+|,", header=None, engine="python", comment="#")
    if raw.shape[1] < SOLVER_FORCE_COLUMN:
        raise ValueError(
            f"{path}: expected at least {SOLVER_FORCE_COLUMN} columns, found {raw.shape[1]}"
        )
    out = pd.DataFrame(
        {
            "Time": raw.iloc[:, SOLVER_TIME_COLUMN - 1].astype(float) - float(time_offset),
            "Force": raw.iloc[:, SOLVER_FORCE_COLUMN - 1].astype(float),
        }
    )
    penetration: Optional[pd.Series] = None
    if raw.shape[1] >= SOLVER_PENETRATION_COLUMN:
        penetration = raw.iloc[:, SOLVER_PENETRATION_COLUMN - 1].astype(float)
    out["Penetration_s"] = penetration if penetration is not None else float("nan")
    return out
