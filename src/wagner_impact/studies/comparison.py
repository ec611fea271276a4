"""
Force comparison: flow-solver force histories for several plate
configurations against the stationary-plate Wagner baseline.

All series are shifted by the theoretical impact time so that impact is at
t = 0 for every case.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..core.force import stationary_baseline
from ..export import read_solver_output
from . import save_study_metadata

logger = logging.getLogger(__name__)

BASELINE_CASE = "wagner"


@dataclass
class ComparisonCase:
    """
    One flow-solver run to compare.

    Attributes
    ----------
    name : str
        Label, e.g. 'beta_7.07' or 'stationary'.
    path : Path
        Cleaned flow-solver output table (time col 1, force col 3).
    meta : dict, optional
        Extra columns copied into the summary (e.g. plate parameters).
    """
    name: str
    path: Path
    meta: Dict[str, Any] = field(default_factory=dict)


def _rms_difference(t: np.ndarray, f: np.ndarray, baseline: pd.DataFrame) -> Tuple[float, int]:
    bt = baseline["Time"].to_numpy(dtype=float)
    bf = baseline["Force"].to_numpy(dtype=float)
    ok = np.isfinite(bf)
    bt, bf = bt[ok], bf[ok]
    if bt.size < 2:
        return float("nan"), 0
    window = (t >= bt[0]) & (t <= bt[-1]) & np.isfinite(f)
    if not window.any():
        return float("nan"), 0
    diff = f[window] - np.interp(t[window], bt, bf)
    return float(np.sqrt(np.mean(diff ** 2))), int(window.sum())


def run_force_comparison(
    cases: Sequence[ComparisonCase],
    *,
    impact_time: float,
    t_max: float,
    eps: float = 1.0,
    n: int = 1000,
    t_min: float = 1.0e-7,
    out_dir: Optional[Path] = None,
    **force_kwargs: Any,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Compare flow-solver forces with the Wagner baseline.

    Returns
    -------
    long_df :
        Columns 'case', 'source', 'Time', 'Force'; the baseline is the case
        named 'wagner' with source 'analytical'.
    summary_df :
        One row per case: peak force, time of peak, RMS difference to the
        baseline over the baseline's time span, plus ``meta`` entries.
    """
    baseline = stationary_baseline(t_max, impact_time, n, eps, t_min=t_min, **force_kwargs)

    frames: List[pd.DataFrame] = [
        pd.DataFrame(
            {
                "case": BASELINE_CASE,
                "source": "analytical",
                "Time": baseline["Time"],
                "Force": baseline["Force"],
            }
        )
    ]
    rows: List[Dict[str, Any]] = []
    for case in cases:
        data = read_solver_output(Path(case.path), time_offset=impact_time)
        logger.info("Loaded %d rows for case '%s' from %s", len(data), case.name, case.path)
        frames.append(
            pd.DataFrame(
                {"case": case.name, "source": "simulation", "Time": data["Time"], "Force": data["Force"]}
            )
        )

        t = data["Time"].to_numpy(dtype=float)
        f = data["Force"].to_numpy(dtype=float)
        idx_peak = int(np.nanargmax(f))
        rms, n_overlap = _rms_difference(t, f, baseline)
        row: Dict[str, Any] = {
            "case": case.name,
            "peak_force": float(f[idx_peak]),
            "time_of_peak": float(t[idx_peak]),
            "rms_diff_to_wagner": rms,
            "n_overlap": n_overlap,
        }
        for k, v in case.meta.items():
            if k not in row:
                row[k] = v
        rows.append(row)

    long_df = pd.concat(frames, ignore_index=True)
    summary_df = pd.DataFrame(
        rows, columns=None if rows else ["case", "peak_force", "time_of_peak", "rms_diff_to_wagner", "n_overlap"]
    )

    if out_dir:
        out_dir.mkdir(parents=True, exist_ok=True)
        long_df.to_csv(out_dir / "force_comparison.csv", index=False)
        summary_df.to_csv(out_dir / "force_comparison_summary.csv", index=False)
        save_study_metadata(
            out_dir,
            metadata={
                "study_type": "force_comparison",
                "impact_time": float(impact_time),
                "t_max": float(t_max),
                "eps": float(eps),
                "n": int(n),
                "cases": [{"name": c.name, "path": str(c.path), **c.meta} for c in cases],
                "baseline_failed": int(baseline.attrs.get("n_failed", 0)),
            },
        )
    return long_df, summary_df
