"""
Sigma-resolution convergence study.

The force values depend on the trapezoidal quadrature over the sigma
samples; this sweep shows how many samples a given time range needs.
"""
from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from ..core.force import SigmaGrid, compute_force_history
from . import save_study_metadata

HistoryFunc = Callable[..., pd.DataFrame]


def run_sigma_convergence_study(
    times: Iterable[float],
    n_values: Iterable[int],
    *,
    eps: float = 1.0,
    sigma_min: float = 1.0e-8,
    out_dir: Optional[Path] = None,
    history_func: Optional[HistoryFunc] = None,
) -> pd.DataFrame:
    """
    Sweep the sigma grid size and report the force at each requested time.

    Parameters
    ----------
    times:
        Wagner times at which the force is compared.
    n_values:
        Sigma grid sizes.
    out_dir:
        If provided, write summary CSV + metadata.
    history_func:
        For testing; defaults to `compute_force_history`.

    Returns
    -------
    pd.DataFrame with one row per (n, time), sorted by n ascending, with the
    relative change of the force against the previous (coarser) grid.
    """
    if history_func is None:
        history_func = compute_force_history

    t_arr = np.asarray(list(times), dtype=float)
    n_list = sorted(int(n) for n in n_values)

    rows: List[Dict[str, Any]] = []
    prev: Optional[np.ndarray] = None
    for n in n_list:
        t0 = time.perf_counter()
        df = history_func(t_arr, None, eps, sigma_grid=SigmaGrid(n=n, sigma_min=sigma_min))
        wall = time.perf_counter() - t0

        force = df["Force"].to_numpy(dtype=float)
        if prev is None:
            rel = np.full_like(force, np.nan)
        else:
            with np.errstate(divide="ignore", invalid="ignore"):
                rel = 100.0 * np.abs(force - prev) / np.abs(prev)
        prev = force

        for t, f, r, status in zip(t_arr, force, rel, df["Status"]):
            rows.append(
                {
                    "n_sigma": n,
                    "Time": float(t),
                    "Force": float(f),
                    "relative_change_pct": float(r),
                    "Status": status,
                    "wall_time_s": float(wall),
                }
            )

    summary = pd.DataFrame(rows)

    if out_dir:
        out_dir.mkdir(parents=True, exist_ok=True)
        summary.to_csv(out_dir / "sigma_convergence_summary.csv", index=False)
        save_study_metadata(
            out_dir,
            metadata={
                "study_type": "sigma_convergence",
                "times": t_arr.tolist(),
                "n_values": n_list,
                "eps": float(eps),
                "sigma_min": float(sigma_min),
                "quadrature": "trapezoid",
            },
        )
    return summary
