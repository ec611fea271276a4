"""Force on the plate from the composite Wagner pressure.

    F(t) = 2 pi ∫ p(r) r dr

integrated with the trapezoidal rule over the retained ``(r, p)`` samples
sorted by radius. Each time sample is evaluated independently, so histories
can be computed on a process pool; rows are always returned in input order.

Failure policy
--------------
A DomainError or ConvergenceError affects only its own time sample:

- ``"gap"`` (default): the row keeps ``Force = NaN`` and a failure status;
- ``"interpolate"``: gaps are filled linearly from neighbouring rows and
  marked ``interpolated``;
- ``"raise"``: the first failure is re-raised.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import ConvergenceError, DomainError
from .pressure import PressureProfile, _check_eps, evaluate_pressure_profile
from .rootfind import DEFAULT_MAXITER, PEAK_SIGMA_SEED, solve_characteristic
from .trajectory import StationaryTrajectory, Trajectory
from .turnover import TimeSample, TurnoverState, turnover_kinematics

logger = logging.getLogger(__name__)

FailurePolicy = Literal["gap", "interpolate", "raise"]

DEFAULT_PRESSURE_CEILING = 1.0e12

STATUS_OK = "ok"
STATUS_CLAMPED = "clamped"
STATUS_DOMAIN_ERROR = "domain_error"
STATUS_CONVERGENCE_ERROR = "convergence_error"
STATUS_INTERPOLATED = "interpolated"

FORCE_HISTORY_COLUMNS = [
    "Time",
    "Peak_Pressure",
    "Force",
    "Radius_at_Peak",
    "Turnover_d",
    "Penetration_s",
    "Status",
    "N_Samples",
    "N_Warnings",
]


@dataclass(frozen=True)
class SigmaGrid:
    """Log-spaced sigma samples, rebuilt for every time instant.

    With ``sigma_max=None`` the upper end is the sigma whose inner radius is
    zero, so the grid spans the plate centre up to the jet for any ``t``.
    """

    n: int = 2000
    sigma_min: float = 1.0e-8
    sigma_max: Optional[float] = None

    def upper_bound(self, state: TurnoverState, eps: float) -> float:
        if self.sigma_max is not None:
            return float(self.sigma_max)
        # inner_r = 0  <=>  f(sigma) = pi d / (eps^2 J)
        target = math.pi * state.d / (eps ** 2 * state.jet_thickness)
        return solve_characteristic(target, seed=max(target, PEAK_SIGMA_SEED))

    def build(self, state: TurnoverState, eps: float) -> np.ndarray:
        if self.n < 2:
            raise DomainError("sigma grid needs at least two points")
        if self.sigma_min <= 0.0:
            raise DomainError("sigma_min must be > 0 for a log-spaced grid")
        upper = self.upper_bound(state, eps)
        if upper <= self.sigma_min:
            raise DomainError(
                f"sigma_max {upper:.6g} must exceed sigma_min {self.sigma_min:.6g}"
            )
        return np.geomspace(self.sigma_min, upper, int(self.n))


DEFAULT_SIGMA_GRID = SigmaGrid()


def integrate_force(
    profile: PressureProfile,
    *,
    pressure_ceiling: Optional[float] = None,
) -> float:
    """2 pi ∫ p r dr over the profile's retained samples (trapezoidal rule)."""
    if profile.n_samples < 2:
        raise DomainError(
            f"force integral needs at least two samples with r > 0, got {profile.n_samples}"
        )
    r, p = profile.sorted_by_radius()
    if pressure_ceiling is not None:
        p = np.clip(p, -pressure_ceiling, pressure_ceiling)
    return float(2.0 * math.pi * np.trapezoid(p * r, r))


def _evaluate_row(job: Tuple[Any, ...]) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]], List[str]]:
    """Evaluate one time sample; returns (row, failure, warnings).

    Top-level so it can be shipped to worker processes. Failures are returned
    as plain dicts rather than exception objects.
    """
    t_label, sample, eps, sigmas, grid, ceiling, seed, maxiter = job
    row: Dict[str, Any] = {
        "Time": float(t_label),
        "Peak_Pressure": float("nan"),
        "Force": float("nan"),
        "Radius_at_Peak": float("nan"),
        "Turnover_d": float("nan"),
        "Penetration_s": float(sample.s),
        "Status": STATUS_OK,
        "N_Samples": 0,
        "N_Warnings": 0,
    }
    try:
        if sigmas is None:
            state = turnover_kinematics(sample)
            sigmas = grid.build(state, eps)
        profile = evaluate_pressure_profile(
            sigmas, sample, eps, pressure_ceiling=ceiling, seed=seed, maxiter=maxiter
        )
        force = integrate_force(profile, pressure_ceiling=ceiling)
    except DomainError as exc:
        row["Status"] = STATUS_DOMAIN_ERROR
        return row, {"error_type": "DomainError", "message": str(exc)}, []
    except ConvergenceError as exc:
        row["Status"] = STATUS_CONVERGENCE_ERROR
        return row, exc.to_diagnostics_dict(), []

    clamped = ceiling is not None and bool(np.any(np.abs(profile.pressure) > ceiling))
    peak = profile.peak_pressure
    if ceiling is not None and abs(peak) > ceiling:
        peak = math.copysign(ceiling, peak)
        clamped = True
    if not math.isfinite(force):
        row["Status"] = STATUS_DOMAIN_ERROR
        return row, {"error_type": "DomainError", "message": f"non-finite force {force!r}"}, []

    row.update(
        {
            "Peak_Pressure": float(peak),
            "Force": force,
            "Radius_at_Peak": profile.radius_at_peak,
            "Turnover_d": profile.state.d,
            "Status": STATUS_CLAMPED if clamped else STATUS_OK,
            "N_Samples": profile.n_samples,
            "N_Warnings": len(profile.warnings),
        }
    )
    return row, None, [str(w) for w in profile.warnings]


def _fill_gaps(df: pd.DataFrame) -> pd.DataFrame:
    gap = df["Force"].isna().to_numpy()
    if not gap.any() or gap.all():
        return df
    t = df["Time"].to_numpy(dtype=float)
    f = df["Force"].to_numpy(dtype=float)
    df.loc[gap, "Force"] = np.interp(t[gap], t[~gap], f[~gap])
    df.loc[gap, "Status"] = STATUS_INTERPOLATED
    return df


def compute_force_history(
    times: Sequence[float] | np.ndarray,
    trajectory: Optional[Trajectory] = None,
    eps: float = 1.0,
    *,
    sigmas: Optional[Sequence[float] | np.ndarray] = None,
    sigma_grid: Optional[SigmaGrid] = None,
    time_offset: float = 0.0,
    pressure_ceiling: Optional[float] = DEFAULT_PRESSURE_CEILING,
    failure_policy: FailurePolicy = "gap",
    workers: int = 1,
    seed: float = PEAK_SIGMA_SEED,
    maxiter: int = DEFAULT_MAXITER,
) -> pd.DataFrame:
    """
    Evaluate the composite force at every time in ``times``.

    Parameters
    ----------
    times:
        Time grid. The Wagner time of each row is ``t - time_offset``; the
        ``Time`` column keeps the value as given.
    trajectory:
        Source of ``(s, sdot, sddot)``; defaults to a stationary plate.
    eps:
        Expansion parameter.
    sigmas:
        Fixed sigma sample set used at every time. Mutually exclusive with
        ``sigma_grid``.
    sigma_grid:
        Per-time sigma grid (default: ``SigmaGrid()``).
    pressure_ceiling:
        Pressures beyond it are clipped and the row is marked ``clamped``.
    failure_policy:
        ``"gap"``, ``"interpolate"`` or ``"raise"``.
    workers:
        Number of worker processes; 1 evaluates in-process.

    Returns
    -------
    pd.DataFrame with FORCE_HISTORY_COLUMNS, one row per time, in input
    order. ``attrs`` holds ``eps``, ``n_failed``, ``n_clamped``,
    ``failures`` and ``warnings``.
    """
    eps = _check_eps(eps)
    if failure_policy not in ("gap", "interpolate", "raise"):
        raise ValueError(f"Unknown failure_policy {failure_policy!r}")
    if sigmas is not None and sigma_grid is not None:
        raise ValueError("Pass either sigmas or sigma_grid, not both.")
    if trajectory is None:
        trajectory = StationaryTrajectory()
    if sigmas is not None:
        sigmas = np.asarray(sigmas, dtype=float).ravel()
    grid = sigma_grid if sigma_grid is not None else DEFAULT_SIGMA_GRID

    t_arr = np.asarray(times, dtype=float).ravel()
    jobs = []
    for t in t_arr:
        sample = trajectory.sample(float(t) - time_offset)
        jobs.append((float(t), sample, eps, sigmas, grid, pressure_ceiling, seed, maxiter))

    logger.info(
        "Computing force history: %d time samples, eps=%g, workers=%d", len(jobs), eps, workers
    )

    if workers > 1 and len(jobs) > 1:
        chunk = max(1, len(jobs) // (4 * workers))
        with ProcessPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(_evaluate_row, jobs, chunksize=chunk))
    else:
        results = [_evaluate_row(job) for job in jobs]

    rows: List[Dict[str, Any]] = []
    failures: List[Dict[str, Any]] = []
    warnings: List[Tuple[float, str]] = []
    for row, failure, notes in results:
        rows.append(row)
        warnings.extend((row["Time"], msg) for msg in notes)
        if failure is None:
            continue
        failure = {"t": row["Time"], **failure}
        if failure_policy == "raise":
            if failure["error_type"] == "ConvergenceError":
                raise ConvergenceError(
                    f"t={row['Time']:.6g}: {failure['message']}",
                    method=failure["method"],
                    iterations=failure["iterations"],
                    residual=failure["residual"],
                    seed=failure["seed"],
                    target=failure["target"],
                    fallback_attempted=failure["fallback_attempted"],
                )
            raise DomainError(f"t={row['Time']:.6g}: {failure['message']}")
        logger.warning("t=%.6g: %s: %s", row["Time"], failure["error_type"], failure["message"])
        failures.append(failure)

    df = pd.DataFrame(rows, columns=FORCE_HISTORY_COLUMNS)
    if failure_policy == "interpolate":
        df = _fill_gaps(df)

    n_clamped = int((df["Status"] == STATUS_CLAMPED).sum())
    if n_clamped:
        logger.warning("%d time sample(s) clamped at pressure ceiling %.3g", n_clamped, pressure_ceiling)

    df.attrs["eps"] = eps
    df.attrs["n_failed"] = len(failures)
    df.attrs["n_clamped"] = n_clamped
    df.attrs["failures"] = failures
    df.attrs["warnings"] = warnings
    logger.info("Force history done: %d ok, %d failed", len(df) - len(failures), len(failures))
    return df


def stationary_baseline(
    t_max: float,
    impact_time: float = 0.0,
    n: int = 1000,
    eps: float = 1.0,
    *,
    t_min: float = 1.0e-7,
    **kwargs: Any,
) -> pd.DataFrame:
    """
    Wagner force for a stationary plate on ``linspace(t_min, t_max - impact_time, n)``.

    Times are already shifted so that the theoretical impact is at t = 0,
    which lines the baseline up with flow-solver output shifted by the same
    ``impact_time``.
    """
    t_end = float(t_max) - float(impact_time)
    if t_end <= t_min:
        raise ValueError(
            f"t_max - impact_time = {t_end:.6g} must exceed t_min = {t_min:.6g}"
        )
    times = np.linspace(t_min, t_end, int(n))
    return compute_force_history(times, StationaryTrajectory(), eps, **kwargs)
