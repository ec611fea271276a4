"""Composite Wagner pressure field at one time instant.

Three asymptotic solutions are combined into one uniformly valid profile:

- outer solution, valid for radii comparable to the turnover point ``d``;
- inner solution near the jet root, parametrized by ``sigma > 0``;
- overlap solution, the common part of both, subtracted once.

    p(sigma) = inner_p(sigma) + outer_p(r / eps) - overlap(r),   r = inner_r(sigma)

The outer and overlap radicands, ``d^2 - rhat^2`` and ``d/eps^2 - r/eps^3``,
share the sign of ``d - rhat``. Beyond the turnover point (jet region) both
are negative, those branches have no real contribution and the composite
reduces to the inner solution. At the turnover point both are singular and
their difference tends to zero; samples that close are clamped to that limit
and flagged.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import DomainError, NumericalValidityWarning
from .rootfind import DEFAULT_MAXITER, PEAK_SIGMA_SEED, solve_characteristic
from .turnover import TimeSample, TurnoverState, turnover_kinematics

logger = logging.getLogger(__name__)

# Relative distance to the turnover point below which outer - overlap is
# replaced by its limit (zero).
SINGULAR_RTOL = 1e-12


# ----------------------------------------------------------------------
# Sub-solutions
# ----------------------------------------------------------------------

def _check_eps(eps: float) -> float:
    eps = float(eps)
    if not (math.isfinite(eps) and eps > 0.0):
        raise DomainError(f"eps must be a positive finite number, got {eps!r}")
    return eps


def outer_pressure(rhat, state: TurnoverState, eps: float):
    """Outer solution at the outer-scaled radius ``rhat`` (requires rhat <= d)."""
    eps = _check_eps(eps)
    rhat = np.asarray(rhat, dtype=float)
    d, ddot, dddot = state.d, state.ddot, state.dddot
    radicand = d * d - rhat * rhat
    if np.any(radicand < 0.0):
        raise DomainError("outer solution requires d^2 - rhat^2 >= 0")
    root = np.sqrt(radicand)
    with np.errstate(divide="ignore"):
        p = (1.0 / eps) * (
            4.0 * (2.0 * d * d - rhat * rhat) * ddot * ddot / (3.0 * math.pi * root)
            + 4.0 * d * dddot * root / (3.0 * math.pi)
        )
    return p if p.ndim else float(p)


def inner_radial_offset(sigma, state: TurnoverState):
    """tilde_r(sigma) = -(J/pi) (sigma + 4 sqrt(sigma) + ln(sigma) + 1)."""
    sigma = np.asarray(sigma, dtype=float)
    if np.any(sigma < 0.0):
        raise DomainError("sigma must be >= 0")
    with np.errstate(divide="ignore"):
        f = sigma + 4.0 * np.sqrt(sigma) + np.log(sigma) + 1.0
    out = -(state.jet_thickness / math.pi) * f
    return out if out.ndim else float(out)


def inner_radius(sigma, state: TurnoverState, eps: float):
    """inner_r(sigma) = eps d + eps^3 tilde_r(sigma)."""
    eps = _check_eps(eps)
    out = eps * state.d + eps ** 3 * np.asarray(inner_radial_offset(sigma, state))
    return out if np.ndim(out) else float(out)


def inner_pressure(sigma, state: TurnoverState, eps: float):
    """inner_p(sigma) = (1/eps^2) 2 ddot^2 sqrt(sigma) / (1 + sqrt(sigma))^2."""
    eps = _check_eps(eps)
    sigma = np.asarray(sigma, dtype=float)
    if np.any(sigma < 0.0):
        raise DomainError("sigma must be >= 0")
    root = np.sqrt(sigma)
    p = (1.0 / eps ** 2) * 2.0 * state.ddot ** 2 * root / (1.0 + root) ** 2
    return p if p.ndim else float(p)


def overlap_pressure(r, state: TurnoverState, eps: float):
    """Overlap solution at the physical radius ``r`` (requires r <= eps d)."""
    eps = _check_eps(eps)
    r = np.asarray(r, dtype=float)
    d, ddot = state.d, state.ddot
    radicand = d / eps ** 2 - r / eps ** 3
    if np.any(radicand < 0.0):
        raise DomainError("overlap solution requires d/eps^2 - r/eps^3 >= 0")
    with np.errstate(divide="ignore"):
        p = 2.0 * math.sqrt(2.0) * d ** 1.5 * ddot ** 2 / (
            3.0 * math.pi * eps ** 2 * np.sqrt(radicand)
        )
    return p if p.ndim else float(p)


# ----------------------------------------------------------------------
# Composite
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class BranchCounts:
    """How the retained samples were split between the branch domains."""

    wetted: int = 0
    jet: int = 0
    clamped: int = 0
    inconsistent: int = 0


def _branch_masks(
    outer_rad: np.ndarray,
    overlap_rad: np.ndarray,
    outer_scale: float,
    overlap_scale: float,
    singular_rtol: float = SINGULAR_RTOL,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Split samples by the signs of the outer and overlap radicands.

    Returns boolean masks ``(wetted, jet, near, inconsistent)``. Exactly one
    is true per sample; radicands of opposite sign (only reachable through
    rounding) land in ``inconsistent``.
    """
    near = (np.abs(outer_rad) <= singular_rtol * outer_scale) | (
        np.abs(overlap_rad) <= singular_rtol * overlap_scale
    )
    wetted = (outer_rad > 0.0) & (overlap_rad > 0.0) & ~near
    jet = (outer_rad < 0.0) & (overlap_rad < 0.0) & ~near
    inconsistent = ~(near | wetted | jet)
    return wetted, jet, near, inconsistent


def _outer_minus_overlap(
    r: np.ndarray,
    state: TurnoverState,
    eps: float,
    singular_rtol: float = SINGULAR_RTOL,
) -> Tuple[np.ndarray, BranchCounts]:
    d = state.d
    rhat = r / eps
    outer_rad = d * d - rhat * rhat
    overlap_rad = d / eps ** 2 - r / eps ** 3

    outer_scale = d * d
    overlap_scale = d / eps ** 2
    wetted, jet, near, inconsistent = _branch_masks(
        outer_rad, overlap_rad, outer_scale, overlap_scale, singular_rtol
    )

    out = np.zeros_like(r)
    if np.any(wetted):
        out[wetted] = np.asarray(outer_pressure(rhat[wetted], state, eps)) - np.asarray(
            overlap_pressure(r[wetted], state, eps)
        )
    counts = BranchCounts(
        wetted=int(wetted.sum()),
        jet=int(jet.sum()),
        clamped=int(near.sum()),
        inconsistent=int(inconsistent.sum()),
    )
    return out, counts


def composite_pressure(
    sigma,
    state: TurnoverState,
    eps: float,
) -> Tuple[np.ndarray, np.ndarray, BranchCounts]:
    """Composite pressure for sigma samples whose inner radius is finite and > 0.

    Returns ``(r, p, counts)``; callers are expected to have filtered out
    samples with ``inner_radius <= 0``.
    """
    eps = _check_eps(eps)
    sigma = np.atleast_1d(np.asarray(sigma, dtype=float))
    r = np.atleast_1d(np.asarray(inner_radius(sigma, state, eps), dtype=float))
    if np.any(~np.isfinite(r)) or np.any(r <= 0.0):
        raise DomainError("composite pressure requires finite inner radii r > 0")
    correction, counts = _outer_minus_overlap(r, state, eps)
    p = np.atleast_1d(np.asarray(inner_pressure(sigma, state, eps), dtype=float)) + correction
    return r, p, counts


@dataclass(frozen=True)
class PressureProfile:
    """Composite pressure at one time instant, restricted to radius > 0."""

    sample: TimeSample
    state: TurnoverState
    eps: float
    sigma: np.ndarray
    radius: np.ndarray
    pressure: np.ndarray
    sigma_peak: float
    radius_at_peak: float
    peak_pressure: float
    counts: BranchCounts = field(default_factory=BranchCounts)
    warnings: Tuple[NumericalValidityWarning, ...] = ()

    def __post_init__(self) -> None:
        for arr in (self.sigma, self.radius, self.pressure):
            arr.setflags(write=False)

    @property
    def n_samples(self) -> int:
        return int(self.radius.size)

    def sorted_by_radius(self) -> Tuple[np.ndarray, np.ndarray]:
        order = np.argsort(self.radius, kind="stable")
        return self.radius[order], self.pressure[order]

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(
            {
                "Sigma": self.sigma,
                "Radius": self.radius,
                "Pressure": self.pressure,
            }
        )
        df.attrs["t"] = self.sample.t
        df.attrs["radius_at_peak"] = self.radius_at_peak
        df.attrs["peak_pressure"] = self.peak_pressure
        df.attrs["warnings"] = [str(w) for w in self.warnings]
        return df


def evaluate_pressure_profile(
    sigmas: Sequence[float] | np.ndarray,
    sample: TimeSample,
    eps: float,
    *,
    pressure_ceiling: Optional[float] = None,
    seed: float = PEAK_SIGMA_SEED,
    maxiter: int = DEFAULT_MAXITER,
) -> PressureProfile:
    """
    Evaluate the composite pressure profile and its peak at one time instant.

    Parameters
    ----------
    sigmas:
        Nonnegative characteristic-parameter samples (need not be sorted).
    sample:
        Time and plate penetration state.
    eps:
        Expansion parameter of the asymptotic theory.
    pressure_ceiling:
        If given, pressures whose magnitude exceeds it are reported in
        ``warnings`` (values are left untouched here).
    seed, maxiter:
        Root-finder settings for the peak location.

    Raises
    ------
    DomainError
        Invalid time sample, eps or sigma values.
    ConvergenceError
        The peak root-find failed.
    """
    eps = _check_eps(eps)
    state = turnover_kinematics(sample)

    sig = np.asarray(sigmas, dtype=float).ravel()
    if sig.size == 0:
        raise DomainError("sigma sample set is empty")
    if np.any(~np.isfinite(sig)) or np.any(sig < 0.0):
        raise DomainError("sigma samples must be finite and >= 0")

    notes: List[NumericalValidityWarning] = []

    r_all = np.asarray(inner_radius(sig, state, eps), dtype=float)
    finite = np.isfinite(r_all)
    if not np.all(finite):
        notes.append(
            NumericalValidityWarning(
                f"{int((~finite).sum())} sigma sample(s) at 0 map to an infinite radius and were dropped"
            )
        )
    keep = finite & (r_all > 0.0)
    sig = sig[keep]

    if sig.size:
        radius, pressure, counts = composite_pressure(sig, state, eps)
    else:
        radius = np.empty(0)
        pressure = np.empty(0)
        counts = BranchCounts()
        notes.append(NumericalValidityWarning("no sigma sample maps to a radius > 0"))

    sigma_peak = solve_characteristic(0.0, seed=seed, maxiter=maxiter)
    r_peak, p_peak, peak_counts = composite_pressure([sigma_peak], state, eps)

    if counts.clamped:
        notes.append(
            NumericalValidityWarning(
                f"{counts.clamped} sample(s) at the turnover singularity clamped to the outer-overlap limit"
            )
        )
    if counts.inconsistent or peak_counts.inconsistent:
        notes.append(
            NumericalValidityWarning(
                f"{counts.inconsistent + peak_counts.inconsistent} sample(s) with outer and overlap "
                "radicands of opposite sign; treated as turnover-point samples"
            )
        )
    bad = ~np.isfinite(pressure)
    if np.any(bad):
        notes.append(NumericalValidityWarning(f"{int(bad.sum())} non-finite pressure value(s)"))
    if pressure_ceiling is not None:
        n_over = int((np.abs(pressure) > pressure_ceiling).sum())
        peak_over = bool(abs(p_peak[0]) > pressure_ceiling)
        if n_over:
            notes.append(
                NumericalValidityWarning(
                    f"{n_over} pressure value(s) exceed the ceiling {pressure_ceiling:.3g}"
                )
            )
        if peak_over:
            notes.append(
                NumericalValidityWarning(
                    f"peak pressure {p_peak[0]:.6g} exceeds the ceiling {pressure_ceiling:.3g}"
                )
            )

    for note in notes:
        logger.debug("t=%.6g: %s", sample.t, note)

    return PressureProfile(
        sample=sample,
        state=state,
        eps=eps,
        sigma=sig,
        radius=radius,
        pressure=pressure,
        sigma_peak=float(sigma_peak),
        radius_at_peak=float(r_peak[0]),
        peak_pressure=float(p_peak[0]),
        counts=counts,
        warnings=tuple(notes),
    )
