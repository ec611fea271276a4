"""Root-finding on the inner solution's characteristic function.

The inner (jet-root) solution is parametrized by ``sigma > 0`` through

    f(sigma) = sigma + 4 sqrt(sigma) + ln(sigma) + 1

which is strictly increasing on (0, inf), with f -> -inf as sigma -> 0.
``f(sigma) = 0`` locates the pressure peak (the turnover point) and
``f(sigma) = pi d / (eps^2 J)`` the plate centre r = 0.

Solver strategy
---------------
Newton with the analytic derivative is tried first from the supplied seed.
If it fails (iteration bound reached, step left the domain, residual too
large), a bracketed Brent solve is used as fallback. Only when both fail is
a ConvergenceError raised; the seed is never returned silently.
"""

from __future__ import annotations

import logging
import math
from typing import Tuple

import numpy as np
from scipy import optimize

from .errors import ConvergenceError

logger = logging.getLogger(__name__)

# Newton seed for f(sigma) = 0. Newton on the concave, increasing f
# approaches the root monotonically from the left of it.
PEAK_SIGMA_SEED = 0.0233

DEFAULT_MAXITER = 50
DEFAULT_XTOL = 1e-14
DEFAULT_RTOL = 1e-12
RESIDUAL_TOL = 1e-8


def characteristic(sigma):
    """f(sigma); NaN outside sigma > 0."""
    sigma = np.asarray(sigma, dtype=float)
    with np.errstate(invalid="ignore", divide="ignore"):
        out = np.where(
            sigma > 0.0,
            sigma + 4.0 * np.sqrt(sigma) + np.log(sigma) + 1.0,
            np.nan,
        )
    return out if out.ndim else float(out)


def characteristic_prime(sigma):
    """f'(sigma) = 1 + 2/sqrt(sigma) + 1/sigma = (1 + sqrt(sigma))^2 / sigma."""
    sigma = np.asarray(sigma, dtype=float)
    with np.errstate(invalid="ignore", divide="ignore"):
        out = np.where(sigma > 0.0, (1.0 + np.sqrt(sigma)) ** 2 / sigma, np.nan)
    return out if out.ndim else float(out)


def _residual_ok(sigma: float, target: float) -> bool:
    if not (math.isfinite(sigma) and sigma > 0.0):
        return False
    return abs(characteristic(sigma) - target) <= RESIDUAL_TOL * max(1.0, abs(target))


def _bracket(target: float, seed: float) -> Tuple[float, float]:
    hi = max(1.0, target) + 1.0
    lo = min(seed, 1.0) if seed > 0.0 else 1.0
    # f(lo) -> -inf as lo -> 0, so shrinking always brackets eventually
    for _ in range(700):
        if characteristic(lo) < target:
            return lo, hi
        lo *= 0.1
        if lo <= 0.0:
            break
    raise ConvergenceError(
        f"Could not bracket f(sigma) = {target:.6g}",
        method="brentq",
        seed=seed,
        target=target,
        fallback_attempted=True,
    )


def solve_characteristic(
    target: float = 0.0,
    *,
    seed: float = PEAK_SIGMA_SEED,
    maxiter: int = DEFAULT_MAXITER,
    xtol: float = DEFAULT_XTOL,
    rtol: float = DEFAULT_RTOL,
) -> float:
    """Solve ``f(sigma) = target`` for sigma > 0.

    Raises
    ------
    ConvergenceError
        If neither Newton nor the Brent fallback converges within ``maxiter``.
    """
    target = float(target)
    if not math.isfinite(target):
        raise ConvergenceError(
            f"Non-finite target {target!r}", method="newton", seed=seed, target=target
        )

    sol = optimize.root_scalar(
        lambda x: characteristic(x) - target,
        x0=float(seed),
        fprime=characteristic_prime,
        method="newton",
        xtol=xtol,
        rtol=rtol,
        maxiter=int(maxiter),
    )
    if sol.converged and _residual_ok(float(sol.root), target):
        logger.debug(
            "Newton: f(sigma)=%.6g at sigma=%.12g after %d iterations",
            target,
            sol.root,
            sol.iterations,
        )
        return float(sol.root)

    newton_iters = int(getattr(sol, "iterations", maxiter))
    logger.debug(
        "Newton failed for target %.6g from seed %.6g (%s); falling back to brentq",
        target,
        seed,
        sol.flag,
    )

    lo, hi = _bracket(target, float(seed) if seed and seed > 0.0 else 1.0)
    try:
        root, info = optimize.brentq(
            lambda x: characteristic(x) - target,
            lo,
            hi,
            xtol=xtol,
            rtol=max(rtol, 4.0 * np.finfo(float).eps),
            maxiter=int(maxiter),
            full_output=True,
            disp=False,
        )
    except ValueError as exc:
        raise ConvergenceError(
            f"brentq rejected bracket [{lo:.3g}, {hi:.3g}]: {exc}",
            method="brentq",
            iterations=newton_iters,
            seed=seed,
            target=target,
            fallback_attempted=True,
        ) from exc

    residual = characteristic(root) - target if root > 0.0 else float("nan")
    if not info.converged or not _residual_ok(float(root), target):
        raise ConvergenceError(
            f"Root-finder did not converge for f(sigma) = {target:.6g} "
            f"(newton: {sol.flag}; brentq: {info.flag})",
            method="brentq",
            iterations=newton_iters + int(info.iterations),
            residual=residual,
            seed=seed,
            target=target,
            fallback_attempted=True,
        )

    logger.debug("brentq: sigma=%.12g after %d iterations", root, info.iterations)
    return float(root)
