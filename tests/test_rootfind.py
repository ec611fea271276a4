from __future__ import annotations

import sys

sys.path.insert(0, "src")

from types import SimpleNamespace

import numpy as np
import pytest

from wagner_impact.core import rootfind
from wagner_impact.core.errors import ConvergenceError
from wagner_impact.core.rootfind import (
    PEAK_SIGMA_SEED,
    characteristic,
    characteristic_prime,
    solve_characteristic,
)


def test_peak_root_from_default_seed() -> None:
    sigma = solve_characteristic()

    assert sigma == pytest.approx(0.0964514, abs=1e-6)
    assert abs(characteristic(sigma)) < 1e-10


def test_peak_root_is_seed_independent() -> None:
    ref = solve_characteristic()
    for seed in (PEAK_SIGMA_SEED, 0.05, 0.2, 1.0):
        assert solve_characteristic(seed=seed) == pytest.approx(ref, abs=1e-10)


def test_characteristic_prime_matches_finite_difference() -> None:
    sigma = np.array([1e-3, 0.0233, 0.5, 10.0, 1e4])
    h = 1e-6 * sigma
    fd = (characteristic(sigma + h) - characteristic(sigma - h)) / (2.0 * h)
    np.testing.assert_allclose(characteristic_prime(sigma), fd, rtol=1e-6)


def test_characteristic_is_nan_outside_domain() -> None:
    assert np.isnan(characteristic(0.0))
    assert np.isnan(characteristic(-1.0))


@pytest.mark.parametrize("target", [-5.0, 3.0, 1.0e6, 1.5e8])
def test_nonzero_targets(target: float) -> None:
    sigma = solve_characteristic(target, seed=max(target, PEAK_SIGMA_SEED))
    assert sigma > 0.0
    assert characteristic(sigma) == pytest.approx(target, rel=1e-9, abs=1e-9)


def test_brentq_fallback_when_newton_fails(monkeypatch) -> None:
    def failing_newton(*_args, **_kwargs):
        return SimpleNamespace(converged=False, root=float("nan"), iterations=50, flag="convergence error")

    monkeypatch.setattr(rootfind.optimize, "root_scalar", failing_newton)

    sigma = solve_characteristic()
    assert abs(characteristic(sigma)) < 1e-10


def test_convergence_error_when_both_solvers_fail(monkeypatch) -> None:
    def failing_newton(*_args, **_kwargs):
        return SimpleNamespace(converged=False, root=float("nan"), iterations=50, flag="convergence error")

    def failing_brentq(*_args, **_kwargs):
        return 0.5, SimpleNamespace(converged=False, iterations=50, flag="convergence error")

    monkeypatch.setattr(rootfind.optimize, "root_scalar", failing_newton)
    monkeypatch.setattr(rootfind.optimize, "brentq", failing_brentq)

    with pytest.raises(ConvergenceError) as exc_info:
        solve_characteristic()

    err = exc_info.value
    assert err.fallback_attempted is True
    assert err.method == "brentq"
    diag = err.to_diagnostics_dict()
    assert diag["error_type"] == "ConvergenceError"
    assert diag["seed"] == PEAK_SIGMA_SEED
    assert diag["iterations"] == 100


def test_iteration_bound_is_enforced() -> None:
    with pytest.raises(ConvergenceError):
        solve_characteristic(maxiter=1)
