from __future__ import annotations

import math
import sys

sys.path.insert(0, "src")

import numpy as np
import pytest

from wagner_impact.core import pressure as pressure_mod
from wagner_impact.core.errors import ConvergenceError, DomainError
from wagner_impact.core.force import (
    FORCE_HISTORY_COLUMNS,
    SigmaGrid,
    compute_force_history,
    integrate_force,
    stationary_baseline,
)
from wagner_impact.core.pressure import PressureProfile
from wagner_impact.core.trajectory import TabulatedTrajectory
from wagner_impact.core.turnover import TimeSample, turnover_kinematics


def _synthetic_profile(radius, pressure) -> PressureProfile:
    sample = TimeSample(t=0.01)
    n = len(radius)
    return PressureProfile(
        sample=sample,
        state=turnover_kinematics(sample),
        eps=1.0,
        sigma=np.linspace(1.0, 2.0, n),
        radius=np.asarray(radius, dtype=float),
        pressure=np.asarray(pressure, dtype=float),
        sigma_peak=0.1,
        radius_at_peak=1.0,
        peak_pressure=float(np.max(pressure)),
    )


def _bad_trajectory() -> TabulatedTrajectory:
    # s > t around t = 0.2, so the elapsed time is negative there
    return TabulatedTrajectory.from_rows(
        [
            (0.0, 0.0, 0.0, 0.0),
            (0.15, 0.0, 0.0, 0.0),
            (0.2, 0.5, 0.0, 0.0),
            (0.25, 0.0, 0.0, 0.0),
            (1.0, 0.0, 0.0, 0.0),
        ]
    )


def test_integrate_force_uniform_pressure() -> None:
    # 2 pi * ∫_0^2 r dr = 4 pi
    profile = _synthetic_profile([0.0, 1.0, 2.0], [1.0, 1.0, 1.0])
    assert integrate_force(profile) == pytest.approx(4.0 * math.pi, rel=1e-14)


def test_integrate_force_sorts_by_radius() -> None:
    ordered = _synthetic_profile([0.0, 1.0, 2.0], [1.0, 3.0, 2.0])
    shuffled = _synthetic_profile([2.0, 0.0, 1.0], [2.0, 1.0, 3.0])
    assert integrate_force(shuffled) == pytest.approx(integrate_force(ordered), rel=1e-14)


def test_integrate_force_clips_at_ceiling() -> None:
    profile = _synthetic_profile([0.0, 1.0, 2.0], [1.0, 100.0, 1.0])
    clipped = integrate_force(profile, pressure_ceiling=1.0)
    assert clipped == pytest.approx(4.0 * math.pi, rel=1e-14)


def test_integrate_force_needs_two_samples() -> None:
    with pytest.raises(DomainError):
        integrate_force(_synthetic_profile([1.0], [1.0]))


def test_sigma_grid_spans_plate_centre() -> None:
    state = turnover_kinematics(TimeSample(t=0.01))
    grid = SigmaGrid(n=50)
    sigmas = grid.build(state, 1.0)

    assert sigmas.size == 50
    assert sigmas[0] == pytest.approx(1e-8)
    # inner radius is zero at the upper end: f(sigma_max) = 3 pi^2 / (2 t)
    assert sigmas[-1] == pytest.approx(grid.upper_bound(state, 1.0))
    assert sigmas[-1] > 1000.0


def test_sigma_grid_rejects_bad_bounds() -> None:
    state = turnover_kinematics(TimeSample(t=0.01))
    with pytest.raises(DomainError):
        SigmaGrid(n=1).build(state, 1.0)
    with pytest.raises(DomainError):
        SigmaGrid(sigma_min=1.0, sigma_max=0.5).build(state, 1.0)


def test_stationary_baseline_is_positive_and_finite() -> None:
    df = stationary_baseline(0.8, 0.0, n=25)

    assert list(df.columns) == FORCE_HISTORY_COLUMNS
    assert len(df) == 25
    assert df["Time"].iloc[0] == pytest.approx(1e-7)
    assert df["Time"].iloc[-1] == pytest.approx(0.8)
    assert (df["Status"] == "ok").all()
    forces = df["Force"].to_numpy()
    assert np.all(np.isfinite(forces))
    assert np.all(forces > 0.0)
    assert df.attrs["n_failed"] == 0


def test_stationary_force_grows_like_sqrt_t_at_early_times() -> None:
    times = np.array([1e-6, 1e-4, 1e-3])
    df = compute_force_history(times)
    forces = df["Force"].to_numpy()

    # leading order: outer force 6 sqrt(3) sqrt(t), inner and overlap cancel
    ratio = forces / (6.0 * math.sqrt(3.0) * np.sqrt(times))
    assert 0.95 < ratio[0] < 1.01
    assert forces[0] < forces[1] < forces[2]


def test_impact_time_shifts_the_baseline() -> None:
    df = stationary_baseline(0.5, 0.125, n=10)
    assert df["Time"].iloc[-1] == pytest.approx(0.375)

    with pytest.raises(ValueError):
        stationary_baseline(0.1, 0.2, n=10)


def test_time_offset_keeps_given_time_labels() -> None:
    shifted = compute_force_history([0.2, 0.3], time_offset=0.1, sigma_grid=SigmaGrid(n=400))
    direct = compute_force_history([0.1, 0.2], sigma_grid=SigmaGrid(n=400))

    np.testing.assert_allclose(shifted["Time"], [0.2, 0.3])
    np.testing.assert_allclose(shifted["Force"], direct["Force"], rtol=1e-9)


def test_fixed_sigma_set() -> None:
    sigmas = np.geomspace(1e-6, 1e3, 600)
    df = compute_force_history([0.05, 0.1], sigmas=sigmas)
    assert (df["Status"] == "ok").all()
    assert (df["N_Samples"] > 100).all()

    with pytest.raises(ValueError):
        compute_force_history([0.1], sigmas=sigmas, sigma_grid=SigmaGrid())


def test_gap_policy_marks_failed_rows() -> None:
    df = compute_force_history([0.1, 0.2, 0.3], _bad_trajectory(), sigma_grid=SigmaGrid(n=400))

    assert list(df["Status"]) == ["ok", "domain_error", "ok"]
    assert np.isnan(df["Force"].iloc[1])
    assert np.isfinite(df["Force"].iloc[[0, 2]]).all()
    assert df.attrs["n_failed"] == 1
    failure = df.attrs["failures"][0]
    assert failure["t"] == pytest.approx(0.2)
    assert failure["error_type"] == "DomainError"


def test_interpolate_policy_fills_gaps() -> None:
    df = compute_force_history(
        [0.1, 0.2, 0.3],
        _bad_trajectory(),
        sigma_grid=SigmaGrid(n=400),
        failure_policy="interpolate",
    )

    assert df["Status"].iloc[1] == "interpolated"
    expected = 0.5 * (df["Force"].iloc[0] + df["Force"].iloc[2])
    assert df["Force"].iloc[1] == pytest.approx(expected, rel=1e-12)


def test_raise_policy_propagates_domain_error() -> None:
    with pytest.raises(DomainError):
        compute_force_history(
            [0.1, 0.2, 0.3], _bad_trajectory(), sigma_grid=SigmaGrid(n=400), failure_policy="raise"
        )


def test_convergence_failure_is_isolated(monkeypatch) -> None:
    def no_convergence(*_args, **_kwargs):
        raise ConvergenceError("forced", method="newton", iterations=50, residual=1.0, seed=0.0233)

    monkeypatch.setattr(pressure_mod, "solve_characteristic", no_convergence)

    df = compute_force_history([0.1, 0.2], sigma_grid=SigmaGrid(n=200))
    assert (df["Status"] == "convergence_error").all()
    assert df["Force"].isna().all()
    assert df.attrs["failures"][0]["method"] == "newton"

    with pytest.raises(ConvergenceError) as exc_info:
        compute_force_history([0.1], sigma_grid=SigmaGrid(n=200), failure_policy="raise")
    assert exc_info.value.iterations == 50


def test_pressure_ceiling_marks_rows_clamped() -> None:
    df = compute_force_history([0.01, 0.1], sigma_grid=SigmaGrid(n=400), pressure_ceiling=1.0)

    assert (df["Status"] == "clamped").all()
    assert (df["Peak_Pressure"] <= 1.0).all()
    assert df.attrs["n_clamped"] == 2


def test_unknown_failure_policy() -> None:
    with pytest.raises(ValueError):
        compute_force_history([0.1], failure_policy="skip")


def test_worker_pool_preserves_time_order() -> None:
    times = [0.4, 0.05, 0.2, 0.1]
    serial = compute_force_history(times, sigma_grid=SigmaGrid(n=300))
    pooled = compute_force_history(times, sigma_grid=SigmaGrid(n=300), workers=2)

    np.testing.assert_allclose(pooled["Time"], times)
    np.testing.assert_allclose(pooled["Force"], serial["Force"], rtol=1e-12)


def test_history_columns_and_run_diagnostics() -> None:
    df = compute_force_history([0.05, 0.1], sigma_grid=SigmaGrid(n=300))

    # time, force and penetration sit in solver-table columns 1, 3 and 6
    assert list(df.columns[:7]) == [
        "Time",
        "Peak_Pressure",
        "Force",
        "Radius_at_Peak",
        "Turnover_d",
        "Penetration_s",
        "Status",
    ]
    assert list(df.columns[7:]) == ["N_Samples", "N_Warnings"]
    assert set(df.attrs) == {"eps", "n_failed", "n_clamped", "failures", "warnings"}
    assert (df["N_Samples"] > 0).all()
