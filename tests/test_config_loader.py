from __future__ import annotations

from pathlib import Path
import json
import sys

sys.path.insert(0, "src")

import numpy as np
import pytest
import yaml

from wagner_impact.config.loader import (
    ConfigError,
    build_trajectory,
    load_run_config,
    normalize_config_dict,
    run_from_config,
)
from wagner_impact.config.models import RunConfig
from wagner_impact.core.trajectory import StationaryTrajectory, TabulatedTrajectory


def test_defaults() -> None:
    cfg = normalize_config_dict({}, filename="empty.yml")
    assert cfg.eps == 1.0
    assert cfg.time_grid.t_min == pytest.approx(1e-7)
    assert cfg.time_grid.t_max == pytest.approx(0.8)
    assert cfg.sigma_grid.n == 2000
    assert cfg.trajectory.type == "stationary"
    assert cfg.integration.failure_policy == "gap"


def test_invalid_eps() -> None:
    try:
        normalize_config_dict({"eps": -1.0}, filename="bad.yml")
    except ConfigError as exc:
        assert "bad.yml" in str(exc)
        assert "eps" in str(exc)
    else:
        raise AssertionError("Expected ConfigError for negative eps")


def test_unknown_key_is_rejected() -> None:
    with pytest.raises(ConfigError):
        normalize_config_dict({"time_grid": {"t_end": 1.0}}, filename="bad.yml")


def test_time_range_must_be_positive() -> None:
    with pytest.raises(ConfigError) as exc_info:
        normalize_config_dict(
            {"time_grid": {"t_max": 0.1, "impact_time": 0.2}}, filename="bad.yml"
        )
    assert "impact_time" in str(exc_info.value)


def test_missing_and_unsupported_files(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_run_config(tmp_path / "missing.yml")
    bad = tmp_path / "case.toml"
    bad.write_text("eps = 1.0\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_run_config(bad)


def test_json_config(tmp_path: Path) -> None:
    path = tmp_path / "case.json"
    path.write_text(json.dumps({"eps": 0.5, "case_name": "half"}), encoding="utf-8")
    cfg = load_run_config(path)
    assert cfg.eps == 0.5
    assert cfg.case_name == "half"


def test_tabulated_trajectory_from_csv(tmp_path: Path) -> None:
    (tmp_path / "plate.csv").write_text(
        "t,s,sdot,sddot\n0.0,0.0,0.0,0.0\n0.5,0.05,0.2,0.0\n1.0,0.1,0.2,0.0\n",
        encoding="utf-8",
    )
    cfg_path = tmp_path / "case.yml"
    cfg_path.write_text(
        yaml.safe_dump({"trajectory": {"type": "tabulated", "csv_path": "plate.csv"}}),
        encoding="utf-8",
    )

    cfg = load_run_config(cfg_path)
    trajectory = build_trajectory(cfg.trajectory, config_dir=tmp_path)

    assert isinstance(trajectory, TabulatedTrajectory)
    sample = trajectory.sample(0.25)
    assert sample.s == pytest.approx(0.025)
    assert sample.sdot == pytest.approx(0.1)


def test_missing_trajectory_csv(tmp_path: Path) -> None:
    cfg = normalize_config_dict(
        {"trajectory": {"type": "tabulated", "csv_path": "nope.csv"}}, filename="case.yml"
    )
    with pytest.raises(ConfigError):
        build_trajectory(cfg.trajectory, config_dir=tmp_path)


def test_trajectory_csv_needs_all_columns(tmp_path: Path) -> None:
    (tmp_path / "plate.csv").write_text("t,s\n0.0,0.0\n1.0,0.1\n", encoding="utf-8")
    cfg = normalize_config_dict(
        {"trajectory": {"type": "tabulated", "csv_path": "plate.csv"}}, filename="case.yml"
    )
    with pytest.raises(ConfigError):
        build_trajectory(cfg.trajectory, config_dir=tmp_path)


def test_stationary_trajectory_is_default() -> None:
    cfg = RunConfig()
    assert isinstance(build_trajectory(cfg.trajectory, config_dir=Path(".")), StationaryTrajectory)


def test_run_from_config() -> None:
    cfg = normalize_config_dict(
        {
            "time_grid": {"t_max": 0.5, "impact_time": 0.1, "n": 4},
            "sigma_grid": {"n": 300},
            "case_name": "smoke",
        },
        filename="case.yml",
    )
    df = run_from_config(cfg)

    assert len(df) == 4
    np.testing.assert_allclose(df["Time"].iloc[-1], 0.4)
    assert np.isfinite(df["Force"]).all()
    assert df.attrs["case_name"] == "smoke"
