"""Plate penetration trajectories ``(s, sdot, sddot)`` fed to the core.

The plate's own dynamics are solved elsewhere; here a trajectory is only a
lookup from time to penetration state.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Tuple, Union

import numpy as np
import pandas as pd

from .turnover import TimeSample

TRAJECTORY_COLUMNS = ("t", "s", "sdot", "sddot")


@dataclass(frozen=True)
class StationaryTrajectory:
    """Rigid, stationary plate: s = sdot = sddot = 0."""

    def sample(self, t: float) -> TimeSample:
        return TimeSample(t=float(t))


@dataclass(frozen=True)
class TabulatedTrajectory:
    t: np.ndarray
    s: np.ndarray
    sdot: np.ndarray
    sddot: np.ndarray

    def __post_init__(self) -> None:
        n = len(self.t)
        if n < 2:
            raise ValueError("tabulated trajectory needs at least two rows")
        if any(len(col) != n for col in (self.s, self.sdot, self.sddot)):
            raise ValueError("trajectory columns must have equal length")
        if np.any(np.diff(self.t) <= 0.0):
            raise ValueError("trajectory times must be strictly increasing")

    def sample(self, t: float) -> TimeSample:
        t = float(t)
        # held constant outside the tabulated range
        return TimeSample(
            t=t,
            s=float(np.interp(t, self.t, self.s)),
            sdot=float(np.interp(t, self.t, self.sdot)),
            sddot=float(np.interp(t, self.t, self.sddot)),
        )

    @classmethod
    def from_rows(cls, rows: Iterable[Tuple[float, float, float, float]]) -> "TabulatedTrajectory":
        pts: List[Tuple[float, float, float, float]] = [
            (float(t), float(s), float(v), float(a)) for t, s, v, a in rows
        ]
        pts.sort(key=lambda item: item[0])
        arr = np.array(pts, dtype=float).reshape(-1, 4)
        return cls(arr[:, 0], arr[:, 1], arr[:, 2], arr[:, 3])

    @classmethod
    def from_csv(cls, csv_path: Path) -> "TabulatedTrajectory":
        df = pd.read_csv(csv_path)
        missing = [c for c in TRAJECTORY_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"CSV {csv_path} must include columns {list(TRAJECTORY_COLUMNS)}; missing {missing}")
        return cls.from_rows(df[list(TRAJECTORY_COLUMNS)].itertuples(index=False, name=None))


Trajectory = Union[StationaryTrajectory, TabulatedTrajectory]
