"""Turnover-point kinematics of generalized Wagner theory.

The wetted-edge (turnover) position follows from the plate penetration
``s(t)``:

    d     = sqrt(3 (t - s))
    ddot  = (sqrt(3)/2) (1 - sdot) / sqrt(t - s)
    dddot = -(sqrt(3)/4) [(1 - sdot)^2 + 2 (t - s) sddot] / (t - s)^{3/2}

For a stationary plate ``s = sdot = sddot = 0``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from .errors import DomainError

logger = logging.getLogger(__name__)

SQRT3 = math.sqrt(3.0)


@dataclass(frozen=True)
class TimeSample:
    """Time after impact together with the plate penetration state."""

    t: float
    s: float = 0.0
    sdot: float = 0.0
    sddot: float = 0.0

    @property
    def elapsed(self) -> float:
        return self.t - self.s


@dataclass(frozen=True)
class TurnoverState:
    d: float
    ddot: float
    dddot: float

    @property
    def elapsed(self) -> float:
        """``t - s`` recovered from ``d``."""
        return self.d * self.d / 3.0

    @property
    def jet_thickness(self) -> float:
        """J = 2 (t - s)^{3/2} / (sqrt(3) pi), written in terms of d."""
        return 2.0 * self.d ** 3 / (9.0 * math.pi)


def turnover_kinematics(sample: TimeSample) -> TurnoverState:
    """Return ``(d, ddot, dddot)`` for one time sample.

    Raises
    ------
    DomainError
        If any input is non-finite, ``t <= 0`` or ``t - s <= 0``.
    """
    values = (sample.t, sample.s, sample.sdot, sample.sddot)
    if not all(math.isfinite(v) for v in values):
        raise DomainError(f"Non-finite time sample: {sample}")
    if sample.t <= 0.0:
        raise DomainError(f"Time must be after impact (t > 0), got t={sample.t:.6g}.")

    tau = sample.t - sample.s
    if tau <= 0.0:
        raise DomainError(
            f"Turnover point undefined for t - s = {tau:.6g} <= 0 "
            f"(t={sample.t:.6g}, s={sample.s:.6g})."
        )

    root_tau = math.sqrt(tau)
    one_minus_sdot = 1.0 - sample.sdot

    d = math.sqrt(3.0 * tau)
    ddot = 0.5 * SQRT3 * one_minus_sdot / root_tau
    dddot = -0.25 * SQRT3 * (one_minus_sdot ** 2 + 2.0 * tau * sample.sddot) / (tau * root_tau)

    logger.debug("t=%.6g tau=%.6g -> d=%.6g ddot=%.6g dddot=%.6g", sample.t, tau, d, ddot, dddot)
    return TurnoverState(d=d, ddot=ddot, dddot=dddot)
