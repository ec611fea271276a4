"""Numerical core: turnover kinematics, composite pressure and force."""

from .errors import ConvergenceError, DomainError, NumericalValidityWarning
from .turnover import TimeSample, TurnoverState, turnover_kinematics
from .pressure import PressureProfile, evaluate_pressure_profile
from .force import SigmaGrid, compute_force_history, integrate_force, stationary_baseline

__all__ = [
    "ConvergenceError",
    "DomainError",
    "NumericalValidityWarning",
    "PressureProfile",
    "SigmaGrid",
    "TimeSample",
    "TurnoverState",
    "compute_force_history",
    "evaluate_pressure_profile",
    "integrate_force",
    "stationary_baseline",
    "turnover_kinematics",
]
