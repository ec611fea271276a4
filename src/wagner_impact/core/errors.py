"""Error and warning types raised by the Wagner core."""

from __future__ import annotations

from typing import Any, Dict, Optional


class DomainError(ValueError):
    """An input lies outside the real domain of a closed-form expression."""


class ConvergenceError(RuntimeError):
    """Root-finder did not converge within its iteration bound.

    Carries enough diagnostics to tell a bad seed from a bad target.
    """

    def __init__(
        self,
        message: str,
        *,
        method: str,
        iterations: int = 0,
        residual: float = float("nan"),
        seed: Optional[float] = None,
        target: float = 0.0,
        fallback_attempted: bool = False,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.iterations = int(iterations)
        self.residual = float(residual)
        self.seed = seed
        self.target = float(target)
        self.fallback_attempted = bool(fallback_attempted)

    def to_diagnostics_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "message": str(self),
            "method": self.method,
            "iterations": self.iterations,
            "residual": self.residual,
            "seed": self.seed,
            "target": self.target,
            "fallback_attempted": self.fallback_attempted,
        }


class NumericalValidityWarning(UserWarning):
    """Non-fatal numerical issue, attached to results as metadata."""
