from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator


class ConfigBase(BaseModel):
    model_config = {"extra": "forbid"}


class TimeGridSpec(ConfigBase):
    t_min: float = 1.0e-7
    t_max: float = 0.8
    n: int = 1000
    impact_time: float = 0.0

    @field_validator("t_min")
    @classmethod
    def _t_min_positive(cls, value: float) -> float:
        if value <= 0.0:
            raise ValueError("t_min must be > 0")
        return value

    @field_validator("n")
    @classmethod
    def _n_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("n must be >= 1")
        return value

    @field_validator("impact_time")
    @classmethod
    def _impact_nonneg(cls, value: float) -> float:
        if value < 0.0:
            raise ValueError("impact_time must be >= 0")
        return value

    @model_validator(mode="after")
    def _validate_range(self) -> "TimeGridSpec":
        if self.t_max - self.impact_time <= self.t_min:
            raise ValueError("t_max - impact_time must exceed t_min")
        return self


class SigmaGridSpec(ConfigBase):
    n: int = 2000
    sigma_min: float = 1.0e-8
    sigma_max: Optional[float] = None

    @field_validator("n")
    @classmethod
    def _n_min(cls, value: int) -> int:
        if value < 2:
            raise ValueError("n must be >= 2")
        return value

    @field_validator("sigma_min")
    @classmethod
    def _sigma_min_positive(cls, value: float) -> float:
        if value <= 0.0:
            raise ValueError("sigma_min must be > 0")
        return value

    @model_validator(mode="after")
    def _validate_bounds(self) -> "SigmaGridSpec":
        if self.sigma_max is not None and self.sigma_max <= self.sigma_min:
            raise ValueError("sigma_max must be greater than sigma_min")
        return self


class StationaryTrajectorySpec(ConfigBase):
    type: Literal["stationary"] = "stationary"


class TabulatedTrajectorySpec(ConfigBase):
    type: Literal["tabulated"]
    csv_path: str

    @field_validator("csv_path")
    @classmethod
    def _path_required(cls, value: str) -> str:
        if not value:
            raise ValueError("csv_path is required")
        return value


TrajectorySpec = Union[StationaryTrajectorySpec, TabulatedTrajectorySpec]


class IntegrationSpec(ConfigBase):
    pressure_ceiling: Optional[float] = 1.0e12
    failure_policy: Literal["gap", "interpolate", "raise"] = "gap"
    workers: int = 1
    root_maxiter: int = 50

    @field_validator("pressure_ceiling")
    @classmethod
    def _ceiling_positive(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0.0:
            raise ValueError("pressure_ceiling must be > 0")
        return value

    @field_validator("workers", "root_maxiter")
    @classmethod
    def _count_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value


class RunConfig(ConfigBase):
    eps: float = 1.0
    time_grid: TimeGridSpec = Field(default_factory=TimeGridSpec)
    sigma_grid: SigmaGridSpec = Field(default_factory=SigmaGridSpec)
    trajectory: TrajectorySpec = Field(default_factory=StationaryTrajectorySpec)
    integration: IntegrationSpec = Field(default_factory=IntegrationSpec)
    case_name: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("eps")
    @classmethod
    def _eps_positive(cls, value: float) -> float:
        if value <= 0.0:
            raise ValueError("eps must be > 0")
        return value


def format_validation_error(exc: ValidationError, *, filename: str) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(item) for item in error.get("loc", []))
        msg = error.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}")
    details = "; ".join(parts) if parts else str(exc)
    return f"{filename}: invalid configuration: {details}"
