"""Configuration loading and validation utilities."""

from .loader import (
    ConfigError,
    build_sigma_grid,
    build_trajectory,
    load_run_config,
    normalize_config_dict,
    run_from_config,
)
from .models import RunConfig

__all__ = [
    "ConfigError",
    "RunConfig",
    "build_sigma_grid",
    "build_trajectory",
    "load_run_config",
    "normalize_config_dict",
    "run_from_config",
]
