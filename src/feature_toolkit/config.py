"""
Configuration management for the feature toolkit.

Loads defaults from environment variables (typically from a .env file).
Uses python-dotenv to load .env automatically.

Usage:
    from feature_toolkit.config import config

    tol = config.numerics.eigen_tolerance
    max_iter = config.kmeans.max_iter
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, TypeVar

from .errors import InvalidParameterError

# Try to load .env file if it exists
try:
    from dotenv import load_dotenv

    # Look for .env in project root (parent of src/)
    env_path = Path(__file__).parent.parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)
except ImportError:
    # python-dotenv not installed - will use system environment variables
    pass

T = TypeVar("T")

KMEANS_INIT_NAMES = ("random_partition", "random_point", "random_sampling")
LOG_LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env(name: str, default: T, parse: Callable[[str], T]) -> T:
    """Read and parse an environment variable, falling back to *default*."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return parse(raw.strip())
    except ValueError as e:
        raise InvalidParameterError(
            f"Environment variable {name} has invalid value {raw!r}"
        ) from e


@dataclass
class NumericsConfig:
    """Numerical tolerances shared by the algorithms."""
    eigen_tolerance: float = 1e-10
    norm_floor: float = 1e-12

    def __post_init__(self):
        """Validate that tolerances are positive."""
        if not self.eigen_tolerance > 0:
            raise InvalidParameterError(
                f"eigen_tolerance must be > 0, got {self.eigen_tolerance}"
            )
        if not self.norm_floor > 0:
            raise InvalidParameterError(
                f"norm_floor must be > 0, got {self.norm_floor}"
            )


@dataclass
class KMeansDefaults:
    """Default KMeans/SKMeans settings used when a caller omits them."""
    k: int = 8
    max_iter: int = 64
    init: str = "random_point"
    seed: int = 0

    def __post_init__(self):
        """Validate default values."""
        if self.k < 1:
            raise InvalidParameterError(f"default k must be >= 1, got {self.k}")
        if self.max_iter < 1:
            raise InvalidParameterError(
                f"default max_iter must be >= 1, got {self.max_iter}"
            )
        self.init = self.init.lower()
        if self.init not in KMEANS_INIT_NAMES:
            raise InvalidParameterError(
                f"default init must be one of {KMEANS_INIT_NAMES}, got {self.init!r}"
            )


@dataclass
class Config:
    """
    Toolkit configuration loaded from environment variables.

    Environment variables can be set:
    1. In a .env file in the project root
    2. In the system environment
    3. In a container/deployment environment
    """
    numerics: NumericsConfig = field(default_factory=NumericsConfig)
    kmeans: KMeansDefaults = field(default_factory=KMeansDefaults)
    log_level: str = "WARNING"

    def __post_init__(self):
        """Normalise and validate the log level."""
        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVEL_NAMES:
            raise InvalidParameterError(
                f"log_level must be one of {LOG_LEVEL_NAMES}, got {self.log_level!r}"
            )

    @classmethod
    def from_env(cls) -> "Config":
        """Build a configuration from the current environment."""
        return cls(
            numerics=NumericsConfig(
                eigen_tolerance=_env("FEATURE_TOOLKIT_EIGEN_TOL", 1e-10, float),
                norm_floor=_env("FEATURE_TOOLKIT_NORM_FLOOR", 1e-12, float),
            ),
            kmeans=KMeansDefaults(
                k=_env("FEATURE_TOOLKIT_KMEANS_K", 8, int),
                max_iter=_env("FEATURE_TOOLKIT_KMEANS_MAX_ITER", 64, int),
                init=_env("FEATURE_TOOLKIT_KMEANS_INIT", "random_point", str),
                seed=_env("FEATURE_TOOLKIT_KMEANS_SEED", 0, int),
            ),
            log_level=_env("FEATURE_TOOLKIT_LOG_LEVEL", "WARNING", str),
        )


# Global config instance
config = Config.from_env()
