"""
Configuration defaults and parameter containers for the clustering core.
"""

from dataclasses import dataclass, fields
from numbers import Integral
from typing import Any, Dict, Optional

from .exceptions import InvalidConfigurationError


# ============================================================
# Defaults
# ============================================================

DEFAULT_MAX_ITERATIONS = 100
DEFAULT_TOLERANCE = 0.001
DEFAULT_N_INIT = 1
DEFAULT_INIT = "k-means++"

# Conventional elbow sweep for document batches
DEFAULT_K_MIN = 2
DEFAULT_K_MAX = 10

INIT_METHODS = ("k-means++", "random")


def _check_int(name: str, value: Any, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, Integral) or value < minimum:
        raise InvalidConfigurationError(f"{name} must be an integer >= {minimum}, got {value!r}")


def _from_dict(cls, data: Dict[str, Any]):
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise InvalidConfigurationError(
            f"Unknown {cls.__name__} option(s): {', '.join(unknown)}"
        )
    config = cls(**data)
    config.validate()
    return config


@dataclass
class KMeansConfig:
    """Parameters for a single K-Means run."""

    k: int
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    tolerance: float = DEFAULT_TOLERANCE
    n_init: int = DEFAULT_N_INIT
    init: str = DEFAULT_INIT
    random_state: Optional[int] = None

    def validate(self) -> None:
        _check_int("k", self.k, 1)
        _check_int("max_iterations", self.max_iterations, 1)
        if self.tolerance < 0:
            raise InvalidConfigurationError(f"tolerance must be >= 0, got {self.tolerance}")
        _check_int("n_init", self.n_init, 1)
        if self.init not in INIT_METHODS:
            raise InvalidConfigurationError(
                f"Unknown initialization method: {self.init!r}. "
                f"Use one of {', '.join(INIT_METHODS)}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KMeansConfig":
        """Build and validate a config from a plain mapping."""
        return _from_dict(cls, data)


@dataclass
class ElbowConfig:
    """
    Parameters for a cluster-count sweep.

    Attributes:
        k_min: Smallest K to try (inclusive)
        k_max: Largest K to try (inclusive)
        max_iterations: Per-K iteration cap passed to each K-Means run
        tolerance: Per-K convergence tolerance
        n_init: Restarts per K
        random_state: Seed shared by every K in the sweep
        n_jobs: Number of worker threads used to fit candidate K values
    """

    k_min: int = DEFAULT_K_MIN
    k_max: int = DEFAULT_K_MAX
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    tolerance: float = DEFAULT_TOLERANCE
    n_init: int = DEFAULT_N_INIT
    random_state: Optional[int] = None
    n_jobs: int = 1

    def validate(self) -> None:
        _check_int("k_min", self.k_min, 1)
        _check_int("k_max", self.k_max, 1)
        if self.k_min > self.k_max:
            raise InvalidConfigurationError(
                f"k_min ({self.k_min}) must be <= k_max ({self.k_max})"
            )
        _check_int("n_jobs", self.n_jobs, 1)
        # Per-K parameters share the K-Means checks
        KMeansConfig(
            k=self.k_min,
            max_iterations=self.max_iterations,
            tolerance=self.tolerance,
            n_init=self.n_init,
        ).validate()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ElbowConfig":
        """Build and validate a config from a plain mapping."""
        return _from_dict(cls, data)
