"""
Automatic choice of the cluster count with the elbow method.

For every K in a bounded range a full K-means run is fitted and its WCSS
recorded. The chosen K is where the WCSS curve bends the most: the maximum
of the second finite difference of the curve.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .config import (
    DEFAULT_K_MAX,
    DEFAULT_K_MIN,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_N_INIT,
    DEFAULT_TOLERANCE,
    ElbowConfig,
)
from .exceptions import InvalidConfigurationError
from .kmeans import VectorClusterer
from .utils import ArrayLike, as_feature_matrix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ElbowResult:
    """
    Outcome of a cluster-count sweep.

    Attributes:
        optimal_k: The selected number of clusters (an absolute K, not an offset)
        wcss: WCSS for every K tried, in increasing K order
        k_values: The K values the wcss entries belong to
    """
    optimal_k: int
    wcss: List[float]
    k_values: List[int] = field(default_factory=list)

    def wcss_by_k(self) -> Dict[int, float]:
        return dict(zip(self.k_values, self.wcss))

    def as_dict(self) -> Dict[str, object]:
        return {
            "optimal_k": self.optimal_k,
            "wcss": list(self.wcss),
            "k_values": list(self.k_values),
        }


def find_elbow_point(wcss: Sequence[float]) -> int:
    """
    Index into ``wcss`` of the elbow.

    The first difference d[i] = wcss[i] - wcss[i+1] is the gain from one
    more cluster; the second difference s[i] = d[i] - d[i+1] is how sharply
    that gain drops at curve position i + 1. Curves with fewer than three
    points have no curvature and resolve to index 0.
    """
    values = np.asarray(wcss, dtype=np.float64)
    if values.size < 3:
        return 0
    diffs = values[:-1] - values[1:]
    second_diffs = diffs[:-1] - diffs[1:]
    # argmax keeps the first position on ties
    return int(np.argmax(second_diffs)) + 1


def default_k_range(
    n_samples: int,
    k_min: int = DEFAULT_K_MIN,
    k_max: int = DEFAULT_K_MAX,
) -> Tuple[int, int]:
    """Clamp the conventional sweep to what a batch of n_samples vectors allows."""
    if n_samples < 1:
        raise InvalidConfigurationError("Cannot choose a K range for an empty batch")
    upper = min(k_max, n_samples)
    lower = min(k_min, upper)
    return max(lower, 1), upper


class ClusterCountSelector:
    """
    Picks K for a batch of vectors by scanning a K range.

    Each candidate K costs one full K-means fit, so keep the range tight
    (2-10 is typical for document batches).
    """

    def __init__(
        self,
        k_min: int = DEFAULT_K_MIN,
        k_max: int = DEFAULT_K_MAX,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        tolerance: float = DEFAULT_TOLERANCE,
        n_init: int = DEFAULT_N_INIT,
        random_state: Optional[int] = None,
        n_jobs: int = 1,
    ):
        """
        Args:
            k_min: Smallest K to try (inclusive, >= 1)
            k_max: Largest K to try (inclusive, must not exceed the batch size)
            max_iterations: Per-K iteration cap
            tolerance: Per-K convergence tolerance
            n_init: Restarts per K
            random_state: Seed used for every K-means run in the sweep
            n_jobs: Threads used to fit candidate K values concurrently
        """
        config = ElbowConfig(
            k_min=k_min,
            k_max=k_max,
            max_iterations=max_iterations,
            tolerance=tolerance,
            n_init=n_init,
            random_state=random_state,
            n_jobs=n_jobs,
        )
        config.validate()
        self.config = config

    @classmethod
    def from_config(cls, config: ElbowConfig) -> "ClusterCountSelector":
        return cls(
            k_min=config.k_min,
            k_max=config.k_max,
            max_iterations=config.max_iterations,
            tolerance=config.tolerance,
            n_init=config.n_init,
            random_state=config.random_state,
            n_jobs=config.n_jobs,
        )

    @property
    def k_values(self) -> List[int]:
        return list(range(self.config.k_min, self.config.k_max + 1))

    def _make_clusterer(self, k: int) -> VectorClusterer:
        return VectorClusterer(
            k=k,
            max_iterations=self.config.max_iterations,
            tolerance=self.config.tolerance,
            n_init=self.config.n_init,
            random_state=self.config.random_state,
        )

    def _wcss_for_k(self, X: np.ndarray, k: int) -> float:
        clusterer = self._make_clusterer(k)
        clusters = clusterer.fit(X)
        centroids = clusterer.get_centroids(X, clusters)
        wcss = clusterer.get_wcss(X, clusters, centroids)
        logger.debug(f"  k={k}: WCSS={wcss:.4f}")
        return wcss

    def select_k(self, vectors: ArrayLike) -> ElbowResult:
        """
        Sweep the K range and pick the elbow of the WCSS curve.

        Args:
            vectors: Batch of equal-length feature vectors

        Returns:
            ElbowResult with the chosen K and the WCSS of every K tried

        Raises:
            InvalidConfigurationError: k_max exceeds the batch size, or the batch is empty
            DimensionalityMismatchError: Vectors of inconsistent length
            ClusteringFailureError: Any single K failed; the sweep is not partial
        """
        X = as_feature_matrix(vectors)
        n_samples = X.shape[0]
        if self.config.k_max > n_samples:
            raise InvalidConfigurationError(
                f"k_max ({self.config.k_max}) must not exceed the number of vectors ({n_samples})"
            )

        k_values = self.k_values
        logger.info(
            f"Selecting K in [{k_values[0]}, {k_values[-1]}] for {n_samples} vectors"
        )

        if self.config.n_jobs > 1 and len(k_values) > 1:
            with ThreadPoolExecutor(max_workers=self.config.n_jobs) as executor:
                # map() yields in submission order and re-raises the first failure
                wcss = list(executor.map(lambda k: self._wcss_for_k(X, k), k_values))
        else:
            wcss = [self._wcss_for_k(X, k) for k in k_values]

        optimal_k = k_values[find_elbow_point(wcss)]
        logger.info(f"Elbow at K={optimal_k} (WCSS curve: {[round(w, 4) for w in wcss]})")

        return ElbowResult(optimal_k=optimal_k, wcss=wcss, k_values=k_values)


def select_k(
    vectors: ArrayLike,
    k_range: Tuple[int, int] = (DEFAULT_K_MIN, DEFAULT_K_MAX),
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    **kwargs,
) -> ElbowResult:
    """
    Functional form of ClusterCountSelector.select_k.

    Args:
        vectors: Batch of equal-length feature vectors
        k_range: Inclusive (min, max) bounds on K
        max_iterations: Per-K iteration cap
        **kwargs: Other ClusterCountSelector options (tolerance, n_init, random_state, n_jobs)

    Examples:
        result = select_k(vectors, k_range=(2, 8), random_state=42)
        labels = VectorClusterer(result.optimal_k, random_state=42).fit(vectors)
    """
    k_min, k_max = k_range
    selector = ClusterCountSelector(
        k_min=k_min, k_max=k_max, max_iterations=max_iterations, **kwargs
    )
    return selector.select_k(vectors)
