"""
K-means clustering for document feature vectors.

Lloyd's algorithm over a dense (N, D) matrix, sized for batches of tens to
low thousands of vectors.
"""

import logging
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from .config import (
    DEFAULT_INIT,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_N_INIT,
    DEFAULT_TOLERANCE,
    KMeansConfig,
)
from .exceptions import (
    ClusteringFailureError,
    DimensionalityMismatchError,
    InvalidConfigurationError,
    NotFittedError,
)
from .utils import (
    ArrayLike,
    as_feature_matrix,
    as_label_array,
    cluster_means,
    squared_distances_to,
    sum_squared_distances,
)

logger = logging.getLogger(__name__)


class VectorClusterer:
    """
    K-means clustering with a fixed number of clusters.

    Features:
    - K-means++ initialization (or K distinct random rows)
    - Multiple initialization attempts, keeping the lowest WCSS
    - Early stopping once no centroid moves by tolerance or more
    - Empty clusters re-seeded from the worst-fitting point during fit
    - Reproducible runs through random_state
    """

    def __init__(
        self,
        k: int,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        tolerance: float = DEFAULT_TOLERANCE,
        n_init: int = DEFAULT_N_INIT,
        init: str = DEFAULT_INIT,
        random_state: Optional[int] = None,
    ):
        """
        Initialize K-means clustering.

        Args:
            k: Number of clusters
            max_iterations: Maximum number of refinement iterations per run
            tolerance: Minimum centroid movement needed to keep iterating
            n_init: Number of different initializations to try
            init: Initialization method ('k-means++' or 'random')
            random_state: Random seed for reproducibility
        """
        config = KMeansConfig(
            k=k,
            max_iterations=max_iterations,
            tolerance=tolerance,
            n_init=n_init,
            init=init,
            random_state=random_state,
        )
        config.validate()
        self.config = config

        self.k = k
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.n_init = n_init
        self.init = init
        self.random_state = random_state

        # Results
        self.cluster_centers_ = None
        self.labels_ = None
        self.inertia_ = None
        self.n_iter_ = None
        self.converged_ = None

    @classmethod
    def from_config(cls, config: KMeansConfig) -> "VectorClusterer":
        return cls(
            k=config.k,
            max_iterations=config.max_iterations,
            tolerance=config.tolerance,
            n_init=config.n_init,
            init=config.init,
            random_state=config.random_state,
        )

    def __repr__(self) -> str:
        return (
            f"VectorClusterer(k={self.k}, max_iterations={self.max_iterations}, "
            f"tolerance={self.tolerance}, n_init={self.n_init}, init={self.init!r})"
        )

    # ------------------------------------------------------------
    # Lloyd's algorithm
    # ------------------------------------------------------------

    def _init_centroids(self, X: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        """Initialize centroids using k-means++ or random initialization."""
        if self.init == "k-means++":
            return self._kmeans_plus_plus_init(X, rng)
        random_indices = rng.choice(X.shape[0], self.k, replace=False)
        return X[random_indices].copy()

    def _kmeans_plus_plus_init(self, X: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        """K-means++ seeding: each new centroid drawn proportionally to squared distance."""
        n_samples, n_features = X.shape
        centroids = np.zeros((self.k, n_features))
        chosen = np.zeros(n_samples, dtype=bool)

        first = rng.integers(n_samples)
        centroids[0] = X[first]
        chosen[first] = True
        min_distances_squared = np.sum((X - centroids[0]) ** 2, axis=1)

        for c_id in range(1, self.k):
            total = min_distances_squared.sum()
            if total > 0:
                probabilities = min_distances_squared / total
                next_idx = rng.choice(n_samples, p=probabilities)
            else:
                # Every remaining point coincides with a centroid
                next_idx = rng.choice(np.flatnonzero(~chosen))
            centroids[c_id] = X[next_idx]
            chosen[next_idx] = True
            min_distances_squared = np.minimum(
                min_distances_squared, np.sum((X - centroids[c_id]) ** 2, axis=1)
            )

        return centroids

    def _assign_clusters(self, X: np.ndarray, centroids: np.ndarray) -> np.ndarray:
        """Assign each point to the nearest centroid; ties go to the lowest index."""
        return np.argmin(squared_distances_to(X, centroids), axis=1)

    def _update_centroids(self, X: np.ndarray, labels: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Recompute centroids, moving the farthest points into any empty clusters."""
        centroids = cluster_means(X, labels, self.k)
        counts = np.bincount(labels, minlength=self.k)
        empty = np.flatnonzero(counts == 0)
        if empty.size == 0:
            return centroids, labels

        labels = labels.copy()
        distances = np.sum((X - centroids[labels]) ** 2, axis=1)
        candidates = iter(np.argsort(-distances, kind="stable"))
        for cluster in empty:
            for idx in candidates:
                # Never empty the donor cluster
                if counts[labels[idx]] > 1:
                    counts[labels[idx]] -= 1
                    labels[idx] = cluster
                    counts[cluster] += 1
                    break
        logger.debug(f"Re-seeded {empty.size} empty cluster(s) from outlying points")
        return cluster_means(X, labels, self.k), labels

    def _fit_single(self, X: np.ndarray, rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray, float, int, bool]:
        """Single k-means run."""
        centroids = self._init_centroids(X, rng)
        converged = False

        for iteration in range(self.max_iterations):
            labels = self._assign_clusters(X, centroids)
            new_centroids, labels = self._update_centroids(X, labels)

            shift = float(np.max(np.linalg.norm(new_centroids - centroids, axis=1)))
            centroids = new_centroids

            # A fixed point is converged even with tolerance=0
            if shift < self.tolerance or shift == 0.0:
                converged = True
                break

            if (iteration + 1) % 25 == 0:
                logger.debug(f"Iteration {iteration + 1}, max centroid shift: {shift:.6f}")

        inertia = sum_squared_distances(X, labels, centroids)
        return centroids, labels, inertia, iteration + 1, converged

    def _check_partition(self, labels: np.ndarray, n_samples: int) -> None:
        if labels is None or labels.shape != (n_samples,):
            raise ClusteringFailureError(
                f"K-means produced {0 if labels is None else labels.size} labels for {n_samples} vectors"
            )
        if labels.min() < 0 or labels.max() >= self.k:
            raise ClusteringFailureError(
                f"K-means produced labels outside [0, {self.k})"
            )

    # ------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------

    def fit(self, vectors: ArrayLike) -> np.ndarray:
        """
        Partition the vectors into k clusters.

        Args:
            vectors: Non-empty batch of equal-length feature vectors, N >= k

        Returns:
            Integer labels of shape (N,), index-aligned with the input, each in [0, k)

        Raises:
            InvalidConfigurationError: Empty batch or k larger than the batch
            DimensionalityMismatchError: Vectors of inconsistent length
            ClusteringFailureError: The solver failed; the original error is chained
        """
        X = as_feature_matrix(vectors)
        n_samples = X.shape[0]
        if self.k > n_samples:
            raise InvalidConfigurationError(
                f"Number of vectors ({n_samples}) must be >= k ({self.k})"
            )

        logger.debug(f"Fitting K-means with {self.k} clusters on {n_samples} vectors of dimension {X.shape[1]}")
        rng = np.random.default_rng(self.random_state)

        best_inertia = float("inf")
        best = None

        try:
            with np.errstate(over="raise", invalid="raise", divide="raise"):
                for init_run in range(self.n_init):
                    centroids, labels, inertia, n_iter, converged = self._fit_single(X, rng)
                    if not np.isfinite(inertia):
                        raise FloatingPointError(f"non-finite WCSS on initialization {init_run + 1}")
                    if inertia < best_inertia:
                        best_inertia = inertia
                        best = (centroids, labels, n_iter, converged)
        except (ArithmeticError, ValueError, np.linalg.LinAlgError) as e:
            raise ClusteringFailureError(f"K-means clustering failed: {e}", cause=e) from e

        if best is None:
            raise ClusteringFailureError("K-means clustering failed: no initialization produced a result")

        centroids, labels, n_iter, converged = best
        self._check_partition(labels, n_samples)

        if not converged:
            logger.warning(
                f"K-means (k={self.k}) stopped after {self.max_iterations} iterations "
                f"without reaching tolerance {self.tolerance}"
            )

        self.cluster_centers_ = centroids
        self.labels_ = labels
        self.inertia_ = best_inertia
        self.n_iter_ = n_iter
        self.converged_ = converged

        logger.info(
            f"K-means k={self.k}: WCSS={best_inertia:.4f} after {n_iter} iteration(s)"
        )
        return labels.copy()

    def fit_predict(self, vectors: ArrayLike) -> np.ndarray:
        """Alias of fit(), returning the labels."""
        return self.fit(vectors)

    def predict(self, vectors: ArrayLike) -> np.ndarray:
        """
        Assign new vectors to the nearest fitted centroid.

        Args:
            vectors: Batch with the same dimensionality as the fitted data

        Returns:
            Cluster labels
        """
        if self.cluster_centers_ is None:
            raise NotFittedError("Model must be fitted before prediction")

        X = as_feature_matrix(vectors)
        if X.shape[1] != self.cluster_centers_.shape[1]:
            raise DimensionalityMismatchError(
                f"Vectors have {X.shape[1]} dimensions, model was fitted on "
                f"{self.cluster_centers_.shape[1]}"
            )
        return self._assign_clusters(X, self.cluster_centers_)

    def get_centroids(self, vectors: ArrayLike, clusters: Sequence[int]) -> np.ndarray:
        """
        Mean vector of each cluster 0..k-1.

        A cluster with no members gets an all-zero centroid, so the result
        always has exactly k rows.

        Args:
            vectors: The vectors that were clustered
            clusters: Their labels, one per vector

        Returns:
            Array of shape (k, D)
        """
        X = as_feature_matrix(vectors)
        labels = as_label_array(clusters, X.shape[0], self.k)
        return cluster_means(X, labels, self.k)

    def get_wcss(self, vectors: ArrayLike, clusters: Sequence[int], centroids: ArrayLike) -> float:
        """
        Within-cluster sum of squares.

        Args:
            vectors: The vectors that were clustered
            clusters: Their labels, one per vector
            centroids: One centroid per cluster, shape (k, D)

        Returns:
            Sum of squared Euclidean distances from each vector to its centroid
        """
        X = as_feature_matrix(vectors)
        labels = as_label_array(clusters, X.shape[0], self.k)
        C = np.asarray(centroids, dtype=np.float64)
        if C.ndim != 2 or C.shape[0] != self.k:
            raise InvalidConfigurationError(
                f"Expected {self.k} centroids, got array of shape {C.shape}"
            )
        if C.shape[1] != X.shape[1]:
            raise DimensionalityMismatchError(
                f"Centroids have {C.shape[1]} dimensions, vectors have {X.shape[1]}"
            )
        return sum_squared_distances(X, labels, C)

    def get_cluster_info(self) -> Dict[str, object]:
        """Get information about the clustering results."""
        if self.cluster_centers_ is None:
            raise NotFittedError("Model must be fitted first")

        cluster_sizes = np.bincount(self.labels_, minlength=self.k)

        return {
            "n_clusters": self.k,
            "inertia": self.inertia_,
            "n_iterations": self.n_iter_,
            "converged": self.converged_,
            "cluster_sizes": dict(enumerate(cluster_sizes.tolist())),
            "avg_cluster_size": float(np.mean(cluster_sizes)),
            "std_cluster_size": float(np.std(cluster_sizes)),
            "min_cluster_size": int(np.min(cluster_sizes)),
            "max_cluster_size": int(np.max(cluster_sizes)),
        }
