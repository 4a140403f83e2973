"""
Array helpers shared by the clusterer and the cluster-count selector.

Input validation lives here so that every public entry point rejects bad
batches the same way, before any clustering work starts.
"""

import logging
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
from sklearn.metrics import silhouette_score

from .exceptions import DimensionalityMismatchError, InvalidConfigurationError

logger = logging.getLogger(__name__)

ArrayLike = Union[np.ndarray, Sequence[Sequence[float]]]


def as_feature_matrix(vectors: ArrayLike) -> np.ndarray:
    """
    Convert a batch of feature vectors into a float64 matrix of shape (N, D).

    Args:
        vectors: List of equal-length numeric sequences, or a 2-D array

    Returns:
        A new float64 array; the caller's data is never modified

    Raises:
        InvalidConfigurationError: Empty batch, non-numeric or non-finite values
        DimensionalityMismatchError: Rows of different lengths, or zero-length rows
    """
    if isinstance(vectors, np.ndarray) and vectors.dtype != object:
        if vectors.ndim != 2:
            if vectors.ndim == 1 and vectors.size == 0:
                raise InvalidConfigurationError("Cannot cluster an empty batch of vectors")
            raise DimensionalityMismatchError(
                f"Expected a 2-D array of shape (n_vectors, n_features), got shape {vectors.shape}"
            )
        rows = vectors
    else:
        rows = list(vectors)
        if not rows:
            raise InvalidConfigurationError("Cannot cluster an empty batch of vectors")
        try:
            lengths = [len(row) for row in rows]
        except TypeError as e:
            raise DimensionalityMismatchError(
                "Every feature vector must be a sequence of numbers"
            ) from e
        if len(set(lengths)) > 1:
            first = lengths[0]
            bad = next(i for i, n in enumerate(lengths) if n != first)
            raise DimensionalityMismatchError(
                f"Vector {bad} has {lengths[bad]} dimensions, expected {first} "
                f"(all vectors in a batch must share the same length)"
            )

    try:
        X = np.array(rows, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidConfigurationError(f"Feature vectors must be numeric: {e}") from e

    if X.ndim != 2:
        raise DimensionalityMismatchError(
            f"Each feature vector must be a flat sequence of numbers, got batch of shape {X.shape}"
        )
    if X.shape[0] == 0:
        raise InvalidConfigurationError("Cannot cluster an empty batch of vectors")
    if X.shape[1] == 0:
        raise DimensionalityMismatchError("Feature vectors must have at least one dimension")
    if not np.all(np.isfinite(X)):
        raise InvalidConfigurationError("Feature vectors contain NaN or infinite values")

    return X


def as_label_array(clusters: Sequence[int], n_vectors: int, n_clusters: int) -> np.ndarray:
    """Validate a per-vector label array against the batch size and K."""
    labels = np.asarray(clusters)
    if labels.ndim != 1 or labels.shape[0] != n_vectors:
        raise InvalidConfigurationError(
            f"Expected {n_vectors} cluster labels (one per vector), got shape {labels.shape}"
        )
    if labels.size and not np.issubdtype(labels.dtype, np.integer):
        if not np.all(np.mod(labels, 1) == 0):
            raise InvalidConfigurationError("Cluster labels must be integers")
        labels = labels.astype(np.int64)
    if labels.size and (labels.min() < 0 or labels.max() >= n_clusters):
        raise InvalidConfigurationError(
            f"Cluster labels must lie in [0, {n_clusters}), "
            f"got range [{labels.min()}, {labels.max()}]"
        )
    return labels.astype(np.int64, copy=False)


def cluster_means(X: np.ndarray, labels: np.ndarray, n_clusters: int) -> np.ndarray:
    """
    Per-cluster element-wise mean of the member rows.

    Clusters without members get an all-zero row so the result always has
    exactly n_clusters rows.
    """
    centroids = np.zeros((n_clusters, X.shape[1]), dtype=np.float64)
    counts = np.bincount(labels, minlength=n_clusters)
    np.add.at(centroids, labels, X)
    nonempty = counts > 0
    centroids[nonempty] /= counts[nonempty, np.newaxis]
    return centroids


def sum_squared_distances(X: np.ndarray, labels: np.ndarray, centroids: np.ndarray) -> float:
    """Within-cluster sum of squares for a labelled batch."""
    assigned_centroids = centroids[labels]  # Shape: (n_samples, n_features)
    squared_distances = np.sum((X - assigned_centroids) ** 2, axis=1)
    return float(np.sum(squared_distances))


def squared_distances_to(X: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Squared Euclidean distances of shape (n_samples, n_clusters)."""
    # Direct differences, one centroid at a time: exact for data far from the
    # origin and only (N, D) extra memory
    distances = np.empty((X.shape[0], centroids.shape[0]), dtype=np.float64)
    for c_id, centroid in enumerate(centroids):
        distances[:, c_id] = np.sum((X - centroid) ** 2, axis=1)
    return distances


def create_sample_dataset(
    centers: Sequence[Sequence[float]],
    n_per_cluster: int = 50,
    noise: float = 0.5,
    random_state: Optional[int] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Generate Gaussian blobs around the given centers.

    Args:
        centers: One center per blob; all must share the same dimensionality
        n_per_cluster: Points drawn per blob
        noise: Standard deviation of the Gaussian noise
        random_state: Seed for reproducibility

    Returns:
        (vectors, true_labels) with vectors of shape (len(centers) * n_per_cluster, D)
    """
    centers = as_feature_matrix(centers)
    rng = np.random.default_rng(random_state)
    blobs = [
        rng.normal(loc=center, scale=noise, size=(n_per_cluster, centers.shape[1]))
        for center in centers
    ]
    labels = np.repeat(np.arange(len(centers)), n_per_cluster)
    return np.vstack(blobs), labels


def evaluate_clustering(vectors: ArrayLike, labels: Sequence[int]) -> Dict[str, object]:
    """
    Summarise the quality of a partition.

    The silhouette score is only defined for 2 <= n_clusters <= N - 1; it is
    None outside that range.
    """
    X = as_feature_matrix(vectors)
    labels = np.asarray(labels)
    n_clusters = int(labels.max()) + 1 if labels.size else 0
    labels = as_label_array(labels, X.shape[0], max(n_clusters, 1))

    centroids = cluster_means(X, labels, n_clusters)
    unique_labels, sizes = np.unique(labels, return_counts=True)
    n_used = len(unique_labels)

    silhouette = None
    if 2 <= n_used <= X.shape[0] - 1:
        silhouette = float(silhouette_score(X, labels, metric="euclidean"))
    else:
        logger.debug(f"Silhouette undefined for {n_used} clusters on {X.shape[0]} vectors")

    return {
        "n_clusters": n_used,
        "wcss": sum_squared_distances(X, labels, centroids),
        "cluster_sizes": dict(zip(unique_labels.tolist(), sizes.tolist())),
        "silhouette": silhouette,
    }
