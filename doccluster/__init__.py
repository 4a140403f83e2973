"""
K-means clustering and elbow-based cluster-count selection for document feature vectors.
"""

import logging

from .config import ElbowConfig, KMeansConfig
from .elbow import ClusterCountSelector, ElbowResult, default_k_range, find_elbow_point, select_k
from .exceptions import (
    ClusteringError,
    ClusteringFailureError,
    DimensionalityMismatchError,
    InvalidConfigurationError,
    NotFittedError,
)
from .kmeans import VectorClusterer
from .utils import as_feature_matrix, create_sample_dataset, evaluate_clustering
from .version import __version__

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "VectorClusterer",
    "ClusterCountSelector",
    "ElbowResult",
    "select_k",
    "find_elbow_point",
    "default_k_range",
    "KMeansConfig",
    "ElbowConfig",
    "ClusteringError",
    "InvalidConfigurationError",
    "DimensionalityMismatchError",
    "ClusteringFailureError",
    "NotFittedError",
    "as_feature_matrix",
    "create_sample_dataset",
    "evaluate_clustering",
    "__version__",
]
