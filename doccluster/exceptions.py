"""
Exception types raised by the clustering core.

Every error derives from ClusteringError so callers can catch the whole
family with a single except clause. Configuration and shape problems also
derive from ValueError, matching what numpy and scikit-learn raise for the
same class of mistake.
"""

from typing import Optional


class ClusteringError(Exception):
    """Base exception for all clustering errors."""

    pass


class InvalidConfigurationError(ClusteringError, ValueError):
    """
    Invalid parameters or input relative to the batch being clustered.

    Raised before any computation starts. Common causes:
    - k < 1 or k larger than the number of vectors
    - inverted or out-of-range k sweep bounds
    - empty input or non-finite values
    - label arrays that do not line up with the vectors
    """

    pass


class DimensionalityMismatchError(ClusteringError, ValueError):
    """Input vectors do not all share the same, non-zero length."""

    pass


class ClusteringFailureError(ClusteringError):
    """
    The iterative solver could not produce a valid partition.

    The underlying numerical error is chained as ``__cause__`` and also
    kept on ``cause`` for callers that log it directly.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class NotFittedError(ClusteringError, AttributeError):
    """A fitted-model query was made before fit() was called."""

    pass
