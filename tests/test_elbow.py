import numpy as np
import pytest

import doccluster.elbow as elbow_module
from doccluster import (
    ClusterCountSelector,
    ClusteringFailureError,
    DimensionalityMismatchError,
    ElbowConfig,
    ElbowResult,
    InvalidConfigurationError,
    VectorClusterer,
    create_sample_dataset,
    default_k_range,
    find_elbow_point,
    select_k,
)

BLOB_CENTERS = [(0.0, 0.0), (10.0, 10.0), (-10.0, 10.0)]


def _three_blobs(seed=0):
    X, _ = create_sample_dataset(BLOB_CENTERS, n_per_cluster=30, noise=0.5, random_state=seed)
    return X


@pytest.fixture
def fit_calls(monkeypatch):
    """Count K-means fits started by the selector."""
    calls = []
    original_fit = VectorClusterer.fit

    def counting_fit(self, vectors):
        calls.append(self.k)
        return original_fit(self, vectors)

    monkeypatch.setattr(elbow_module.VectorClusterer, "fit", counting_fit)
    return calls


@pytest.mark.parametrize("wcss, expected", [
    ([100.0, 50.0, 10.0, 8.0, 7.0], 2),
    ([300.0, 100.0, 90.0, 85.0], 1),
    ([4.0, 3.0, 2.0, 1.0], 1),  # straight line: first position wins
    ([10.0, 5.0], 0),
    ([7.0], 0),
    ([], 0),
])
def test_find_elbow_point(wcss, expected):
    assert find_elbow_point(wcss) == expected


def test_three_blobs_select_three_clusters():
    result = select_k(_three_blobs(), k_range=(1, 6), n_init=10, random_state=0)

    assert result.optimal_k == 3
    assert result.k_values == [1, 2, 3, 4, 5, 6]
    assert len(result.wcss) == 6


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_three_blobs_elbow_is_stable_across_seeds(seed):
    selector = ClusterCountSelector(k_min=1, k_max=6, n_init=10, random_state=seed)
    assert selector.select_k(_three_blobs(seed=seed)).optimal_k == 3


def test_wcss_curve_decreases_in_aggregate():
    rng = np.random.default_rng(21)
    X = rng.normal(size=(60, 3))
    curves = [
        select_k(X, k_range=(1, 6), n_init=5, random_state=seed).wcss
        for seed in range(5)
    ]
    median_curve = np.median(np.array(curves), axis=0)
    assert np.all(np.diff(median_curve) <= 1e-9)


def test_short_range_selects_smallest_k():
    X = _three_blobs()
    result = select_k(X, k_range=(2, 3), random_state=0)
    assert result.optimal_k == 2
    assert len(result.wcss) == 2

    single = select_k(X, k_range=(4, 4), random_state=0)
    assert single.optimal_k == 4
    assert single.k_values == [4]


def test_threaded_sweep_matches_serial_sweep():
    X = _three_blobs(seed=5)
    serial = ClusterCountSelector(k_min=1, k_max=6, n_init=3, random_state=8).select_k(X)
    threaded = ClusterCountSelector(k_min=1, k_max=6, n_init=3, random_state=8, n_jobs=3).select_k(X)

    assert threaded.wcss == serial.wcss
    assert threaded.optimal_k == serial.optimal_k


def test_k_max_above_batch_size_rejected_before_clustering(fit_calls):
    X = np.zeros((5, 2))
    with pytest.raises(InvalidConfigurationError):
        select_k(X, k_range=(2, 6))
    assert fit_calls == []


@pytest.mark.parametrize("k_range", [(5, 3), (0, 3), (-1, 2)])
def test_invalid_k_range_rejected_before_clustering(fit_calls, k_range):
    with pytest.raises(InvalidConfigurationError):
        select_k(_three_blobs(), k_range=k_range)
    assert fit_calls == []


def test_ragged_input_rejected_before_clustering(fit_calls):
    with pytest.raises(DimensionalityMismatchError):
        select_k([[0.0, 0.0], [1.0], [2.0, 2.0]], k_range=(1, 2))
    assert fit_calls == []


def test_failure_for_one_k_fails_the_sweep(monkeypatch):
    original_fit = VectorClusterer.fit

    def flaky_fit(self, vectors):
        if self.k == 3:
            raise ClusteringFailureError("K-means clustering failed: simulated")
        return original_fit(self, vectors)

    monkeypatch.setattr(elbow_module.VectorClusterer, "fit", flaky_fit)

    with pytest.raises(ClusteringFailureError):
        select_k(_three_blobs(), k_range=(1, 5), random_state=0)


def test_failure_propagates_from_threaded_sweep(monkeypatch):
    original_fit = VectorClusterer.fit

    def flaky_fit(self, vectors):
        if self.k == 2:
            raise ClusteringFailureError("K-means clustering failed: simulated")
        return original_fit(self, vectors)

    monkeypatch.setattr(elbow_module.VectorClusterer, "fit", flaky_fit)

    with pytest.raises(ClusteringFailureError):
        select_k(_three_blobs(), k_range=(1, 4), random_state=0, n_jobs=2)


def test_sweep_visits_every_k_in_order(fit_calls):
    select_k(_three_blobs(), k_range=(2, 5), random_state=0)
    assert fit_calls == [2, 3, 4, 5]


def test_elbow_result_helpers():
    result = ElbowResult(optimal_k=3, wcss=[9.0, 4.0, 1.0], k_values=[2, 3, 4])
    assert result.wcss_by_k() == {2: 9.0, 3: 4.0, 4: 1.0}
    assert result.as_dict() == {"optimal_k": 3, "wcss": [9.0, 4.0, 1.0], "k_values": [2, 3, 4]}


def test_selector_from_config():
    config = ElbowConfig.from_dict({"k_min": 1, "k_max": 4, "random_state": 0})
    selector = ClusterCountSelector.from_config(config)
    assert selector.k_values == [1, 2, 3, 4]


@pytest.mark.parametrize("n_samples, expected", [
    (50, (2, 10)),
    (5, (2, 5)),
    (1, (1, 1)),
])
def test_default_k_range(n_samples, expected):
    assert default_k_range(n_samples) == expected


def test_default_k_range_rejects_empty_batch():
    with pytest.raises(InvalidConfigurationError):
        default_k_range(0)
