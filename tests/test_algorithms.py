"""Tests for the built-in clustering algorithms and the algorithm registry"""
import pytest
import numpy as np
from scipy.spatial.distance import pdist, squareform
from sklearn.metrics import adjusted_rand_score

from consensus_ensemble.algorithms import (
    AlgorithmRegistry,
    registry,
    call_with_params,
    DEFAULT_ALGORITHMS,
    FACTORIZATION,
    DISSIMILARITY,
    MATRIX,
)
from consensus_ensemble.algorithms.dissimilarity import hc, diana, km, pam, relabel_by_appearance
from consensus_ensemble.algorithms.matrix import (
    ap,
    sc,
    gmm,
    block,
    hc_som,
    cmeans,
    dbscan,
    dense_rank,
    fuzzy_cmeans,
    median_gamma,
)
from consensus_ensemble.algorithms.block import latent_block_model
from consensus_ensemble.algorithms.som import (
    hexagonal_grid,
    train_som,
    cluster_codebook,
    som_k_clusters,
)
from consensus_ensemble.exceptions import ClusteringFailure, DispatchError


@pytest.fixture
def line_points():
    """Two groups on a line"""
    return np.array([[0.0], [1.0], [2.0], [10.0], [11.0], [12.0]])


@pytest.fixture
def small_dist(small_blobs):
    X, _ = small_blobs
    return squareform(pdist(X))


def _valid_labels(labels, n, k=None):
    labels = np.asarray(labels)
    assert labels.shape == (n,)
    assert np.all(labels >= 1)
    if k is not None:
        assert len(np.unique(labels)) <= k


# ============================================================================
# Registry
# ============================================================================

class TestRegistry:
    """Name -> routine dispatch"""

    def test_builtins_registered(self):
        for name in DEFAULT_ALGORITHMS:
            assert name in registry

    def test_builtin_families(self):
        assert registry.names(FACTORIZATION) == ["nmf"]
        assert set(registry.names(DISSIMILARITY)) == {"hc", "diana", "km", "pam"}
        assert set(registry.names(MATRIX)) == {
            "ap", "sc", "gmm", "block", "hc_som", "cmeans", "dbscan"
        }

    def test_register_and_dispatch(self):
        reg = AlgorithmRegistry()

        @reg.register("first", family=MATRIX)
        def first(x, k):
            """Everything in cluster one"""
            return np.ones(len(x), dtype=int)

        spec = reg.get("first")
        assert spec.family == MATRIX
        assert spec.label == "FIRST"
        assert spec.description == "Everything in cluster one"
        assert len(reg) == 1

    def test_unknown_name(self):
        with pytest.raises(DispatchError, match="agnes"):
            AlgorithmRegistry().get("agnes")

    def test_unknown_family(self):
        with pytest.raises(ValueError, match="family"):
            AlgorithmRegistry().register("x", lambda d, k: d, family="graph")

    def test_duplicate_requires_overwrite(self):
        reg = AlgorithmRegistry()
        reg.register("a", lambda d, k: np.ones(len(d)))
        with pytest.raises(ValueError, match="already registered"):
            reg.register("a", lambda d, k: np.ones(len(d)))
        reg.register("a", lambda d, k: np.ones(len(d)), overwrite=True)

    def test_unregister(self):
        reg = AlgorithmRegistry()
        reg.register("a", lambda d, k: np.ones(len(d)))
        reg.unregister("a")
        assert "a" not in reg
        with pytest.raises(DispatchError):
            reg.unregister("a")


class TestCallWithParams:
    """Keyword filtering by signature"""

    def test_unaccepted_params_dropped(self):
        def f(x, k, random_state=None):
            return random_state
        assert call_with_params(f, 1, 2, random_state=5, eps=0.3) == 5

    def test_var_keyword_receives_everything(self):
        def f(x, k, **params):
            return params
        assert call_with_params(f, 1, 2, a=1, b=2) == {"a": 1, "b": 2}


# ============================================================================
# Dissimilarity family
# ============================================================================

class TestDissimilarityAlgorithms:
    """hc, diana, km and pam on square dissimilarity matrices"""

    @pytest.mark.parametrize("func", [hc, diana, km, pam])
    def test_recovers_blobs(self, func, small_blobs, small_dist):
        _, y_true = small_blobs
        labels = call_with_params(func, small_dist, 3, random_state=0)
        _valid_labels(labels, 30, k=3)
        assert adjusted_rand_score(y_true, labels) > 0.9

    @pytest.mark.parametrize("func", [hc, diana, km, pam])
    def test_too_many_clusters(self, func, small_dist):
        with pytest.raises(ClusteringFailure):
            call_with_params(func, small_dist, 31, random_state=0)

    @pytest.mark.parametrize("func", [hc, diana, km, pam])
    def test_non_finite_dissimilarities(self, func, small_dist):
        d = small_dist.copy()
        d[0, 1:] = d[1:, 0] = np.nan
        with pytest.raises(ClusteringFailure, match="non-finite"):
            call_with_params(func, d, 3, random_state=0)

    def test_hc_labels_in_order_of_appearance(self, line_points):
        d = squareform(pdist(line_points))
        assert hc(d, 2).tolist() == [1, 1, 1, 2, 2, 2]

    def test_diana_splits_line(self, line_points):
        d = squareform(pdist(line_points))
        assert diana(d, 2).tolist() == [1, 1, 1, 2, 2, 2]

    def test_diana_k_equals_n(self, line_points):
        d = squareform(pdist(line_points))
        assert sorted(diana(d, 6).tolist()) == [1, 2, 3, 4, 5, 6]

    def test_pam_deterministic(self, small_dist):
        assert np.array_equal(pam(small_dist, 3), pam(small_dist, 3))

    def test_km_seeded(self, small_dist):
        assert np.array_equal(km(small_dist, 3, random_state=1), km(small_dist, 3, random_state=1))

    def test_relabel_by_appearance(self):
        assert relabel_by_appearance(np.array([5, 5, 2, 9, 2])).tolist() == [1, 1, 2, 3, 2]


# ============================================================================
# Matrix family
# ============================================================================

class TestAffinityPropagation:

    def test_labels_are_dense(self, small_blobs):
        X, _ = small_blobs
        labels = ap(X, 3, random_state=0)
        valid = labels[~np.isnan(labels)]
        assert labels.shape == (30,)
        assert set(np.unique(valid)) == set(range(1, len(np.unique(valid)) + 1))

    def test_single_row_fails(self):
        with pytest.raises(ClusteringFailure):
            ap(np.zeros((1, 3)), 2)

    def test_dense_rank(self):
        assert dense_rank(np.array([7, 3, 7, 10])).tolist() == [2, 1, 2, 3]


class TestSpectralAndMixture:

    def test_spectral_labels(self, small_blobs):
        X, _ = small_blobs
        _valid_labels(sc(X, 3, random_state=0), 30, k=3)

    def test_median_gamma_positive(self, small_blobs):
        X, _ = small_blobs
        assert median_gamma(X) > 0

    def test_median_gamma_constant_data(self):
        assert median_gamma(np.ones((5, 2))) == 1.0

    def test_gmm_recovers_blobs(self, small_blobs):
        X, y_true = small_blobs
        labels = gmm(X, 3, random_state=0)
        _valid_labels(labels, 30, k=3)
        assert adjusted_rand_score(y_true, labels) > 0.9

    def test_gmm_too_many_components(self):
        with pytest.raises(ClusteringFailure):
            gmm(np.random.default_rng(0).normal(size=(3, 2)), 5, random_state=0)


class TestBlockModel:

    def test_row_and_column_labels(self, small_blobs):
        X, _ = small_blobs
        z, w = latent_block_model(X, 3, 2, random_state=0)
        assert z.shape == (30,)
        assert w.shape == (4,)
        assert set(np.unique(z)) <= {0, 1, 2}
        assert set(np.unique(w)) <= {0, 1}

    def test_block_labels(self, small_blobs):
        X, _ = small_blobs
        _valid_labels(block(X, 3, random_state=0), 30, k=3)

    def test_more_column_groups_than_columns(self, small_blobs):
        X, _ = small_blobs
        with pytest.raises(ClusteringFailure):
            block(X, 5, random_state=0)

    def test_seeded(self, small_blobs):
        X, _ = small_blobs
        assert np.array_equal(block(X, 2, random_state=3), block(X, 2, random_state=3))


class TestSelfOrganizingMap:

    def test_hexagonal_neighbours_at_unit_distance(self):
        grid = hexagonal_grid(3, 3)
        d = squareform(pdist(grid))
        # centre unit of a 3x3 hexagonal grid has six neighbours
        assert np.sum(np.isclose(d[4], 1.0)) == 6

    def test_training_shapes(self, small_blobs):
        X, _ = small_blobs
        model = train_som(X, xdim=3, ydim=2, rlen=5, random_state=0)
        assert model.codes.shape == (6, 4)
        assert model.changes.shape == (5,)
        assert model.best_matching_units(X).shape == (30,)

    def test_stages_compose(self, small_blobs):
        X, _ = small_blobs
        model = train_som(X, xdim=3, ydim=3, rlen=5, random_state=0)
        Z = cluster_codebook(model)
        labels = som_k_clusters(model, Z, X, 3)
        _valid_labels(labels, 30, k=3)

    def test_hc_som(self, small_blobs):
        X, _ = small_blobs
        labels = hc_som(X, 2, xdim=3, ydim=3, rlen=5, random_state=0)
        _valid_labels(labels, 30, k=2)

    def test_more_clusters_than_units(self, small_blobs):
        X, _ = small_blobs
        with pytest.raises(ClusteringFailure, match="SOM units"):
            hc_som(X, 5, xdim=2, ydim=2, rlen=2, random_state=0)

    def test_single_unit_grid(self, small_blobs):
        X, _ = small_blobs
        with pytest.raises(ClusteringFailure):
            hc_som(X, 2, xdim=1, ydim=1, rlen=2, random_state=0)


class TestFuzzyCMeans:

    def test_memberships_sum_to_one(self, small_blobs):
        X, _ = small_blobs
        centers, u = fuzzy_cmeans(X, 3, random_state=0)
        assert centers.shape == (3, 4)
        assert u.shape == (30, 3)
        assert np.allclose(u.sum(axis=1), 1.0)

    def test_hard_labels(self, small_blobs):
        X, _ = small_blobs
        _valid_labels(cmeans(X, 3, random_state=0), 30, k=3)

    def test_too_many_clusters(self):
        with pytest.raises(ClusteringFailure):
            cmeans(np.zeros((2, 2)), 3)


class TestDBSCAN:

    @pytest.fixture
    def groups(self):
        return np.array([
            [0.0, 0.0], [0.0, 0.1], [0.1, 0.0],
            [5.0, 5.0], [5.0, 5.1], [5.1, 5.0],
            [20.0, 20.0],
        ])

    def test_noise_labelled_zero(self, groups):
        assert dbscan(groups, 2, eps=0.5, min_pts=2).tolist() == [1, 1, 1, 2, 2, 2, 0]

    def test_k_is_ignored(self, groups):
        assert np.array_equal(dbscan(groups, 2), dbscan(groups, 6))
