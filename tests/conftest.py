"""Pytest configuration and fixtures for consensus ensemble tests

Provides synthetic data generation and common fixtures for all tests.
"""
import pytest
import numpy as np
import pandas as pd
from sklearn.datasets import make_blobs

from consensus_ensemble.algorithms import registry
from consensus_ensemble.distances import distance_registry
from consensus_ensemble.config import EnsembleConfig

# Set random seed for reproducibility
np.random.seed(42)

CENTERS_5D = np.array([
    [0.0, 0.0, 0.0, 0.0, 0.0],
    [10.0, 0.0, 0.0, 0.0, 0.0],
    [0.0, 10.0, 0.0, 0.0, 0.0],
])


# ============================================================================
# Data Generation Fixtures
# ============================================================================

@pytest.fixture(scope="session")
def blob_data():
    """100 samples in 3 well-separated clusters, 5 variables"""
    X, y_true = make_blobs(n_samples=100, centers=CENTERS_5D,
                           cluster_std=0.5, random_state=42)
    return X, y_true


@pytest.fixture
def blob_frame(blob_data):
    """Blob data as a DataFrame with sample and variable labels"""
    X, _ = blob_data
    return pd.DataFrame(
        X,
        index=[f"S{i:03d}" for i in range(X.shape[0])],
        columns=[f"V{j}" for j in range(X.shape[1])],
    )


@pytest.fixture(scope="session")
def small_blobs():
    """30 samples in 3 clusters, for the slower algorithms"""
    X, y_true = make_blobs(n_samples=30, centers=CENTERS_5D[:, :4],
                           cluster_std=0.3, random_state=7)
    return X, y_true


@pytest.fixture
def small_frame(small_blobs):
    X, _ = small_blobs
    return pd.DataFrame(
        X,
        index=[f"S{i:02d}" for i in range(X.shape[0])],
        columns=[f"V{j}" for j in range(X.shape[1])],
    )


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def fast_config():
    """Configuration with small SOM and few repetitions"""
    return EnsembleConfig(
        nk=[2, 3],
        reps=3,
        p_item=0.8,
        algorithms=["pam"],
        som={"xdim": 3, "ydim": 3, "rlen": 5},
        progress=False,
    )


@pytest.fixture
def fast_options():
    """Keyword options for consensus_cluster matching fast_config"""
    return {
        "nk": [2, 3],
        "reps": 3,
        "p_item": 0.8,
        "xdim": 3,
        "ydim": 3,
        "rlen": 5,
        "progress": False,
    }


# ============================================================================
# Registry Isolation
# ============================================================================

@pytest.fixture
def clean_registries():
    """Remove algorithms and distances registered during a test"""
    algorithms_before = set(registry.names())
    distances_before = set(distance_registry.names())
    yield registry, distance_registry
    for name in set(registry.names()) - algorithms_before:
        registry.unregister(name)
    for name in set(distance_registry.names()) - distances_before:
        distance_registry.unregister(name)
