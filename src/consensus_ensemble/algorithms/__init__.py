"""Clustering algorithm families and the registry that dispatches to them"""

from .registry import (
    AlgorithmRegistry,
    AlgorithmSpec,
    registry,
    register_algorithm,
    call_with_params,
    FACTORIZATION,
    DISSIMILARITY,
    MATRIX,
    FAMILIES,
)
from . import dissimilarity, matrix, factorization
from .factorization import NMF_METHODS, nonnegative_transform

DEFAULT_ALGORITHMS = [
    "nmf", "hc", "diana", "km", "pam", "ap", "sc",
    "gmm", "block", "hc_som", "cmeans", "dbscan",
]

__all__ = [
    "AlgorithmRegistry",
    "AlgorithmSpec",
    "registry",
    "register_algorithm",
    "call_with_params",
    "FACTORIZATION",
    "DISSIMILARITY",
    "MATRIX",
    "FAMILIES",
    "NMF_METHODS",
    "nonnegative_transform",
    "DEFAULT_ALGORITHMS",
]
