"""Nonnegative matrix factorization clustering

The data are made non-negative by appending their negation as extra columns
and clipping negatives to zero. A rank-k factorization X ~ W H is fit and each
row is assigned to the factor with the largest coefficient in W.
"""
from typing import Dict, Optional
import warnings

import numpy as np
import pandas as pd
from sklearn.decomposition import NMF
from sklearn.exceptions import ConvergenceWarning

from .registry import register_algorithm, FACTORIZATION
from ..exceptions import ClusteringFailure, ConfigurationError

NMF_METHODS: Dict[str, dict] = {
    "brunet": {"beta_loss": "kullback-leibler"},
    "lee": {"beta_loss": "frobenius"},
}


def nonnegative_transform(x):
    """
    Column-bind the negated matrix and clip negatives to zero

    Doubles the number of columns. DataFrames keep their index; negated
    columns are suffixed with '_neg'.
    """
    if isinstance(x, pd.DataFrame):
        neg = -x
        neg.columns = [f"{c}_neg" for c in x.columns]
        return pd.concat([x, neg], axis=1).clip(lower=0)
    x = np.asarray(x, dtype=float)
    return np.clip(np.hstack([x, -x]), 0, None)


def drop_zero_columns(x):
    """Remove columns that are zero in every row"""
    values = np.asarray(x)
    keep = np.any(values != 0, axis=0)
    if isinstance(x, pd.DataFrame):
        return x.loc[:, keep]
    return values[:, keep]


def method_label(method: str) -> str:
    """Variant axis label, e.g. 'brunet' -> 'NMF_Brunet'"""
    return f"NMF_{method[:1].upper()}{method[1:]}"


def check_methods(methods) -> None:
    unknown = [m for m in methods if m not in NMF_METHODS]
    if unknown:
        raise ConfigurationError(
            f"Unknown NMF method(s): {', '.join(unknown)}. Valid: {', '.join(NMF_METHODS)}"
        )


@register_algorithm("nmf", family=FACTORIZATION)
def nmf(
    x: np.ndarray,
    k: int,
    method: str = "brunet",
    seed: Optional[int] = 123456,
    max_iter: int = 2000,
) -> np.ndarray:
    """Nonnegative matrix factorization, hard labels by maximum factor"""
    check_methods([method])
    x = np.asarray(x, dtype=float)
    if np.any(x < 0):
        raise ClusteringFailure("nmf", "input must be non-negative")
    if x.shape[1] == 0 or not np.any(x):
        raise ClusteringFailure("nmf", "input has no non-zero values")

    model = NMF(
        n_components=k,
        init="random",
        solver="mu",
        max_iter=max_iter,
        random_state=seed,
        **NMF_METHODS[method],
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        W = model.fit_transform(x)
    return np.argmax(W, axis=1).astype(int) + 1
