"""Gaussian latent block model fit by block classification EM

Rows are partitioned into g groups and columns into m groups; each
(row group, column group) block is an independent Gaussian. Row and column
partitions are updated alternately until neither changes.
"""
from typing import Optional, Tuple

import numpy as np

from ..exceptions import ClusteringFailure

_VAR_FLOOR = 1e-8


def _block_params(x: np.ndarray, z: np.ndarray, w: np.ndarray, g: int, m: int):
    """Block means and variances for row labels z and column labels w"""
    mu = np.empty((g, m))
    var = np.empty((g, m))
    for a in range(g):
        rows = x[z == a]
        if rows.shape[0] == 0:
            raise ClusteringFailure("block", f"row group {a + 1} became empty")
        for b in range(m):
            cells = rows[:, w == b]
            if cells.size == 0:
                raise ClusteringFailure("block", f"column group {b + 1} became empty")
            mu[a, b] = cells.mean()
            var[a, b] = max(cells.var(), _VAR_FLOOR)
    return mu, var


def _assign(x: np.ndarray, w: np.ndarray, mu: np.ndarray, var: np.ndarray, prop: np.ndarray):
    """Classification step for the rows of x given column labels w

    Returns (labels, complete log-likelihood contribution).
    """
    g, m = mu.shape
    score = np.tile(np.log(prop), (x.shape[0], 1))
    for b in range(m):
        cols = w == b
        n_b = cols.sum()
        s1 = x[:, cols].sum(axis=1)
        s2 = (x[:, cols] ** 2).sum(axis=1)
        for a in range(g):
            score[:, a] += (
                -0.5 * n_b * np.log(2 * np.pi * var[a, b])
                - (s2 - 2 * mu[a, b] * s1 + n_b * mu[a, b] ** 2) / (2 * var[a, b])
            )
    labels = np.argmax(score, axis=1)
    return labels, score[np.arange(len(labels)), labels].sum()


def latent_block_model(
    x: np.ndarray,
    n_row_clusters: int,
    n_col_clusters: int,
    max_iter: int = 100,
    n_init: int = 5,
    random_state: Optional[int] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Fit a Gaussian latent block model

    Args:
        x: Data matrix (n x p)
        n_row_clusters: Number of row groups
        n_col_clusters: Number of column groups
        max_iter: Maximum alternations per start
        n_init: Number of random starts; the best likelihood is kept
        random_state: Seed for the random starts

    Returns:
        Tuple of (row labels, column labels), both 0-based

    Raises:
        ClusteringFailure: If the data cannot support the requested blocks
    """
    x = np.asarray(x, dtype=float)
    n, p = x.shape
    g, m = n_row_clusters, n_col_clusters
    if n_init < 1:
        raise ValueError(f"n_init must be >= 1, got {n_init}")
    if n < g or p < m:
        raise ClusteringFailure("block", f"cannot form {g}x{m} blocks from a {n}x{p} matrix")

    rng = np.random.default_rng(random_state)
    best = None
    last_error: Optional[ClusteringFailure] = None

    for _ in range(n_init):
        z = rng.permutation(np.arange(n) % g)
        w = rng.permutation(np.arange(p) % m)
        try:
            # A group emptying ends the alternation at the last complete partition
            for _ in range(max_iter):
                mu, var = _block_params(x, z, w, g, m)
                z_new, _ = _assign(x, w, mu, var, np.bincount(z, minlength=g) / n)
                if np.bincount(z_new, minlength=g).min() == 0:
                    break

                mu, var = _block_params(x, z_new, w, g, m)
                w_new, _ = _assign(x.T, z_new, mu.T, var.T, np.bincount(w, minlength=m) / p)
                if np.bincount(w_new, minlength=m).min() == 0:
                    z = z_new
                    break

                changed = np.any(z_new != z) or np.any(w_new != w)
                z, w = z_new, w_new
                if not changed:
                    break

            mu, var = _block_params(x, z, w, g, m)
            _, loglik = _assign(x, w, mu, var, np.bincount(z, minlength=g) / n)
        except ClusteringFailure as e:
            last_error = e
            continue

        if best is None or loglik > best[0]:
            best = (loglik, z.copy(), w.copy())

    if best is None:
        raise last_error
    return best[1], best[2]
