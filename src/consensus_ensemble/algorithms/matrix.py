"""Clustering algorithms operating on the raw (sub)sampled data matrix

Each function takes (x, k, **params) and returns one label per row. Failures
are raised as ClusteringFailure and recorded by the driver as a missing cell.
"""
from typing import Optional, Tuple
import warnings

import numpy as np
from scipy.spatial.distance import pdist, squareform
from scipy.stats import rankdata
from sklearn.cluster import AffinityPropagation, SpectralClustering, DBSCAN
from sklearn.exceptions import ConvergenceWarning
from sklearn.mixture import GaussianMixture

from .registry import register_algorithm, MATRIX
from .block import latent_block_model
from .som import som_hierarchical
from ..exceptions import ClusteringFailure

COVARIANCE_TYPES = ("full", "tied", "diag", "spherical")


def dense_rank(labels: np.ndarray) -> np.ndarray:
    """Map arbitrary labels to consecutive integers 1..m by value"""
    return rankdata(labels, method="dense").astype(int)


# ============================================================================
# Affinity propagation
# ============================================================================

def _fit_ap(S: np.ndarray, preference: float, random_state: Optional[int]) -> np.ndarray:
    model = AffinityPropagation(
        affinity="precomputed",
        preference=preference,
        damping=0.9,
        max_iter=1000,
        convergence_iter=100,
        random_state=random_state,
    )
    return model.fit_predict(S)


@register_algorithm("ap", family=MATRIX)
def ap(x: np.ndarray, k: int, random_state: Optional[int] = None, max_steps: int = 10) -> np.ndarray:
    """Affinity propagation with the preference tuned towards k exemplars"""
    S = -squareform(pdist(x, metric="euclidean"))
    off_diag = S[~np.eye(len(S), dtype=bool)]
    if off_diag.size == 0:
        raise ClusteringFailure("ap", "need at least two rows")

    # Low preference -> few exemplars, high preference -> many
    lo, hi = 2.0 * off_diag.min(), off_diag.max()
    best: Optional[Tuple[int, np.ndarray]] = None

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        for _ in range(max_steps):
            mid = (lo + hi) / 2.0
            labels = _fit_ap(S, mid, random_state)
            if np.all(labels < 0):
                hi = mid
                continue
            found = len(np.unique(labels[labels >= 0]))
            if best is None or abs(found - k) < abs(best[0] - k):
                best = (found, labels)
            if found == k:
                break
            if found < k:
                lo = mid
            else:
                hi = mid

    if best is None:
        raise ClusteringFailure("ap", "did not converge to any exemplars")

    labels = best[1].astype(float)
    labels[labels < 0] = np.nan
    valid = ~np.isnan(labels)
    out = np.full(len(labels), np.nan)
    out[valid] = dense_rank(labels[valid])
    return out


# ============================================================================
# Spectral clustering
# ============================================================================

def median_gamma(x: np.ndarray) -> float:
    """RBF gamma from the median heuristic, 1 / median squared distance"""
    sq = pdist(x, metric="sqeuclidean")
    med = np.median(sq[sq > 0]) if np.any(sq > 0) else 1.0
    return 1.0 / med


@register_algorithm("sc", family=MATRIX)
def sc(x: np.ndarray, k: int, random_state: Optional[int] = None) -> np.ndarray:
    """Spectral clustering with a radial-basis kernel"""
    model = SpectralClustering(
        n_clusters=k,
        affinity="rbf",
        gamma=median_gamma(x),
        assign_labels="kmeans",
        random_state=random_state,
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)
        return model.fit_predict(x).astype(int) + 1


# ============================================================================
# Gaussian mixture
# ============================================================================

@register_algorithm("gmm", family=MATRIX)
def gmm(x: np.ndarray, k: int, random_state: Optional[int] = None) -> np.ndarray:
    """Gaussian mixture with k components, covariance structure chosen by BIC"""
    best_bic, best_labels = np.inf, None
    errors = []

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        for cov in COVARIANCE_TYPES:
            try:
                model = GaussianMixture(n_components=k, covariance_type=cov, random_state=random_state)
                model.fit(x)
            except ValueError as e:
                errors.append(f"{cov}: {e}")
                continue
            bic = model.bic(x)
            if bic < best_bic:
                best_bic, best_labels = bic, model.predict(x)

    if best_labels is None:
        raise ClusteringFailure("gmm", "; ".join(errors) or "no covariance structure could be fit")
    return best_labels.astype(int) + 1


# ============================================================================
# Latent block model, SOM, fuzzy c-means, DBSCAN
# ============================================================================

@register_algorithm("block", family=MATRIX)
def block(x: np.ndarray, k: int, random_state: Optional[int] = None) -> np.ndarray:
    """Biclustering with a Gaussian latent block model (k x k blocks)"""
    row_labels, _ = latent_block_model(x, k, k, random_state=random_state)
    return row_labels + 1


@register_algorithm("hc_som", family=MATRIX)
def hc_som(
    x: np.ndarray,
    k: int,
    xdim: int = 10,
    ydim: int = 10,
    rlen: int = 200,
    alpha: Tuple[float, float] = (0.05, 0.01),
    random_state: Optional[int] = None,
) -> np.ndarray:
    """Self-organizing map followed by hierarchical clustering of the codebook"""
    return som_hierarchical(x, k, xdim=xdim, ydim=ydim, rlen=rlen, alpha=alpha, random_state=random_state)


def fuzzy_cmeans(
    x: np.ndarray,
    c: int,
    m: float = 2.0,
    max_iter: int = 1000,
    tol: float = 1e-6,
    random_state: Optional[int] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Fuzzy c-means clustering

    Args:
        x: Data matrix (n x p)
        c: Number of clusters
        m: Fuzzifier (> 1)
        max_iter: Maximum number of iterations
        tol: Stop when memberships change less than this
        random_state: Seed for the initial centers

    Returns:
        Tuple of (centers c x p, memberships n x c)
    """
    n = x.shape[0]
    if not 1 <= c <= n:
        raise ClusteringFailure("cmeans", f"cannot form {c} clusters from {n} rows")

    rng = np.random.default_rng(random_state)
    centers = x[rng.choice(n, size=c, replace=False)].astype(float)
    u = np.zeros((n, c))
    power = 2.0 / (m - 1.0)

    for _ in range(max_iter):
        dist = np.sqrt(((x[:, None, :] - centers[None, :, :]) ** 2).sum(axis=2))
        zero = dist == 0
        dist = np.where(zero, 1.0, dist)
        u_new = 1.0 / ((dist[:, :, None] / dist[:, None, :]) ** power).sum(axis=2)
        # Rows sitting exactly on a center belong to it entirely
        hit = zero.any(axis=1)
        u_new[hit] = zero[hit] / zero[hit].sum(axis=1, keepdims=True)

        um = u_new ** m
        centers = (um.T @ x) / um.sum(axis=0)[:, None]
        converged = np.abs(u_new - u).max() < tol
        u = u_new
        if converged:
            break

    return centers, u


@register_algorithm("cmeans", family=MATRIX)
def cmeans(x: np.ndarray, k: int, random_state: Optional[int] = None) -> np.ndarray:
    """Fuzzy c-means, hard labels by maximum membership"""
    _, u = fuzzy_cmeans(np.asarray(x, dtype=float), k, random_state=random_state)
    return np.argmax(u, axis=1).astype(int) + 1


@register_algorithm("dbscan", family=MATRIX)
def dbscan(x: np.ndarray, k: int, eps: float = 0.5, min_pts: int = 2) -> np.ndarray:
    """DBSCAN; k is ignored, noise points are labelled 0"""
    labels = DBSCAN(eps=eps, min_samples=min_pts).fit_predict(x)
    return labels.astype(int) + 1
