"""Clustering algorithms operating on a precomputed dissimilarity matrix

Each function takes (d, k), d a square n x n dissimilarity matrix, and returns
integer labels 1..k.
"""
import warnings

import numpy as np
import kmedoids
from scipy.cluster.hierarchy import linkage, cut_tree
from scipy.spatial.distance import squareform
from sklearn.cluster import KMeans
from sklearn.exceptions import ConvergenceWarning

from .registry import register_algorithm, DISSIMILARITY
from ..exceptions import ClusteringFailure


def relabel_by_appearance(labels: np.ndarray) -> np.ndarray:
    """Renumber labels 1..m in order of first appearance"""
    _, first, inverse = np.unique(labels, return_index=True, return_inverse=True)
    order = np.argsort(np.argsort(first))
    return (order[inverse] + 1).astype(int)


def _check_k(name: str, d: np.ndarray, k: int) -> None:
    n = d.shape[0]
    if not 1 <= k <= n:
        raise ClusteringFailure(name, f"cannot form {k} clusters from {n} rows")
    if not np.isfinite(d).all():
        raise ClusteringFailure(name, "dissimilarity matrix contains non-finite values")


def hierarchical_linkage(d: np.ndarray, method: str = "average") -> np.ndarray:
    """Linkage matrix from a square dissimilarity matrix"""
    return linkage(squareform(d, checks=False), method=method)


@register_algorithm("hc", family=DISSIMILARITY)
def hc(d: np.ndarray, k: int, method: str = "average") -> np.ndarray:
    """Hierarchical agglomerative clustering cut at k groups"""
    _check_k("hc", d, k)
    Z = hierarchical_linkage(d, method=method)
    return relabel_by_appearance(cut_tree(Z, n_clusters=k).ravel())


def _splinter(d: np.ndarray, members: np.ndarray) -> np.ndarray:
    """Split one cluster with the DIANA splinter-group rule

    Returns a boolean mask over members marking the splinter group.
    """
    sub = d[np.ix_(members, members)]
    m = len(members)
    splinter = np.zeros(m, dtype=bool)

    # Seed with the object most dissimilar, on average, to the rest
    avg = sub.sum(axis=1) / (m - 1)
    splinter[np.argmax(avg)] = True

    while splinter.sum() < m - 1:
        rest = ~splinter
        n_rest = rest.sum()
        to_rest = sub[:, rest].sum(axis=1) / np.maximum(n_rest - 1, 1)
        to_splinter = sub[:, splinter].mean(axis=1)
        gain = np.where(rest, to_rest - to_splinter, -np.inf)
        best = np.argmax(gain)
        if gain[best] <= 0:
            break
        splinter[best] = True

    return splinter


@register_algorithm("diana", family=DISSIMILARITY)
def diana(d: np.ndarray, k: int) -> np.ndarray:
    """Divisive analysis clustering cut at k groups"""
    _check_k("diana", d, k)
    n = d.shape[0]
    labels = np.zeros(n, dtype=int)
    clusters = [np.arange(n)]

    # Splitting in decreasing order of diameter reproduces a cut of the
    # divisive dendrogram, whose split heights are the cluster diameters.
    while len(clusters) < k:
        diameters = [d[np.ix_(c, c)].max() if len(c) > 1 else -np.inf for c in clusters]
        target = int(np.argmax(diameters))
        members = clusters.pop(target)
        mask = _splinter(d, members)
        clusters.insert(target, members[mask])
        clusters.insert(target + 1, members[~mask])

    for i, members in enumerate(clusters):
        labels[members] = i
    return relabel_by_appearance(labels)


@register_algorithm("km", family=DISSIMILARITY)
def km(d: np.ndarray, k: int, random_state=None) -> np.ndarray:
    """K-means on the rows of the dissimilarity matrix"""
    _check_k("km", d, k)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        model = KMeans(n_clusters=k, n_init=10, random_state=random_state)
        labels = model.fit_predict(d)
    return labels.astype(int) + 1


@register_algorithm("pam", family=DISSIMILARITY)
def pam(d: np.ndarray, k: int) -> np.ndarray:
    """Partitioning around medoids (BUILD + SWAP), deterministic"""
    _check_k("pam", d, k)
    result = kmedoids.pam(np.ascontiguousarray(d, dtype=np.float64), k, init="build")
    return np.asarray(result.labels, dtype=int) + 1
