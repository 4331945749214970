"""Self-organizing map + hierarchical clustering hybrid

Three stages, always in order:
1. Train: online SOM on a hexagonal xdim x ydim grid
2. Codebook-Cluster: average-linkage hierarchical clustering of the codebook vectors
3. Label-Assign: cut the codebook tree at k, each row takes its best-matching unit's group
"""
from typing import Optional, Tuple
from dataclasses import dataclass

import numpy as np
from scipy.cluster.hierarchy import linkage, cut_tree
from scipy.spatial.distance import cdist, pdist

from ..exceptions import ClusteringFailure


def hexagonal_grid(xdim: int, ydim: int) -> np.ndarray:
    """
    Unit coordinates of a hexagonal grid, x varying fastest

    Odd rows are shifted by half a unit and rows are sqrt(3)/2 apart so that
    every unit has six neighbours at distance 1.
    """
    xs, ys = np.meshgrid(np.arange(1, xdim + 1, dtype=float), np.arange(1, ydim + 1, dtype=float))
    xs, ys = xs.ravel(), ys.ravel()
    xs = xs + np.where(ys % 2 == 0, 0.5, 0.0)
    ys = ys * np.sqrt(3) / 2
    return np.column_stack([xs, ys])


@dataclass
class SOMModel:
    """A trained self-organizing map"""
    codes: np.ndarray
    grid: np.ndarray
    changes: np.ndarray

    def best_matching_units(self, x: np.ndarray) -> np.ndarray:
        """Index of the closest codebook vector for every row"""
        return np.argmin(cdist(x, self.codes, metric="sqeuclidean"), axis=1)


def train_som(
    x: np.ndarray,
    xdim: int = 10,
    ydim: int = 10,
    rlen: int = 200,
    alpha: Tuple[float, float] = (0.05, 0.01),
    radius: Optional[Tuple[float, float]] = None,
    random_state: Optional[int] = None,
) -> SOMModel:
    """
    Train a SOM with online updates and a bubble neighbourhood

    Args:
        x: Data matrix (n x p)
        xdim: Grid width
        ydim: Grid height
        rlen: Number of passes over the data
        alpha: Learning rate at the start and end of training
        radius: Neighbourhood radius at the start and end of training;
            defaults to (2/3 quantile of unit distances, 0)
        random_state: Seed for codebook initialisation and presentation order

    Returns:
        Trained SOMModel

    Raises:
        ClusteringFailure: For empty data or non-finite codebooks
    """
    x = np.asarray(x, dtype=float)
    n = x.shape[0]
    n_units = xdim * ydim
    if n == 0 or x.shape[1] == 0:
        raise ClusteringFailure("hc_som", f"cannot train a SOM on a {x.shape} matrix")

    rng = np.random.default_rng(random_state)
    grid = hexagonal_grid(xdim, ydim)
    unit_dist = np.sqrt(((grid[:, None, :] - grid[None, :, :]) ** 2).sum(axis=2))
    if radius is None:
        start = np.quantile(unit_dist, 2 / 3) if n_units > 1 else 0.0
        radius = (start, 0.0)

    codes = x[rng.choice(n, size=n_units, replace=n_units > n)].copy()
    total = rlen * n
    changes = np.zeros(rlen)

    step = 0
    for epoch in range(rlen):
        for i in rng.permutation(n):
            frac = step / total
            a = alpha[0] + (alpha[1] - alpha[0]) * frac
            threshold = radius[0] + (radius[1] - radius[0]) * frac
            if threshold < 1.0:
                threshold = 0.5

            diff = x[i] - codes
            winner = np.argmin((diff ** 2).sum(axis=1))
            near = unit_dist[winner] < threshold
            codes[near] += a * diff[near]
            changes[epoch] += (diff[winner] ** 2).mean()
            step += 1
        changes[epoch] /= n

    if not np.all(np.isfinite(codes)):
        raise ClusteringFailure("hc_som", "SOM training produced non-finite codebook vectors")

    return SOMModel(codes=codes, grid=grid, changes=changes)


def cluster_codebook(model: SOMModel, method: str = "average") -> np.ndarray:
    """Linkage matrix over the codebook vectors"""
    if model.codes.shape[0] < 2:
        raise ClusteringFailure("hc_som", "a SOM grid needs at least two units to be clustered")
    return linkage(pdist(model.codes), method=method)


def som_k_clusters(model: SOMModel, Z: np.ndarray, x: np.ndarray, k: int) -> np.ndarray:
    """Cut the codebook tree at k groups and label rows through their best-matching unit"""
    n_units = model.codes.shape[0]
    if k > n_units:
        raise ClusteringFailure("hc_som", f"cannot cut {n_units} SOM units into {k} clusters")
    unit_labels = cut_tree(Z, n_clusters=k).ravel() + 1
    return unit_labels[model.best_matching_units(np.asarray(x, dtype=float))].astype(int)


def som_hierarchical(
    x: np.ndarray,
    k: int,
    xdim: int = 10,
    ydim: int = 10,
    rlen: int = 200,
    alpha: Tuple[float, float] = (0.05, 0.01),
    random_state: Optional[int] = None,
) -> np.ndarray:
    """Train, cluster the codebook, assign labels"""
    model = train_som(x, xdim=xdim, ydim=ydim, rlen=rlen, alpha=alpha, random_state=random_state)
    Z = cluster_codebook(model)
    return som_k_clusters(model, Z, x, k)
