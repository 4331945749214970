"""Distance resolution for dissimilarity-based clustering

Turns distance specifiers into square dissimilarity matrices:
- standard metrics (euclidean, maximum, manhattan, canberra, binary, minkowski),
  matched by unique prefix ("euclid" -> euclidean)
- Spearman rank-correlation distance, 1 - |rho| between rows
- user-registered functions taking the data matrix

Precedence when names collide: an exact built-in name, then a unique built-in
prefix, then a registered function of exactly that name.
"""
from typing import Callable, Dict, List, Optional, Sequence, Union
from dataclasses import dataclass
import logging

import numpy as np
import pandas as pd
from scipy.spatial.distance import pdist, squareform

from .exceptions import ConfigurationError, DispatchError

logger = logging.getLogger(__name__)

DistanceFunction = Callable[[np.ndarray], Union[np.ndarray, pd.DataFrame]]

# name -> (scipy metric, extra pdist kwargs)
STANDARD_METRICS: Dict[str, tuple] = {
    "euclidean": ("euclidean", {}),
    "maximum": ("chebyshev", {}),
    "manhattan": ("cityblock", {}),
    "canberra": ("canberra", {}),
    "binary": ("jaccard", {}),
    "minkowski": ("minkowski", {"p": 2}),
}

SPEARMAN = "spearman"

BUILTIN_DISTANCES = tuple(STANDARD_METRICS) + (SPEARMAN,)


@dataclass(frozen=True)
class ResolvedDistance:
    """A distance specifier bound to its implementation"""
    specifier: str
    name: str
    builtin: bool


def spearman_distance(x: np.ndarray) -> np.ndarray:
    """
    Pairwise Spearman distance between rows: 1 - |rho|

    Args:
        x: Samples x variables matrix

    Returns:
        Symmetric n x n matrix with a zero diagonal
    """
    rho = pd.DataFrame(np.asarray(x, dtype=float)).T.corr(method="spearman").values
    d = 1.0 - np.abs(rho)
    np.fill_diagonal(d, 0.0)
    return d


def as_square(d: Union[np.ndarray, pd.DataFrame], n: int) -> np.ndarray:
    """
    Coerce a dissimilarity structure to a square float matrix

    Accepts a square matrix, a DataFrame or a condensed vector of length
    n * (n - 1) / 2.
    """
    arr = np.asarray(d.values if isinstance(d, pd.DataFrame) else d, dtype=float)
    if arr.ndim == 1:
        if arr.size != n * (n - 1) // 2:
            raise ValueError(
                f"Condensed dissimilarity has {arr.size} entries, expected {n * (n - 1) // 2} for {n} rows"
            )
        return squareform(arr, checks=False)
    if arr.shape != (n, n):
        raise ValueError(f"Dissimilarity matrix has shape {arr.shape}, expected ({n}, {n})")
    return arr


class DistanceRegistry:
    """Registry of user-supplied distance functions keyed by name"""

    def __init__(self):
        self._functions: Dict[str, DistanceFunction] = {}

    def register(
        self,
        name: str,
        func: Optional[DistanceFunction] = None,
        overwrite: bool = False,
    ):
        """
        Register a distance function (x) -> dissimilarity

        Can be used directly or as a decorator. A name equal to a built-in
        metric is accepted but never dispatched to, since built-ins take
        precedence.
        """
        def _register(f: DistanceFunction) -> DistanceFunction:
            if not callable(f):
                raise TypeError(f"Distance '{name}' must be callable, got {type(f).__name__}")
            if name in self._functions and not overwrite:
                raise ValueError(f"Distance '{name}' is already registered (pass overwrite=True to replace)")
            if name in BUILTIN_DISTANCES:
                logger.warning("Distance '%s' is shadowed by the built-in metric of the same name", name)
            self._functions[name] = f
            return f

        if func is None:
            return _register
        return _register(func)

    def unregister(self, name: str) -> None:
        """Remove a registered distance"""
        if name not in self._functions:
            raise DispatchError(name, kind="distance")
        del self._functions[name]

    def get(self, name: str) -> DistanceFunction:
        """Look up a registered distance function"""
        try:
            return self._functions[name]
        except KeyError:
            raise DispatchError(name, kind="distance") from None

    def names(self) -> List[str]:
        return list(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions


distance_registry = DistanceRegistry()
register_distance = distance_registry.register


class DistanceResolver:
    """
    Resolve distance specifiers and compute dissimilarity matrices

    Args:
        registry: Registry of user distance functions
    """

    def __init__(self, registry: Optional[DistanceRegistry] = None):
        self.registry = registry if registry is not None else distance_registry

    def resolve(self, specifier: str) -> ResolvedDistance:
        """
        Bind one specifier to a built-in metric or a registered function

        Raises:
            ConfigurationError: If the specifier is ambiguous or unknown
        """
        if specifier in BUILTIN_DISTANCES:
            return ResolvedDistance(specifier, specifier, builtin=True)

        candidates = [name for name in BUILTIN_DISTANCES if name.startswith(specifier)]
        if len(candidates) == 1:
            return ResolvedDistance(specifier, candidates[0], builtin=True)

        if specifier in self.registry:
            return ResolvedDistance(specifier, specifier, builtin=False)

        if len(candidates) > 1:
            raise ConfigurationError(
                f"Ambiguous distance '{specifier}': matches {', '.join(candidates)}"
            )
        raise ConfigurationError(
            f"Unknown distance '{specifier}'. Built-in: {', '.join(BUILTIN_DISTANCES)}; "
            f"registered: {', '.join(self.registry.names()) or 'none'}"
        )

    def resolve_all(self, specifiers: Sequence[str]) -> List[ResolvedDistance]:
        """Resolve every specifier, failing on the first unresolvable one"""
        return [self.resolve(s) for s in specifiers]

    def compute(self, x: Union[np.ndarray, pd.DataFrame], resolved: ResolvedDistance) -> np.ndarray:
        """Compute one square dissimilarity matrix"""
        x = np.asarray(x, dtype=float)
        n = x.shape[0]

        if resolved.builtin:
            if resolved.name == SPEARMAN:
                return spearman_distance(x)
            metric, kwargs = STANDARD_METRICS[resolved.name]
            if metric == "jaccard":
                return squareform(pdist(x != 0, metric=metric))
            return squareform(pdist(x, metric=metric, **kwargs))

        func = self.registry.get(resolved.name)
        return as_square(func(x), n)

    def distances(
        self,
        x: Union[np.ndarray, pd.DataFrame],
        specifiers: Sequence[str],
    ) -> Dict[str, np.ndarray]:
        """
        Compute dissimilarity matrices for several specifiers

        Args:
            x: Samples x variables matrix
            specifiers: Distance names, in the order results should be returned

        Returns:
            Mapping specifier -> square dissimilarity matrix, in request order
        """
        resolved = self.resolve_all(specifiers)
        return {r.specifier: self.compute(x, r) for r in resolved}


def distances(
    x: Union[np.ndarray, pd.DataFrame],
    specifiers: Union[str, Sequence[str]],
    registry: Optional[DistanceRegistry] = None,
) -> Dict[str, np.ndarray]:
    """Convenience wrapper around DistanceResolver.distances"""
    if isinstance(specifiers, str):
        specifiers = [specifiers]
    return DistanceResolver(registry).distances(x, specifiers)
