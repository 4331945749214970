"""Subsampling ensemble driver

For every cluster count k, every algorithm variant and every repetition, a
subsample of rows is clustered and its labels are written into a
(sample x repetition x variant x k) array. Families run in the order
factorization, dissimilarity, matrix and their arrays are concatenated in
that order.

Subsamples are drawn from a stream seeded with seed_data and restarted for
every (k, variant) loop, so each loop sees the same repetition-by-repetition
sequence. The sequence is therefore drawn once, before any clustering, and
shared by all families.
"""
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, Tuple, Union
from dataclasses import dataclass
import logging
import numbers

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from pydantic import ValidationError

from .algorithms import (
    AlgorithmRegistry,
    AlgorithmSpec,
    registry as default_registry,
    call_with_params,
    DEFAULT_ALGORITHMS,
    FACTORIZATION,
    DISSIMILARITY,
    MATRIX,
)
from .algorithms.factorization import nonnegative_transform, drop_zero_columns, method_label, check_methods
from .config.schema import EnsembleConfig
from .distances import DistanceRegistry, DistanceResolver, ResolvedDistance
from .exceptions import ClusteringFailure, ConfigurationError, DispatchError
from .preprocess import prepare_data
from .progress import ProgressCounter
from .result import EnsembleArray, FailureRecord, assemble
from .utils.io import output_path
from .utils.seeds import set_seed, derive_seed, preserved_random_state

logger = logging.getLogger(__name__)

PrepareFunction = Callable[[pd.DataFrame], pd.DataFrame]


# ============================================================================
# Plan
# ============================================================================

@dataclass(frozen=True)
class Variant:
    """One labelled slice of the algorithm axis"""
    label: str
    algorithm: str
    family: str
    distance: Optional[ResolvedDistance] = None
    method: Optional[str] = None


@dataclass
class EnsemblePlan:
    """Everything fixed before the first clustering call"""
    samples: List[str]
    nk: List[int]
    repetitions: List[str]
    subsamples: np.ndarray
    factorization: List[Variant]
    dissimilarity: List[Variant]
    matrix: List[Variant]

    @property
    def variants(self) -> List[Variant]:
        return self.factorization + self.dissimilarity + self.matrix

    @property
    def total_steps(self) -> int:
        return len(self.nk) * len(self.variants) * len(self.repetitions)

    def offset(self, family: str) -> int:
        """Progress position at which a family's cells start"""
        per_variant = len(self.nk) * len(self.repetitions)
        if family == FACTORIZATION:
            return 0
        if family == DISSIMILARITY:
            return per_variant * len(self.factorization)
        return per_variant * (len(self.factorization) + len(self.dissimilarity))


def draw_subsamples(n: int, p_item: float, reps: int, seed: int) -> np.ndarray:
    """
    Row indices for every repetition, drawn without replacement

    Args:
        n: Number of rows
        p_item: Proportion of rows per subsample
        reps: Number of repetitions
        seed: Seed of the stream

    Returns:
        Integer array (reps x floor(n * p_item))
    """
    n_new = int(np.floor(n * p_item))
    if n_new < 1:
        raise ConfigurationError(f"p_item={p_item} draws no rows from {n} samples")
    rng = np.random.default_rng(seed)
    return np.vstack([rng.choice(n, size=n_new, replace=False) for _ in range(reps)])


def _capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


# ============================================================================
# Cell execution
# ============================================================================

class CellRunner:
    """
    Clusters one (variant, k, repetition) cell

    Holds the prepared data and collaborators so cells can be shipped to
    worker processes. Any exception other than DispatchError is converted to
    a failure reason.
    """

    def __init__(
        self,
        data: pd.DataFrame,
        subsamples: np.ndarray,
        config: EnsembleConfig,
        registry: AlgorithmRegistry,
        resolver: DistanceResolver,
        prepare: PrepareFunction,
    ):
        self.data = data
        self.subsamples = subsamples
        self.config = config
        self.registry = registry
        self.resolver = resolver
        self.prepare = prepare
        self._nonneg: Optional[pd.DataFrame] = None

    @property
    def nonneg(self) -> pd.DataFrame:
        if self._nonneg is None:
            self._nonneg = nonnegative_transform(self.data)
        return self._nonneg

    def _prepared(self, x: pd.DataFrame) -> pd.DataFrame:
        out = self.prepare(x)
        if not isinstance(out, pd.DataFrame):
            out = pd.DataFrame(np.asarray(out, dtype=float), index=x.index[: len(out)])
        return out

    def _sampled(self, idx: np.ndarray) -> pd.DataFrame:
        x = self.data.iloc[idx]
        if self.config.prepare.mode == "sampled":
            x = self._prepared(x)
        return x

    def _dispatch(self, spec: AlgorithmSpec, variant: Variant, k: int, idx: np.ndarray, seed: int) -> Any:
        if spec.family == FACTORIZATION:
            x = drop_zero_columns(self.nonneg.iloc[idx])
            if self.config.prepare.mode == "sampled":
                x = nonnegative_transform(self._prepared(x))
            return call_with_params(
                spec.func, x.to_numpy(dtype=float), k,
                method=variant.method, seed=self.config.seed_nmf,
            )

        x = self._sampled(idx).to_numpy(dtype=float)
        if spec.family == DISSIMILARITY:
            d = self.resolver.compute(x, variant.distance)
            return call_with_params(spec.func, d, k, random_state=seed)

        som = self.config.som
        return call_with_params(
            spec.func, x, k,
            random_state=seed,
            xdim=som.xdim, ydim=som.ydim, rlen=som.rlen, alpha=tuple(som.alpha),
            eps=self.config.dbscan.eps, min_pts=self.config.dbscan.min_pts,
        )

    def __call__(self, variant: Variant, k: int, rep: int) -> Tuple[Optional[np.ndarray], Optional[str]]:
        idx = self.subsamples[rep]
        seed = derive_seed(self.config.seed_data, k, rep)
        # Custom algorithms drawing from the global stream stay reproducible
        set_seed(seed)

        spec = self.registry.get(variant.algorithm)
        try:
            labels = self._dispatch(spec, variant, k, idx, seed)
            labels = np.asarray(labels, dtype=float).ravel()
            if labels.size != len(idx):
                raise ClusteringFailure(spec.name, f"returned {labels.size} labels for {len(idx)} rows")
            if np.all(np.isnan(labels)):
                raise ClusteringFailure(spec.name, "returned no labels")
        except DispatchError:
            raise
        except Exception as e:
            return None, f"{type(e).__name__}: {e}"
        return labels, None


# ============================================================================
# Driver
# ============================================================================

class ConsensusEnsemble:
    """
    Subsampling ensemble driver

    Example:
        >>> engine = ConsensusEnsemble(EnsembleConfig(nk=[2, 3], reps=10, algorithms=["pam"]))
        >>> arr = engine.run(df)
        >>> arr.shape
        (100, 10, 1, 2)

    Args:
        config: Run configuration
        registry: Algorithm registry (defaults to the global one)
        distance_registry: Registry of custom distances (defaults to the global one)
        prepare: Data preparation function; defaults to prepare_data with the
            configured scale/type/min_var
    """

    def __init__(
        self,
        config: Optional[EnsembleConfig] = None,
        registry: Optional[AlgorithmRegistry] = None,
        distance_registry: Optional[DistanceRegistry] = None,
        prepare: Optional[PrepareFunction] = None,
    ):
        self.config = config or EnsembleConfig()
        self.registry = registry if registry is not None else default_registry
        self.resolver = DistanceResolver(distance_registry)
        if prepare is None:
            opts = self.config.prepare
            prepare = _ConfiguredPrepare(opts.scale, opts.type, opts.min_var)
        self.prepare = prepare

    # ------------------------------------------------------------------
    # Validation and planning
    # ------------------------------------------------------------------

    def _variants(self) -> Tuple[List[Variant], List[Variant], List[Variant]]:
        algorithms = self.config.algorithms or list(DEFAULT_ALGORITHMS)

        unknown = [a for a in algorithms if a not in self.registry]
        if unknown:
            raise ConfigurationError(
                f"Unknown algorithm(s): {', '.join(unknown)}. "
                f"Registered: {', '.join(self.registry.names())}"
            )
        specs = [self.registry.get(a) for a in algorithms]

        fact, diss, mat = [], [], []
        for spec in specs:
            if spec.family == FACTORIZATION:
                check_methods(self.config.nmf_method)
                for method in self.config.nmf_method:
                    label = method_label(method) if spec.name == "nmf" else f"{spec.label}_{_capitalize(method)}"
                    fact.append(Variant(label, spec.name, FACTORIZATION, method=method))

        distances = self.resolver.resolve_all(self.config.distance) if any(
            s.family == DISSIMILARITY for s in specs) else []
        for spec in specs:
            if spec.family == DISSIMILARITY:
                for dist in distances:
                    label = f"{spec.label}_{_capitalize(dist.specifier)}"
                    diss.append(Variant(label, spec.name, DISSIMILARITY, distance=dist))
            elif spec.family == MATRIX:
                mat.append(Variant(spec.label, spec.name, MATRIX))

        return fact, diss, mat

    def plan(self, data: Union[pd.DataFrame, np.ndarray]) -> EnsemblePlan:
        """
        Validate the configuration against the data and fix the subsamples

        Raises:
            ConfigurationError: For unknown names or an empty subsample
        """
        df = as_frame(data)
        fact, diss, mat = self._variants()
        reps = self.config.reps
        return EnsemblePlan(
            samples=[str(s) for s in df.index],
            nk=list(self.config.nk),
            repetitions=[f"R{i + 1}" for i in range(reps)],
            subsamples=draw_subsamples(len(df), self.config.p_item, reps, self.config.seed_data),
            factorization=fact,
            dissimilarity=diss,
            matrix=mat,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _execute(self, runner: CellRunner, cells: Sequence[Tuple[Variant, int, int]]) -> Iterator:
        if self.config.n_jobs == 1:
            for cell in cells:
                yield runner(*cell)
        else:
            parallel = Parallel(n_jobs=self.config.n_jobs, return_as="generator")
            yield from parallel(delayed(runner)(*cell) for cell in cells)

    def _run_family(
        self,
        plan: EnsemblePlan,
        family: str,
        variants: List[Variant],
        runner: CellRunner,
        counter: ProgressCounter,
    ) -> Optional[EnsembleArray]:
        if not variants:
            return None

        reps = len(plan.repetitions)
        values = np.full((len(plan.samples), reps, len(variants), len(plan.nk)), np.nan)
        failures: List[FailureRecord] = []
        offset = plan.offset(family)

        cells = [
            (j, a, r)
            for j in range(len(plan.nk))
            for a in range(len(variants))
            for r in range(reps)
        ]
        logger.info("Running %d %s variant(s) over %d cells", len(variants), family, len(cells))

        results = self._execute(runner, [(variants[a], plan.nk[j], r) for j, a, r in cells])
        for position, ((j, a, r), (labels, reason)) in enumerate(zip(cells, results), start=1):
            if reason is None:
                values[plan.subsamples[r], r, a, j] = labels
            else:
                record = FailureRecord(plan.nk[j], variants[a].label, plan.repetitions[r], reason)
                failures.append(record)
                logger.warning(
                    "Clustering failed for %s (k=%d, %s): %s",
                    record.variant, record.k, record.repetition, record.reason,
                )
            counter.update(offset + position)

        return EnsembleArray(
            values=values,
            samples=list(plan.samples),
            repetitions=list(plan.repetitions),
            algorithms=[v.label for v in variants],
            nk=list(plan.nk),
            failures=failures,
        )

    def run(self, data: Union[pd.DataFrame, np.ndarray]) -> EnsembleArray:
        """
        Run the full ensemble

        Args:
            data: Samples x variables matrix; DataFrame row labels name the samples

        Returns:
            EnsembleArray of shape (n, reps, n_variants, len(nk))
        """
        df = as_frame(data)
        plan = self.plan(df)
        logger.info(
            "Consensus ensemble: %d samples, %d repetitions, %d variant(s), k in %s",
            len(plan.samples), len(plan.repetitions), len(plan.variants), plan.nk,
        )
        if self.config.prepare.mode == "full":
            prepared = self.prepare(df)
            if len(prepared) != len(df):
                raise ConfigurationError(
                    f"Data preparation changed the number of rows ({len(df)} -> {len(prepared)})"
                )
            df = pd.DataFrame(prepared, index=df.index) if not isinstance(prepared, pd.DataFrame) else prepared

        runner = CellRunner(df, plan.subsamples, self.config, self.registry, self.resolver, self.prepare)

        # Cells reseed the global streams in-process; the caller's state is put back afterwards
        with preserved_random_state(), ProgressCounter(plan.total_steps, enabled=self.config.progress) as counter:
            parts = [
                self._run_family(plan, FACTORIZATION, plan.factorization, runner, counter),
                self._run_family(plan, DISSIMILARITY, plan.dissimilarity, runner, counter),
                self._run_family(plan, MATRIX, plan.matrix, runner, counter),
            ]

        result = assemble(parts)
        if result.failures:
            logger.warning("%d of %d cells failed and were left missing", len(result.failures), plan.total_steps)

        output = self.config.output
        if output.save:
            path = output_path(output.file_name, output.directory, output.time_saved)
            result.save(path)
            logger.info("Ensemble array saved to %s", path)

        return result


class _ConfiguredPrepare:
    """prepare_data bound to configured options (picklable for workers)"""

    def __init__(self, scale: bool, type: str, min_var: float):
        self.scale = scale
        self.type = type
        self.min_var = min_var

    def __call__(self, x: pd.DataFrame) -> pd.DataFrame:
        return prepare_data(x, scale=self.scale, type=self.type, min_var=self.min_var)


def as_frame(data: Union[pd.DataFrame, np.ndarray]) -> pd.DataFrame:
    """
    Coerce input data to a float DataFrame

    Bare arrays get row labels "1".."n".
    """
    if isinstance(data, pd.DataFrame):
        df = data
    else:
        arr = np.asarray(data)
        if arr.ndim != 2:
            raise ConfigurationError(f"Data must be a 2-D matrix, got {arr.ndim} dimension(s)")
        df = pd.DataFrame(arr, index=[str(i + 1) for i in range(arr.shape[0])])

    if df.shape[0] == 0 or df.shape[1] == 0:
        raise ConfigurationError(f"Data matrix is empty: {df.shape}")
    try:
        return df.astype(float)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Data matrix must be numeric: {e}") from e


# ============================================================================
# Convenience API
# ============================================================================

def _as_list(value: Union[Any, Iterable[Any], None]) -> Optional[list]:
    if value is None:
        return None
    if isinstance(value, (str, numbers.Integral)):
        return [value]
    return list(value)


def consensus_cluster(
    data: Union[pd.DataFrame, np.ndarray],
    nk: Union[int, Sequence[int]] = (2, 3, 4),
    p_item: float = 0.8,
    reps: int = 1000,
    algorithms: Union[str, Sequence[str], None] = None,
    nmf_method: Union[str, Sequence[str]] = ("brunet", "lee"),
    xdim: int = 10,
    ydim: int = 10,
    rlen: int = 200,
    alpha: Tuple[float, float] = (0.05, 0.01),
    eps: float = 0.5,
    min_pts: int = 2,
    distance: Union[str, Sequence[str]] = "euclidean",
    prep_data: str = "none",
    scale: bool = True,
    type: str = "conventional",
    min_var: float = 1.0,
    progress: bool = True,
    seed_nmf: int = 123456,
    seed_data: int = 1,
    n_jobs: int = 1,
    save: bool = False,
    file_name: str = "CCOutput",
    time_saved: bool = False,
    directory: str = ".",
    prepare: Optional[PrepareFunction] = None,
    registry: Optional[AlgorithmRegistry] = None,
    distance_registry: Optional[DistanceRegistry] = None,
) -> EnsembleArray:
    """
    Run consensus clustering across subsamples, algorithms and cluster counts

    Each clustering call reseeds the global random and np.random streams;
    their state from before the run is restored when it finishes.

    Args:
        data: Samples x variables matrix
        nk: Cluster count(s) to compute
        p_item: Proportion of rows per subsample
        reps: Number of subsamples
        algorithms: Algorithm names; None runs every built-in
        nmf_method: NMF variants run when 'nmf' is requested
        xdim, ydim, rlen, alpha: SOM grid, training passes and learning rates
        eps, min_pts: DBSCAN neighbourhood radius and core point count
        distance: Distance specifier(s) for dissimilarity-based algorithms
        prep_data: 'none', 'full' or 'sampled'
        scale, type, min_var: prepare_data options
        progress: Display a progress bar
        seed_nmf: Seed for NMF initialisation
        seed_data: Seed for the subsample draws
        n_jobs: Parallel workers
        save, file_name, time_saved, directory: Persistence options
        prepare: Replacement for prepare_data
        registry: Algorithm registry
        distance_registry: Custom distance registry

    Returns:
        EnsembleArray

    Raises:
        ConfigurationError: For invalid options or unresolvable names
    """
    try:
        config = EnsembleConfig(
            nk=_as_list(nk),
            p_item=p_item,
            reps=reps,
            algorithms=_as_list(algorithms),
            nmf_method=_as_list(nmf_method),
            distance=_as_list(distance),
            som={"xdim": xdim, "ydim": ydim, "rlen": rlen, "alpha": alpha},
            dbscan={"eps": eps, "min_pts": min_pts},
            prepare={"mode": prep_data, "scale": scale, "type": type, "min_var": min_var},
            output={"save": save, "file_name": file_name, "time_saved": time_saved, "directory": directory},
            seed_nmf=seed_nmf,
            seed_data=seed_data,
            progress=progress,
            n_jobs=n_jobs,
        )
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e

    engine = ConsensusEnsemble(config, registry=registry, distance_registry=distance_registry, prepare=prepare)
    return engine.run(data)
