"""The ensemble array: (sample x repetition x algorithm variant x k) partitions"""
from typing import Dict, List, Optional, Sequence, Union
from dataclasses import dataclass, field, asdict
from pathlib import Path
import json

import numpy as np
import pandas as pd

from .utils.io import save_arrays, load_arrays


@dataclass
class FailureRecord:
    """One cell whose clustering call failed and was recorded as missing"""
    k: int
    variant: str
    repetition: str
    reason: str


@dataclass
class EnsembleArray:
    """
    Container for the raw ensemble of partitions

    values[i, r, a, j] is the label of sample i in repetition r for algorithm
    variant a at cluster count nk[j], or NaN when the sample was not drawn or
    the clustering call failed. Label values are not comparable across
    repetitions.
    """
    values: np.ndarray
    samples: List[str]
    repetitions: List[str]
    algorithms: List[str]
    nk: List[int]
    failures: List[FailureRecord] = field(default_factory=list)

    DIMS = ("sample", "repetition", "algorithm", "k")

    def __post_init__(self):
        expected = (len(self.samples), len(self.repetitions), len(self.algorithms), len(self.nk))
        if self.values.shape != expected:
            raise ValueError(f"values has shape {self.values.shape}, labels imply {expected}")

    @property
    def shape(self):
        return self.values.shape

    @property
    def dims(self) -> Dict[str, list]:
        """Axis labels keyed by dimension name"""
        return dict(zip(self.DIMS, (self.samples, self.repetitions, self.algorithms, self.nk)))

    def sel(self, algorithm: str, k: int) -> pd.DataFrame:
        """Samples x repetitions table for one variant and cluster count"""
        a = self.algorithms.index(algorithm)
        j = self.nk.index(k)
        return pd.DataFrame(self.values[:, :, a, j], index=self.samples, columns=self.repetitions)

    def coverage(self) -> pd.DataFrame:
        """Number of repetitions with a label, per sample (rows) and variant/k (columns)"""
        counts = (~np.isnan(self.values)).sum(axis=1)
        columns = pd.MultiIndex.from_product([self.algorithms, self.nk], names=["algorithm", "k"])
        return pd.DataFrame(counts.reshape(len(self.samples), -1), index=self.samples, columns=columns)

    def to_frame(self) -> pd.DataFrame:
        """Long format with one row per non-missing label"""
        index = pd.MultiIndex.from_product(
            [self.samples, self.repetitions, self.algorithms, self.nk],
            names=list(self.DIMS),
        )
        s = pd.Series(self.values.ravel(), index=index, name="label").dropna()
        return s.astype(int).reset_index()

    def save(self, path: Union[str, Path]) -> Path:
        """Write the array, its axis labels and failures to one .npz file"""
        return save_arrays(path, {
            "values": self.values,
            "samples": np.asarray(self.samples, dtype=str),
            "repetitions": np.asarray(self.repetitions, dtype=str),
            "algorithms": np.asarray(self.algorithms, dtype=str),
            "nk": np.asarray(self.nk, dtype=int),
            "failures": np.asarray(json.dumps([asdict(f) for f in self.failures])),
        })

    @classmethod
    def load(cls, path: Union[str, Path]) -> "EnsembleArray":
        """Read an array written by save()"""
        data = load_arrays(path)
        return cls(
            values=data["values"],
            samples=data["samples"].tolist(),
            repetitions=data["repetitions"].tolist(),
            algorithms=data["algorithms"].tolist(),
            nk=[int(k) for k in data["nk"]],
            failures=[FailureRecord(**f) for f in json.loads(str(data["failures"]))],
        )


def assemble(parts: Sequence[Optional[EnsembleArray]]) -> EnsembleArray:
    """
    Concatenate per-family arrays along the algorithm axis

    Parts are placed in the order given; None entries (families that did not
    run) are skipped. All parts must share samples, repetitions and nk.
    """
    present = [p for p in parts if p is not None]
    if not present:
        raise ValueError("No ensemble parts to assemble")

    first = present[0]
    for p in present[1:]:
        if p.samples != first.samples or p.repetitions != first.repetitions or p.nk != first.nk:
            raise ValueError("Ensemble parts disagree on samples, repetitions or cluster counts")

    algorithms = [a for p in present for a in p.algorithms]
    if len(set(algorithms)) != len(algorithms):
        raise ValueError(f"Duplicate algorithm variants across parts: {algorithms}")

    return EnsembleArray(
        values=np.concatenate([p.values for p in present], axis=2),
        samples=list(first.samples),
        repetitions=list(first.repetitions),
        algorithms=algorithms,
        nk=list(first.nk),
        failures=[f for p in present for f in p.failures],
    )
