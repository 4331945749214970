"""Exception hierarchy for the ensemble engine"""
from typing import Optional


class EnsembleError(Exception):
    """Base class for all consensus_ensemble errors"""


class ConfigurationError(EnsembleError, ValueError):
    """Invalid run configuration, raised before any clustering work starts"""


class DispatchError(EnsembleError, LookupError):
    """A requested algorithm or distance name has no callable behind it"""

    def __init__(self, name: str, kind: str = "algorithm"):
        self.name = name
        self.kind = kind
        super().__init__(f"No {kind} registered under the name '{name}'")


class ClusteringFailure(EnsembleError, RuntimeError):
    """A single clustering call failed or produced an unusable partition"""

    def __init__(self, algorithm: str, reason: str, cause: Optional[BaseException] = None):
        self.algorithm = algorithm
        self.reason = reason
        self.cause = cause
        super().__init__(f"[{algorithm}] {reason}")
