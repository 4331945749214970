"""
Consensus Ensemble
Subsampling ensemble of clustering algorithms for consensus clustering
"""

__version__ = "0.1.0"

from pathlib import Path

# Package root
PACKAGE_ROOT = Path(__file__).parent

from .exceptions import EnsembleError, ConfigurationError, DispatchError, ClusteringFailure
from .config import EnsembleConfig, load_config, save_config
from .algorithms import AlgorithmRegistry, registry, register_algorithm, DEFAULT_ALGORITHMS
from .distances import DistanceRegistry, distance_registry, register_distance, distances
from .preprocess import prepare_data
from .result import EnsembleArray, FailureRecord, assemble

# Main API - driver class and convenience function
from .ensemble import ConsensusEnsemble, consensus_cluster

__all__ = [
    "__version__",
    "PACKAGE_ROOT",
    # Main API
    "ConsensusEnsemble",
    "consensus_cluster",
    "EnsembleArray",
    "FailureRecord",
    "assemble",
    # Extension points
    "AlgorithmRegistry",
    "registry",
    "register_algorithm",
    "DEFAULT_ALGORITHMS",
    "DistanceRegistry",
    "distance_registry",
    "register_distance",
    "distances",
    "prepare_data",
    # Configuration
    "EnsembleConfig",
    "load_config",
    "save_config",
    # Errors
    "EnsembleError",
    "ConfigurationError",
    "DispatchError",
    "ClusteringFailure",
]
