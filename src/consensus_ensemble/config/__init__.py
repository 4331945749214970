"""Configuration management with Pydantic validation"""

from .schema import (
    EnsembleConfig,
    SOMConfig,
    DBSCANConfig,
    PrepareConfig,
    OutputConfig,
)
from .loader import load_config, save_config, build_config, merge_overrides

__all__ = [
    "EnsembleConfig",
    "SOMConfig",
    "DBSCANConfig",
    "PrepareConfig",
    "OutputConfig",
    "load_config",
    "save_config",
    "build_config",
    "merge_overrides",
]
