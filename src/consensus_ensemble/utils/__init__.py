"""Utility functions and helpers"""

from .io import load_data, output_path, save_arrays, load_arrays
from .seeds import set_seed, derive_seed, preserved_random_state
from .timers import Timer

__all__ = [
    "load_data",
    "output_path",
    "save_arrays",
    "load_arrays",
    "set_seed",
    "derive_seed",
    "preserved_random_state",
    "Timer",
]
