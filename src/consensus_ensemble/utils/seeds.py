"""Deterministic seeding for reproducibility"""
import random
from contextlib import contextmanager
from typing import Iterator, Optional

import numpy as np


def set_seed(seed: Optional[int] = None) -> None:
    """
    Set random seed for Python, NumPy for reproducibility

    Args:
        seed: Random seed value. If None, uses default 42
    """
    if seed is None:
        seed = 42

    random.seed(seed)
    np.random.seed(seed)


def derive_seed(base_seed: int, *keys: int) -> int:
    """
    Derive an independent 32-bit seed from a base seed and integer keys

    The same (base_seed, keys) always gives the same value, so a cell of work
    can be reseeded identically in any process or order.

    Args:
        base_seed: Run-level seed
        *keys: Integers identifying the unit of work

    Returns:
        Seed in [0, 2**32)
    """
    ss = np.random.SeedSequence([base_seed, *keys])
    return int(ss.generate_state(1)[0])


@contextmanager
def preserved_random_state() -> Iterator[None]:
    """Restore the global ``random`` and ``np.random`` streams on exit"""
    py_state = random.getstate()
    np_state = np.random.get_state()
    try:
        yield
    finally:
        random.setstate(py_state)
        np.random.set_state(np_state)
