"""Data I/O utilities for input matrices and ensemble arrays"""
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union
import pandas as pd
import numpy as np

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def load_data(path: Union[str, Path], **kwargs: Any) -> pd.DataFrame:
    """
    Load a samples x variables matrix from parquet, hdf5, feather or csv

    Args:
        path: Path to data file
        **kwargs: Additional arguments for format-specific loaders

    Returns:
        Loaded data as DataFrame
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".parquet":
        return pd.read_parquet(path, **kwargs)
    elif suffix in [".h5", ".hdf5"]:
        return pd.read_hdf(path, **kwargs)
    elif suffix == ".csv":
        kwargs.setdefault("index_col", 0)
        return pd.read_csv(path, **kwargs)
    elif suffix == ".feather":
        return pd.read_feather(path, **kwargs)
    else:
        supported = [".parquet", ".h5", ".hdf5", ".csv", ".feather"]
        raise ValueError(
            f"Unsupported file format: '{suffix}'\n\n"
            f"Supported formats for load_data():\n"
            f"  • {', '.join(supported)}\n\n"
            f"Recommendations:\n"
            f"  • For Excel files (.xlsx): Export to CSV first\n"
            f"  • For large datasets: Use Parquet (fast, compressed)\n"
            f"  • For compatibility: Use CSV"
        )


def output_path(
    file_name: str,
    directory: Union[str, Path] = ".",
    time_saved: bool = False,
    suffix: str = ".npz",
    now: Optional[datetime] = None,
) -> Path:
    """
    Build the file path for a persisted run

    Args:
        file_name: File stem
        directory: Output directory
        time_saved: Append the current timestamp to the stem
        suffix: File extension
        now: Timestamp to use instead of the current time

    Returns:
        Output path
    """
    stem = file_name
    if time_saved:
        stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
        stem = f"{file_name}_{stamp}"
    return Path(directory) / f"{stem}{suffix}"


def save_arrays(path: Union[str, Path], arrays: Dict[str, np.ndarray]) -> Path:
    """
    Save a set of named arrays to one compressed .npz file

    Args:
        path: Output path (must end in .npz)
        arrays: Arrays keyed by name

    Returns:
        The written path
    """
    path = Path(path)
    if path.suffix.lower() != ".npz":
        raise ValueError(
            f"Unsupported format for ensemble arrays: '{path.suffix}'\n\n"
            f"Ensemble arrays are written as compressed NumPy archives (.npz)"
        )
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez_compressed(path, **arrays)
    return path


def load_arrays(path: Union[str, Path]) -> Dict[str, np.ndarray]:
    """Load every array stored in a .npz file"""
    with np.load(Path(path), allow_pickle=False) as npz:
        return {key: npz[key] for key in npz.files}
