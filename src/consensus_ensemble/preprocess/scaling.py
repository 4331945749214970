"""Variable filtering and feature scaling"""
from typing import Literal, Union

import numpy as np
import pandas as pd
from scipy.stats import median_abs_deviation
from sklearn.preprocessing import StandardScaler


def prepare_data(
    X: Union[pd.DataFrame, np.ndarray],
    scale: bool = True,
    type: Literal["conventional", "robust"] = "conventional",
    min_var: float = 1.0,
) -> pd.DataFrame:
    """
    Filter low-variance variables and scale the rest

    Args:
        X: Samples x variables matrix
        scale: Scale the kept variables
        type: 'conventional' (mean / standard deviation) or 'robust'
            (median / normal-consistent MAD)
        min_var: Variables with a sample variance below this are dropped

    Returns:
        Prepared DataFrame with the same row labels
    """
    df = pd.DataFrame(X).astype(float)

    keep = df.var(axis=0, ddof=1).fillna(0.0) >= min_var
    df = df.loc[:, keep]

    if not scale or df.shape[1] == 0:
        return df

    if type == "conventional":
        # ddof=1 standard deviation, as R's scale()
        n = df.shape[0]
        values = StandardScaler().fit_transform(df.values)
        if n > 1:
            values = values * np.sqrt((n - 1) / n)
    elif type == "robust":
        center = np.median(df.values, axis=0)
        spread = median_abs_deviation(df.values, axis=0, scale="normal")
        spread[spread == 0] = 1.0
        values = (df.values - center) / spread
    else:
        raise ValueError(f"Unknown scaling type: '{type}'. Valid: conventional, robust")

    return pd.DataFrame(values, index=df.index, columns=df.columns)
