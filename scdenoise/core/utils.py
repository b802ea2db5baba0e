"""Small pure helpers for core computations."""

from __future__ import annotations

import math
from typing import Any

import numpy as np


def check_subset(subset_row: Any, n_rows: int) -> np.ndarray:
    """Resolve ``subset_row`` into an ordered array of distinct row indices.

    ``None`` selects every row; a boolean mask selects the rows where it is true.
    """
    n = int(n_rows)
    if subset_row is None:
        return np.arange(n, dtype=np.intp)

    arr = np.asarray(subset_row)
    if arr.ndim != 1:
        raise ValueError(f"subset_row must be 1D, got shape {arr.shape}.")
    if arr.size == 0:
        return np.zeros(0, dtype=np.intp)

    if arr.dtype == bool:
        if arr.size != n:
            raise ValueError(
                f"Boolean subset_row must have one entry per row ({n}), got {arr.size}."
            )
        return np.flatnonzero(arr).astype(np.intp)

    if not np.issubdtype(arr.dtype, np.integer):
        raise ValueError("subset_row must contain integer row indices.")

    idx = arr.astype(np.intp)
    bad = idx[(idx < 0) | (idx >= n)]
    if bad.size > 0:
        raise ValueError(
            f"subset_row index {int(bad[0])} is out of range for {n} rows."
        )
    if np.unique(idx).size != idx.size:
        raise ValueError("subset_row contains duplicated indices.")
    return idx


def active_lower_bound(lower_bound: float | None) -> float | None:
    """Return the bound when it enables floor handling, else ``None``."""
    if lower_bound is None:
        return None
    value = float(lower_bound)
    if not math.isfinite(value):
        return None
    return value


def check_positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or int(value) != value:
        raise ValueError(f"{name} must be an integer, got {value!r}.")
    out = int(value)
    if out < 1:
        raise ValueError(f"{name} must be >= 1, got {out}.")
    return out
