"""Choosing how many principal components carry biological signal."""

from __future__ import annotations

from typing import Any

import numpy as np

from scdenoise.core.utils import check_positive_int


def denoise_pca_number(var_exp: Any, var_tech: float, var_total: float) -> int:
    """Number of leading components to keep given a technical-noise budget.

    Later components are assumed to hold the noise. Walking up from the weakest
    component, the first prefix whose variance (plus the variance beyond the
    computed components) exceeds ``var_tech`` marks the last component kept.

    Args:
        var_exp: Variance explained by successive components, strongest first.
        var_tech: Total technical variance of the genes used.
        var_total: Total variance of the genes used, computed from the data.

    A non-positive ``var_total`` with a nonzero ``var_tech`` leaves no signal to
    retain: 1 is returned and the caller's clamp lifts it to ``min_rank``.

    Returns:
        Unclamped number of components, at least 1.
    """
    ve = np.asarray(var_exp, dtype=float).ravel()
    npcs = int(ve.size)
    if npcs == 0:
        raise ValueError("var_exp must contain at least one component.")
    if float(var_total) <= 0 and float(var_tech) != 0:
        return 1

    flipped = ve[::-1]
    estimated = np.cumsum(flipped) + (float(var_total) - float(flipped.sum()))
    above = estimated > float(var_tech)
    if np.any(above):
        return npcs - int(np.argmax(above))
    return 1


def validate_rank_bounds(min_rank: Any, max_rank: Any) -> tuple[int, int]:
    lo = check_positive_int("min_rank", min_rank)
    hi = check_positive_int("max_rank", max_rank)
    if lo > hi:
        raise ValueError(f"min_rank ({lo}) must not exceed max_rank ({hi}).")
    return lo, hi


def keep_rank_in_range(npcs: int, min_rank: int, max_rank: int) -> int:
    out = int(npcs)
    if out < int(min_rank):
        out = int(min_rank)
    if out > int(max_rank):
        out = int(max_rank)
    return out
