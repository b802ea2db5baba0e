"""Row-wise residuals after projecting out a modeled design subspace."""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from scdenoise.core.factorization import OrthogonalFactorization, qr_factorize
from scdenoise.core.matrix import MatrixAccess
from scdenoise.core.utils import active_lower_bound, check_subset

logger = logging.getLogger(__name__)


def get_residuals(
    x: Any,
    factorization: OrthogonalFactorization,
    subset_row: Any = None,
    lower_bound: float | None = None,
) -> np.ndarray:
    """Residuals of each selected gene after removing the modeled effects.

    Each row is rotated by ``Q^T``, its first ``p`` coefficients are zeroed and
    it is rotated back by ``Q``. When ``lower_bound`` is finite, cells whose raw
    value was at or below it are set to one less than the smallest residual of
    the row, so they still sort below every detected value.

    Args:
        x: Genes x cells matrix (dense, sparse or :class:`MatrixAccess`).
        factorization: Factorization of the cells x coefficients design.
        subset_row: Row indices (or boolean mask) to process, in output order.
        lower_bound: Detection floor; ``None`` or non-finite disables it.

    Returns:
        Dense array of shape ``(len(subset_row), n_cells)``.
    """
    mat = x if isinstance(x, MatrixAccess) else MatrixAccess(x)
    rows = check_subset(subset_row, mat.n_rows)
    n_cells = mat.n_cols

    if n_cells == 0:
        if rows.size > 0:
            raise ValueError("Cannot compute residuals for a matrix with zero columns.")
        return np.zeros((0, 0), dtype=float)
    if int(factorization.n_obs) != n_cells:
        raise ValueError(
            f"Factorization expects vectors of length {int(factorization.n_obs)} "
            f"but the matrix has {n_cells} columns."
        )
    n_coefs = int(factorization.n_coefs)
    bound = active_lower_bound(lower_bound)

    out = np.empty((rows.size, n_cells), dtype=float)
    buffer = np.empty(n_cells, dtype=float)
    n_floored_rows = 0
    for s, r in enumerate(rows):
        mat.get_row(int(r), out=buffer)
        below = np.flatnonzero(buffer <= bound) if bound is not None else None

        factorization.apply_transpose(buffer)
        buffer[:n_coefs] = 0.0
        factorization.apply(buffer)

        # Floored cells must rank below every genuine residual in the row.
        if below is not None and below.size > 0:
            buffer[below] = float(buffer.min()) - 1.0
            n_floored_rows += 1
        out[s] = buffer

    logger.debug(
        "Computed residuals for %d rows x %d cells (%d coefficients, %d rows floored).",
        rows.size,
        n_cells,
        n_coefs,
        n_floored_rows,
    )
    return out


def compute_residuals(
    x: Any,
    design: np.ndarray,
    subset_row: Any = None,
    lower_bound: float | None = None,
    representation: str = "householder",
) -> np.ndarray:
    """Factorize ``design`` (cells x coefficients) and compute residuals of ``x``."""
    factorization = qr_factorize(design, representation=representation)
    return get_residuals(
        x, factorization, subset_row=subset_row, lower_bound=lower_bound
    )
