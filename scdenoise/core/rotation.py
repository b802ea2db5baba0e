"""Principal component scores and loadings from a truncated SVD."""

from __future__ import annotations

import warnings

import numpy as np

from scdenoise.core.matrix import MatrixAccess
from scdenoise.core.parallel import ExecutionContext
from scdenoise.core.types import SVDResult


def _check_ncomp(svd: SVDResult, ncomp: int) -> int:
    n = int(ncomp)
    if n < 1 or n > svd.k:
        raise ValueError(f"ncomp must lie in [1, {svd.k}], got {n}.")
    return n


def svd_to_pca(svd: SVDResult, ncomp: int) -> np.ndarray:
    """Cell scores ``U D`` for the first ``ncomp`` components."""
    n = _check_ncomp(svd, ncomp)
    return svd.u[:, :n] * svd.d[:n][None, :]


def svd_to_rotation(
    svd: SVDResult,
    ncomp: int,
    x: MatrixAccess,
    rows_used: np.ndarray,
    fill_missing: bool = False,
    context: ExecutionContext | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Loadings for the first ``ncomp`` components.

    Without ``fill_missing`` only the genes in ``rows_used`` get a row. With it,
    every gene of ``x`` gets one: genes left out of the SVD are treated as new
    columns of ``X = U D V^T`` and projected onto ``U`` after centering.

    Returns:
        ``(rotation, rotation_rows)`` where ``rotation_rows`` holds the gene
        index of each rotation row.
    """
    n = _check_ncomp(svd, ncomp)
    used = np.asarray(rows_used, dtype=np.intp)
    v = svd.v[:, :n]
    if v.shape[0] != used.size:
        raise ValueError(
            f"SVD has {v.shape[0]} right vectors but {used.size} rows were used."
        )
    if not fill_missing:
        return v.copy(), used.copy()

    leftovers = np.ones(x.n_rows, dtype=bool)
    leftovers[used] = False
    left_rows = np.flatnonzero(leftovers)

    full = np.zeros((x.n_rows, n), dtype=float)
    full[used] = v
    if left_rows.size == 0:
        warnings.warn(
            "fill_missing=True but every gene was used in the SVD; nothing to extrapolate.",
            RuntimeWarning,
            stacklevel=2,
        )
        return full, np.arange(x.n_rows, dtype=np.intp)

    u = svd.u[:, :n]
    d = svd.d[:n]
    u_colsum = u.sum(axis=0)

    def _project(chunk: np.ndarray) -> np.ndarray:
        block = x.dense_rows(chunk)
        proj = block @ u - np.outer(block.mean(axis=1), u_colsum)
        with np.errstate(divide="ignore", invalid="ignore"):
            return proj / d[None, :]

    ctx = context if context is not None else ExecutionContext()
    full[left_rows] = ctx.map_rows(_project, left_rows)
    return full, np.arange(x.n_rows, dtype=np.intp)
