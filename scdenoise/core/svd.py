"""Centered truncated SVD backends.

All backends decompose ``Y = X^T - 1 m^T`` where ``X`` holds the used genes as
rows and ``m`` their means, so left vectors index cells and right vectors genes.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
import scipy.linalg
import scipy.sparse as sp
from scipy.sparse.linalg import LinearOperator, svds
from sklearn.utils.extmath import randomized_svd

from scdenoise.core.types import SVDConfig, SVDResult

logger = logging.getLogger(__name__)


def feasible_rank(n_cells: int, n_genes: int, algorithm: str) -> int:
    """Largest number of components the backend can return for this shape.

    Centering each gene over cells costs one dimension, so at most
    ``n_cells - 1`` components carry variance. ARPACK additionally needs
    ``k`` strictly below both dimensions.
    """
    full = min(int(n_cells) - 1, int(n_genes))
    if algorithm == "arpack":
        full = min(full, int(n_genes) - 1)
    return max(0, full)


def _centered_dense(block: Any) -> np.ndarray:
    dense = block.toarray() if sp.issparse(block) else np.asarray(block, dtype=float)
    return dense.T - dense.mean(axis=1)[None, :]


def _centered_operator(block: Any) -> LinearOperator:
    mat = sp.csr_matrix(block, dtype=float) if sp.issparse(block) else np.asarray(
        block, dtype=float
    )
    n_genes, n_cells = mat.shape
    means = np.asarray(mat.mean(axis=1), dtype=float).ravel()
    ones = np.ones(n_cells, dtype=float)

    def matvec(w: np.ndarray) -> np.ndarray:
        w = np.asarray(w, dtype=float).ravel()
        return np.asarray(mat.T @ w).ravel() - ones * float(means @ w)

    def rmatvec(z: np.ndarray) -> np.ndarray:
        z = np.asarray(z, dtype=float).ravel()
        return np.asarray(mat @ z).ravel() - means * float(z.sum())

    return LinearOperator(
        shape=(n_cells, n_genes), matvec=matvec, rmatvec=rmatvec, dtype=float
    )


def _flip_signs(u: np.ndarray, v: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Make the largest-magnitude loading of every component positive."""
    if v.shape[1] == 0:
        return u, v
    idx = np.argmax(np.abs(v), axis=0)
    signs = np.sign(v[idx, np.arange(v.shape[1])])
    signs[signs == 0] = 1.0
    return u * signs[None, :], v * signs[None, :]


def centered_svd(block: Any, k: int, config: SVDConfig) -> SVDResult:
    """Top-``k`` singular triplets of the gene-centered, transposed ``block``.

    Args:
        block: Used genes (rows) x cells, dense or sparse.
        k: Number of components to compute.
        config: Backend selection.

    Returns:
        SVDResult with ``u`` of shape (cells, k) and ``v`` of shape (genes, k).
    """
    n_genes, n_cells = block.shape
    k_i = int(k)
    limit = feasible_rank(n_cells, n_genes, config.algorithm)
    if k_i < 1:
        raise ValueError("At least one singular component must be requested.")
    if k_i > limit:
        raise ValueError(
            f"Cannot compute {k_i} components with '{config.algorithm}' "
            f"for {n_cells} cells x {n_genes} genes (limit {limit})."
        )

    if config.algorithm == "exact":
        u, d, vt = scipy.linalg.svd(_centered_dense(block), full_matrices=False)
        u, d, v = u[:, :k_i], d[:k_i], vt[:k_i].T
    elif config.algorithm == "arpack":
        op = _centered_operator(block)
        rng = np.random.default_rng(int(config.seed))
        v0 = rng.uniform(-1.0, 1.0, size=min(op.shape))
        u, d, vt = svds(op, k=k_i, v0=v0, solver="arpack")
        order = np.argsort(d)[::-1]
        u, d, v = u[:, order], d[order], vt[order].T
    elif config.algorithm == "randomized":
        u, d, vt = randomized_svd(
            _centered_dense(block),
            n_components=k_i,
            n_oversamples=int(config.n_oversamples),
            n_iter=int(config.n_iter),
            random_state=int(config.seed),
        )
        v = vt.T
    else:
        raise ValueError(f"Unknown SVD algorithm '{config.algorithm}'.")

    u, v = _flip_signs(np.asarray(u, dtype=float), np.asarray(v, dtype=float))
    logger.debug(
        "Computed %d components (%s) for %d cells x %d genes.",
        k_i,
        config.algorithm,
        n_cells,
        n_genes,
    )
    return SVDResult(d=np.asarray(d, dtype=float), u=u, v=v)
