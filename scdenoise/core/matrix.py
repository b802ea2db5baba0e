"""Row access over dense or sparse genes x cells expression matrices."""

from __future__ import annotations

from typing import Any

import numpy as np
import scipy.sparse as sp


class MatrixAccess:
    """Uniform row reads over a dense ``ndarray`` or a scipy sparse matrix.

    The caller's matrix is never modified. Sparse inputs are held as a private
    canonical CSR copy so that rows can be sliced without touching the original.
    """

    def __init__(self, x: Any) -> None:
        if sp.issparse(x):
            if len(x.shape) != 2:
                raise ValueError(f"Expression matrix must be 2D, got shape {x.shape}.")
            data = sp.csr_matrix(x, dtype=float, copy=True)
            data.sum_duplicates()
            self.is_sparse = True
        else:
            data = np.asarray(x)
            if data.ndim != 2:
                raise ValueError(
                    f"Expression matrix must be 2D, got shape {data.shape}."
                )
            if not (
                np.issubdtype(data.dtype, np.number) or data.dtype == bool
            ):
                raise ValueError(
                    f"Expression matrix must be numeric, got dtype {data.dtype}."
                )
            self.is_sparse = False
        self._data = data
        self.n_rows = int(data.shape[0])
        self.n_cols = int(data.shape[1])

    @property
    def shape(self) -> tuple[int, int]:
        return self.n_rows, self.n_cols

    def get_row(self, i: int, out: np.ndarray | None = None) -> np.ndarray:
        """Read row ``i`` into a dense float buffer of length ``n_cols``."""
        if out is None:
            out = np.empty(self.n_cols, dtype=float)
        if self.is_sparse:
            start = self._data.indptr[i]
            end = self._data.indptr[i + 1]
            out.fill(0.0)
            out[self._data.indices[start:end]] = self._data.data[start:end]
        else:
            out[:] = self._data[i]
        return out

    def row_block(self, rows: np.ndarray) -> np.ndarray | sp.csr_matrix:
        """Rows in ``rows`` order, kept sparse when the backing store is sparse."""
        idx = np.asarray(rows, dtype=np.intp)
        if self.is_sparse:
            return self._data[idx]
        return np.asarray(self._data[idx], dtype=float)

    def dense_rows(self, rows: np.ndarray) -> np.ndarray:
        block = self.row_block(rows)
        if sp.issparse(block):
            return block.toarray()
        return block

    def row_means(self, rows: np.ndarray) -> np.ndarray:
        block = self.row_block(rows)
        if self.n_cols == 0:
            return np.full(block.shape[0], np.nan)
        return np.asarray(block.mean(axis=1), dtype=float).ravel()

    def row_vars(self, rows: np.ndarray, ddof: int = 1) -> np.ndarray:
        """Per-row variances over all columns (two-pass, exact for sparse rows)."""
        block = self.row_block(rows)
        n = self.n_cols
        n_block = int(block.shape[0])
        if n - ddof <= 0:
            return np.full(n_block, np.nan)

        if not sp.issparse(block):
            return np.var(block, axis=1, ddof=ddof)

        means = np.asarray(block.mean(axis=1), dtype=float).ravel()
        nnz = np.diff(block.indptr)
        owner = np.repeat(np.arange(n_block), nnz)
        dev = block.data - means[owner]
        ss = np.bincount(owner, weights=dev * dev, minlength=n_block)
        ss += (n - nnz) * means * means
        return ss / float(n - ddof)
