"""Orthogonal factorizations of a cells x coefficients design matrix.

Residual computation only needs two operations from a factorization: multiply a
vector by ``Q^T`` and by ``Q``. Both representations below expose exactly those,
plus the number of coefficients ``p`` spanned by the modeled subspace.
"""

from __future__ import annotations

import logging
import warnings
from typing import Protocol, runtime_checkable

import numpy as np
import scipy.linalg

logger = logging.getLogger(__name__)

REPRESENTATIONS: tuple[str, ...] = ("householder", "explicit")


@runtime_checkable
class OrthogonalFactorization(Protocol):
    """In-place ``Q^T`` / ``Q`` products on buffers of length ``n_obs``."""

    @property
    def n_obs(self) -> int: ...

    @property
    def n_coefs(self) -> int: ...

    def apply_transpose(self, buffer: np.ndarray) -> None: ...

    def apply(self, buffer: np.ndarray) -> None: ...


class HouseholderQR:
    """Compact reflector form from ``scipy.linalg.qr(mode="raw")``.

    Products are delegated to LAPACK ``?ormqr``, so ``Q`` is never formed.
    """

    def __init__(self, qr: np.ndarray, tau: np.ndarray) -> None:
        qr_arr = np.asfortranarray(qr, dtype=float)
        tau_arr = np.asarray(tau, dtype=float).ravel()
        if qr_arr.ndim != 2:
            raise ValueError(f"qr must be 2D, got shape {qr_arr.shape}.")
        if qr_arr.shape[0] < qr_arr.shape[1]:
            raise ValueError("qr must have at least as many rows as columns.")
        if tau_arr.size != qr_arr.shape[1]:
            raise ValueError(
                f"tau length {tau_arr.size} does not match {qr_arr.shape[1]} reflectors."
            )
        self._qr = qr_arr
        self._tau = tau_arr
        (self._ormqr,) = scipy.linalg.get_lapack_funcs(("ormqr",), (qr_arr,))
        self._lwork = self._query_lwork()

    @property
    def n_obs(self) -> int:
        return int(self._qr.shape[0])

    @property
    def n_coefs(self) -> int:
        return int(self._qr.shape[1])

    def _query_lwork(self) -> int:
        probe = np.zeros((self.n_obs, 1), dtype=float, order="F")
        _, work, info = self._ormqr("L", "T", self._qr, self._tau, probe, -1)
        if info != 0:
            raise RuntimeError(f"LAPACK ormqr workspace query failed (info={info}).")
        return max(1, int(np.real(work[0])))

    def _run(self, trans: str, buffer: np.ndarray) -> None:
        if buffer.shape != (self.n_obs,):
            raise ValueError(
                f"Buffer length {buffer.size} does not match factorization length {self.n_obs}."
            )
        c = np.asfortranarray(buffer.reshape(-1, 1), dtype=float)
        cq, _, info = self._ormqr("L", trans, self._qr, self._tau, c, self._lwork)
        if info != 0:
            raise RuntimeError(f"LAPACK ormqr failed (info={info}).")
        buffer[:] = cq[:, 0]

    def apply_transpose(self, buffer: np.ndarray) -> None:
        self._run("T", buffer)

    def apply(self, buffer: np.ndarray) -> None:
        self._run("N", buffer)


class ExplicitQ:
    """Dense square ``Q`` whose first ``n_coefs`` columns span the design."""

    def __init__(self, q: np.ndarray, n_coefs: int) -> None:
        q_arr = np.asarray(q, dtype=float)
        if q_arr.ndim != 2 or q_arr.shape[0] != q_arr.shape[1]:
            raise ValueError(f"q must be a square matrix, got shape {q_arr.shape}.")
        p = int(n_coefs)
        if p < 0 or p > q_arr.shape[0]:
            raise ValueError(f"n_coefs must lie in [0, {q_arr.shape[0]}], got {p}.")
        self._q = q_arr
        self._p = p

    @property
    def n_obs(self) -> int:
        return int(self._q.shape[0])

    @property
    def n_coefs(self) -> int:
        return self._p

    def apply_transpose(self, buffer: np.ndarray) -> None:
        buffer[:] = self._q.T @ buffer

    def apply(self, buffer: np.ndarray) -> None:
        buffer[:] = self._q @ buffer


def qr_factorize(
    design: np.ndarray,
    representation: str = "householder",
) -> HouseholderQR | ExplicitQ:
    """Factorize a cells x coefficients design matrix.

    Args:
        design: Design matrix with one row per cell. A 1D vector is treated as a
            single-column design.
        representation: ``"householder"`` keeps LAPACK reflectors;
            ``"explicit"`` forms the complete ``Q``.

    Returns:
        An object satisfying :class:`OrthogonalFactorization`.
    """
    if representation not in REPRESENTATIONS:
        raise ValueError(
            f"Unknown representation '{representation}'. "
            f"Use one of: {', '.join(REPRESENTATIONS)}."
        )

    mat = np.asarray(design, dtype=float)
    if mat.ndim == 1:
        mat = mat[:, None]
    if mat.ndim != 2:
        raise ValueError(f"design must be 2D, got shape {mat.shape}.")
    n_obs, n_coefs = mat.shape
    if n_coefs == 0:
        raise ValueError("design must have at least one column.")
    if n_obs < n_coefs:
        raise ValueError(
            f"design has more coefficients ({n_coefs}) than observations ({n_obs})."
        )
    if not np.isfinite(mat).all():
        raise ValueError("design contains NaN or infinite values.")

    if representation == "householder":
        (qr, tau), r = scipy.linalg.qr(mat, mode="raw")
        out: HouseholderQR | ExplicitQ = HouseholderQR(qr, tau)
    else:
        q, r = np.linalg.qr(mat, mode="complete")
        out = ExplicitQ(q, n_coefs)

    diag = np.abs(np.diag(np.asarray(r)[:n_coefs, :n_coefs]))
    tol = diag.max(initial=0.0) * max(n_obs, n_coefs) * np.finfo(float).eps
    if np.any(diag <= tol):
        warnings.warn(
            "design is rank deficient; residuals also remove directions "
            "outside its column space.",
            RuntimeWarning,
            stacklevel=2,
        )

    logger.debug(
        "Factorized design with %d observations and %d coefficients (%s).",
        n_obs,
        n_coefs,
        representation,
    )
    return out
