"""Technical variance inputs and their alignment to a gene subset."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd

TABLE_COLUMNS: tuple[str, ...] = ("total", "tech")


class TechnicalKind(Enum):
    FUNCTION = "function"
    VECTOR = "vector"
    TABLE = "table"


@dataclass(frozen=True)
class TechnicalVariance:
    """One of three technical-variance representations.

    - FUNCTION: callable mapping mean expression to technical variance.
    - VECTOR: technical variance for every gene of the matrix.
    - TABLE: DataFrame with reported `total` and `tech` variance per gene.
    """

    kind: TechnicalKind
    payload: Any

    @classmethod
    def from_function(cls, fn: Callable[[np.ndarray], Any]) -> TechnicalVariance:
        if not callable(fn):
            raise TypeError("Technical variance function must be callable.")
        return cls(TechnicalKind.FUNCTION, fn)

    @classmethod
    def from_vector(cls, values: Any) -> TechnicalVariance:
        arr = np.asarray(values, dtype=float)
        if arr.ndim != 1:
            raise ValueError(
                f"Technical variance vector must be 1D, got shape {arr.shape}."
            )
        return cls(TechnicalKind.VECTOR, arr)

    @classmethod
    def from_table(cls, table: pd.DataFrame) -> TechnicalVariance:
        missing = [c for c in TABLE_COLUMNS if c not in table.columns]
        if missing:
            raise KeyError(
                f"Technical variance table is missing column(s): {', '.join(missing)}."
            )
        return cls(TechnicalKind.TABLE, table)

    @classmethod
    def coerce(cls, technical: Any) -> TechnicalVariance:
        """Wrap a raw technical-variance object, once, at call entry."""
        if isinstance(technical, cls):
            return technical
        if isinstance(technical, pd.DataFrame):
            return cls.from_table(technical)
        if callable(technical):
            return cls.from_function(technical)
        if isinstance(technical, (np.ndarray, pd.Series, list, tuple)):
            return cls.from_vector(technical)
        raise TypeError(
            "technical must be a callable, a per-gene vector or a DataFrame with "
            f"'total' and 'tech' columns, got {type(technical).__name__}."
        )

    @property
    def needs_means(self) -> bool:
        return self.kind is TechnicalKind.FUNCTION

    def check_n_genes(self, n_genes: int) -> None:
        """Reject per-gene payloads that do not cover every gene."""
        if self.kind is TechnicalKind.VECTOR:
            n = int(self.payload.size)
        elif self.kind is TechnicalKind.TABLE:
            n = int(self.payload.shape[0])
        else:
            return
        if n != int(n_genes):
            raise ValueError(
                f"Technical variance has {n} entries but the matrix has {int(n_genes)} genes."
            )


def resolve_technical_variance(
    technical: TechnicalVariance,
    all_var: np.ndarray,
    rows: np.ndarray,
    means: np.ndarray | None = None,
) -> np.ndarray:
    """Technical variance aligned 1:1 with ``rows``.

    Args:
        technical: Coerced technical-variance input.
        all_var: Observed variance of each gene in ``rows``.
        rows: Gene indices into the full matrix.
        means: Mean expression of each gene in ``rows``; required for FUNCTION.

    Returns:
        Float array with one entry per gene in ``rows``.
    """
    obs = np.asarray(all_var, dtype=float).ravel()
    idx = np.asarray(rows, dtype=np.intp).ravel()
    if obs.size != idx.size:
        raise ValueError(
            f"all_var has {obs.size} entries but {idx.size} rows were selected."
        )

    if technical.kind is TechnicalKind.TABLE:
        table = technical.payload
        total = table["total"].to_numpy(dtype=float)[idx]
        tech = table["tech"].to_numpy(dtype=float)[idx]
        with np.errstate(divide="ignore", invalid="ignore"):
            out = tech * (obs / total)
        out[(obs == 0) & (total == 0)] = 0.0
        out[(obs != 0) & (total == 0)] = np.inf
        return out

    if technical.kind is TechnicalKind.FUNCTION:
        if means is None:
            raise ValueError("Mean expression is required for a technical function.")
        mu = np.asarray(means, dtype=float).ravel()
        if mu.size != idx.size:
            raise ValueError(f"means has {mu.size} entries, expected {idx.size}.")
        out = np.asarray(technical.payload(mu), dtype=float).ravel()
        if out.size == 1 and idx.size != 1:
            out = np.full(idx.size, float(out[0]))
        if out.size != idx.size:
            raise ValueError(
                f"Technical function returned {out.size} values for {idx.size} genes."
            )
        return out

    if technical.kind is TechnicalKind.VECTOR:
        return np.asarray(technical.payload, dtype=float)[idx].copy()

    raise AssertionError(f"Unhandled technical variance kind: {technical.kind!r}")


def filter_biological(all_var: np.ndarray, tech_var: np.ndarray) -> np.ndarray:
    """Mask of genes whose observed variance strictly exceeds the technical one."""
    obs = np.asarray(all_var, dtype=float).ravel()
    tech = np.asarray(tech_var, dtype=float).ravel()
    if obs.size != tech.size:
        raise ValueError("all_var and tech_var must have the same length.")
    return obs > tech
