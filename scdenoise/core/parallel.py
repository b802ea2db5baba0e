"""Explicit execution context for chunked row scans."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
from joblib import Parallel, delayed

BACKENDS: tuple[str, ...] = ("threading", "loky", "multiprocessing")


@dataclass(frozen=True)
class ExecutionContext:
    """How row scans are scheduled for the duration of one call.

    Output order is always aligned to input order, independent of scheduling.
    """

    n_jobs: int = 1
    backend: str = "threading"
    chunk_size: int = 1024

    def __post_init__(self) -> None:
        if isinstance(self.n_jobs, bool) or int(self.n_jobs) < 1:
            raise ValueError(f"n_jobs must be a positive integer, got {self.n_jobs!r}.")
        if isinstance(self.chunk_size, bool) or int(self.chunk_size) < 1:
            raise ValueError(
                f"chunk_size must be a positive integer, got {self.chunk_size!r}."
            )
        if self.backend not in BACKENDS:
            raise ValueError(
                f"Unknown backend '{self.backend}'. Use one of: {', '.join(BACKENDS)}."
            )

    def chunks(self, rows: np.ndarray) -> list[np.ndarray]:
        idx = np.asarray(rows, dtype=np.intp)
        size = int(self.chunk_size)
        return [idx[i : i + size] for i in range(0, idx.size, size)]

    def map_rows(
        self,
        func: Callable[[np.ndarray], np.ndarray],
        rows: np.ndarray,
    ) -> np.ndarray:
        """Apply ``func`` to consecutive chunks of ``rows`` and stack the results."""
        parts = self.chunks(rows)
        if not parts:
            return func(np.zeros(0, dtype=np.intp))

        jobs = int(self.n_jobs)
        if jobs == 1 or len(parts) == 1:
            results = [func(part) for part in parts]
        else:
            results = Parallel(n_jobs=jobs, backend=self.backend)(
                delayed(func)(part) for part in parts
            )
        return np.concatenate(results, axis=0)
