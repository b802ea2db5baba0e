"""Typed configuration and result containers for scdenoise core operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

SVD_ALGORITHMS: tuple[str, ...] = ("exact", "arpack", "randomized")


@dataclass(frozen=True)
class SVDConfig:
    """Truncated SVD backend configuration.

    - `exact`: full LAPACK SVD of the densified, centered matrix.
    - `arpack`: implicitly centered Lanczos iterations, sparse-friendly.
    - `randomized`: scikit-learn randomized range finder.
    """

    algorithm: str = "exact"
    seed: int = 0
    n_oversamples: int = 10
    n_iter: int = 4

    def __post_init__(self) -> None:
        if self.algorithm not in SVD_ALGORITHMS:
            raise ValueError(
                f"Unknown SVD algorithm '{self.algorithm}'. "
                f"Use one of: {', '.join(SVD_ALGORITHMS)}."
            )


@dataclass(frozen=True)
class SVDResult:
    """Top-k singular triplets, `d` in descending order."""

    d: np.ndarray
    u: np.ndarray
    v: np.ndarray

    @property
    def k(self) -> int:
        return int(self.d.size)


@dataclass(frozen=True)
class DenoiseConfig:
    """Parameters of one denoised-PCA run."""

    min_rank: int = 5
    max_rank: int = 50
    fill_missing: bool = False
    svd: SVDConfig = field(default_factory=SVDConfig)
    n_jobs: int = 1
    log_path: str | None = None


@dataclass(frozen=True)
class DenoisedPCs:
    """Output of `get_denoised_pcs`.

    - `components`: cells x d principal component scores.
    - `rotation`: loadings, one row per entry of `rotation_rows`.
    - `percent_var`: percentage of total variance for all k computed components.
    """

    components: np.ndarray
    rotation: np.ndarray
    percent_var: np.ndarray
    n_components: int
    rows_used: np.ndarray
    rotation_rows: np.ndarray
    metadata: dict[str, Any] = field(default_factory=dict)
