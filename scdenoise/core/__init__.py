"""Core compute subpackage."""

from scdenoise.core.factorization import (
    ExplicitQ,
    HouseholderQR,
    OrthogonalFactorization,
    qr_factorize,
)
from scdenoise.core.matrix import MatrixAccess
from scdenoise.core.parallel import ExecutionContext
from scdenoise.core.rank import denoise_pca_number, keep_rank_in_range, validate_rank_bounds
from scdenoise.core.residuals import compute_residuals, get_residuals
from scdenoise.core.rotation import svd_to_pca, svd_to_rotation
from scdenoise.core.svd import centered_svd, feasible_rank
from scdenoise.core.technical import (
    TechnicalKind,
    TechnicalVariance,
    filter_biological,
    resolve_technical_variance,
)
from scdenoise.core.types import DenoiseConfig, DenoisedPCs, SVDConfig, SVDResult

__all__ = [
    "DenoiseConfig",
    "DenoisedPCs",
    "ExecutionContext",
    "ExplicitQ",
    "HouseholderQR",
    "MatrixAccess",
    "OrthogonalFactorization",
    "SVDConfig",
    "SVDResult",
    "TechnicalKind",
    "TechnicalVariance",
    "centered_svd",
    "compute_residuals",
    "denoise_pca_number",
    "feasible_rank",
    "filter_biological",
    "get_residuals",
    "keep_rank_in_range",
    "qr_factorize",
    "resolve_technical_variance",
    "svd_to_pca",
    "svd_to_rotation",
    "validate_rank_bounds",
]
