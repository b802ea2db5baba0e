"""scdenoise public API."""

from scdenoise._version import __version__
from scdenoise.core.factorization import qr_factorize
from scdenoise.core.parallel import ExecutionContext
from scdenoise.core.rank import denoise_pca_number
from scdenoise.core.residuals import compute_residuals, get_residuals
from scdenoise.core.technical import TechnicalVariance
from scdenoise.core.types import DenoiseConfig, DenoisedPCs, SVDConfig
from scdenoise.denoise import denoise_pca, get_denoised_pcs, lowrank_approximation

__all__ = [
    "__version__",
    "DenoiseConfig",
    "DenoisedPCs",
    "ExecutionContext",
    "SVDConfig",
    "TechnicalVariance",
    "compute_residuals",
    "denoise_pca",
    "denoise_pca_number",
    "get_denoised_pcs",
    "get_residuals",
    "lowrank_approximation",
    "qr_factorize",
]
