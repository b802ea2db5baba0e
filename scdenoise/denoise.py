"""Denoised PCA: technical-noise-aware choice of the number of PCs."""

from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from scdenoise.core.matrix import MatrixAccess
from scdenoise.core.parallel import ExecutionContext
from scdenoise.core.rank import denoise_pca_number, keep_rank_in_range, validate_rank_bounds
from scdenoise.core.rotation import svd_to_pca, svd_to_rotation
from scdenoise.core.svd import centered_svd, feasible_rank
from scdenoise.core.technical import (
    TechnicalVariance,
    filter_biological,
    resolve_technical_variance,
)
from scdenoise.core.types import DenoisedPCs, DenoiseConfig, SVDConfig
from scdenoise.core.utils import check_subset
from scdenoise.utils import setup_logger

logger = logging.getLogger(__name__)

VALUE_TYPES: tuple[str, ...] = ("pca", "lowrank")


def get_denoised_pcs(
    x: Any,
    technical: Any,
    subset_row: Any = None,
    min_rank: int = 5,
    max_rank: int = 50,
    fill_missing: bool = False,
    svd_config: SVDConfig | None = None,
    context: ExecutionContext | None = None,
) -> DenoisedPCs:
    """PCA on genes with positive biological variance, keeping only signal PCs.

    Args:
        x: Genes x cells log-expression matrix, dense or sparse.
        technical: Technical variance per gene: a function of mean expression,
            a vector over all genes, a DataFrame with ``total``/``tech`` columns,
            or a :class:`TechnicalVariance`.
        subset_row: Genes to consider, as indices or a boolean mask.
        min_rank: Fewest components to return.
        max_rank: Most components to compute and return.
        fill_missing: Extrapolate rotation rows for genes not used in the SVD.
        svd_config: Truncated SVD backend; exact by default.
        context: Execution context for row scans; serial by default.

    Returns:
        DenoisedPCs with ``percent_var`` over every computed component.
    """
    lo, hi = validate_rank_bounds(min_rank, max_rank)
    svd_cfg = svd_config if svd_config is not None else SVDConfig()
    ctx = context if context is not None else ExecutionContext()

    mat = x if isinstance(x, MatrixAccess) else MatrixAccess(x)
    rows = check_subset(subset_row, mat.n_rows)
    tech_input = TechnicalVariance.coerce(technical)
    tech_input.check_n_genes(mat.n_rows)
    if mat.n_cols < 2:
        raise ValueError(f"At least two cells are required, got {mat.n_cols}.")

    all_var = ctx.map_rows(mat.row_vars, rows)
    means = ctx.map_rows(mat.row_means, rows) if tech_input.needs_means else None
    tech_var = resolve_technical_variance(tech_input, all_var, rows, means=means)

    keep = filter_biological(all_var, tech_var)
    use_rows = rows[keep]
    all_var = all_var[keep]
    tech_var = tech_var[keep]
    logger.info(
        "Kept %d of %d genes with positive biological variance.",
        use_rows.size,
        rows.size,
    )
    if use_rows.size == 0:
        raise ValueError("No genes have observed variance above their technical variance.")

    limit = feasible_rank(mat.n_cols, use_rows.size, svd_cfg.algorithm)
    if limit < 1:
        raise ValueError(
            f"No components can be computed for {mat.n_cols} cells x "
            f"{use_rows.size} genes with '{svd_cfg.algorithm}'."
        )
    k = min(hi, limit)
    if lo > k:
        raise ValueError(
            f"min_rank ({lo}) exceeds the {k} components computable from "
            f"{mat.n_cols} cells x {use_rows.size} genes."
        )
    if k < hi:
        warnings.warn(
            f"max_rank={hi} exceeds the computable rank; using {k} components.",
            RuntimeWarning,
            stacklevel=2,
        )

    svd = centered_svd(mat.row_block(use_rows), k, svd_cfg)

    var_exp = svd.d**2 / float(mat.n_cols - 1)
    total_var = float(np.sum(all_var))
    total_tech = float(np.sum(tech_var))
    npcs = denoise_pca_number(var_exp, total_tech, total_var)
    npcs = keep_rank_in_range(npcs, lo, min(hi, svd.k))
    logger.info(
        "Retaining %d of %d components (technical %.4g of total %.4g).",
        npcs,
        svd.k,
        total_tech,
        total_var,
    )

    if total_var > 0:
        percent_var = var_exp / total_var * 100.0
    else:
        percent_var = np.zeros_like(var_exp)

    rotation, rotation_rows = svd_to_rotation(
        svd, npcs, mat, use_rows, fill_missing=fill_missing, context=ctx
    )
    return DenoisedPCs(
        components=svd_to_pca(svd, npcs),
        rotation=rotation,
        percent_var=percent_var,
        n_components=int(npcs),
        rows_used=use_rows,
        rotation_rows=rotation_rows,
        metadata={
            "technical": tech_input.kind.value,
            "svd_algorithm": svd_cfg.algorithm,
            "n_genes_considered": int(rows.size),
            "n_genes_used": int(use_rows.size),
            "var_total": total_var,
            "var_tech": total_tech,
            "fill_missing": bool(fill_missing),
        },
    )


def get_denoised_pcs_with_config(
    x: Any,
    technical: Any,
    config: DenoiseConfig,
    subset_row: Any = None,
) -> DenoisedPCs:
    """Run :func:`get_denoised_pcs` with settings from a :class:`DenoiseConfig`.

    When ``config.log_path`` is set, package log records also go to that file.
    """
    if config.log_path is not None:
        setup_logger(Path(config.log_path), "scdenoise")
    return get_denoised_pcs(
        x,
        technical,
        subset_row=subset_row,
        min_rank=config.min_rank,
        max_rank=config.max_rank,
        fill_missing=config.fill_missing,
        svd_config=config.svd,
        context=ExecutionContext(n_jobs=config.n_jobs),
    )


def lowrank_approximation(result: DenoisedPCs) -> np.ndarray:
    """Genes x cells reconstruction from the retained components."""
    return result.rotation @ result.components.T


def _resolve_gene_subset(adata, subset_row: Any) -> Any:
    if subset_row is None:
        return None
    arr = np.asarray(subset_row)
    if arr.dtype.kind not in {"U", "S", "O"}:
        return subset_row
    var_names = pd.Index(adata.var_names)
    keys = [str(s) for s in arr.ravel()]
    idx = var_names.get_indexer(keys)
    missing = [k for k, i in zip(keys, idx) if i < 0]
    if missing:
        raise KeyError(f"Gene(s) not found in var_names: {', '.join(missing[:5])}.")
    return idx.astype(np.intp)


def _align_technical_table(adata, table: pd.DataFrame) -> pd.DataFrame:
    var_names = pd.Index(adata.var_names)
    if table.index.equals(var_names):
        return table
    if not table.index.is_unique:
        raise KeyError("technical table index contains duplicate gene names.")
    idx = table.index.get_indexer(var_names)
    missing = [str(g) for g, i in zip(var_names, idx) if i < 0]
    if missing:
        raise KeyError(
            f"Gene(s) missing from the technical table index: {', '.join(missing[:5])}."
        )
    return table.iloc[idx]


def denoise_pca(
    adata,
    technical: Any,
    value: str = "pca",
    layer: str | None = None,
    key_added: str = "PCA",
    **kwargs: Any,
):
    """Run :func:`get_denoised_pcs` on an AnnData (cells x genes) and store results.

    ``value="pca"`` stores the cell scores in ``adata.obsm[key_added]``;
    ``value="lowrank"`` extrapolates loadings to every gene and stores the
    low-rank reconstruction in ``adata.layers["lowrank"]``. Summary values go to
    ``adata.uns[key_added]``.
    """
    if value not in VALUE_TYPES:
        raise ValueError(f"value must be one of {', '.join(VALUE_TYPES)}, got '{value}'.")
    if layer is None:
        expr = adata.X
    elif layer in adata.layers:
        expr = adata.layers[layer]
    else:
        raise KeyError(f"adata.layers['{layer}'] not found.")

    if isinstance(technical, pd.DataFrame):
        technical = _align_technical_table(adata, technical)

    kwargs["subset_row"] = _resolve_gene_subset(adata, kwargs.get("subset_row"))
    if value == "lowrank":
        kwargs["fill_missing"] = True

    res = get_denoised_pcs(expr.T, technical, **kwargs)
    var_names = np.asarray(adata.var_names)
    summary: dict[str, Any] = {
        "percent_var": res.percent_var,
        "n_components": res.n_components,
        "params": dict(res.metadata),
    }
    if value == "pca":
        adata.obsm[key_added] = res.components
        summary["rotation"] = res.rotation
        summary["rotation_genes"] = var_names[res.rotation_rows]
    else:
        adata.layers["lowrank"] = res.components @ res.rotation.T
    adata.uns[key_added] = summary
    return adata
