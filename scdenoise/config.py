"""Configuration loading utilities for scdenoise runs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from scdenoise.core.types import DenoiseConfig, SVDConfig

_TOP_LEVEL_KEYS: frozenset[str] = frozenset(
    {"min_rank", "max_rank", "fill_missing", "svd", "n_jobs", "log_path"}
)
_SVD_KEYS: frozenset[str] = frozenset({"algorithm", "seed", "n_oversamples", "n_iter"})


def load_json_config(path: str | Path) -> dict[str, Any]:
    """Load and validate a run config from a JSON file."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    if config_path.suffix.lower() != ".json":
        raise ValueError(
            f"Unsupported config format for '{config_path}'. Use a .json config file."
        )

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ValueError(
            f"Invalid JSON in config '{config_path}' at line {exc.lineno}, "
            f"column {exc.colno}: {exc.msg}"
        ) from exc

    if not isinstance(data, dict):
        raise ValueError(
            f"Invalid config root in '{config_path}': expected JSON object, got {type(data).__name__}."
        )
    return data


def denoise_config_from_dict(data: dict[str, Any]) -> DenoiseConfig:
    """Build a DenoiseConfig, rejecting keys it does not know."""
    unknown = sorted(set(data) - _TOP_LEVEL_KEYS)
    if unknown:
        raise ValueError(f"Unknown config key(s): {', '.join(unknown)}.")

    svd_raw = data.get("svd", {})
    if not isinstance(svd_raw, dict):
        raise ValueError(f"'svd' must be a JSON object, got {type(svd_raw).__name__}.")
    unknown_svd = sorted(set(svd_raw) - _SVD_KEYS)
    if unknown_svd:
        raise ValueError(f"Unknown svd config key(s): {', '.join(unknown_svd)}.")

    defaults = DenoiseConfig()
    return DenoiseConfig(
        min_rank=int(data.get("min_rank", defaults.min_rank)),
        max_rank=int(data.get("max_rank", defaults.max_rank)),
        fill_missing=bool(data.get("fill_missing", defaults.fill_missing)),
        svd=SVDConfig(**svd_raw),
        n_jobs=int(data.get("n_jobs", defaults.n_jobs)),
        log_path=_optional_str(data.get("log_path", defaults.log_path)),
    )


def load_denoise_config(path: str | Path) -> DenoiseConfig:
    return denoise_config_from_dict(load_json_config(path))


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        raise ValueError(f"'log_path' must be a non-empty string, got {value!r}.")
    return value
