from __future__ import annotations

import json
import logging
from pathlib import Path

import numpy as np

from scdenoise.config import load_denoise_config
from scdenoise.denoise import get_denoised_pcs_with_config
from scdenoise.utils import ensure_dir, setup_logger


def _close_handlers(name: str) -> None:
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_setup_logger_writes_to_file(tmp_path: Path):
    log_path = tmp_path / "logs" / "denoise.log"
    logger = setup_logger(log_path, "scdenoise_test")
    logger.info("retained %d components", 4)
    for handler in logger.handlers:
        handler.flush()
    text = log_path.read_text(encoding="utf-8")
    assert "| INFO | retained 4 components" in text
    _close_handlers("scdenoise_test")


def test_setup_logger_replaces_handlers(tmp_path: Path):
    setup_logger(tmp_path / "a.log", "scdenoise_test_handlers")
    logger = setup_logger(tmp_path / "b.log", "scdenoise_test_handlers")
    assert len(logger.handlers) == 2
    _close_handlers("scdenoise_test_handlers")


def test_ensure_dir_returns_path(tmp_path: Path):
    target = ensure_dir(tmp_path / "x" / "y")
    assert target.is_dir()
    assert ensure_dir(target) == target


def test_config_log_path_records_run(tmp_path: Path):
    log_path = tmp_path / "runs" / "denoise.log"
    cfg_path = tmp_path / "run.json"
    cfg_path.write_text(
        json.dumps({"min_rank": 1, "max_rank": 4, "log_path": log_path.as_posix()}),
        encoding="utf-8",
    )
    cfg = load_denoise_config(cfg_path)
    rng = np.random.default_rng(0)
    x = rng.normal(size=(20, 3)) @ rng.normal(size=(3, 30)) + rng.normal(size=(20, 30))
    try:
        get_denoised_pcs_with_config(x, np.full(20, 0.5), cfg)
        for handler in logging.getLogger("scdenoise").handlers:
            handler.flush()
        text = log_path.read_text(encoding="utf-8")
    finally:
        _close_handlers("scdenoise")
    assert "| INFO | Kept " in text
    assert "| INFO | Retaining" in text
