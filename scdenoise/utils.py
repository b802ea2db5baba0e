"""Run-level helpers: output directories and the package log file."""

from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def ensure_dir(path: str | Path) -> Path:
    """Create ``path`` (and parents) if needed and return it."""
    out = Path(path)
    out.mkdir(parents=True, exist_ok=True)
    return out


def setup_logger(
    log_path: str | Path,
    logger_name: str = "scdenoise",
    level: int = logging.INFO,
) -> logging.Logger:
    """Send ``logger_name`` records to ``log_path`` and to stderr.

    Handlers left by an earlier call are closed first, so a second run in the
    same session writes to the new file only.
    """
    path = Path(log_path)
    ensure_dir(path.parent)
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    formatter = logging.Formatter(LOG_FORMAT)
    fh = logging.FileHandler(path, mode="w", encoding="utf-8")
    fh.setFormatter(formatter)
    logger.addHandler(fh)
    sh = logging.StreamHandler()
    sh.setFormatter(formatter)
    logger.addHandler(sh)
    return logger
