"""
Rotating file logging for the cardswap.* logger tree.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import CardSwapConfig

LOG_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 3


def _private_handler(log_path: Path, level: int) -> RotatingFileHandler:
    """
    Rotating handler on an owner-only file.

    CardSwap records carry prompt text, character names, pose instructions and
    model refusal text, so the file is created 0600 before the handler opens it.
    """
    log_path.touch(mode=0o600, exist_ok=True)
    os.chmod(log_path, 0o600)

    handler = RotatingFileHandler(
        log_path,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def configure_logging(config: CardSwapConfig, file_only: bool = True) -> logging.Logger:
    """
    Attach file handlers to the ``cardswap`` logger.

    With ``file_only`` the tree stops propagating to the root logger, so the
    REPL's terminal output is never interleaved with log lines.
    """
    log_dir = Path(config.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("cardswap")
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    logger.addHandler(_private_handler(log_dir / "cardswap.log", logging.DEBUG))
    logger.addHandler(_private_handler(log_dir / "cardswap-errors.log", logging.ERROR))

    logger.propagate = not file_only
    return logger
