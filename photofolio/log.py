"""Logging initialization utilities using loguru."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

DEFAULT_FORMAT = "[{time:HH:mm:ss} {level: <7}] {message}"


def init_logging(debug: bool = False, fmt: str = DEFAULT_FORMAT, log_dir: Optional[str] = None) -> None:
    """Log to stderr, and to a rotating file under `log_dir` when given."""
    level = "DEBUG" if debug else "INFO"

    logger.remove()
    logger.add(sys.stderr, format=fmt, level=level, backtrace=False, diagnose=False)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_path / "photofolio_{time:YYYYMMDD}.log"),
            rotation="10 MB",
            retention="10 days",
            compression="zip",
            backtrace=False,
            diagnose=False,
            level=level,
        )
