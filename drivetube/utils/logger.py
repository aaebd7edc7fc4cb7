"""
utils/logger.py – Centralised Loguru configuration
"""
from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

LOG_DIR = Path("data/logs")


def configure_logger(level: str = "INFO", log_dir: Path | None = None) -> None:
    log_dir = log_dir or LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=level.upper(),
        colorize=True,
    )
    # Rotating file log, one file per day
    logger.add(
        log_dir / "drivetube_{time:YYYY-MM-DD}.log",
        rotation="00:00",
        retention="7 days",
        level="DEBUG",
        encoding="utf-8",
    )
