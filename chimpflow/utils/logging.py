"""Loguru sinks for chimpflow processes."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from chimpflow.config.schema import LoggingConfig

DEFAULT_LOG_FILE = Path.home() / ".chimpflow" / "chimpflow.log"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def resolve_log_file(config: LoggingConfig) -> Path:
    """Log file from config, or ~/.chimpflow/chimpflow.log."""
    return Path(config.file).expanduser() if config.file else DEFAULT_LOG_FILE


def configure_logging(config: Optional[LoggingConfig] = None, verbose: bool = False) -> Path:
    """
    Replace loguru's default sink with a console sink and a rotating file.

    The console honours ``config.level`` (DEBUG when verbose); the file
    always records DEBUG and above.

    Returns:
        Path of the log file in use.
    """
    config = config or LoggingConfig()
    log_file = resolve_log_file(config)
    console_level = "DEBUG" if verbose or config.verbose else config.level.upper()

    logger.remove()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger.add(sys.stderr, level=console_level, format=CONSOLE_FORMAT, backtrace=True, diagnose=True)
    logger.add(
        str(log_file),
        level="DEBUG",
        format=FILE_FORMAT,
        rotation="10 MB",
        retention="1 week",
        compression="zip",
        enqueue=True,
    )

    logger.debug(f"Logging initialized. Console level: {console_level}, File: {log_file}")
    return log_file
