"""
Optional run log file written next to the console output.
"""

import logging
import logging.handlers
from pathlib import Path

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def attach_file_log(
    log_file: str | Path,
    logger_name: str = "ifu",
    level: int = logging.DEBUG,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> logging.Handler:
    """
    Add a rotating file handler to the ``ifu`` logger.

    The file always records DEBUG, independent of the console level, so per-file
    traces stay available when the live display hides them.

    Args:
        log_file: Target file; parent folders are created.
        logger_name: Logger receiving the handler.
        level: Minimum level written to the file.
        max_bytes: Size at which the file is rotated.
        backup_count: Rotated files to keep.

    Returns:
        logging.Handler: The handler, so callers can remove it again.
    """
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    logger = logging.getLogger(logger_name)
    # The logger must let DEBUG records through for the file to receive them.
    if logger.getEffectiveLevel() > level:
        logger.setLevel(level)
    logger.addHandler(handler)
    return handler
