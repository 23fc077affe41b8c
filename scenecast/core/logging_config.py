"""Structured logging configuration.

Every record carries a ``stage`` field (generation, a segment render, the
concatenation, the HTTP route...) so interleaved output from the scene
workers can be told apart. Loggers bind it through ``get_logger``; records
from unbound loggers show "-".
"""

import sys
from pathlib import Path
from typing import Any, Optional, Union

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[stage]: <12}</magenta> | <cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[stage]} | {thread.name} | {name}:{line} | {message}"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """
    Configure console and optional rotating file output.

    The file sink also records the worker thread name, which identifies the
    scene worker or encoder call that produced a line.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path to log file (settings.log_file)
        rotation: Log rotation size
        retention: Log retention period
    """
    logger.remove()
    logger.configure(extra={"stage": "-"})

    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=log_level.upper(), colorize=True)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=FILE_FORMAT,
            level=log_level.upper(),
            rotation=rotation,
            retention=retention,
            compression="zip",
            enqueue=True,
        )


def get_logger(name: str, stage: Optional[str] = None, **context: Any) -> Any:
    """
    Get a logger bound to a pipeline stage.

    Args:
        name: Logger name (typically __name__)
        stage: Stage label; defaults to the last component of ``name``
        **context: Additional context fields (scene_index, script, request_id, etc.)

    Returns:
        Logger instance with bound context
    """
    return logger.bind(name=name, stage=stage or name.rsplit(".", 1)[-1], **context)


# Initialize logging on import
setup_logging()
