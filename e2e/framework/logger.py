"""
Run logger

Console output for normal runs, extra detail in verbose mode, and an
optional log file that always receives the verbose stream.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = "e2e"

_logger = logging.getLogger(LOGGER_NAME)


def configure(
    log_file: Optional[Union[str, Path]] = None,
    verbose: bool = False,
) -> logging.Logger:
    """
    Configure the harness logger.

    Args:
        log_file: Path of a file that receives all output including verbose lines
        verbose: Show verbose lines on the console

    Returns:
        The configured logger
    """
    close()

    _logger.setLevel(logging.DEBUG)
    _logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    _logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(levelname)-8s %(name)s %(filename)s:%(lineno)d %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        _logger.addHandler(file_handler)

    return _logger


def log(message: str) -> None:
    _logger.info(message, stacklevel=2)


def verbose_log(message: str) -> None:
    _logger.debug(message, stacklevel=2)


def error_log(message: str) -> None:
    _logger.error(message, stacklevel=2)


def close() -> None:
    """Flush and detach all handlers"""
    for handler in _logger.handlers[:]:
        handler.flush()
        handler.close()
        _logger.removeHandler(handler)
    _logger.propagate = True
