"""Logging setup for fxpack builds."""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "fxpack"


class _StageFormatter(logging.Formatter):
    """Prefixes records with the pipeline stage (``fxpack.resolver`` -> ``resolver``)."""

    def format(self, record: logging.LogRecord) -> str:
        stage = record.name.split(".", 1)[1] if "." in record.name else ""
        record.stage = f"{stage}: " if stage else ""
        return super().format(record)


def get_logger(stage: str | None = None) -> logging.Logger:
    """Return the logger for one pipeline stage under the fxpack hierarchy."""
    full_name = f"{_LOGGER_NAME}.{stage}" if stage else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, quiet: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Install console output (and an optional file sink) on the fxpack logger.

    ``quiet`` keeps warnings and errors only, which is what CI runs want; ``verbose``
    wins when both are given. The file sink always records at debug level.
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    logger.propagate = False

    # Repeated CLI invocations in one process must not stack handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level)
    pattern = "[fxpack] %(levelname)s %(stage)s%(message)s"
    if not verbose:
        pattern = "[fxpack] %(levelname)s %(message)s"
    console.setFormatter(_StageFormatter(pattern))
    logger.addHandler(console)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "get_logger"]
