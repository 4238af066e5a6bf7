"""
Logging for the Witness Toolkit.

All module loggers live under the `witness_toolkit` logger, which owns the
only handler; children propagate to it. The level is set from
`WitnessConfig.log_level` (WITNESS_LOG_LEVEL) once a config exists.
"""

import logging
from typing import Optional, Union

PACKAGE_LOGGER = "witness_toolkit"
_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _package_logger() -> logging.Logger:
    logger = logging.getLogger(PACKAGE_LOGGER)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger for a module; names outside the package are nested under it."""
    package = _package_logger()
    if not name or name == PACKAGE_LOGGER:
        return package
    if not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def set_log_level(level: Union[str, int]) -> None:
    """Apply a level name ("DEBUG", "info", ...) or number to the package."""
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved
    _package_logger().setLevel(level)
