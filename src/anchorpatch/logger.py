from __future__ import annotations

import logging
import sys
import warnings
from pathlib import Path
from typing import Optional, Union

import structlog

LOGGER_NAME = "anchorpatch"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    key = str(getattr(level, "value", level)).lower()
    if key not in _LEVELS:
        raise ValueError(f"Unknown log level: {level}")
    return _LEVELS[key]


def configure_logging(
    level: Union[str, int] = "info", log_file: Optional[Path] = None
) -> None:
    """
    Route stdlib logging (and therefore structlog) to stderr or a log file.
    Safe to call more than once; the last call wins.
    """
    handler: logging.Handler
    if log_file is not None:
        handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)

    logging.basicConfig(
        level=resolve_level(level),
        format="%(message)s",
        handlers=[handler],
        force=True,
    )

    def _showwarning(
        message: warnings.WarningMessage | str,
        category: type[Warning],
        filename: str,
        lineno: int,
        file: object | None = None,
        line: str | None = None,
    ) -> None:
        text = warnings.formatwarning(message, category, filename, lineno, line)
        logging.getLogger("py.warnings").warning(text.strip())

    warnings.showwarning = _showwarning


structlog.configure(
    wrapper_class=structlog.make_filtering_bound_logger(logging.NOTSET),
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False),
        structlog.dev.ConsoleRenderer(colors=False),
    ],
)

logger: structlog.BoundLogger = structlog.get_logger(LOGGER_NAME)
