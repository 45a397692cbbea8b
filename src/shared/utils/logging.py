"""Logging setup shared by the archive CLIs and the Cloud Function.

Entry points call ``setup_logging`` once at startup. Library modules never
configure handlers; they only create ``logging.getLogger(__name__)``.
"""

from __future__ import annotations
import logging
import os
import sys
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# HTTP client internals log every request at DEBUG/INFO
NOISY_LOGGERS = ("urllib3", "requests", "httpx", "httpcore", "werkzeug")


def resolve_level(verbose: bool = False, level: Optional[str] = None) -> str:
    """Pick the effective level name for a CLI run.

    ``--verbose`` wins over ``--log-level``, which wins over ``LOG_LEVEL``.
    Unknown names fall back to INFO.
    """
    if verbose:
        return "DEBUG"
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    return name if isinstance(logging.getLevelName(name), int) else "INFO"


def setup_logging(level: Optional[str] = None, format_string: Optional[str] = None) -> None:
    """Configure the root logger to write to stdout.

    Args:
        level: Level name. If None, ``LOG_LEVEL`` or INFO.
        format_string: Custom format; defaults to a timestamped format.

    Example:
        >>> setup_logging(resolve_level(verbose=args.verbose))
    """
    logging.basicConfig(
        level=resolve_level(level=level),
        format=format_string or DEFAULT_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
