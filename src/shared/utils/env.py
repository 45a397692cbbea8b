"""Environment variable loading utilities.

The CLIs and the Cloud Function module call ``load_env()`` once before
reading configuration.
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _candidate_env_files(start: Path) -> List[Path]:
    """Return ``.env`` files from the filesystem root down to ``start``."""
    candidates = []
    for directory in [*reversed(start.parents), start]:
        candidate = directory / ".env"
        if candidate.exists():
            candidates.append(candidate)
    return candidates


def load_env(env_file: Optional[str] = None, override: bool = False) -> None:
    """Load environment variables from .env file(s).
    
    Args:
        env_file: Path to a specific .env file. If None, every .env between
                 the filesystem root and the current directory is loaded,
                 outermost first.
        override: Whether to override existing environment variables.
    """
    if env_file:
        env_path = Path(env_file)
        env_paths = [env_path] if env_path.exists() else []
    else:
        env_paths = _candidate_env_files(Path.cwd())

    if not env_paths:
        logger.debug("No .env file found, using system environment")
        return

    for path in env_paths:
        load_dotenv(path, override=override)
        logger.debug("Loaded environment from %s", path)
