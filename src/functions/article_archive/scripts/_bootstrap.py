"""Common bootstrap helpers for CLI scripts."""

from __future__ import annotations

import sys
from pathlib import Path


def configure_path() -> None:
    """Ensure the project root is on ``sys.path`` for package imports.

    _bootstrap.py lives in src/functions/article_archive/scripts/, four
    levels below the project root.
    """
    project_root = Path(__file__).resolve().parents[4]
    root_str = str(project_root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)
