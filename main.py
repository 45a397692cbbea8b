"""Deployment wrapper for the article archive Cloud Function."""

from __future__ import annotations

import sys
from pathlib import Path

import flask

project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from src.functions.article_archive.functions.main import archive_batch


def article_archive_handler(request: flask.Request) -> flask.Response:
    """Entry point named in the deploy command (``--entry-point article_archive_handler``)."""
    return archive_batch(request)
