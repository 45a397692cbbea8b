"""Per-article completion markers.

A zero-byte ``.done`` file next to an article's ``index.html`` means the page
was fully written. It is written last, after the page itself.
"""

from __future__ import annotations

from pathlib import Path

MARKER_NAME = ".done"


def article_output_dir(output_dir: Path, article_id: str) -> Path:
    return Path(output_dir) / "articles" / article_id


def marker_path(output_dir: Path, article_id: str) -> Path:
    return article_output_dir(output_dir, article_id) / MARKER_NAME


def has_marker(output_dir: Path, article_id: str) -> bool:
    return marker_path(output_dir, article_id).exists()


def write_marker(output_dir: Path, article_id: str) -> Path:
    path = marker_path(output_dir, article_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return path


def clear_marker(output_dir: Path, article_id: str) -> None:
    marker_path(output_dir, article_id).unlink(missing_ok=True)
