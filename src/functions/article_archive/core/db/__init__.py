"""Archive persistence."""

from .archive import ArchiveStore, ArchiveWorkSource

__all__ = ["ArchiveStore", "ArchiveWorkSource"]
