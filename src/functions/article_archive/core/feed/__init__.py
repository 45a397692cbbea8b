"""Feed client and archive ingestion."""

from .client import PUBLISH_LIST_URL, WeChatFeedClient
from .ingest import ArchiveIngestor, IngestResult

__all__ = ["PUBLISH_LIST_URL", "WeChatFeedClient", "ArchiveIngestor", "IngestResult"]
