"""Data contracts for the article archive."""

from .article import PUBLISH_TIME_FORMAT, ArticleItem
from .feed import AppMsg, BaseResp, FeedPage, PublishInfo, PublishPage

__all__ = [
    "PUBLISH_TIME_FORMAT",
    "ArticleItem",
    "AppMsg",
    "BaseResp",
    "FeedPage",
    "PublishInfo",
    "PublishPage",
]
