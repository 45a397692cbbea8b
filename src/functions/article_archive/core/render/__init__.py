"""Article page, index and sitemap rendering."""

from .index_builder import IndexArtifacts, IndexBuilder
from .markers import clear_marker, has_marker, marker_path, write_marker
from .page_renderer import ArticleRenderer, RenderResult, extract_article_html

__all__ = [
    "IndexArtifacts",
    "IndexBuilder",
    "ArticleRenderer",
    "RenderResult",
    "extract_article_html",
    "clear_marker",
    "has_marker",
    "marker_path",
    "write_marker",
]
