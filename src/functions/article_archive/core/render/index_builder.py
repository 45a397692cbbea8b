"""Index page and sitemap generation."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional
from xml.sax.saxutils import escape as xml_escape

from ..config import SiteConfig
from ..contracts import ArticleItem
from . import templates

logger = logging.getLogger(__name__)


@dataclass
class IndexArtifacts:
    index_path: Path
    sitemap_path: Path
    article_count: int


def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(path.suffix + ".tmp")
    temp_path.write_text(text, encoding="utf-8")
    temp_path.replace(path)


def _iso(item: ArticleItem, fallback: datetime) -> str:
    published = item.published_at
    moment = published.replace(tzinfo=timezone.utc) if published else fallback
    return moment.isoformat(timespec="seconds")


class IndexBuilder:
    """Writes ``index.html`` and ``sitemap.xml`` for a set of articles.

    Both files are rewritten in full on every call, so building twice from
    the same articles yields the same site.
    """

    def __init__(self, output_dir: Path, site: Optional[SiteConfig] = None) -> None:
        self.output_dir = Path(output_dir)
        self.site = site or SiteConfig()

    @property
    def index_path(self) -> Path:
        return self.output_dir / "index.html"

    @property
    def sitemap_path(self) -> Path:
        return self.output_dir / "sitemap.xml"

    def build_index(self, items: Iterable[ArticleItem]) -> IndexArtifacts:
        """Generate index page and sitemap.

        Args:
            items: Articles to publish (any order; output is newest-first)

        Returns:
            Paths of the written files and the number of articles listed
        """
        ordered = sorted(items, key=lambda item: item.sort_key(), reverse=True)
        now = datetime.now(timezone.utc)

        _write_atomic(self.index_path, self.render_index(ordered))
        logger.info("Generated index.html with %d articles", len(ordered))

        _write_atomic(self.sitemap_path, self.render_sitemap(ordered, now=now))
        logger.info("Generated sitemap.xml with %d articles", len(ordered))

        return IndexArtifacts(
            index_path=self.index_path,
            sitemap_path=self.sitemap_path,
            article_count=len(ordered),
        )

    def render_index(self, ordered: List[ArticleItem]) -> str:
        esc = html.escape
        entries = []
        for item in ordered:
            published = item.published_at
            entries.append(
                templates.INDEX_ENTRY_TEMPLATE.format(
                    url=esc(f"articles/{item.id}/index.html"),
                    title=esc(item.title),
                    author=esc(item.author or self.site.default_author),
                    iso_date=published.strftime("%Y-%m-%d") if published else "",
                    formatted_date=f"{published.year}/{published.month}/{published.day}" if published else "",
                )
            )
        return templates.INDEX_PAGE_TEMPLATE.format(
            language=esc(self.site.language),
            site_name=esc(self.site.name),
            base_url=esc(self.site.base_url),
            article_count=len(ordered),
            entries="\n".join(entries),
        )

    def render_sitemap(self, ordered: List[ArticleItem], *, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        base_url = xml_escape(self.site.base_url)
        language = xml_escape(self.site.language)
        entries = []
        for item in ordered:
            url = xml_escape(f"{self.site.base_url}/articles/{item.id}/index.html")
            lastmod = _iso(item, now)
            news = ""
            if item.categories:
                news = templates.SITEMAP_NEWS_TEMPLATE.format(
                    site_name=xml_escape(self.site.name),
                    language=language,
                    lastmod=lastmod,
                    title=xml_escape(item.title, {'"': "&quot;", "'": "&apos;"}),
                    keywords=xml_escape(",".join(item.categories), {'"': "&quot;", "'": "&apos;"}),
                )
            entries.append(
                templates.SITEMAP_ENTRY_TEMPLATE.format(url=url, lastmod=lastmod, language=language, news=news)
            )
        return templates.SITEMAP_TEMPLATE.format(
            base_url=base_url,
            now=now.isoformat(timespec="seconds"),
            language=language,
            entries="\n".join(entries),
        )
