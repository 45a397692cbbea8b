"""Renders one archived article into a standalone HTML page using httpx and BeautifulSoup."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional, Tuple
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from ..config import SiteConfig
from ..contracts import ArticleItem
from ..errors import RenderError
from . import templates
from .markers import article_output_dir, has_marker, write_marker

# Minimum visible text for a content container to count as the article body
MIN_CONTENT_CHARS = 100

_CONTENT_SELECTORS = ("#js_content", ".rich_media_content", "#js_article")
_STRIP_TAGS = ["script", "style", "link", "iframe"]
_IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


@dataclass
class RenderResult:
    """Outcome of rendering one article."""

    item_id: str
    path: Path
    skipped: bool = False
    content_status: str = ""


def extract_article_html(page_html: str) -> str:
    """Return the cleaned inner HTML of the article body, or "" if none found."""
    soup = BeautifulSoup(page_html, "lxml")
    for selector in _CONTENT_SELECTORS:
        node = soup.select_one(selector)
        if node is None:
            continue
        for tag in node.find_all(_STRIP_TAGS):
            tag.decompose()
        # Lazy-loaded images keep the real URL in data-src
        for img in node.find_all("img"):
            if img.get("data-src"):
                img["src"] = img["data-src"]
            for attr in [name for name in img.attrs if name.startswith("data-")]:
                del img[attr]
        node.attrs.pop("style", None)
        if len(node.get_text(strip=True)) > MIN_CONTENT_CHARS:
            return node.decode_contents().strip()
    return ""


def _normalize_url(url: str) -> str:
    return "https:" + url if url.startswith("//") else url


class ArticleRenderer:
    """Produces ``articles/<id>/index.html`` plus its completion marker.

    Rendering is idempotent: the page is rewritten atomically and the
    marker is written only after the page is complete, so a retried or
    re-invoked render either short-circuits on the marker or overwrites a
    partial page.
    """

    _DEFAULT_HEADERS = {
        "User-Agent": (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/121.0.0.0 Safari/537.36"
        ),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    }

    def __init__(
        self,
        output_dir: Path,
        site: Optional[SiteConfig] = None,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = 20.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.site = site or SiteConfig()
        self._client = client or httpx.Client(
            headers=self._DEFAULT_HEADERS, follow_redirects=True, timeout=timeout
        )
        self._logger = logger or logging.getLogger(__name__)

    def initialize(self) -> None:
        (self.output_dir / "articles").mkdir(parents=True, exist_ok=True)

    def is_complete(self, item: ArticleItem) -> bool:
        return has_marker(self.output_dir, item.id)

    def render_item(self, item: ArticleItem, *, force: bool = False) -> RenderResult:
        """Render ``item`` unless its completion marker already exists.

        Args:
            item: Article to render
            force: Ignore an existing marker and rewrite the page

        Returns:
            RenderResult describing what happened

        Raises:
            RenderError: On transport failures worth retrying
        """
        article_dir = article_output_dir(self.output_dir, item.id)
        page_path = article_dir / "index.html"

        if not force and self.is_complete(item):
            self._logger.info("Skipping article %s: already rendered", item.id)
            return RenderResult(item_id=item.id, path=page_path, skipped=True)

        content, status = self._fetch_content(item)
        cover = self._download_cover(item, article_dir)

        article_dir.mkdir(parents=True, exist_ok=True)
        page = self.build_page(item, content=content, status=status, cover=cover)
        temp_path = page_path.with_suffix(".tmp")
        try:
            temp_path.write_text(page, encoding="utf-8")
            temp_path.replace(page_path)
        except OSError as exc:
            raise RenderError(f"Failed to write page for {item.id}: {exc}") from exc

        write_marker(self.output_dir, item.id)
        self._logger.info("Generated page for article %s - %s", item.id, item.title)
        return RenderResult(item_id=item.id, path=page_path, content_status=status)

    def _fetch_content(self, item: ArticleItem) -> Tuple[str, str]:
        """Fetch and extract the article body.

        Returns:
            Tuple of (content HTML, status message shown when content is missing)
        """
        if not item.link:
            return "", ""

        self._logger.debug("Fetching content from %s", item.link)
        try:
            response = self._client.get(_normalize_url(item.link))
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._logger.warning("Article %s returned HTTP %s", item.id, exc.response.status_code)
            return "", templates.STATUS_UNREACHABLE
        except httpx.HTTPError as exc:
            raise RenderError(f"Failed to fetch article {item.id}: {exc}") from exc

        content = extract_article_html(response.text)
        if not content:
            self._logger.warning("No article body found for %s", item.id)
            return "", templates.STATUS_NO_CONTENT
        return content, ""

    def _download_cover(self, item: ArticleItem, article_dir: Path) -> str:
        """Download the cover image; fall back to the remote URL on failure."""
        if not item.cover:
            return ""
        cover_url = _normalize_url(item.cover)
        if not cover_url.startswith(("http://", "https://")):
            return item.cover

        suffix = PurePosixPath(urlparse(cover_url).path).suffix.lower()
        filename = f"cover{suffix if suffix in _IMAGE_SUFFIXES else '.jpg'}"
        try:
            response = self._client.get(cover_url)
            response.raise_for_status()
            images_dir = article_dir / "images"
            images_dir.mkdir(parents=True, exist_ok=True)
            (images_dir / filename).write_bytes(response.content)
        except (httpx.HTTPError, OSError) as exc:
            self._logger.warning("Error downloading cover for %s: %s", item.id, exc)
            return cover_url
        return f"images/{filename}"

    def build_page(self, item: ArticleItem, *, content: str, status: str, cover: str) -> str:
        esc = html.escape
        title = esc(item.title)
        categories = ", ".join(item.categories)
        return templates.ARTICLE_PAGE_TEMPLATE.format(
            language=esc(self.site.language),
            title=title,
            site_name=esc(self.site.name),
            digest=esc(item.digest or ""),
            canonical_url=esc(f"{self.site.base_url}/articles/{item.id}/index.html"),
            author=esc(item.author or self.site.default_author),
            publish_time=esc(item.publish_time or ""),
            categories_block=templates.CATEGORIES_BLOCK.format(categories=esc(categories)) if categories else "",
            cover_block=templates.COVER_BLOCK.format(cover=esc(cover), title=title) if cover else "",
            digest_block=templates.DIGEST_BLOCK.format(digest=esc(item.digest)) if item.digest else "",
            status_block=templates.STATUS_BLOCK.format(status=esc(status)) if status else "",
            content=content,
            source_block=templates.SOURCE_BLOCK.format(link=esc(item.link)) if item.link else "",
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
