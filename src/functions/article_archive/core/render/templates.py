"""HTML and sitemap templates for the published site.

Templates are plain ``str.format`` strings; every placeholder except
``content`` must be escaped by the caller.
"""

from __future__ import annotations

STATUS_NO_CONTENT = "无法提取文章内容。请点击下方链接访问原文。"
STATUS_UNREACHABLE = "无法访问文章。请点击下方链接访问原文。"

ARTICLE_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="{language}">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title} - {site_name}</title>
    <meta name="description" content="{digest}">
    <link rel="canonical" href="{canonical_url}">
</head>
<body>
    <header>
        <a href="../../index.html">{site_name}</a>
    </header>
    <article>
        <h1>{title}</h1>
        <p class="meta">{author} · {publish_time}{categories_block}</p>
{cover_block}{digest_block}{status_block}        <div class="content">
{content}
        </div>
{source_block}    </article>
</body>
</html>
"""

COVER_BLOCK = '        <img class="cover" src="{cover}" alt="{title}">\n'
DIGEST_BLOCK = '        <blockquote class="digest">{digest}</blockquote>\n'
STATUS_BLOCK = '        <p class="status">{status}</p>\n'
SOURCE_BLOCK = '        <p class="source"><a href="{link}" rel="noopener" target="_blank">阅读原文</a></p>\n'
CATEGORIES_BLOCK = ' · <span class="categories">{categories}</span>'

INDEX_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="{language}">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{site_name}</title>
    <link rel="canonical" href="{base_url}/">
</head>
<body>
    <header>
        <h1>{site_name}</h1>
        <p>{article_count} articles</p>
    </header>
    <main>
        <ul class="articles">
{entries}
        </ul>
    </main>
</body>
</html>
"""

INDEX_ENTRY_TEMPLATE = (
    '            <li><a href="{url}">{title}</a> '
    '<span class="author">{author}</span> '
    '<time datetime="{iso_date}">{formatted_date}</time></li>'
)

SITEMAP_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"
        xmlns:xhtml="http://www.w3.org/1999/xhtml"
        xmlns:image="http://www.google.com/schemas/sitemap-image/1.1"
        xmlns:news="http://www.google.com/schemas/sitemap-news/0.9">
    <url>
        <loc>{base_url}/</loc>
        <lastmod>{now}</lastmod>
        <changefreq>daily</changefreq>
        <priority>1.0</priority>
        <xhtml:link rel="alternate" hreflang="{language}" href="{base_url}/"/>
        <xhtml:link rel="alternate" hreflang="x-default" href="{base_url}/"/>
    </url>
{entries}
</urlset>
"""

SITEMAP_ENTRY_TEMPLATE = """    <url>
        <loc>{url}</loc>
        <lastmod>{lastmod}</lastmod>
        <changefreq>never</changefreq>
        <priority>0.8</priority>
        <xhtml:link rel="alternate" hreflang="{language}" href="{url}"/>
        <xhtml:link rel="alternate" hreflang="x-default" href="{url}"/>{news}
    </url>"""

SITEMAP_NEWS_TEMPLATE = """
        <news:news>
            <news:publication>
                <news:name>{site_name}</news:name>
                <news:language>{language}</news:language>
            </news:publication>
            <news:publication_date>{lastmod}</news:publication_date>
            <news:title>{title}</news:title>
            <news:keywords>{keywords}</news:keywords>
        </news:news>"""
