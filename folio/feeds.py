"""Feed generation for Folio.

Generates ``sitemap.xml`` and ``rss.xml`` from the built items. Feeds are
only written when the site data sets ``url``. Output depends only on the
items, so rebuilding unchanged content yields identical feeds.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates sitemap.xml.
    RSSGenerator: Generates an RSS 2.0 feed.
    FeedRegistry: Runs every registered generator.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .utils import escape_html

if TYPE_CHECKING:
    from .content import ContentItem

RFC822 = "%a, %d %b %Y %H:%M:%S +0000"


def _base_url(site: dict[str, Any]) -> str:
    return str(site.get("url", "") or "").rstrip("/")


class FeedGenerator(ABC):
    """Base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Output filename such as 'sitemap.xml'."""
        ...

    @abstractmethod
    def generate(self, items: list[ContentItem], site: dict[str, Any]) -> str | None:
        """Generate feed content, or None when the feed cannot be produced."""
        ...

    def write(self, output_dir: Path, items: list[ContentItem], site: dict[str, Any]) -> bool:
        """Generate and write the feed.

        Returns:
            True if the feed was written, False if skipped.
        """
        content = self.generate(items, site)
        if content is None:
            return False
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return True


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml following the sitemaps.org protocol."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, items: list[ContentItem], site: dict[str, Any]) -> str | None:
        base_url = _base_url(site)
        if not base_url:
            return None
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for item in sorted(items, key=lambda i: i.url):
            loc = escape_html(f"{base_url}{item.url}")
            lastmod = item.date.strftime("%Y-%m-%d")
            lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed, newest items first.

    Only items whose group matches ``feed_group`` in the site data (default
    ``posts``) are included; when no item matches, every item is used.
    ``lastBuildDate`` is the newest item date.
    """

    @property
    def filename(self) -> str:
        return "rss.xml"

    def generate(self, items: list[ContentItem], site: dict[str, Any]) -> str | None:
        base_url = _base_url(site)
        if not base_url:
            return None
        group = site.get("feed_group", "posts")
        selected = [i for i in items if i.group == group] or list(items)
        selected.sort(key=lambda i: (i.date, i.url), reverse=True)
        limit = int(site.get("feed_limit", 20) or 0)
        if limit > 0:
            selected = selected[:limit]

        title = escape_html(str(site.get("title", "Folio Feed")))
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{title}</title>",
            f"<link>{escape_html(base_url)}/</link>",
            f"<description>{escape_html(str(site.get('description', '') or title))}</description>",
        ]
        if selected:
            rss.append(f"<lastBuildDate>{selected[0].date.strftime(RFC822)}</lastBuildDate>")
        for item in selected:
            link = escape_html(f"{base_url}{item.url}")
            categories = "".join(
                f"<category>{escape_html(tag)}</category>" for tag in item.tags
            )
            rss.append(
                f"<item><title>{escape_html(item.title)}</title><link>{link}</link>"
                f"<guid>{link}</guid>"
                f"<description>{escape_html(item.description or item.title)}</description>"
                f"{categories}<pubDate>{item.date.strftime(RFC822)}</pubDate></item>"
            )
        rss.append("</channel></rss>")
        return "\n".join(rss) + "\n"


class FeedRegistry:
    """Runs every registered feed generator during a build."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self, output_dir: Path, items: Iterable[ContentItem], site: dict[str, Any]
    ) -> list[str]:
        """Generate all registered feeds.

        Returns:
            Filenames that were written.
        """
        item_list = list(items)
        return [
            generator.filename
            for generator in self._generators
            if generator.write(output_dir, item_list, site)
        ]


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with the sitemap and RSS generators."""
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
