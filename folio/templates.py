"""Layout rendering for Folio.

Layouts are Jinja2 templates in ``site/_layouts/``. They may extend each
other and include files from ``site/_includes/``.

Key class:
- TemplateEngine: Applies an item's declared layout to its rendered body.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from markupsafe import Markup
from pygments.formatters import HtmlFormatter

from .collections import ItemCollection, TagCollection
from .content import LAYOUTS_DIR, ContentItem, Heading
from .includes import INCLUDES_DIR, create_environment
from .utils import escape_html, join_root_url

__all__ = ["TemplateEngine", "render_toc"]


def render_toc(item: ContentItem) -> Markup:
    """Render an item's headings as a nested ``<ul>`` table of contents.

    Args:
        item: Item whose ``toc`` holds Heading objects.

    Returns:
        Markup-safe HTML, empty when the item has no headings.
    """
    return _render_toc_from_headings(item.toc)


def _render_toc_from_headings(headings: list[Heading]) -> Markup:
    if not headings:
        return Markup("")

    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        else:
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(
            f'<li><a href="#{escape_html(heading.id)}">{escape_html(heading.text)}</a>'
        )

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


class TemplateEngine:
    """Layout rendering engine using Jinja2.

    Attributes:
        site_dir: Site content directory.
        site: Site data (config merged with data files).
        root_url: Base URL applied by ``url_for``.
        env: Jinja2 environment over ``_layouts/`` and ``_includes/``.
        items: Collection of all items.
        tags: Tag name to item collection.
    """

    def __init__(self, site_dir: Path, site: dict[str, Any], root_url: str | None = None):
        """Initialize the template engine.

        Args:
            site_dir: Site content directory.
            site: Site data exposed to layouts as ``site``.
            root_url: Optional base URL for links.
        """
        self.site_dir = site_dir
        self.site = site
        self.root_url = root_url or str(site.get("root_url") or "")
        self.env = create_environment([site_dir / LAYOUTS_DIR, site_dir / INCLUDES_DIR])
        self.items: ItemCollection = ItemCollection([])
        self.tags: TagCollection = TagCollection({})
        self._install_globals()

    def _install_globals(self) -> None:
        self.env.globals["site"] = self.site
        self.env.globals["items"] = self.items
        self.env.globals["tags"] = self.tags
        self.env.globals["url_for"] = self._url_for
        self.env.globals["pygments_css"] = self._pygments_css
        self.env.globals["render_toc"] = render_toc

    @staticmethod
    def _pygments_css() -> Markup:
        """Return Pygments CSS for the ``.highlight`` class."""
        return Markup(HtmlFormatter().get_style_defs(".highlight"))

    def update_collections(
        self, items: Iterable[ContentItem], tags: dict[str, list[ContentItem]]
    ) -> None:
        """Expose the loaded items and tag index to layouts.

        Args:
            items: All items of the build.
            tags: Tag name to list of items.
        """
        self.items = ItemCollection(items)
        self.tags = TagCollection(tags)
        self._install_globals()

    def _url_for(self, path: str) -> str:
        """Generate a URL for a path, applying the root URL if configured."""
        if path.startswith(("http://", "https://", "//")):
            return path
        normalized = path if path.startswith("/") else f"/{path}"
        base = self.root_url or str(self.site.get("url", "") or "")
        return join_root_url(base, normalized) if base else normalized

    def render_item(self, item: ContentItem) -> str:
        """Render an item inside its declared layout.

        Args:
            item: Item to render; ``layout_template`` must name a file in
                ``_layouts/``.

        Returns:
            Rendered HTML string.

        Raises:
            TemplateNotFound: If the layout template disappeared.
        """
        template = self.env.get_template(item.layout_template)
        return template.render(
            content=Markup(item.content),
            page=item,
            front_matter=item.front_matter,
        )
