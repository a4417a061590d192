"""Body renderers for Folio.

Each renderer handles one content type:

- MarkdownRenderer: Markdown to HTML with heading ids and Pygments
  highlighting. Raw HTML (including include placeholders) passes through.
- HTMLRenderer: Passes HTML bodies through unchanged.
"""

from __future__ import annotations

import re
from pathlib import Path

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .protocols import ContentRenderer
from .utils import escape_html, is_html, is_markdown

MARKDOWN_PLUGINS = ["strikethrough", "footnotes", "table", "url"]


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly anchor id from heading text."""
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-") or "section"


class _HighlightRenderer(mistune.HTMLRenderer):
    """Mistune renderer adding heading ids and syntax highlighting.

    Attributes:
        headings: Heading objects collected during rendering, in order.
    """

    def __init__(self):
        super().__init__(escape=False)
        self.headings: list = []
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        # Import here to avoid circular imports
        from .content import Heading

        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id

        self.headings.append(Heading(id=heading_id, text=text, level=level))
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a fenced code block, highlighted when the language is known."""
        lang = info.split()[0] if info else ""
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{escape_html(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown bodies to HTML."""

    @property
    def source_type(self) -> str:
        return "markdown"

    def can_render(self, path: Path) -> bool:
        return is_markdown(path)

    def render(self, content: str) -> tuple[str, list]:
        """Render Markdown content to HTML.

        Args:
            content: Markdown source.

        Returns:
            Tuple of (rendered HTML, list of Heading objects).
        """
        renderer = _HighlightRenderer()
        markdown = mistune.create_markdown(renderer=renderer, plugins=MARKDOWN_PLUGINS)
        return markdown(content), renderer.headings


class HTMLRenderer:
    """Passes HTML bodies through unchanged."""

    @property
    def source_type(self) -> str:
        return "html"

    def can_render(self, path: Path) -> bool:
        return is_html(path)

    def render(self, content: str) -> tuple[str, list]:
        return content, []


class RendererRegistry:
    """Registry for body renderers.

    New content types can be supported by registering another renderer.
    """

    def __init__(self):
        self._renderers: list[ContentRenderer] = []
        self.register(MarkdownRenderer())
        self.register(HTMLRenderer())

    def register(self, renderer: ContentRenderer) -> None:
        """Register a renderer; earlier registrations win."""
        self._renderers.append(renderer)

    def get_renderer(self, path: Path) -> ContentRenderer | None:
        """Return the first renderer that can handle the file, or None."""
        for renderer in self._renderers:
            if renderer.can_render(path):
                return renderer
        return None


def markdownify(text: str) -> str:
    """Render a Markdown fragment to HTML, discarding headings."""
    html, _ = MarkdownRenderer().render(text)
    return html


default_renderer_registry = RendererRegistry()
