"""Content processing for Folio.

This module turns content files into ContentItem objects: it parses the
metadata header, expands capture/include directives, renders the body and
derives URLs, dates and the rest of the item attributes.

Key classes:
- ContentItem: Dataclass representing one authored content file.
- Heading: Dataclass representing a heading for TOC generation.
- FileContentLoader: Discovers content files under the site directory.
- LayoutResolver: Maps a declared layout name to a layout template file.
- DefaultItemBuilder: Builds a ContentItem from one source file.
- ContentProcessor: Facade that loads every item of a site.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .directives import DirectiveExpander, parse_directives
from .errors import ContentError, FrontMatterError, LayoutError
from .extractors import (
    CompositeMetadataExtractor,
    default_metadata_extractor,
    metadata_problems,
    read_content,
    split_front_matter,
)
from .includes import IncludeLibrary
from .protocols import ContentLoader
from .renderers import RendererRegistry, default_renderer_registry
from .utils import is_content_file, slugify

LAYOUTS_DIR = "_layouts"
LAYOUT_SUFFIXES = (".html", ".html.jinja", ".jinja")


@dataclass
class Heading:
    """A heading extracted from Markdown content for TOC generation.

    Attributes:
        id: Anchor id for the heading.
        text: Heading text.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


@dataclass
class ContentItem:
    """One authored content file with its metadata and rendered body.

    Attributes:
        layout: Declared layout name.
        tags: Category labels, unique within the item.
        title: Display title.
        body: Raw body text after the metadata header.
        content: Rendered HTML body (directives expanded).
        description: Short description for feeds and meta tags.
        excerpt: Full first paragraph (Markdown items only).
        url: URL path of the item.
        slug: URL-friendly slug.
        date: Publication date.
        draft: Whether the item is a draft.
        group: First folder component (e.g. 'posts').
        path: Source file path.
        folder: Folder path relative to the site directory.
        filename: Source file name.
        source_type: "markdown" or "html".
        layout_template: Layout template file name inside ``_layouts/``.
        front_matter: Every key from the metadata header.
        toc: Headings of the rendered body.
    """

    layout: str
    tags: list[str]
    title: str
    body: str
    content: str
    description: str
    excerpt: str
    url: str
    slug: str
    date: datetime
    draft: bool
    group: str
    path: Path
    folder: str
    filename: str
    source_type: str
    layout_template: str
    front_matter: dict[str, Any] = field(default_factory=dict)
    toc: list[Heading] = field(default_factory=list)


class FileContentLoader:
    """Discovers content files in a site directory.

    Directories starting with ``_`` (layouts, includes) are skipped. Files
    starting with ``_`` are drafts and only returned on request.

    Attributes:
        site_dir: Directory containing site content.
    """

    def __init__(self, site_dir: Path):
        self.site_dir = site_dir

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        """Return content file paths in sorted order.

        Args:
            include_drafts: Whether to include ``_``-prefixed files.

        Returns:
            List of paths to content files.
        """
        files: list[Path] = []
        for path in sorted(self.site_dir.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(self.site_dir)
            if any(part.startswith(("_", ".")) for part in rel.parts[:-1]):
                continue
            if rel.name.startswith("."):
                continue
            if rel.name.startswith("_") and not include_drafts:
                continue
            if is_content_file(path):
                files.append(path)
        return files


class LayoutResolver:
    """Resolves declared layout names to templates in ``_layouts/``.

    Attributes:
        site_dir: Site content directory.
        layout_dir: Directory holding layout templates.
    """

    def __init__(self, site_dir: Path):
        self.site_dir = site_dir
        self.layout_dir = site_dir / LAYOUTS_DIR

    def find(self, layout: str) -> str | None:
        """Return the layout template name for a layout, or None.

        ``post`` resolves to the first of ``post.html``, ``post.html.jinja``,
        ``post.jinja`` or a literal ``post`` file.

        Args:
            layout: Layout name as declared in the metadata header.

        Returns:
            Template file name relative to ``_layouts/``, or None.
        """
        if not layout or ".." in Path(layout).parts or layout.startswith("/"):
            return None
        for suffix in (*LAYOUT_SUFFIXES, ""):
            candidate = self.layout_dir / f"{layout}{suffix}"
            if candidate.is_file():
                return candidate.relative_to(self.layout_dir).as_posix()
        return None

    def resolve(self, layout: str) -> str:
        """Like find, but raise LayoutError when nothing matches."""
        template = self.find(layout)
        if template is None:
            raise LayoutError(f"Layout '{layout}' not found in {LAYOUTS_DIR}/")
        return template

    def names(self) -> list[str]:
        """List layout names available in the layouts directory."""
        if not self.layout_dir.exists():
            return []
        names = set()
        for path in self.layout_dir.rglob("*"):
            if not path.is_file():
                continue
            rel = path.relative_to(self.layout_dir).as_posix()
            for suffix in LAYOUT_SUFFIXES:
                if rel.endswith(suffix):
                    rel = rel[: -len(suffix)]
                    break
            names.add(rel)
        return sorted(names)


class UrlDeriver:
    """Derives URL paths for items from their location in the site."""

    def derive(self, rel: Path, slug: str) -> str:
        """Derive the URL for an item.

        ``index`` files map to their folder, everything else to
        ``/<folder>/<slug>/``.

        Args:
            rel: Path relative to the site directory.
            slug: URL-friendly slug.

        Returns:
            URL path with leading and trailing slash.
        """
        segments = [p for p in rel.parent.parts if p]
        url_parts = segments if slug == "index" else segments + [slug]
        path = "/".join(url_parts)
        return f"/{path}/" if path else "/"


class DefaultItemBuilder:
    """Builds ContentItem objects from source files.

    Coordinates header parsing, metadata extraction, directive expansion and
    body rendering.

    Attributes:
        site_dir: Directory containing site content.
        site: Site data made available to include templates.
        renderer_registry: Registry of body renderers.
        metadata_extractor: Composite metadata extractor.
        layout_resolver: Layout resolver instance.
        includes: Include renderer used for directive expansion.
        url_deriver: URL deriver instance.
    """

    def __init__(
        self,
        site_dir: Path,
        site: dict[str, Any] | None = None,
        renderer_registry: RendererRegistry | None = None,
        metadata_extractor: CompositeMetadataExtractor | None = None,
        includes: IncludeLibrary | None = None,
    ):
        self.site_dir = site_dir
        self.site = site or {}
        self.renderer_registry = renderer_registry or default_renderer_registry
        self.metadata_extractor = metadata_extractor or default_metadata_extractor
        self.layout_resolver = LayoutResolver(site_dir)
        self.includes = includes or IncludeLibrary(site_dir)
        self.url_deriver = UrlDeriver()

    def build(self, path: Path, draft: bool = False) -> ContentItem:
        """Build a ContentItem from a source file.

        Args:
            path: Path to the source file.
            draft: Whether the file is a draft by name.

        Returns:
            ContentItem with rendered content.

        Raises:
            ContentError: If the header, layout or directives violate the
                content contract. The error carries the source path.
        """
        try:
            return self._build(path, draft)
        except ContentError as exc:
            if exc.path is None:
                raise exc.with_path(path) from exc
            raise

    def _build(self, path: Path, draft: bool) -> ContentItem:
        rel = path.relative_to(self.site_dir)
        folder = rel.parent.as_posix() if rel.parent != Path(".") else ""
        header = split_front_matter(read_content(path), path)
        for code, message in metadata_problems(header.data):
            error_cls = LayoutError if code.startswith("layout") else FrontMatterError
            raise error_cls(message, path)
        layout = header.data["layout"].strip()
        layout_template = self.layout_resolver.resolve(layout)

        metadata = self.metadata_extractor.extract(header, path)
        slug = slugify(path.stem)
        url = self.url_deriver.derive(rel, slug)
        draft = draft or header.data.get("published") is False

        renderer = self.renderer_registry.get_renderer(path)
        context = {
            "site": self.site,
            "page": {
                **header.data,
                "title": metadata.get("title"),
                "tags": metadata.get("tags", []),
                "url": url,
                "date": metadata.get("date"),
            },
        }
        document = parse_directives(header.body, first_line=header.body_line)
        expansion = DirectiveExpander(self.includes).expand(document, context)
        if renderer is not None:
            source_type = renderer.source_type
            html, toc = renderer.render(expansion.text)
        else:
            source_type = "unknown"
            html, toc = expansion.text, []
        content = expansion.splice(html)

        return ContentItem(
            layout=layout,
            tags=metadata.get("tags", []),
            title=metadata["title"],
            body=header.body,
            content=content,
            description=metadata.get("description", ""),
            excerpt=metadata.get("excerpt", ""),
            url=url,
            slug=slug,
            date=metadata["date"],
            draft=draft,
            group=Path(folder).parts[0] if folder else "",
            path=path,
            folder=folder,
            filename=path.name,
            source_type=source_type,
            layout_template=layout_template,
            front_matter=header.data,
            toc=toc,
        )


class ContentProcessor:
    """Loads every content item of a site.

    Attributes:
        site_dir: Directory containing site content.
    """

    def __init__(
        self,
        site_dir: Path,
        site: dict[str, Any] | None = None,
        content_loader: ContentLoader | None = None,
        item_builder: DefaultItemBuilder | None = None,
    ):
        self.site_dir = site_dir
        self._content_loader = content_loader or FileContentLoader(site_dir)
        self._item_builder = item_builder or DefaultItemBuilder(site_dir, site=site)

    def load(self, include_drafts: bool = False) -> list[ContentItem]:
        """Load all content files and create ContentItem objects.

        Items whose header sets ``published: false`` are dropped unless
        drafts are included.

        Args:
            include_drafts: Whether to include draft items.

        Returns:
            List of ContentItem objects in path order.
        """
        items: list[ContentItem] = []
        for path in self.files(include_drafts):
            item = self.load_file(path, include_drafts)
            if item is not None:
                items.append(item)
        return items

    def files(self, include_drafts: bool = False) -> list[Path]:
        return self._content_loader.iter_files(include_drafts)

    def load_file(self, path: Path, include_drafts: bool = False) -> ContentItem | None:
        """Build the item for one file, or None for a draft left out."""
        item = self._item_builder.build(path, draft=path.name.startswith("_"))
        if item.draft and not include_drafts:
            return None
        return item
