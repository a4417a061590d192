"""Protocol definitions for Folio.

The content pipeline is assembled from small interchangeable parts: body
renderers, metadata extractors, include renderers and content loaders.
These protocols describe the seams so tests and alternative
implementations can be swapped in.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .content import Heading
    from .extractors import FrontMatter


@runtime_checkable
class ContentRenderer(Protocol):
    """Renders a content body (after directive expansion) to HTML."""

    @abstractmethod
    def can_render(self, path: Path) -> bool:
        """Check if this renderer handles the given file."""
        ...

    @abstractmethod
    def render(self, content: str) -> tuple[str, list[Heading]]:
        """Render content to HTML.

        Args:
            content: Body text to render.

        Returns:
            Tuple of (rendered HTML, list of headings for TOC).
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier ('markdown' or 'html')."""
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Derives item attributes from a parsed header."""

    @abstractmethod
    def extract(self, header: FrontMatter, path: Path) -> dict[str, Any]:
        ...


@runtime_checkable
class IncludeRenderer(Protocol):
    """Resolves and renders named include definitions."""

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Check whether an include definition with this name exists."""
        ...

    @abstractmethod
    def render(
        self, name: str, inputs: list[tuple[str, str]], context: dict[str, Any]
    ) -> str:
        """Render an include with captured blocks as positional inputs.

        Args:
            name: Include file name, relative to the includes directory.
            inputs: (capture name, captured text) pairs in argument order.
            context: Extra template variables (page, site).

        Returns:
            Rendered markup.
        """
        ...


@runtime_checkable
class ContentLoader(Protocol):
    """Discovers content files."""

    @abstractmethod
    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        ...
