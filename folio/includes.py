"""Include definitions for Folio.

Include definitions live in ``site/_includes/`` and are Jinja2 templates.
An include receives the captured blocks passed to it positionally:

- ``inputs``: list of captured texts, in argument order.
- ``include``: mapping of capture name to captured text.
- ``page`` and ``site`` from the rendering context.

Captured text is raw Markdown; templates turn it into HTML with the
``markdownify`` filter, e.g. ``{{ inputs[0] | markdownify }}``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from markupsafe import Markup

from .renderers import markdownify

INCLUDES_DIR = "_includes"


def _markdownify_filter(text: Any) -> Markup:
    return Markup(markdownify(str(text or "")))


def create_environment(search_path: list[Path]) -> Environment:
    """Create the Jinja2 environment shared by includes and layouts."""
    env = Environment(
        loader=FileSystemLoader([str(path) for path in search_path]),
        autoescape=select_autoescape(["html", "xml"]),
    )
    env.filters["markdownify"] = _markdownify_filter
    return env


class IncludeLibrary:
    """Resolves and renders include definitions from a site directory.

    Attributes:
        site_dir: Site content directory.
        include_dir: Directory holding include definitions.
        env: Jinja2 environment used to render includes.
    """

    def __init__(self, site_dir: Path, env: Environment | None = None):
        self.site_dir = site_dir
        self.include_dir = site_dir / INCLUDES_DIR
        self.env = env or create_environment([self.include_dir])

    def exists(self, name: str) -> bool:
        """Check whether ``_includes/<name>`` is a file."""
        return (self.include_dir / name).is_file()

    def names(self) -> list[str]:
        """List include names available in the includes directory."""
        if not self.include_dir.exists():
            return []
        return sorted(
            path.relative_to(self.include_dir).as_posix()
            for path in self.include_dir.rglob("*")
            if path.is_file()
        )

    def render(
        self, name: str, inputs: list[tuple[str, str]], context: dict[str, Any]
    ) -> str:
        """Render an include with captured blocks.

        Args:
            name: Include file name relative to ``_includes/``.
            inputs: (capture name, captured text) pairs in argument order.
            context: Extra template variables.

        Returns:
            Rendered markup.

        Raises:
            TemplateNotFound: If the include does not exist.
        """
        if not self.exists(name):
            raise TemplateNotFound(name)
        template = self.env.get_template(name)
        variables = dict(context)
        variables["inputs"] = [text for _, text in inputs]
        variables["include"] = dict(inputs)
        return template.render(**variables)
