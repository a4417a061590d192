"""Site building for Folio.

Loads configuration and site data, turns every content file into a
ContentItem, applies layouts and writes the static output tree.

Key functions:
- build_site: Build the entire site.
- load_config: Load configuration from folio.yaml.
- load_data: Load site data from YAML files in the data directory.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jinja2 import TemplateSyntaxError

from .content import ContentItem, ContentProcessor
from .errors import ContentError
from .feeds import create_default_feed_registry
from .templates import TemplateEngine
from .utils import absolutize_html_urls, build_tags_index, ensure_clean_dir

CONFIG_FILE = "folio.yaml"

DEFAULT_CONFIG = {
    "output_dir": "output",
    "site_dir": "site",
    "assets_dir": "assets",
    "data_dir": "data",
    "port": 4000,
    "root_url": "",
}

# Config keys that are also exposed to layouts as site data.
SITE_KEYS = ("title", "url", "description", "author")


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        line: Line number in the source file, when known.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
        line: int | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.line = line
        self.original_error = original_error
        location = f"{source_path}:{line}" if line is not None else f"{source_path}"
        super().__init__(f"{location}: {message}")


@dataclass
class BuildResult:
    """Result of a site build.

    Attributes:
        items: Every item that was written.
        output_dir: Directory where the site was built.
        site: Site data passed to layouts.
        feeds: Feed filenames that were written.
    """

    items: list[ContentItem]
    output_dir: Path
    site: dict[str, Any]
    feeds: list[str]


def load_config(project_root: Path) -> dict[str, Any]:
    """Load configuration from folio.yaml, with defaults applied.

    Args:
        project_root: Root directory of the project.

    Returns:
        Configuration dictionary.
    """
    config = DEFAULT_CONFIG.copy()
    config_path = project_root / CONFIG_FILE
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if isinstance(loaded, dict):
            config.update(loaded)
    return config


def load_data(project_root: Path, config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Load site data from YAML files in the data directory.

    ``site.yaml`` is merged at the top level; any other ``<name>.yaml`` is
    exposed under ``<name>``. Config values for title, url, description and
    author are used where the data files do not set them.

    Args:
        project_root: Root directory of the project.
        config: Loaded configuration.

    Returns:
        Site data dictionary.

    Raises:
        BuildError: If a data file cannot be parsed.
    """
    config = config or load_config(project_root)
    data_dir = project_root / config.get("data_dir", "data")
    data: dict[str, Any] = {}
    if data_dir.exists():
        for path in sorted(data_dir.glob("*.y*ml")):
            try:
                with open(path, encoding="utf-8") as f:
                    payload = yaml.safe_load(f)
            except (yaml.YAMLError, UnicodeDecodeError) as exc:
                mark = getattr(exc, "problem_mark", None)
                raise BuildError(
                    path,
                    f"Invalid data file: {_format_error_message(exc)}",
                    exc,
                    line=mark.line + 1 if mark is not None else None,
                ) from exc
            if payload is None:
                continue
            if path.stem == "site" and isinstance(payload, dict):
                data.update(payload)
            else:
                data[path.stem] = payload
    for key in SITE_KEYS:
        if key in config:
            data.setdefault(key, config[key])
    return data


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    root_url: str | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to include drafts.
        root_url: Optional base URL to absolutize links with.
        clean_output: Whether to wipe the output directory first.
        output_dir_override: Write here instead of the configured output_dir.

    Returns:
        BuildResult with every item, the output directory and site data.

    Raises:
        FileNotFoundError: If the site directory does not exist.
        BuildError: If any content file fails to load or render.
    """
    config = load_config(project_root)
    if root_url is not None:
        config["root_url"] = root_url
    site_dir = project_root / config.get("site_dir", "site")
    if not site_dir.exists():
        raise FileNotFoundError(f"Expected site directory at {site_dir}")
    output_dir = output_dir_override or (project_root / config.get("output_dir", "output"))

    site = load_data(project_root, config)
    resolved_root = str(config.get("root_url") or "")
    if resolved_root:
        site.setdefault("root_url", resolved_root)

    processor = ContentProcessor(site_dir, site=site)
    items: list[ContentItem] = []
    for path in processor.files(include_drafts):
        try:
            item = processor.load_file(path, include_drafts)
        except ContentError as exc:
            raise BuildError(exc.path or path, exc.message, exc, line=exc.line) from exc
        except Exception as exc:
            raise BuildError(path, _format_error_message(exc), exc) from exc
        if item is not None:
            items.append(item)
    _check_unique_urls(items)

    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    engine = TemplateEngine(site_dir, site, root_url=resolved_root)
    engine.update_collections(items, build_tags_index(items))
    for item in items:
        try:
            rendered = engine.render_item(item)
        except TemplateSyntaxError as exc:
            raise BuildError(
                item.path,
                f"Template syntax error in {exc.name or 'layout'} on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc
        except Exception as exc:
            raise BuildError(item.path, _format_error_message(exc), exc) from exc
        if resolved_root:
            rendered = absolutize_html_urls(rendered, resolved_root)
        _write_item(output_dir, item, rendered)

    _copy_assets(project_root / config.get("assets_dir", "assets"), output_dir / "assets")
    published = [item for item in items if not item.draft]
    feeds = create_default_feed_registry().generate_all(output_dir, published, site)
    return BuildResult(items=items, output_dir=output_dir, site=site, feeds=feeds)


def _check_unique_urls(items: list[ContentItem]) -> None:
    seen: dict[str, ContentItem] = {}
    for item in items:
        other = seen.get(item.url)
        if other is not None:
            raise BuildError(
                item.path, f"URL {item.url} is already produced by {other.path.name}"
            )
        seen[item.url] = item


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message."""
    error_type = type(exc).__name__
    if error_type == "UndefinedError":
        return f"Undefined variable: {exc}"
    if error_type == "TemplateNotFound":
        return f"Template not found: {exc}"
    return f"{error_type}: {exc}"


def _write_item(output_dir: Path, item: ContentItem, rendered: str) -> None:
    """Write a rendered item to ``<output_dir>/<url>/index.html``."""
    target_dir = output_dir / item.url.strip("/")
    target_dir.mkdir(parents=True, exist_ok=True)
    (target_dir / "index.html").write_text(rendered, encoding="utf-8")


def _copy_assets(assets_dir: Path, dest: Path) -> None:
    """Copy static assets verbatim into the output tree."""
    if not assets_dir.exists():
        return
    shutil.copytree(assets_dir, dest, dirs_exist_ok=True)
