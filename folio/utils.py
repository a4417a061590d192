"""Utility functions for Folio.

String, path and date helpers shared by the content pipeline, the build and
the CLI.

Key functions:
    slugify: Convert filenames to URL slugs.
    titleize: Convert filenames to human-readable titles.
    extract_date_from_name: Extract date from a YYYY-MM-DD filename prefix.
    normalize_tags: Coerce a header `tags` value into a list of labels.
    escape_html: Escape special HTML characters.
    absolutize_html_urls: Rewrite root-relative URLs against a base URL.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path
from typing import Any

_URL_ATTR_RE = re.compile(
    r'(?P<prefix>\b(?:href|src|action)=["\'])(?P<url>/[^"\']*)(?P<suffix>["\'])'
)


def _strip_date_prefix(stem: str) -> str:
    parts = stem.split("-")
    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        return "-".join(parts[3:])
    return stem


def slugify(name: str) -> str:
    """Convert a filename stem to a slug, dropping any date prefix.

    Args:
        name: Filename stem.

    Returns:
        URL-friendly slug, or "index" when nothing usable remains.
    """
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", _strip_date_prefix(name))
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'
    """
    base = _strip_date_prefix(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with a YYYY-MM-DD prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        datetime if a valid date prefix is found, None otherwise.
    """
    parts = name.split("-")
    if len(parts) >= 3 and all(p.isdigit() for p in parts[:3]):
        try:
            return datetime(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None
    return None


def coerce_datetime(value: Any) -> datetime | None:
    """Turn a header `date` value into a datetime.

    PyYAML already yields date/datetime objects for ISO dates; strings are
    parsed with ``datetime.fromisoformat``.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).replace(tzinfo=None)
        except ValueError:
            return None
    return None


def normalize_tags(value: Any) -> list[str]:
    """Coerce a header `tags` value into a list of unique labels.

    Accepts a YAML list or a whitespace-separated string. Order of first
    appearance is kept.

    Examples:
        >>> normalize_tags("python  blog python")
        ['python', 'blog']
    """
    if value is None:
        return []
    if isinstance(value, str):
        candidates: Iterable[Any] = value.split()
    else:
        candidates = value
    seen: list[str] = []
    for tag in candidates:
        label = str(tag).strip()
        if label and label not in seen:
            seen.append(label)
    return seen


def first_paragraph(text: str, limit: int = 160) -> str:
    """Extract and clean the first prose paragraph from text.

    Headings, images, fences and HTML tags are skipped or stripped, and
    whitespace is collapsed.
    """
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    for para in paragraphs:
        if para.startswith(("#", "![", "```", "{%")):
            continue
        para = re.sub(r"<[^>]+>", "", para)
        para = re.sub(r"\{[%{].*?[%}]\}", "", para, flags=re.DOTALL)
        collapsed = " ".join(para.split())
        if collapsed:
            return collapsed[:limit]
    return ""


def escape_html(text: str) -> str:
    """Escape ``& < > "`` for inclusion in HTML or XML text."""
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def join_root_url(root_url: str, path: str) -> str:
    """Join a root URL and a path without doubling slashes.

    Examples:
        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{root_url.rstrip('/')}{suffix}"


def absolutize_html_urls(html: str, root_url: str) -> str:
    """Rewrite root-relative href/src/action URLs to absolute URLs.

    Protocol-relative URLs (``//cdn``) are left alone.
    """
    if not root_url:
        return html

    def repl(match: re.Match) -> str:
        url = match.group("url")
        if url.startswith("//"):
            return match.group(0)
        return f"{match.group('prefix')}{join_root_url(root_url, url)}{match.group('suffix')}"

    return _URL_ATTR_RE.sub(repl, html)


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


def is_markdown(path: Path) -> bool:
    return path.suffix.lower() in (".md", ".markdown")


def is_html(path: Path) -> bool:
    return path.suffix.lower() in (".html", ".htm")


def is_content_file(path: Path) -> bool:
    """Check whether a file is processed as a content item."""
    return is_markdown(path) or is_html(path)


def line_of(text: str, offset: int) -> int:
    """Return the 1-based line number of a character offset."""
    return text.count("\n", 0, offset) + 1


def extract_number_from_name(name: str) -> int | None:
    """Extract a leading ordering number, after any date prefix.

    Handles filenames like "01-intro" and "2024-01-15-02-part-two".
    """
    parts = name.split("-")
    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        return int(parts[3]) if parts[3].isdigit() else None
    if parts and parts[0].isdigit():
        return int(parts[0])
    return None


def build_tags_index(items: Iterable) -> dict[str, list]:
    """Build an index mapping tags to the items carrying them.

    Args:
        items: Iterable of objects with a ``tags`` attribute.

    Returns:
        Dictionary of tag name to list of items, keys in sorted order.
    """
    tags: dict[str, list] = {}
    for item in items:
        for tag in item.tags:
            tags.setdefault(tag, []).append(item)
    return {name: tags[name] for name in sorted(tags)}
