"""Metadata header parsing and metadata extractors for Folio.

Every content file starts with a YAML header delimited by ``---`` lines.
``split_front_matter`` parses it strictly; the extractors then derive the
item attributes (title, tags, date, description) from the header, the body
and the file itself, each extractor handling one attribute.

Key classes:
- FrontMatter: Parsed header plus the body that follows it.
- TitleExtractor, TagExtractor, DateExtractor, DescriptionExtractor.
- CompositeMetadataExtractor: Runs a list of extractors and merges results.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from .errors import FrontMatterError
from .protocols import MetadataExtractor
from .utils import (
    coerce_datetime,
    extract_date_from_name,
    first_paragraph,
    line_of,
    normalize_tags,
    titleize,
)

HEADER_DELIMITER = "---"


@dataclass
class FrontMatter:
    """A parsed metadata header.

    Attributes:
        data: The header mapping.
        body: Text following the closing delimiter.
        body_line: 1-based line number in the file where the body starts.
    """

    data: dict[str, Any]
    body: str
    body_line: int


def read_content(path: Path) -> str:
    """Read a content file as UTF-8.

    Raises:
        FrontMatterError: If the file is not valid UTF-8; the line is the
            one holding the first undecodable byte.
    """
    raw = path.read_bytes()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        valid = raw[: exc.start].decode("utf-8")
        raise FrontMatterError(
            f"File is not valid UTF-8: {exc.reason} at byte {exc.start}",
            path,
            line_of(valid, len(valid)),
        ) from exc


def split_front_matter(text: str, path: Path | None = None) -> FrontMatter:
    """Split a content file into its metadata header and body.

    Args:
        text: Raw file content.
        path: Source path, used in error messages.

    Returns:
        FrontMatter with the header mapping and the remaining body.

    Raises:
        FrontMatterError: If the header is missing, unterminated, not valid
            YAML, or not a mapping.
    """
    lines = text.lstrip("\ufeff").splitlines(keepends=True)
    if not lines or lines[0].rstrip() != HEADER_DELIMITER:
        raise FrontMatterError(
            "Missing metadata header (expected '---' on the first line)", path, 1
        )
    for index in range(1, len(lines)):
        if lines[index].rstrip() == HEADER_DELIMITER:
            break
    else:
        raise FrontMatterError("Unterminated metadata header", path, 1)

    raw = "".join(lines[1:index])
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = mark.line + 2 if mark is not None else None
        problem = getattr(exc, "problem", None) or str(exc)
        raise FrontMatterError(
            f"Invalid YAML in metadata header: {problem}", path, line
        ) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError(
            f"Metadata header must be a mapping, got {type(data).__name__}", path, 2
        )
    return FrontMatter(data=data, body="".join(lines[index + 1 :]), body_line=index + 2)


def metadata_problems(data: dict[str, Any]) -> list[tuple[str, str]]:
    """Return contract problems in a header mapping as (code, message) pairs."""
    problems: list[tuple[str, str]] = []
    layout = data.get("layout")
    if layout is None or (isinstance(layout, str) and not layout.strip()):
        problems.append(("layout-missing", "Metadata header does not declare a layout"))
    elif not isinstance(layout, str):
        problems.append(("metadata", "'layout' must be a string"))
    if "title" in data and not isinstance(data["title"], str):
        problems.append(("metadata", "'title' must be a string"))
    tags = data.get("tags")
    if tags is not None:
        if isinstance(tags, (list, tuple)):
            if not all(isinstance(tag, (str, int, float)) for tag in tags):
                problems.append(("metadata", "'tags' must contain only plain labels"))
        elif not isinstance(tags, str):
            problems.append(("metadata", "'tags' must be a list or a string"))
    return problems


class TitleExtractor:
    """Title from the header, then the first ``# Heading``, then the filename."""

    def extract(self, header: FrontMatter, path: Path) -> dict[str, Any]:
        title = header.data.get("title")
        if isinstance(title, str) and title.strip():
            return {"title": title.strip()}
        for line in header.body.splitlines():
            stripped = line.strip()
            if stripped.startswith("# "):
                return {"title": stripped[2:].strip()}
        return {"title": titleize(path.name)}


class TagExtractor:
    def extract(self, header: FrontMatter, path: Path) -> dict[str, Any]:
        return {"tags": normalize_tags(header.data.get("tags"))}


class DateExtractor:
    """Extracts the publication date.

    Looks at the header ``date`` key, then a YYYY-MM-DD filename prefix,
    falling back to the file modification time.
    """

    def extract(self, header: FrontMatter, path: Path) -> dict[str, Any]:
        date = coerce_datetime(header.data.get("date"))
        if date is None:
            date = extract_date_from_name(path.stem)
        if date is None:
            date = datetime.fromtimestamp(path.stat().st_mtime).replace(microsecond=0)
        return {"date": date}


class DescriptionExtractor:
    """Extracts description and excerpt.

    The description is the header ``description`` or the first paragraph
    truncated to 160 characters; Markdown items also get the full first
    paragraph as excerpt.
    """

    def extract(self, header: FrontMatter, path: Path) -> dict[str, Any]:
        description = header.data.get("description")
        if not isinstance(description, str) or not description.strip():
            description = first_paragraph(header.body)
        excerpt = ""
        if path.suffix.lower() in (".md", ".markdown"):
            excerpt = first_paragraph(header.body, limit=10_000)
        return {"description": description.strip(), "excerpt": excerpt}


class CompositeMetadataExtractor:
    """Combines multiple metadata extractors.

    Runs every registered extractor and merges their results; later
    extractors override earlier ones.
    """

    def __init__(self, extractors: list[MetadataExtractor] | None = None):
        if extractors is None:
            self._extractors = [
                TitleExtractor(),
                TagExtractor(),
                DateExtractor(),
                DescriptionExtractor(),
            ]
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor: MetadataExtractor) -> None:
        """Add an extractor to the composite.

        Args:
            extractor: Object with ``extract(header, path) -> dict``.
        """
        self._extractors.append(extractor)

    def extract(self, header: FrontMatter, path: Path) -> dict[str, Any]:
        """Extract all metadata for one content file.

        Args:
            header: Parsed metadata header and body.
            path: Path to the source file.

        Returns:
            Dictionary with all extracted metadata.
        """
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(header, path))
        return result


default_metadata_extractor = CompositeMetadataExtractor()
