"""Exceptions raised while reading content files."""

from __future__ import annotations

from pathlib import Path


class ContentError(Exception):
    """A content file violates the authoring contract.

    Attributes:
        message: Human-readable error message.
        path: Source file, when known.
        line: 1-based line number, when known.
    """

    def __init__(self, message: str, path: Path | None = None, line: int | None = None):
        self.message = message
        self.path = path
        self.line = line
        super().__init__(self._describe())

    def _describe(self) -> str:
        where = ""
        if self.path is not None:
            where = f"{self.path}"
            if self.line is not None:
                where += f":{self.line}"
            where += ": "
        elif self.line is not None:
            where = f"line {self.line}: "
        return f"{where}{self.message}"

    def with_path(self, path: Path) -> ContentError:
        """Return a copy of this error bound to a source file."""
        return type(self)(self.message, path=path, line=self.line)


class FrontMatterError(ContentError):
    """The metadata header is missing or malformed."""


class LayoutError(ContentError):
    """The declared layout is missing or cannot be resolved."""


class DirectiveError(ContentError):
    """A capture/include directive is malformed or unresolvable."""
