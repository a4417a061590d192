"""Capture/include directives for Folio content bodies.

Content bodies may embed a small Liquid-style directive language that is
expanded textually before Markdown rendering:

    {% capture left %}
    Markdown for the left column.
    {% endcapture %}
    {% include two-column.html left right %}

- ``capture NAME`` stores the enclosed text verbatim and emits nothing.
- ``{{ NAME }}`` emits a previously captured block.
- ``include FILE ARG...`` renders an include definition with the captured
  blocks named by ARG, in order.
- ``raw`` ... ``endraw`` passes text through unexpanded.

Parsing produces a DirectiveDocument that the content-contract checks can
inspect without rendering. Expansion replaces each include with a
placeholder comment so Markdown leaves the include markup alone;
Expansion.splice puts the markup back after rendering.
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from .errors import DirectiveError
from .utils import escape_html

if TYPE_CHECKING:
    from .protocols import IncludeRenderer

TAG_RE = re.compile(r"\{%-?\s*(?P<tag>[A-Za-z_]\w*)(?P<args>.*?)\s*-?%\}", re.DOTALL)
ENDRAW_RE = re.compile(r"\{%-?\s*endraw\s*-?%\}")
OUTPUT_RE = re.compile(r"\{\{-?\s*(?P<name>[A-Za-z_][\w-]*)\s*-?\}\}")
NAME_RE = re.compile(r"^[A-Za-z_][\w-]*$")
INCLUDE_FILE_RE = re.compile(r"^[\w.-]+(?:/[\w.-]+)*$")

PLACEHOLDER = "<!--folio-include:{token}:{index}-->"


@dataclass
class Text:
    text: str
    line: int
    raw: bool = False


@dataclass
class Capture:
    name: str
    body: str
    line: int


@dataclass
class Include:
    name: str
    args: list[str]
    line: int


Node = Union[Text, Capture, Include]


@dataclass
class DirectiveDocument:
    """Parsed body: text runs interleaved with captures and includes.

    Attributes:
        nodes: Nodes in source order.
    """

    nodes: list[Node] = field(default_factory=list)

    def includes(self) -> list[Include]:
        return [node for node in self.nodes if isinstance(node, Include)]

    def captures(self) -> list[Capture]:
        return [node for node in self.nodes if isinstance(node, Capture)]

    def undefined_arguments(self) -> list[tuple[Include, str]]:
        """Return include arguments naming captures not defined before them."""
        defined: set[str] = set()
        missing: list[tuple[Include, str]] = []
        for node in self.nodes:
            if isinstance(node, Capture):
                defined.add(node.name)
            elif isinstance(node, Include):
                missing.extend((node, arg) for arg in node.args if arg not in defined)
        return missing


def parse_directives(text: str, first_line: int = 1) -> DirectiveDocument:
    """Parse directive tags in a content body.

    Args:
        text: Body text.
        first_line: File line number of the first body line, so errors point
            at the right place in the source file.

    Returns:
        DirectiveDocument with the parsed nodes.

    Raises:
        DirectiveError: On unknown tags, unbalanced blocks, nested captures,
            or malformed arguments.
    """
    document = DirectiveDocument()
    pos = 0
    capture: Capture | None = None

    def line_at(offset: int) -> int:
        return first_line + text.count("\n", 0, offset)

    def add_text(start: int, end: int) -> None:
        chunk = text[start:end]
        if not chunk:
            return
        stray = chunk.find("{%")
        if stray != -1:
            raise DirectiveError("Unclosed or malformed tag", line=line_at(start + stray))
        document.nodes.append(Text(chunk, line_at(start)))

    while True:
        match = TAG_RE.search(text, pos)
        if match is None:
            break
        tag = match.group("tag")
        args = match.group("args").split()
        line = line_at(match.start())

        if capture is not None:
            if tag != "endcapture":
                raise DirectiveError(
                    f"'{tag}' is not allowed inside capture '{capture.name}'", line=line
                )
            body = text[pos : match.start()]
            if "{%" in body:
                raise DirectiveError("Unclosed or malformed tag", line=capture.line)
            capture.body = body
            document.nodes.append(capture)
            capture = None
            pos = match.end()
            continue

        add_text(pos, match.start())
        if tag == "capture":
            if len(args) != 1 or not NAME_RE.match(args[0]):
                raise DirectiveError("'capture' expects exactly one name", line=line)
            capture = Capture(args[0], "", line)
        elif tag == "include":
            document.nodes.append(_parse_include(args, line))
        elif tag == "raw":
            if args:
                raise DirectiveError("'raw' takes no arguments", line=line)
            end = ENDRAW_RE.search(text, match.end())
            if end is None:
                raise DirectiveError("Unterminated 'raw' block", line=line)
            literal = text[match.end() : end.start()]
            if literal:
                document.nodes.append(Text(literal, line, raw=True))
            pos = end.end()
            continue
        elif tag in ("endcapture", "endraw"):
            raise DirectiveError(f"'{tag}' without a matching opening tag", line=line)
        else:
            raise DirectiveError(f"Unknown tag '{tag}'", line=line)
        pos = match.end()

    if capture is not None:
        raise DirectiveError(f"Unterminated capture '{capture.name}'", line=capture.line)
    add_text(pos, len(text))
    return document


def _parse_include(args: list[str], line: int) -> Include:
    if not args:
        raise DirectiveError("'include' expects an include file name", line=line)
    name, inputs = args[0], args[1:]
    if not INCLUDE_FILE_RE.match(name) or ".." in name.split("/"):
        raise DirectiveError(f"Invalid include file name '{name}'", line=line)
    for arg in inputs:
        if not NAME_RE.match(arg):
            raise DirectiveError(
                f"Include argument '{arg}' must be the name of a capture", line=line
            )
    return Include(name, inputs, line)


@dataclass
class Expansion:
    """Expanded body text plus rendered include fragments.

    Attributes:
        text: Body with captures removed, outputs substituted and includes
            replaced by placeholders.
        fragments: Rendered include markup, indexed by placeholder number.
        token: Random marker unique to this expansion, so placeholder-like
            text written by the author is never replaced.
    """

    text: str
    fragments: list[str] = field(default_factory=list)
    token: str = field(default_factory=lambda: secrets.token_hex(8))

    def placeholder(self, index: int) -> str:
        return PLACEHOLDER.format(token=self.token, index=index)

    def splice(self, html: str) -> str:
        """Replace include placeholders in rendered HTML with include markup."""
        for index, fragment in enumerate(self.fragments):
            placeholder = self.placeholder(index)
            html = html.replace(placeholder, fragment)
            html = html.replace(escape_html(placeholder), escape_html(fragment))
        return html


class DirectiveExpander:
    """Expands a parsed body against an include renderer.

    Attributes:
        includes: Object that checks for and renders include definitions.
    """

    def __init__(self, includes: IncludeRenderer):
        self.includes = includes

    def expand(
        self, document: DirectiveDocument, context: dict[str, Any] | None = None
    ) -> Expansion:
        """Expand captures, outputs and includes in source order.

        Args:
            document: Parsed body.
            context: Extra variables made available to include templates.

        Returns:
            Expansion with placeholder-bearing text and include fragments.

        Raises:
            DirectiveError: If an include is missing, an argument names an
                undefined capture, or the include fails to render.
        """
        captures: dict[str, str] = {}
        parts: list[str] = []
        expansion = Expansion(text="")
        for node in document.nodes:
            if isinstance(node, Text):
                parts.append(node.text if node.raw else self._substitute(node.text, captures))
            elif isinstance(node, Capture):
                captures[node.name] = node.body
            else:
                fragment = self._render_include(node, captures, context or {})
                parts.append(expansion.placeholder(len(expansion.fragments)))
                expansion.fragments.append(fragment)
        expansion.text = "".join(parts)
        return expansion

    @staticmethod
    def _substitute(text: str, captures: dict[str, str]) -> str:
        def repl(match: re.Match) -> str:
            name = match.group("name")
            return captures[name] if name in captures else match.group(0)

        return OUTPUT_RE.sub(repl, text)

    def _render_include(
        self, node: Include, captures: dict[str, str], context: dict[str, Any]
    ) -> str:
        if not self.includes.exists(node.name):
            raise DirectiveError(f"Include '{node.name}' not found", line=node.line)
        inputs: list[tuple[str, str]] = []
        for arg in node.args:
            if arg not in captures:
                raise DirectiveError(
                    f"Include '{node.name}' uses undefined capture '{arg}'", line=node.line
                )
            inputs.append((arg, captures[arg]))
        try:
            return self.includes.render(node.name, inputs, context)
        except DirectiveError:
            raise
        except Exception as exc:
            raise DirectiveError(
                f"Include '{node.name}' failed to render: {type(exc).__name__}: {exc}",
                line=node.line,
            ) from exc
