"""Folio static blog generator.

Content files carry a YAML metadata header (layout, title, tags) and a
Markdown or HTML body that may use capture/include directives. Folio expands
the directives, renders the body, applies the declared layout and writes a
static site. It also checks content files against that contract and
republishes the site when sources change.

The main entry point is the CLI module.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
