"""Content-contract checks for Folio.

Validates every content file of a site without rendering it:

- the metadata header is present and well-formed,
- it declares a layout that resolves to a file in ``_layouts/``,
- ``title`` and ``tags`` have usable types,
- directives parse, every include exists in ``_includes/`` and every include
  argument names a capture defined before it.

Drafts are checked too. Problems are collected as Violation records rather
than raised, so one run reports everything.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .build import load_config
from .content import FileContentLoader, LayoutResolver
from .directives import parse_directives
from .errors import DirectiveError, FrontMatterError
from .extractors import metadata_problems, read_content, split_front_matter
from .includes import IncludeLibrary


@dataclass(frozen=True)
class Violation:
    """One broken content-contract rule.

    Attributes:
        path: Offending file.
        line: 1-based line number, when known.
        code: Rule identifier, e.g. 'layout-unresolved'.
        message: Human-readable description.
    """

    path: Path
    line: int | None
    code: str
    message: str

    def format(self, root: Path | None = None) -> str:
        path = self.path
        if root is not None:
            try:
                path = self.path.relative_to(root)
            except ValueError:
                pass
        location = f"{path}:{self.line}" if self.line is not None else f"{path}"
        return f"{location}: [{self.code}] {self.message}"


@dataclass
class CheckReport:
    """Result of checking a site.

    Attributes:
        checked: Files that were checked.
        violations: Violations sorted by path then line.
    """

    checked: list[Path] = field(default_factory=list)
    violations: list[Violation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations

    def for_path(self, path: Path) -> list[Violation]:
        return [v for v in self.violations if v.path == path]


class ContentChecker:
    """Checks content files of one site directory against the contract.

    Attributes:
        site_dir: Site content directory.
        layouts: Resolver for declared layouts.
        includes: Library of include definitions.
    """

    def __init__(self, site_dir: Path):
        self.site_dir = site_dir
        self.layouts = LayoutResolver(site_dir)
        self.includes = IncludeLibrary(site_dir)

    def check_file(self, path: Path) -> list[Violation]:
        """Check one content file.

        Args:
            path: Content file.

        Returns:
            Violations found in the file.
        """
        try:
            header = split_front_matter(read_content(path), path)
        except FrontMatterError as exc:
            return [Violation(path, exc.line, "front-matter", exc.message)]

        violations = [
            Violation(path, 1, code, message)
            for code, message in metadata_problems(header.data)
        ]
        layout = header.data.get("layout")
        if isinstance(layout, str) and layout.strip():
            if self.layouts.find(layout.strip()) is None:
                violations.append(
                    Violation(
                        path,
                        1,
                        "layout-unresolved",
                        f"Layout '{layout.strip()}' not found in _layouts/",
                    )
                )

        try:
            document = parse_directives(header.body, first_line=header.body_line)
        except DirectiveError as exc:
            violations.append(Violation(path, exc.line, "directive", exc.message))
            return violations
        for include in document.includes():
            if not self.includes.exists(include.name):
                violations.append(
                    Violation(
                        path,
                        include.line,
                        "include-missing",
                        f"Include '{include.name}' not found in _includes/",
                    )
                )
        for include, arg in document.undefined_arguments():
            violations.append(
                Violation(
                    path,
                    include.line,
                    "capture-undefined",
                    f"Include '{include.name}' uses undefined capture '{arg}'",
                )
            )
        return violations

    def check(self) -> CheckReport:
        """Check every content file, drafts included."""
        report = CheckReport()
        for path in FileContentLoader(self.site_dir).iter_files(include_drafts=True):
            report.checked.append(path)
            report.violations.extend(self.check_file(path))
        report.violations.sort(key=lambda v: (str(v.path), v.line or 0, v.code))
        return report


def check_site(project_root: Path) -> CheckReport:
    """Check every content file of a project.

    Args:
        project_root: Root directory of the project.

    Returns:
        CheckReport listing checked files and violations.

    Raises:
        FileNotFoundError: If the site directory does not exist.
    """
    config = load_config(project_root)
    site_dir = project_root / config.get("site_dir", "site")
    if not site_dir.exists():
        raise FileNotFoundError(f"Expected site directory at {site_dir}")
    return ContentChecker(site_dir).check()
