"""Command-line interface for Folio.

Commands:
- new: Scaffold a new blog.
- build: Build the site into the output directory.
- check: Validate content files against the authoring contract.
- serve: Build, serve and republish on change.
- post: Create a new content file interactively.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from datetime import datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .utils import slugify, titleize

_SCAFFOLD_DIR = Path(__file__).parent / "scaffold"


@click.group()
@click.version_option(version=__version__, prog_name="folio")
def cli():
    """Folio static blog generator."""


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new blog."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(f"Refusing to initialize into non-empty directory: {target}")
    _scaffold(target)
    click.echo(f"New Folio blog created at {target}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
def build(drafts: bool):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    from .build import BuildError, build_site

    try:
        result = build_site(project_root, include_drafts=drafts)
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from None
    except BuildError as exc:
        _echo_build_error(project_root, exc)
        raise SystemExit(1) from None
    click.echo(f"Built {len(result.items)} items into {result.output_dir}")


@cli.command()
def check():
    """Validate content files against the authoring contract."""
    project_root = Path.cwd()
    from .checks import check_site

    try:
        report = check_site(project_root)
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from None
    for violation in report.violations:
        click.echo(violation.format(project_root), err=True)
    if not report.ok:
        click.echo(
            click.style(
                f"{len(report.violations)} problem(s) in {len(report.checked)} file(s)",
                fg="red",
                bold=True,
            ),
            err=True,
        )
        raise SystemExit(1)
    click.echo(f"Checked {len(report.checked)} files: OK")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option("--port", type=int, required=False, help="HTTP port (overrides folio.yaml)")
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Live reload websocket port (overrides folio.yaml ws_port)",
)
def serve(drafts: bool, port: int | None, ws_port: int | None):
    """Build, serve and republish on change."""
    project_root = Path.cwd()
    from .build import BuildError
    from .server import DevServer

    server = DevServer(project_root, http_port=port, ws_port=ws_port)
    try:
        server.start(include_drafts=drafts)
    except BuildError as exc:
        _echo_build_error(project_root, exc)
        raise SystemExit(1) from None


@cli.command()
def post():
    """Create a new content file interactively."""
    project_root = Path.cwd()
    from .build import load_config
    from .content import LayoutResolver

    config = load_config(project_root)
    site_dir = project_root / config.get("site_dir", "site")
    if not site_dir.exists():
        raise click.ClickException(
            "No site/ directory found. Run this command from a Folio project root."
        )
    layouts = LayoutResolver(site_dir).names()
    if not layouts:
        raise click.ClickException("No layouts found in site/_layouts/.")

    folder = _ask(
        questionary.select("Select folder:", choices=_get_content_folders(site_dir), style=_questionary_style())
    )
    title = _ask(
        questionary.text(
            "Title:",
            validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
            style=_questionary_style(),
        )
    ).strip()
    layout = _ask(
        questionary.select(
            "Layout:",
            choices=layouts,
            default="post" if "post" in layouts else layouts[0],
            style=_questionary_style(),
        )
    )
    tags = _ask(questionary.text("Tags (space separated):", style=_questionary_style()))
    add_date = _ask(
        questionary.confirm("Prefix with today's date? (YYYY-MM-DD-)", default=True, style=_questionary_style())
    )

    slug = slugify(title)
    filename = f"{datetime.now():%Y-%m-%d}-{slug}.md" if add_date else f"{slug}.md"
    target_dir = site_dir if folder == ". (root)" else site_dir / folder
    target_path = target_dir / filename
    if target_path.exists():
        raise click.ClickException(f"File already exists: {target_path.relative_to(project_root)}")
    conflicting = [p.name for p in _iter_markdown(target_dir) if slugify(p.stem) == slug]
    if conflicting:
        raise click.ClickException(f"A file with slug '{slug}' already exists: {conflicting[0]}")

    target_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(_render_post(title, layout, tags.split()), encoding="utf-8")
    click.echo(f"Created {target_path.relative_to(project_root)}")


def _ask(question):
    answer = question.ask()
    if answer is None:
        raise click.Abort()
    return answer


def _render_post(title: str, layout: str, tags: list[str]) -> str:
    header = {"layout": layout, "title": title}
    if tags:
        header["tags"] = tags
    dumped = yaml.safe_dump(header, sort_keys=False, allow_unicode=True)
    return f"---\n{dumped}---\n\n"


def _get_content_folders(site_dir: Path) -> list[str]:
    """List content folders (excluding ``_layouts``, ``_includes`` and friends)."""
    folders = sorted(
        path.name
        for path in site_dir.iterdir()
        if path.is_dir() and not path.name.startswith(("_", "."))
    )
    return [". (root)", *folders]


def _iter_markdown(folder: Path) -> list[Path]:
    if not folder.exists():
        return []
    return [p for p in folder.iterdir() if p.is_file() and p.suffix == ".md"]


def _echo_build_error(project_root: Path, exc) -> None:
    try:
        location = str(exc.source_path.relative_to(project_root))
    except ValueError:
        location = str(exc.source_path)
    if exc.line is not None:
        location = f"{location}:{exc.line}"
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    click.echo(click.style(f"  File: {location}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


def _questionary_style():
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Copy the scaffold tree into a new project and set its title.

    Args:
        root: Root directory for the new project.
    """
    for src_path in sorted(_SCAFFOLD_DIR.rglob("*")):
        if src_path.is_dir() or src_path.name == "__pycache__":
            continue
        dest_path = root / src_path.relative_to(_SCAFFOLD_DIR)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)

    site_yaml = root / "data" / "site.yaml"
    site_yaml.write_text(
        site_yaml.read_text(encoding="utf-8").replace("__TITLE__", titleize(root.name)),
        encoding="utf-8",
    )
    _try_git_init(root)


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("FOLIO_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run([git_bin, "init"], cwd=root, check=True, capture_output=True)
    except (OSError, subprocess.CalledProcessError):
        click.echo("git init failed; run it manually if you want version control.", err=True)
