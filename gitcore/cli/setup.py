"""Setup commands (install, upgrade, organize, version, preflight)."""

import sys
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Optional

import click
from rich.table import Table

from gitcore import __version__
from gitcore.backup import BackupError
from gitcore.cli._utils import console, get_repo_path, has_visible_files
from gitcore.config import load_config
from gitcore.dependencies import (
    DependencyError,
    check_all_dependencies,
    print_dependency_report,
    require_dependencies,
)
from gitcore.fs import LocalFileSystem
from gitcore.installer import InstallOptions, run_install
from gitcore.organize import organize_existing_files
from gitcore.plan import ActionKind, OutcomeStatus, RunReport
from gitcore.rules import ARCHITECTURE_FILE, Mode
from gitcore.template import GitTemplateSource, LocalTemplateSource, TemplateFetchError
from gitcore.version import (
    NOT_INSTALLED,
    UNKNOWN,
    current_version,
    remote_version,
    update_available,
)


def _prompt_non_empty_directory() -> bool:
    """Ask how to proceed in a non-empty project.

    Returns:
        True if files should be organized first, False to just merge

    Exits:
        With code 1 if the user cancels
    """
    console.print("[yellow]⚠ Current directory is not empty.[/yellow]\n")
    console.print("Options:")
    console.print("  1) Continue and merge files")
    console.print("  2) Organize existing files first")
    console.print("  3) Cancel\n")
    choice = click.prompt("Select", type=click.Choice(["1", "2", "3"]), default="1")
    if choice == "3":
        console.print("Cancelled.")
        sys.exit(1)
    return choice == "2"


def _summarize(report: RunReport) -> Dict[str, Dict[str, int]]:
    """Count outcomes per top-level path."""
    rows: Dict[str, Dict[str, int]] = OrderedDict()
    for outcome in report.outcomes:
        if outcome.action.kind in (ActionKind.DELETE_TREE, ActionKind.CHMOD):
            continue
        top = outcome.action.path.split("/", 1)[0]
        if "/" in outcome.action.path:
            top += "/"
        counts = rows.setdefault(top, {"written": 0, "kept": 0, "failed": 0})
        if outcome.status in (OutcomeStatus.SUCCEEDED, OutcomeStatus.PLANNED):
            counts["written"] += 1
        elif outcome.status is OutcomeStatus.SKIPPED_EXISTING:
            counts["kept"] += 1
        else:
            counts["failed"] += 1
    return rows


def _print_list(title: str, items: List[str], style: str = "green", mark: str = "✓") -> None:
    if not items:
        return
    console.print(f"\n[cyan]{title}[/cyan]")
    for item in items:
        console.print(f"  [{style}]{mark}[/{style}] {item}")


def print_report(report: RunReport) -> None:
    """Print the summary of an installer run."""
    if report.version_before != NOT_INSTALLED:
        console.print("\n[blue]Version info:[/blue]")
        console.print(f"   Current: [yellow]{report.version_before}[/yellow]")
        console.print(f"   Latest:  [green]{report.remote_version}[/green]")

    _print_list("Organized files:", report.organized)
    _print_list("Backed up:", report.backed_up)

    written = "Would write" if report.dry_run else "Written"
    table = Table(title="Protocol files")
    table.add_column("Path", style="cyan")
    table.add_column(written, justify="right", style="green")
    table.add_column("Kept", justify="right", style="yellow")
    table.add_column("Failed", justify="right", style="red")
    for path, counts in _summarize(report).items():
        table.add_row(path, str(counts["written"]), str(counts["kept"]), str(counts["failed"]))
    console.print()
    console.print(table)

    for outcome in report.failed:
        console.print(f"[red]✗ {outcome.action.path}: {outcome.error}[/red]")

    _print_list("Would restore:" if report.dry_run else "Restored:", report.restored)

    console.print()
    if report.dry_run:
        console.print("[yellow]Dry run: no files were changed[/yellow]")
        return

    if report.ok:
        console.print(f"[bold green]✓ Git-Core Protocol v{report.version_after} installed[/bold green]")
    else:
        console.print(f"[bold yellow]⚠ Git-Core Protocol v{report.version_after} installed "
                      f"with {len(report.failed)} error(s)[/bold yellow]")

    if report.mode.is_upgrade:
        console.print(f"[cyan]Upgraded from v{report.version_before} → v{report.version_after}[/cyan]")
        if report.mode is Mode.SAFE_UPGRADE and ARCHITECTURE_FILE in report.restored:
            console.print(f"[green]✓ Your {ARCHITECTURE_FILE} was preserved[/green]")
    else:
        console.print("\nFiles installed:")
        console.print(f"   {ARCHITECTURE_FILE:<22} - Document your architecture here")
        console.print(f"   {'.github/':<22} - Copilot rules + workflows")
        console.print(f"   {'scripts/':<22} - Init and update scripts")
        console.print(f"   {'AGENTS.md':<22} - Rules for all AI agents")

    console.print("\n[bold cyan]Next step:[/bold cyan]")
    console.print("   ./scripts/init_project.sh")
    console.print("\n[dim]Safe upgrade:  git-core upgrade[/dim]")
    console.print("[dim]Full reset:    git-core upgrade --force[/dim]")
    console.print("[dim]Check updates: git-core version[/dim]")


@click.command()
@click.option("--organize", "-o", is_flag=True, help="Organize existing files before installing")
@click.option("--auto", "-y", is_flag=True, help="Non-interactive mode")
@click.option("--upgrade", "-u", is_flag=True, help="Upgrade protocol files (preserves your ARCHITECTURE.md)")
@click.option("--force", "-f", is_flag=True, help="Force full upgrade (overwrites ARCHITECTURE.md too)")
@click.option("--dry-run", is_flag=True, help="Show what would change without writing anything")
@click.option("--repo", help="Template repository URL")
@click.option("--ref", help="Template branch or tag")
@click.option(
    "--template-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Use a local template directory instead of cloning",
)
def install(
    organize: bool,
    auto: bool,
    upgrade: bool,
    force: bool,
    dry_run: bool,
    repo: Optional[str],
    ref: Optional[str],
    template_dir: Optional[Path],
) -> None:
    """Install the Git-Core Protocol in the current project."""
    repo_path = get_repo_path()
    config = load_config(repo_path)

    mode = Mode.from_flags(upgrade=upgrade, force=force)
    if mode.is_upgrade:
        auto = True

    console.print(f"[cyan]Git-Core Protocol installer v{__version__}[/cyan]\n")
    if mode is Mode.FORCE_UPGRADE:
        console.print(f"[red]⚠ FORCE MODE: all files will be overwritten (including {ARCHITECTURE_FILE})[/red]\n")
    elif mode is Mode.SAFE_UPGRADE:
        console.print(f"[yellow]UPGRADE MODE: protocol files updated, your {ARCHITECTURE_FILE} preserved[/yellow]\n")

    try:
        results = require_dependencies(repo_path)
    except DependencyError as e:
        print_dependency_report(e.results, console)
        # git is only needed to clone the template
        if template_dir is None:
            sys.exit(1)
    else:
        print_dependency_report(results, console)

    if not auto and has_visible_files(repo_path):
        organize = _prompt_non_empty_directory() or organize

    if template_dir is not None:
        source = LocalTemplateSource(template_dir)
    else:
        source = GitTemplateSource(repo or config.repo_url, ref or config.ref)

    options = InstallOptions(
        mode=mode,
        organize=organize,
        dry_run=dry_run,
        raw_url=config.raw_url,
        version_timeout=config.version_timeout,
    )

    console.print(f"\n[cyan]Downloading Git-Core Protocol from {source.description}...[/cyan]")
    try:
        report = run_install(repo_path, source, options)
    except (TemplateFetchError, BackupError) as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    print_report(report)
    if not report.ok:
        sys.exit(1)


@click.command()
@click.option("--force", "-f", is_flag=True, help="Also overwrite ARCHITECTURE.md")
@click.option("--dry-run", is_flag=True, help="Show what would change without writing anything")
@click.option("--repo", help="Template repository URL")
@click.option("--ref", help="Template branch or tag")
@click.option(
    "--template-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Use a local template directory instead of cloning",
)
@click.pass_context
def upgrade(
    ctx: click.Context,
    force: bool,
    dry_run: bool,
    repo: Optional[str],
    ref: Optional[str],
    template_dir: Optional[Path],
) -> None:
    """Upgrade protocol files, keeping your architecture notes and context log.

    Custom workflows in .github/workflows/ are preserved. With --force the
    template's ARCHITECTURE.md replaces yours.

    Examples:
        git-core upgrade
        git-core upgrade --force
    """
    ctx.invoke(
        install,
        organize=False,
        auto=True,
        upgrade=True,
        force=force,
        dry_run=dry_run,
        repo=repo,
        ref=ref,
        template_dir=template_dir,
    )


@click.command()
def organize() -> None:
    """Move loose root files into docs/archive/ and tests/.

    Keeps README.md, AGENTS.md, CHANGELOG.md, CONTRIBUTING.md and
    LICENSE.md in the root. Git-tracked files use 'git mv' to preserve
    history.
    """
    repo_path = get_repo_path()
    console.print("[yellow]Organizing existing files...[/yellow]")

    moves = organize_existing_files(repo_path)
    if not moves:
        console.print("[green]✓ Nothing to organize[/green]")
        return

    for move in moves:
        if move.ok:
            console.print(f"  [cyan]→[/cyan] {move.source} moved to {move.dest}")
        else:
            console.print(f"  [red]✗[/red] {move.source}: {move.error}")

    failed = [m for m in moves if not m.ok]
    if failed:
        console.print(f"[yellow]⚠ {len(failed)} file(s) could not be moved[/yellow]")
    else:
        console.print("[green]✓ Files organized[/green]")


@click.command()
def version() -> None:
    """Show the installed and latest protocol versions."""
    repo_path = get_repo_path()
    config = load_config(repo_path)

    current = current_version(LocalFileSystem(repo_path))
    latest = remote_version(config.raw_url, config.version_timeout)

    installed = current if current != NOT_INSTALLED else "not installed"
    console.print(f"Installed: [yellow]{installed}[/yellow]")
    console.print(f"Latest:    [green]{latest}[/green]")

    if current == NOT_INSTALLED:
        console.print("\n[dim]Install with: git-core install[/dim]")
    elif latest == UNKNOWN:
        console.print("\n[yellow]⚠ Could not check the latest version[/yellow]")
    elif update_available(current, latest):
        console.print("\n[cyan]Update available. Run: git-core upgrade[/cyan]")
    else:
        console.print("\n[green]✓ Up to date[/green]")


@click.command()
def preflight() -> None:
    """Check that the tools the protocol relies on are available."""
    console.print("[bold]Running preflight checks...[/bold]\n")

    success, results = check_all_dependencies(get_repo_path())
    print_dependency_report(results, console)

    console.print("")
    if success:
        console.print("[green]✓ All required checks passed[/green]")
        sys.exit(0)
    else:
        console.print("[red]✗ Some required checks failed[/red]")
        sys.exit(1)
