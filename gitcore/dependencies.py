"""Dependency checking for the Git-Core installer.

All checks run up front and are reported together rather than failing on the
first problem. Only git is required to install; the GitHub CLI and a git
repository are needed by the protocol's own scripts afterwards, so their
absence is reported as a warning.
"""

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from rich.console import Console

GIT_INSTALL_INSTRUCTIONS = (
    "Install from https://git-scm.com/downloads\n"
    "  macOS:   brew install git\n"
    "  Linux:   use your package manager (apt install git, dnf install git)\n"
    "  Windows: See https://git-scm.com/download/win"
)

GH_CLI_INSTALL_INSTRUCTIONS = (
    "Install from https://cli.github.com/\n"
    "  macOS:   brew install gh\n"
    "  Linux:   See https://github.com/cli/cli#installation\n"
    "  Windows: See https://github.com/cli/cli#installation"
)


class DependencyError(Exception):
    """Raised when a required dependency is missing."""

    def __init__(self, results: List["DependencyResult"]):
        self.results = results
        self.failures = [r.name for r in results if r.required and not r.passed]
        super().__init__(f"Missing required dependencies: {', '.join(self.failures)}")


@dataclass
class DependencyResult:
    """Result of a single dependency check.

    Attributes:
        name: Identifier for the dependency check
        passed: Whether the check passed
        description: Human-readable description of the result
        fix_instructions: Instructions for fixing the issue (if failed)
        required: If True, failure blocks installation. If False, it's just a warning.
    """

    name: str
    passed: bool
    description: str
    fix_instructions: Optional[str] = None
    required: bool = True


def check_git_installed() -> DependencyResult:
    """Check if git is installed (needed to fetch the template)."""
    if shutil.which("git"):
        return DependencyResult(
            name="git_installed",
            passed=True,
            description="git installed",
        )
    return DependencyResult(
        name="git_installed",
        passed=False,
        description="git not installed",
        fix_instructions=GIT_INSTALL_INSTRUCTIONS,
    )


def check_git_repo(path: Path) -> DependencyResult:
    """Check if the given path is a git repository.

    Args:
        path: Directory path to check

    Returns:
        DependencyResult with required=False (warning only)
    """
    if (path / ".git").exists():
        return DependencyResult(
            name="git_repo",
            passed=True,
            description="Git repository detected",
            required=False,
        )
    return DependencyResult(
        name="git_repo",
        passed=False,
        description="Not a git repository",
        fix_instructions="Run `git init` before using the protocol's issue workflow",
        required=False,
    )


def check_gh_installed() -> DependencyResult:
    """Check if the GitHub CLI (gh) is installed.

    Returns:
        DependencyResult with required=False (warning only)
    """
    if shutil.which("gh"):
        return DependencyResult(
            name="gh_installed",
            passed=True,
            description="GitHub CLI installed",
            required=False,
        )
    return DependencyResult(
        name="gh_installed",
        passed=False,
        description="GitHub CLI not installed",
        fix_instructions=GH_CLI_INSTALL_INSTRUCTIONS,
        required=False,
    )


def check_gh_authenticated() -> DependencyResult:
    """Check if the GitHub CLI is authenticated.

    Uses a 5-second timeout to avoid hanging on network issues.

    Returns:
        DependencyResult with required=False (warning only)
    """
    try:
        result = subprocess.run(
            ["gh", "auth", "status"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except subprocess.TimeoutExpired:
        return DependencyResult(
            name="gh_authenticated",
            passed=False,
            description="GitHub CLI auth check timed out (network issue?)",
            fix_instructions="Check your network connection and try `gh auth status` manually",
            required=False,
        )
    except FileNotFoundError:
        return DependencyResult(
            name="gh_authenticated",
            passed=False,
            description="GitHub CLI not found (cannot check auth)",
            fix_instructions="Install gh CLI first",
            required=False,
        )

    if result.returncode == 0:
        return DependencyResult(
            name="gh_authenticated",
            passed=True,
            description="GitHub CLI authenticated",
            required=False,
        )
    return DependencyResult(
        name="gh_authenticated",
        passed=False,
        description="GitHub CLI not authenticated",
        fix_instructions=(
            "Run `gh auth login` to authenticate.\n"
            "This will open your browser to log in to GitHub."
        ),
        required=False,
    )


def check_all_dependencies(repo_path: Path) -> Tuple[bool, List[DependencyResult]]:
    """Run all dependency checks and collect results.

    Checks are run in order:
    1. git installed (required)
    2. Git repository (warning only)
    3. gh CLI installed (warning only)
    4. gh CLI authenticated (warning only, skipped if gh not installed)

    Args:
        repo_path: Path to the project being installed into

    Returns:
        Tuple of (success, results) where success is False only if a
        required check fails
    """
    results: List[DependencyResult] = [
        check_git_installed(),
        check_git_repo(repo_path),
    ]

    gh_result = check_gh_installed()
    results.append(gh_result)

    if gh_result.passed:
        results.append(check_gh_authenticated())
    else:
        results.append(
            DependencyResult(
                name="gh_authenticated",
                passed=False,
                description="Skipped (gh not installed)",
                fix_instructions="Install gh CLI first",
                required=False,
            )
        )

    success = all(r.passed for r in results if r.required)
    return success, results


def require_dependencies(repo_path: Path) -> List[DependencyResult]:
    """Run all checks and raise if a required one fails.

    Raises:
        DependencyError: If any required check fails
    """
    success, results = check_all_dependencies(repo_path)
    if not success:
        raise DependencyError(results)
    return results


def print_dependency_report(results: List[DependencyResult], console: Optional[Console] = None) -> None:
    """Print a formatted report of dependency check results.

    Failed required checks come first with fix instructions, then warnings,
    then passed checks.

    Args:
        results: List of DependencyResult objects to display
        console: Console to print to (default: a new stdout console)
    """
    console = console or Console()

    required_failures = [r for r in results if r.required and not r.passed]
    warnings = [r for r in results if not r.required and not r.passed]
    passed = [r for r in results if r.passed]

    for result in required_failures:
        console.print(f"[red]✗[/red] [bold]{result.description}[/bold]")
        if result.fix_instructions:
            console.print(f"  [dim]Fix:[/dim] {result.fix_instructions}")
        console.print()

    for result in warnings:
        console.print(f"[yellow]⚠[/yellow] [bold]{result.description}[/bold] [dim](warning)[/dim]")
        if result.fix_instructions:
            console.print(f"  [dim]Fix:[/dim] {result.fix_instructions}")
        console.print()

    for result in passed:
        console.print(f"[green]✓[/green] {result.description}")

    if required_failures:
        console.print("\n[yellow]Please resolve the issues above and run `git-core install` again.[/yellow]")
