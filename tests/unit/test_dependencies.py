"""Tests for dependency checking module."""

import subprocess
from io import StringIO
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from rich.console import Console

from gitcore.dependencies import (
    DependencyError,
    DependencyResult,
    check_all_dependencies,
    check_gh_authenticated,
    check_gh_installed,
    check_git_installed,
    check_git_repo,
    print_dependency_report,
    require_dependencies,
)


class TestDependencyResult:
    """Tests for DependencyResult dataclass."""

    def test_create_passing_result(self):
        result = DependencyResult(name="test", passed=True, description="Test passed")
        assert result.fix_instructions is None
        assert result.required is True

    def test_create_warning_result(self):
        result = DependencyResult(
            name="gh_installed",
            passed=False,
            description="GitHub CLI not installed",
            fix_instructions="Install gh",
            required=False,
        )
        assert result.required is False


class TestCheckGitInstalled:
    """Tests for check_git_installed function."""

    def test_check_git_installed_success(self):
        with patch("shutil.which", return_value="/usr/bin/git"):
            result = check_git_installed()

        assert result.passed is True
        assert result.required is True

    def test_check_git_installed_failure(self):
        with patch("shutil.which", return_value=None):
            result = check_git_installed()

        assert result.passed is False
        assert result.required is True
        assert "git-scm.com" in result.fix_instructions


class TestCheckGitRepo:
    """Tests for check_git_repo function."""

    def test_check_git_repo_success(self, tmp_path: Path):
        """Test that check passes when .git directory exists."""
        (tmp_path / ".git").mkdir()

        result = check_git_repo(tmp_path)

        assert result.passed is True
        assert result.name == "git_repo"

    def test_check_git_repo_failure_is_warning(self, tmp_path: Path):
        """A missing repository does not block installation."""
        result = check_git_repo(tmp_path)

        assert result.passed is False
        assert result.required is False
        assert "git init" in result.fix_instructions


class TestCheckGh:
    """Tests for the GitHub CLI checks."""

    def test_check_gh_installed_failure(self):
        with patch("shutil.which", return_value=None):
            result = check_gh_installed()

        assert result.passed is False
        assert result.required is False
        assert "https://cli.github.com" in result.fix_instructions

    def test_check_gh_authenticated_success(self):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0, stdout="Logged in")
            result = check_gh_authenticated()

        assert result.passed is True

    def test_check_gh_authenticated_failure(self):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=1, stderr="Not logged in")
            result = check_gh_authenticated()

        assert result.passed is False
        assert "gh auth login" in result.fix_instructions

    def test_check_gh_authenticated_timeout(self):
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5)):
            result = check_gh_authenticated()

        assert result.passed is False
        assert "timed out" in result.description


class TestCheckAllDependencies:
    """Tests for check_all_dependencies and require_dependencies."""

    def test_only_git_is_required(self, tmp_path: Path):
        def which(name):
            return "/usr/bin/git" if name == "git" else None

        with patch("shutil.which", side_effect=which):
            success, results = check_all_dependencies(tmp_path)

        assert success is True
        assert [r.name for r in results] == [
            "git_installed",
            "git_repo",
            "gh_installed",
            "gh_authenticated",
        ]
        assert results[3].description == "Skipped (gh not installed)"

    def test_missing_git_fails(self, tmp_path: Path):
        with patch("shutil.which", return_value=None):
            success, _ = check_all_dependencies(tmp_path)
        assert success is False

    def test_require_dependencies_raises_with_results(self, tmp_path: Path):
        with patch("shutil.which", return_value=None):
            with pytest.raises(DependencyError) as exc_info:
                require_dependencies(tmp_path)

        assert exc_info.value.failures == ["git_installed"]
        assert len(exc_info.value.results) == 4
        assert "git_installed" in str(exc_info.value)


def test_print_dependency_report_orders_failures_first():
    output = StringIO()
    console = Console(file=output, width=120)
    results = [
        DependencyResult(name="ok", passed=True, description="all good"),
        DependencyResult(name="warn", passed=False, description="soft problem", required=False),
        DependencyResult(name="bad", passed=False, description="hard problem", fix_instructions="do x"),
    ]

    print_dependency_report(results, console)

    text = output.getvalue()
    assert text.index("hard problem") < text.index("soft problem") < text.index("all good")
    assert "Fix: do x" in text
    assert "git-core install" in text
