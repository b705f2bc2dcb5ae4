"""Tests for the install/upgrade orchestration."""

from pathlib import Path
from unittest.mock import patch

import pytest

from gitcore.fs import LocalFileSystem, MemoryFileSystem
from gitcore.installer import InstallOptions, run_install
from gitcore.rules import ARCHITECTURE_FILE, CONTEXT_LOG_FILE, Mode
from gitcore.template import TemplateFetchError


def _run(tmp_path, source, mode=Mode.INSTALL, project=None, **kwargs):
    options = InstallOptions(mode=mode, **kwargs)
    return run_install(tmp_path, source, options, project=project, backup_storage=MemoryFileSystem())


class TestScenarios:
    """End-to-end runs against in-memory trees."""

    def test_fresh_install(self, tmp_path: Path, make_source) -> None:
        template = MemoryFileSystem({
            ".✨/ARCHITECTURE.md": "TBD",
            ".github/workflows/a.yml": "x",
            ".git-core-protocol-version": "1.4.0",
        })
        project = MemoryFileSystem()

        report = _run(tmp_path, make_source(template), project=project)

        assert project.read_text(".✨/ARCHITECTURE.md") == "TBD"
        assert project.read_text(".github/workflows/a.yml") == "x"
        assert report.version_before == "0.0.0"
        assert report.version_after == "1.4.0"
        assert report.remote_version is None
        assert report.backed_up == []
        assert report.ok

    def test_safe_upgrade_preserves_architecture(self, tmp_path: Path, fake_source) -> None:
        project = MemoryFileSystem({
            ARCHITECTURE_FILE: "custom notes",
            ".git-core-protocol-version": "1.0.0",
        })

        report = _run(tmp_path, fake_source, Mode.SAFE_UPGRADE, project=project)

        assert project.read_text(ARCHITECTURE_FILE) == "custom notes"
        assert report.version_before == "1.0.0"
        assert report.version_after == "1.4.0"
        assert report.remote_version == "9.9.9"
        assert ARCHITECTURE_FILE in report.restored

    def test_force_upgrade_replaces_architecture(self, tmp_path: Path, fake_source, template_tree) -> None:
        project = MemoryFileSystem({
            ARCHITECTURE_FILE: "custom notes",
            CONTEXT_LOG_FILE: "my log",
        })

        report = _run(tmp_path, fake_source, Mode.FORCE_UPGRADE, project=project)

        assert project.read_text(ARCHITECTURE_FILE) == template_tree.read_text(ARCHITECTURE_FILE)
        assert project.read_text(CONTEXT_LOG_FILE) == "my log"
        assert ARCHITECTURE_FILE not in report.restored
        assert CONTEXT_LOG_FILE in report.restored

    @pytest.mark.parametrize("mode", [Mode.SAFE_UPGRADE, Mode.FORCE_UPGRADE])
    def test_custom_workflows_survive_upgrade(self, tmp_path: Path, fake_source, mode) -> None:
        project = MemoryFileSystem({
            ".github/workflows/deploy.yml": "name: deploy",
            ".github/workflows/sync-issues.yml": "my tweaks",
            ".github/workflows/update-protocol.yml": "stale protocol workflow",
        })

        _run(tmp_path, fake_source, mode, project=project)

        assert project.read_text(".github/workflows/deploy.yml") == "name: deploy"
        assert project.read_text(".github/workflows/sync-issues.yml") == "my tweaks"
        assert project.read_text(".github/workflows/update-protocol.yml") == "name: update-protocol\n"

    @pytest.mark.parametrize("mode", [Mode.SAFE_UPGRADE, Mode.FORCE_UPGRADE])
    def test_workflow_subdirectories_survive_upgrade(self, tmp_path: Path, fake_source, mode) -> None:
        project = MemoryFileSystem({".github/workflows/deploy/prod.yml": "name: prod"})

        report = _run(tmp_path, fake_source, mode, project=project)

        assert project.read_text(".github/workflows/deploy/prod.yml") == "name: prod"
        assert ".github/workflows/deploy/prod.yml" in report.restored

    def test_safe_upgrade_round_trips_user_owned_files(self, tmp_path: Path, fake_source) -> None:
        user_files = {
            ARCHITECTURE_FILE: "a",
            CONTEXT_LOG_FILE: "b",
            ".github/workflows/mine.yml": "c",
        }
        project = MemoryFileSystem(user_files)

        _run(tmp_path, fake_source, Mode.SAFE_UPGRADE, project=project)

        for path, content in user_files.items():
            assert project.read_text(path) == content

    def test_install_twice_is_idempotent(self, tmp_path: Path, fake_source) -> None:
        project = MemoryFileSystem()
        _run(tmp_path, fake_source, project=project)
        snapshot = project.snapshot()

        report = _run(tmp_path, fake_source, project=project)

        assert project.snapshot() == snapshot
        assert report.written_paths() == []


class TestFailures:
    """Fatal and recoverable failures."""

    def test_template_fetch_failure_is_fatal_and_harmless(self, tmp_path: Path, make_source) -> None:
        project = MemoryFileSystem({ARCHITECTURE_FILE: "notes", "scripts/a.sh": "a"})
        before = project.snapshot()
        storage = MemoryFileSystem()
        source = make_source(error=TemplateFetchError("repo", "network down"))

        with pytest.raises(TemplateFetchError):
            run_install(tmp_path, source, InstallOptions(mode=Mode.SAFE_UPGRADE),
                        project=project, backup_storage=storage)

        assert project.snapshot() == before
        assert storage.walk_files() == []

    def test_backup_storage_removed_after_restore(self, tmp_path: Path, fake_source) -> None:
        project = MemoryFileSystem({ARCHITECTURE_FILE: "notes"})
        storage = MemoryFileSystem()

        run_install(tmp_path, fake_source, InstallOptions(mode=Mode.SAFE_UPGRADE),
                    project=project, backup_storage=storage)

        assert storage.walk_files() == []

    def test_default_backup_dir_is_cleaned_up(self, tmp_path: Path, fake_source) -> None:
        project_dir = tmp_path / "project"
        project_dir.mkdir()
        (project_dir / ".✨").mkdir()
        (project_dir / ".✨" / "ARCHITECTURE.md").write_text("notes")
        backup_root = tmp_path / "backup"
        backup_root.mkdir()

        with patch("gitcore.installer.tempfile.mkdtemp", return_value=str(backup_root)):
            run_install(project_dir, fake_source, InstallOptions(mode=Mode.SAFE_UPGRADE))

        assert not backup_root.exists()
        assert (project_dir / ".✨" / "ARCHITECTURE.md").read_text() == "notes"


class TestDryRun:
    def test_dry_run_changes_nothing(self, tmp_path: Path, fake_source) -> None:
        project = MemoryFileSystem({ARCHITECTURE_FILE: "notes", ".git-core-protocol-version": "1.0.0"})
        before = project.snapshot()

        report = _run(tmp_path, fake_source, Mode.FORCE_UPGRADE, project=project, dry_run=True)

        assert project.snapshot() == before
        assert report.dry_run is True
        assert report.version_after == "1.4.0"
        assert report.planned
        assert report.restored == []

    def test_dry_run_lists_organize_moves_without_moving(self, tmp_path: Path, fake_source) -> None:
        (tmp_path / "NOTES.md").write_text("n")
        (tmp_path / "README.md").write_text("r")

        report = _run(tmp_path, fake_source, project=MemoryFileSystem(), organize=True, dry_run=True)

        assert report.organized == ["NOTES.md -> docs/archive/NOTES.md"]
        assert (tmp_path / "NOTES.md").exists()


def test_organize_runs_before_install(tmp_path: Path, fake_source) -> None:
    (tmp_path / "PLAN.md").write_text("plan")

    with patch("gitcore.organize._is_tracked", return_value=False):
        report = run_install(tmp_path, fake_source, InstallOptions(organize=True))

    assert report.organized == ["PLAN.md -> docs/archive/PLAN.md"]
    assert (tmp_path / "docs" / "archive" / "PLAN.md").read_text() == "plan"
    assert LocalFileSystem(tmp_path).is_file("docs/COMMIT_STANDARD.md")
