"""Top-level install/upgrade sequencing.

    organize (optional) -> versions -> backup (upgrade) -> fetch template
    -> merge -> restore (upgrade) -> report

Everything that changes files is delegated to ``merger`` and ``backup``;
this module only orders the steps and collects the ``RunReport``.
"""

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import ContextManager, Optional, Protocol

from gitcore.backup import BackupSet, backup, pending_restores, restore
from gitcore.fs import FileSystem, LocalFileSystem
from gitcore.merger import merge
from gitcore.organize import detect_loose_files, organize_existing_files
from gitcore.plan import RunReport
from gitcore.rules import Mode
from gitcore.template import TemplateFetchError
from gitcore.version import DEFAULT_RAW_URL, NOT_INSTALLED, current_version, remote_version

log = logging.getLogger("gitcore.installer")


class TemplateSource(Protocol):
    description: str

    def fetch(self) -> ContextManager[FileSystem]:
        ...


@dataclass
class InstallOptions:
    """Options for a single installer run.

    Attributes:
        mode: Install, safe upgrade or forced upgrade
        organize: Move loose root files into the standard layout first
        dry_run: Compute everything, write nothing
        raw_url: Base URL for the remote version marker
        version_timeout: Timeout for the remote version lookup, in seconds
    """

    mode: Mode = Mode.INSTALL
    organize: bool = False
    dry_run: bool = False
    raw_url: str = DEFAULT_RAW_URL
    version_timeout: float = 10.0


def _organize(project_root: Path, report: RunReport, dry_run: bool) -> None:
    if dry_run:
        report.organized = [
            f"{path.name} -> {dest}/{path.name}" for path, dest in detect_loose_files(project_root)
        ]
        return
    for move in organize_existing_files(project_root):
        if move.ok:
            report.organized.append(f"{move.source} -> {move.dest}")


def _start_backup(project: FileSystem, storage: Optional[FileSystem], dry_run: bool):
    """Capture user files; returns (backup_set, temp_dir_to_remove_or_None)."""
    if dry_run:
        return backup(project), None

    temp_dir = None
    if storage is None:
        temp_dir = Path(tempfile.mkdtemp(prefix="git-core-backup-"))
        storage = LocalFileSystem(temp_dir)
    try:
        return backup(project, storage=storage), temp_dir
    except Exception:
        if temp_dir is not None:
            shutil.rmtree(temp_dir, ignore_errors=True)
        raise


def _finish_backup(
    backup_set: BackupSet, project: FileSystem, mode: Mode, report: RunReport, dry_run: bool
) -> None:
    if dry_run:
        report.restored = list(pending_restores(backup_set, mode))
        backup_set.discard()
        return
    report.restored = restore(backup_set, project, mode)


def run_install(
    project_root: Path,
    source: TemplateSource,
    options: Optional[InstallOptions] = None,
    project: Optional[FileSystem] = None,
    backup_storage: Optional[FileSystem] = None,
) -> RunReport:
    """Install or upgrade the protocol in a project.

    Args:
        project_root: Project directory (used by the organizer)
        source: Where to fetch the template from
        options: Run options (default: plain install)
        project: Project tree to reconcile (default: ``project_root`` on disk)
        backup_storage: Tree receiving backup copies during an upgrade
            (default: a temporary directory, removed after restore)

    Returns:
        RunReport describing everything that was done

    Raises:
        TemplateFetchError: If the template cannot be fetched. The project
            has not been modified by the merge in that case.
        BackupError: If a user file cannot be captured before an upgrade
    """
    options = options or InstallOptions()
    if project is None:
        project = LocalFileSystem(project_root)
    mode = options.mode

    report = RunReport(mode=mode, version_before=NOT_INSTALLED, dry_run=options.dry_run)

    if options.organize:
        _organize(project_root, report, options.dry_run)

    report.version_before = current_version(project)
    if report.version_before != NOT_INSTALLED:
        report.remote_version = remote_version(options.raw_url, options.version_timeout)

    backup_set = None
    temp_dir = None
    if mode.is_upgrade:
        backup_set, temp_dir = _start_backup(project, backup_storage, options.dry_run)
        report.backed_up = backup_set.paths
        log.info("Backed up %d user file(s)", len(backup_set))

    try:
        with source.fetch() as template:
            report.outcomes = merge(template, project, mode, dry_run=options.dry_run)
            if options.dry_run:
                report.version_after = current_version(template)
    except TemplateFetchError:
        # Nothing was merged; the backup is not needed
        if backup_set is not None:
            backup_set.discard()
        if temp_dir is not None:
            shutil.rmtree(temp_dir, ignore_errors=True)
        raise
    except Exception:
        if temp_dir is not None:
            log.error("Upgrade interrupted; user files are backed up in %s", temp_dir)
        raise

    if backup_set is not None:
        _finish_backup(backup_set, project, mode, report, options.dry_run)
        if temp_dir is not None:
            shutil.rmtree(temp_dir, ignore_errors=True)

    if not options.dry_run:
        report.version_after = current_version(project)

    log.info(
        "%s finished: %d written, %d skipped, %d failed",
        mode.value, len(report.succeeded), len(report.skipped), len(report.failed),
    )
    return report
