"""Backup and restore of user-owned files around an upgrade.

An upgrade deletes each managed directory and copies it fresh from the
template. Files the user is expected to edit (architecture notes, the
context log, custom workflows) live inside those directories, so they are
captured before the merge and written back after it.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from gitcore.fs import FileSystem, join
from gitcore.rules import (
    CONFIG_DIR,
    LEGACY_CONFIG_DIR,
    WORKFLOWS_DIR,
    Disposition,
    Mode,
    classify,
    effective_disposition,
    user_owned_files,
)

log = logging.getLogger("gitcore.backup")


class BackupError(Exception):
    """Raised when an existing user file cannot be captured.

    Upgrading after a failed capture would destroy the file, so this is
    fatal for the run.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not back up {path}: {reason}")


class BackupConsumedError(Exception):
    """Raised when a BackupSet is restored a second time."""

    def __init__(self) -> None:
        super().__init__("Backup set was already restored or discarded")


@dataclass(frozen=True)
class BackupEntry:
    """A captured file.

    Attributes:
        path: Canonical project path the content is restored to
        content: File bytes at capture time
        source: Path it was read from (differs from ``path`` when captured
            from the legacy config directory)
    """

    path: str
    content: bytes
    source: str


@dataclass
class BackupSet:
    """Ordered, single-use collection of captured user files."""

    entries: List[BackupEntry] = field(default_factory=list)
    storage: Optional[FileSystem] = None
    consumed: bool = False

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[BackupEntry]:
        return iter(self.entries)

    def __contains__(self, path: object) -> bool:
        return any(entry.path == path for entry in self.entries)

    @property
    def paths(self) -> List[str]:
        return [entry.path for entry in self.entries]

    def get(self, path: str) -> Optional[bytes]:
        for entry in self.entries:
            if entry.path == path:
                return entry.content
        return None

    def add(self, entry: BackupEntry) -> None:
        if entry.path in self:
            return
        if self.storage is not None:
            try:
                self.storage.write_bytes(entry.path, entry.content)
            except OSError as e:
                raise BackupError(entry.path, str(e)) from e
        self.entries.append(entry)

    def discard(self) -> None:
        """Delete the backing storage and mark the set as used."""
        if self.storage is not None:
            for name in self.storage.list_dir(""):
                try:
                    self.storage.remove_tree(name)
                except OSError as e:
                    log.warning("Could not remove backup %s: %s", name, e)
        self.consumed = True


def _config_source_dir(project: FileSystem) -> Optional[str]:
    if project.is_dir(CONFIG_DIR):
        return CONFIG_DIR
    if project.is_dir(LEGACY_CONFIG_DIR):
        return LEGACY_CONFIG_DIR
    return None


def _capture(project: FileSystem, backup_set: BackupSet, path: str, source: str) -> None:
    try:
        content = project.read_bytes(source)
    except OSError as e:
        raise BackupError(source, str(e)) from e
    backup_set.add(BackupEntry(path=path, content=content, source=source))
    log.debug("Backed up %s", source)


def backup(project: FileSystem, storage: Optional[FileSystem] = None) -> BackupSet:
    """Capture user-owned files from a project before an upgrade.

    Captures:
    - every exact user-owned path (architecture notes, context log), read
      from the config directory or, if only the legacy one exists, from there
    - every file below the workflows directory, including subdirectories,
      except the reserved protocol workflows

    The project is only read. A project without any of these files yields an
    empty set.

    Args:
        project: Project tree to read from
        storage: Optional tree (outside the project) that receives a copy of
            each captured file

    Returns:
        BackupSet with one entry per captured file

    Raises:
        BackupError: If an existing file cannot be read or stored
    """
    backup_set = BackupSet(storage=storage)
    config_dir = _config_source_dir(project)

    for canonical in user_owned_files():
        source = canonical
        if canonical.startswith(CONFIG_DIR + "/"):
            if config_dir is None:
                continue
            source = join(config_dir, canonical[len(CONFIG_DIR) + 1:])
        if project.is_file(source):
            _capture(project, backup_set, canonical, source)

    for path in project.walk_files(WORKFLOWS_DIR):
        if classify(path) is not Disposition.USER_OWNED:
            continue
        _capture(project, backup_set, path, path)

    return backup_set


def restore(backup_set: BackupSet, project: FileSystem, mode: Mode) -> List[str]:
    """Write captured files back into the project, then discard the backup.

    The architecture notes are skipped under FORCE_UPGRADE (the template's
    copy wins). The context log and custom workflows are always restored.
    A file that cannot be written is logged and skipped.

    Args:
        backup_set: Set produced by ``backup``
        project: Project tree to write to
        mode: Run mode

    Returns:
        Paths that were restored

    Raises:
        BackupConsumedError: If the set was already restored or discarded
    """
    if backup_set.consumed:
        raise BackupConsumedError()

    restored: List[str] = []
    try:
        for entry in backup_set:
            if effective_disposition(entry.path, mode) is Disposition.PROTOCOL_OWNED:
                log.info("Not restoring %s (%s)", entry.path, mode.value)
                continue
            try:
                project.write_bytes(entry.path, entry.content)
            except OSError as e:
                log.warning("Failed to restore %s: %s", entry.path, e)
                continue
            restored.append(entry.path)
    finally:
        backup_set.discard()
    return restored


def pending_restores(backup_set: BackupSet, mode: Mode) -> Dict[str, bytes]:
    """Entries ``restore`` would write under ``mode``, without writing them."""
    return {
        entry.path: entry.content
        for entry in backup_set
        if effective_disposition(entry.path, mode) is not Disposition.PROTOCOL_OWNED
    }
