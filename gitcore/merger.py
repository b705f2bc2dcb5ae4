"""Template merger: reconciles a template tree against a project tree.

``build_merge_plan`` looks at both trees and returns the full list of
actions without touching anything. ``merge`` builds and applies the plan.

Per run mode:
- INSTALL: managed directories and protocol files are only added where the
  project does not have them yet. Nothing that exists is modified.
- SAFE_UPGRADE / FORCE_UPGRADE: each managed directory present in the
  template is deleted from the project and copied fresh; protocol files are
  overwritten. User-owned files under those directories must be captured by
  ``gitcore.backup.backup`` beforehand and restored afterwards.

Preserved files (.gitignore, README.md) are only ever added, never replaced.
"""

import logging
from typing import List, Optional, Set

from gitcore.fs import FileSystem, join
from gitcore.plan import ActionKind, Outcome, Plan, PlannedAction, apply_plan
from gitcore.rules import (
    CONFIG_DIR,
    LEGACY_CONFIG_DIR,
    MANAGED_DIRS,
    PRESERVED_FILES,
    PROTOCOL_FILES,
    Disposition,
    Mode,
    effective_disposition,
    is_build_only,
)

log = logging.getLogger("gitcore.merger")


def _under(path: str, directory: str) -> bool:
    return path == directory or path.startswith(directory + "/")


def _is_script(path: str) -> bool:
    return path.startswith("scripts/") and path.count("/") == 1 and path.endswith(".sh")


def template_config_dir(template: FileSystem) -> Optional[str]:
    """Config directory inside the template (new name preferred over legacy)."""
    if template.is_dir(CONFIG_DIR):
        return CONFIG_DIR
    if template.is_dir(LEGACY_CONFIG_DIR):
        return LEGACY_CONFIG_DIR
    return None


class _ProjectView:
    """The project tree as it will look after the actions planned so far."""

    def __init__(self, project: FileSystem):
        self.project = project
        self.created: Set[str] = set()
        self.deleted: List[str] = []

    def exists(self, path: str) -> bool:
        if path in self.created:
            return True
        if any(_under(path, d) for d in self.deleted):
            return False
        return self.project.exists(path)

    def has_dir(self, directory: str) -> bool:
        if any(_under(p, directory) for p in self.created):
            return True
        if any(_under(directory, d) for d in self.deleted):
            return False
        return self.project.is_dir(directory)

    def delete(self, directory: str) -> None:
        self.created = {p for p in self.created if not _under(p, directory)}
        self.deleted.append(directory)


def _file_action(target: str, source: str, mode: Mode, view: _ProjectView) -> PlannedAction:
    """Decide what happens to one template file given the path rules."""
    disposition = effective_disposition(target, mode)
    if not view.exists(target):
        kind = ActionKind.COPY if mode.is_upgrade else ActionKind.COPY_NEW
        return PlannedAction(kind, target, source, "new")
    if mode.is_upgrade and disposition is Disposition.PROTOCOL_OWNED:
        return PlannedAction(ActionKind.COPY, target, source, "upgraded")
    reason = "preserved" if disposition is Disposition.MERGE_ONLY_NEW else "exists"
    return PlannedAction(ActionKind.SKIP, target, reason=reason)


def _plan_migration(project: FileSystem, view: _ProjectView) -> List[PlannedAction]:
    if not project.is_dir(LEGACY_CONFIG_DIR) or project.is_dir(CONFIG_DIR):
        return []

    actions = []
    prefix = LEGACY_CONFIG_DIR + "/"
    for source in project.walk_files(LEGACY_CONFIG_DIR):
        target = join(CONFIG_DIR, source[len(prefix):])
        actions.append(PlannedAction(
            ActionKind.MIGRATE, target, source,
            f"migrated from {LEGACY_CONFIG_DIR}/",
        ))
        view.created.add(target)
    return actions


def _plan_directory(
    directory: str,
    source_dir: str,
    template: FileSystem,
    mode: Mode,
    view: _ProjectView,
) -> List[PlannedAction]:
    actions: List[PlannedAction] = []
    source_prefix = source_dir + "/"

    if mode.is_upgrade and view.has_dir(directory):
        actions.append(PlannedAction(ActionKind.DELETE_TREE, directory, reason="replaced by template"))
        view.delete(directory)

    for source in template.walk_files(source_dir):
        target = join(directory, source[len(source_prefix):])
        if is_build_only(target):
            continue
        action = _file_action(target, source, mode, view)
        actions.append(action)
        if action.kind is not ActionKind.SKIP:
            view.created.add(target)
    return actions


def _plan_single_files(
    names, template: FileSystem, mode: Mode, view: _ProjectView
) -> List[PlannedAction]:
    actions = []
    for name in names:
        if not template.is_file(name):
            continue
        action = _file_action(name, name, mode, view)
        actions.append(action)
        if action.kind is not ActionKind.SKIP:
            view.created.add(name)
    return actions


def _plan_chmod(project: FileSystem, view: _ProjectView) -> List[PlannedAction]:
    scripts: Set[str] = {p for p in view.created if _is_script(p)}
    if view.has_dir("scripts"):
        scripts.update(
            p for p in (join("scripts", n) for n in project.list_dir("scripts"))
            if _is_script(p) and view.exists(p) and project.is_file(p)
        )
    return [PlannedAction(ActionKind.CHMOD, p, reason="executable") for p in sorted(scripts)]


def build_merge_plan(template: FileSystem, project: FileSystem, mode: Mode) -> Plan:
    """Compute every action needed to reconcile ``project`` with ``template``.

    Nothing is read beyond directory listings and existence checks, and
    nothing is written.

    Args:
        template: Fetched template tree (read-only)
        project: Consumer project tree
        mode: Run mode

    Returns:
        Immutable tuple of actions in the order they must be applied
    """
    view = _ProjectView(project)
    actions: List[PlannedAction] = []

    actions.extend(_plan_migration(project, view))

    for directory in MANAGED_DIRS:
        source_dir = template_config_dir(template) if directory == CONFIG_DIR else directory
        if source_dir is None or not template.is_dir(source_dir):
            continue
        actions.extend(_plan_directory(directory, source_dir, template, mode, view))

    actions.extend(_plan_single_files(PROTOCOL_FILES, template, mode, view))
    actions.extend(_plan_single_files(PRESERVED_FILES, template, mode, view))
    actions.extend(_plan_chmod(project, view))

    log.debug("Planned %d actions (%s)", len(actions), mode.value)
    return tuple(actions)


def merge(
    template: FileSystem,
    project: FileSystem,
    mode: Mode,
    dry_run: bool = False,
) -> List[Outcome]:
    """Reconcile ``project`` with ``template`` in place.

    Args:
        template: Fetched template tree
        project: Consumer project tree
        mode: Run mode
        dry_run: Compute and report the plan without applying it

    Returns:
        Outcomes in plan order
    """
    plan = build_merge_plan(template, project, mode)
    return apply_plan(plan, template, project, dry_run=dry_run)
