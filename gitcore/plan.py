"""Staged installation plans.

An installation is computed as an immutable ``Plan`` first and applied
second. Applying a plan never raises for a single failing path: each action
produces an ``Outcome`` and the outcomes are aggregated into a ``RunReport``.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from gitcore.fs import FileSystem
from gitcore.rules import Mode

log = logging.getLogger("gitcore.plan")


class ActionKind(str, Enum):
    """Operation performed on the project tree."""

    COPY = "copy"  # template -> project, overwriting
    COPY_NEW = "copy-new"  # template -> project, only if absent
    SKIP = "skip"  # path exists and is kept as is
    DELETE_TREE = "delete-tree"
    MIGRATE = "migrate"  # project -> project (legacy directory rename)
    CHMOD = "chmod"


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED_EXISTING = "skipped-existing"
    FAILED = "failed"
    PLANNED = "planned"  # dry run, nothing applied


@dataclass(frozen=True)
class PlannedAction:
    """A single step of a plan.

    Attributes:
        kind: What to do
        path: Target path in the project tree
        source: Source path (template tree for copies, project tree for
            migrations); None for other kinds
        reason: Short human-readable explanation shown in reports
    """

    kind: ActionKind
    path: str
    source: Optional[str] = None
    reason: str = ""


Plan = Tuple[PlannedAction, ...]


@dataclass(frozen=True)
class Outcome:
    action: PlannedAction
    status: OutcomeStatus
    error: Optional[str] = None


@dataclass
class RunReport:
    """Structured result of an installer run."""

    mode: Mode
    version_before: str
    version_after: str = ""
    remote_version: Optional[str] = None
    dry_run: bool = False
    outcomes: List[Outcome] = field(default_factory=list)
    backed_up: List[str] = field(default_factory=list)
    restored: List[str] = field(default_factory=list)
    organized: List[str] = field(default_factory=list)

    def _with_status(self, status: OutcomeStatus) -> List[Outcome]:
        return [o for o in self.outcomes if o.status is status]

    @property
    def succeeded(self) -> List[Outcome]:
        return self._with_status(OutcomeStatus.SUCCEEDED)

    @property
    def skipped(self) -> List[Outcome]:
        return self._with_status(OutcomeStatus.SKIPPED_EXISTING)

    @property
    def failed(self) -> List[Outcome]:
        return self._with_status(OutcomeStatus.FAILED)

    @property
    def planned(self) -> List[Outcome]:
        return self._with_status(OutcomeStatus.PLANNED)

    @property
    def ok(self) -> bool:
        return not self.failed

    def written_paths(self) -> List[str]:
        """Project paths written by successful copy/migrate actions."""
        writes = (ActionKind.COPY, ActionKind.COPY_NEW, ActionKind.MIGRATE)
        return [o.action.path for o in self.succeeded if o.action.kind in writes]


def _apply_one(action: PlannedAction, template: FileSystem, project: FileSystem) -> OutcomeStatus:
    if action.kind is ActionKind.SKIP:
        return OutcomeStatus.SKIPPED_EXISTING

    if action.kind is ActionKind.COPY_NEW and project.exists(action.path):
        # Appeared after planning; existing content wins
        return OutcomeStatus.SKIPPED_EXISTING

    if action.kind in (ActionKind.COPY, ActionKind.COPY_NEW):
        project.write_bytes(action.path, template.read_bytes(action.source))
    elif action.kind is ActionKind.MIGRATE:
        project.write_bytes(action.path, project.read_bytes(action.source))
    elif action.kind is ActionKind.DELETE_TREE:
        project.remove_tree(action.path)
    elif action.kind is ActionKind.CHMOD:
        project.make_executable(action.path)
    return OutcomeStatus.SUCCEEDED


def apply_plan(
    plan: Plan,
    template: FileSystem,
    project: FileSystem,
    dry_run: bool = False,
) -> List[Outcome]:
    """Apply a plan to the project tree, best-effort.

    Actions run in plan order. An OSError on one action is recorded as a
    FAILED outcome and the remaining actions still run.

    Args:
        plan: Actions to apply
        template: Source tree for copy actions
        project: Tree being modified
        dry_run: If True, nothing is written and every non-skip action is
            reported as PLANNED

    Returns:
        One Outcome per action, in plan order
    """
    outcomes: List[Outcome] = []
    for action in plan:
        if dry_run:
            status = (OutcomeStatus.SKIPPED_EXISTING if action.kind is ActionKind.SKIP
                      else OutcomeStatus.PLANNED)
            outcomes.append(Outcome(action, status))
            continue

        try:
            status = _apply_one(action, template, project)
        except OSError as e:
            log.warning("Failed to %s %s: %s", action.kind.value, action.path, e)
            outcomes.append(Outcome(action, OutcomeStatus.FAILED, str(e)))
            continue

        log.debug("%s %s: %s", action.kind.value, action.path, status.value)
        outcomes.append(Outcome(action, status))
    return outcomes
