"""Path rules for the Git-Core Protocol installer.

Every path the installer may touch in a consumer project is classified by a
single ordered table, ``PATH_RULES``. The first matching rule wins, so more
specific rules (the reserved workflows, the architecture file) come before
the subtree rules of the directory that contains them.

Patterns come in three shapes:
- an exact relative path: ``"AGENTS.md"``
- a single-level glob: ``"scripts/*.sh"`` matches direct children only
- a subtree: ``"scripts/**"`` matches everything below ``scripts/``
"""

from dataclasses import dataclass
from enum import Enum
from fnmatch import fnmatchcase
from typing import Optional, Tuple


# Config directory holding the architecture notes and context log
CONFIG_DIR = ".✨"

# Pre-rename config directory; migrated to CONFIG_DIR but never deleted
LEGACY_CONFIG_DIR = ".ai"

ARCHITECTURE_FILE = f"{CONFIG_DIR}/ARCHITECTURE.md"
CONTEXT_LOG_FILE = f"{CONFIG_DIR}/CONTEXT_LOG.md"

VERSION_FILE = ".git-core-protocol-version"

WORKFLOWS_DIR = ".github/workflows"

# Workflows shipped by the protocol itself. Always replaced, never backed up.
RESERVED_WORKFLOWS = frozenset({
    "update-protocol.yml",
    "structure-validator.yml",
    "codex-review.yml",
    "agent-dispatcher.yml",
})

# Top-level directories replaced (upgrade) or merged (install) as a whole
MANAGED_DIRS: Tuple[str, ...] = (CONFIG_DIR, ".github", "scripts", "docs", "bin")

# Single files owned by the protocol: copied if absent, overwritten on upgrade
PROTOCOL_FILES: Tuple[str, ...] = (
    ".cursorrules",
    ".windsurfrules",
    "AGENTS.md",
    VERSION_FILE,
)

# Single files the consumer owns once they exist, whatever the mode
PRESERVED_FILES: Tuple[str, ...] = (".gitignore", "README.md")

# Template entries used only by the upstream template repository's own
# build and release automation; never installed into consumer projects.
BUILD_ONLY_PATHS = frozenset({
    f"{WORKFLOWS_DIR}/build-tools.yml",
    f"{WORKFLOWS_DIR}/release.yml",
    "scripts/bump-version.ps1",
    "scripts/bump-version.sh",
})


class Disposition(str, Enum):
    """How the installer treats an existing path in the project."""

    PROTOCOL_OWNED = "protocol-owned"  # always replaceable by the template
    USER_OWNED = "user-owned"  # never overwritten once present
    MERGE_ONLY_NEW = "merge-only-new"  # copied only if absent


class Mode(str, Enum):
    """Installer run mode."""

    INSTALL = "install"
    SAFE_UPGRADE = "safe-upgrade"
    FORCE_UPGRADE = "force-upgrade"

    @classmethod
    def from_flags(cls, upgrade: bool = False, force: bool = False) -> "Mode":
        """Resolve the mode from CLI flags. ``force`` implies ``upgrade``."""
        if force:
            return cls.FORCE_UPGRADE
        if upgrade:
            return cls.SAFE_UPGRADE
        return cls.INSTALL

    @property
    def is_upgrade(self) -> bool:
        return self is not Mode.INSTALL


@dataclass(frozen=True)
class PathRule:
    """Maps a path pattern to a disposition.

    Attributes:
        pattern: Exact path, single-level glob, or ``dir/**`` subtree
        disposition: Treatment of matching paths
        forceable: If True, a forced upgrade treats a user-owned match as
            protocol-owned
    """

    pattern: str
    disposition: Disposition
    forceable: bool = False

    def matches(self, path: str) -> bool:
        if self.pattern.endswith("/**"):
            return path.startswith(self.pattern[:-2])
        pattern_parts = self.pattern.split("/")
        path_parts = path.split("/")
        if len(pattern_parts) != len(path_parts):
            return False
        return all(fnmatchcase(p, pat) for p, pat in zip(path_parts, pattern_parts))


PATH_RULES: Tuple[PathRule, ...] = (
    PathRule(ARCHITECTURE_FILE, Disposition.USER_OWNED, forceable=True),
    PathRule(CONTEXT_LOG_FILE, Disposition.USER_OWNED),
    *(PathRule(f"{WORKFLOWS_DIR}/{name}", Disposition.PROTOCOL_OWNED)
      for name in sorted(RESERVED_WORKFLOWS)),
    PathRule(f"{WORKFLOWS_DIR}/**", Disposition.USER_OWNED),
    *(PathRule(name, Disposition.PROTOCOL_OWNED) for name in PROTOCOL_FILES),
    *(PathRule(name, Disposition.MERGE_ONLY_NEW) for name in PRESERVED_FILES),
    *(PathRule(f"{name}/**", Disposition.PROTOCOL_OWNED) for name in MANAGED_DIRS),
)


def find_rule(path: str, rules: Tuple[PathRule, ...] = PATH_RULES) -> Optional[PathRule]:
    """Return the first rule matching ``path``, or None if unmanaged."""
    for rule in rules:
        if rule.matches(path):
            return rule
    return None


def classify(path: str, rules: Tuple[PathRule, ...] = PATH_RULES) -> Optional[Disposition]:
    """Return the disposition of ``path``, or None if the installer ignores it."""
    rule = find_rule(path, rules)
    return rule.disposition if rule else None


def effective_disposition(
    path: str, mode: Mode, rules: Tuple[PathRule, ...] = PATH_RULES
) -> Optional[Disposition]:
    """Disposition of ``path`` once the run mode is taken into account.

    Only forceable rules change: under FORCE_UPGRADE they become
    protocol-owned. The context log and custom workflows stay user-owned.
    """
    rule = find_rule(path, rules)
    if rule is None:
        return None
    if rule.forceable and mode is Mode.FORCE_UPGRADE:
        return Disposition.PROTOCOL_OWNED
    return rule.disposition


def is_build_only(path: str) -> bool:
    return path in BUILD_ONLY_PATHS


def user_owned_files(rules: Tuple[PathRule, ...] = PATH_RULES) -> Tuple[str, ...]:
    """Exact (non-pattern) user-owned paths, e.g. the architecture file."""
    return tuple(
        rule.pattern
        for rule in rules
        if rule.disposition is Disposition.USER_OWNED
        and not any(ch in rule.pattern for ch in "*?[")
    )
