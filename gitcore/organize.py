"""Reorganize loose files in a project root before installing.

Moves stray markdown documents into ``docs/archive/`` and root-level test
files into ``tests/``, leaving the project root with only the files a
reader expects there. Git-tracked files are moved with ``git mv`` so history
follows them.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

log = logging.getLogger("gitcore.organize")

# Created up front so the protocol's layout exists even in empty projects
LAYOUT_DIRS = ["docs/archive", "scripts", "tests", "src"]

DOCS_ARCHIVE_DIR = "docs/archive"
TESTS_DIR = "tests"

# Markdown files that belong in the root
KEEP_ROOT_FILES = {
    "README.md",
    "AGENTS.md",
    "CHANGELOG.md",
    "CONTRIBUTING.md",
    "LICENSE.md",
}

TEST_FILE_PATTERNS = [
    "test_*.py",
    "*_test.py",
    "*.test.js",
    "*.test.ts",
    "*.spec.js",
    "*.spec.ts",
]


@dataclass
class Move:
    """A file relocated by the organizer.

    Attributes:
        source: Original path, relative to the project root
        dest: New path, relative to the project root
        error: Failure message, or None if the move succeeded
    """

    source: str
    dest: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def detect_loose_files(repo_path: Path) -> List[Tuple[Path, str]]:
    """Find root files that should be moved.

    Args:
        repo_path: Project root

    Returns:
        Sorted list of (file_path, destination_dir) tuples
    """
    found = {}

    for match in repo_path.glob("*.md"):
        if match.is_file() and match.name not in KEEP_ROOT_FILES:
            found[match] = DOCS_ARCHIVE_DIR

    for pattern in TEST_FILE_PATTERNS:
        for match in repo_path.glob(pattern):
            if match.is_file():
                found.setdefault(match, TESTS_DIR)

    return sorted(found.items())


def _is_tracked(repo_path: Path, path: Path) -> bool:
    try:
        result = subprocess.run(
            ["git", "ls-files", "--error-unmatch", str(path)],
            cwd=repo_path,
            capture_output=True,
        )
    except FileNotFoundError:
        return False
    return result.returncode == 0


def _move(repo_path: Path, source: Path, dest: Path) -> None:
    if _is_tracked(repo_path, source):
        subprocess.run(
            ["git", "mv", str(source), str(dest)],
            cwd=repo_path,
            check=True,
            capture_output=True,
        )
    else:
        shutil.move(str(source), str(dest))


def organize_existing_files(repo_path: Path) -> List[Move]:
    """Create the standard layout and move loose root files into it.

    A file whose destination already exists is left in place and reported
    as failed; other files are still moved.

    Args:
        repo_path: Project root

    Returns:
        One Move per file considered
    """
    for directory in LAYOUT_DIRS:
        (repo_path / directory).mkdir(parents=True, exist_ok=True)

    moves: List[Move] = []
    for source, dest_dir in detect_loose_files(repo_path):
        dest = repo_path / dest_dir / source.name
        move = Move(source=source.name, dest=f"{dest_dir}/{source.name}")

        if dest.exists():
            move.error = "destination exists"
        else:
            try:
                _move(repo_path, source, dest)
            except (OSError, subprocess.CalledProcessError) as e:
                move.error = str(e)

        if move.error:
            log.warning("Could not move %s: %s", move.source, move.error)
        moves.append(move)
    return moves
