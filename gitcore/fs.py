"""Filesystem access for the template reconciler.

Every tree the installer touches (the fetched template, the consumer project,
the backup area) is reached through a ``FileSystem``. Paths are POSIX-style
strings relative to the tree root, e.g. ``".github/workflows/ci.yml"``.

Two implementations are provided:
- ``LocalFileSystem`` maps relative paths onto a directory on disk.
- ``MemoryFileSystem`` keeps everything in a dict. Tests use it to build
  trees without touching the disk.
"""

from __future__ import annotations

import shutil
import stat
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Mapping, Optional, Set, Union


def normalize(path: str) -> str:
    """Normalize a relative tree path ("./a//b/" -> "a/b")."""
    parts = [p for p in PurePosixPath(path).parts if p not in ("", ".")]
    if any(p == ".." for p in parts) or path.startswith("/"):
        raise ValueError(f"Path escapes tree root: {path!r}")
    return "/".join(parts)


def join(*parts: str) -> str:
    return normalize("/".join(p for p in parts if p))


class FileSystem(ABC):
    """A tree of files addressed by relative POSIX paths."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        ...

    @abstractmethod
    def is_file(self, path: str) -> bool:
        ...

    @abstractmethod
    def is_dir(self, path: str) -> bool:
        ...

    @abstractmethod
    def read_bytes(self, path: str) -> bytes:
        """Read a file. Raises FileNotFoundError if it does not exist."""

    @abstractmethod
    def write_bytes(self, path: str, data: bytes) -> None:
        """Write a file, creating parent directories as needed."""

    @abstractmethod
    def list_dir(self, path: str = "") -> List[str]:
        """Names of the direct children of a directory, sorted."""

    @abstractmethod
    def remove_file(self, path: str) -> None:
        ...

    @abstractmethod
    def remove_tree(self, path: str) -> None:
        """Remove a directory and everything below it. Missing is a no-op."""

    @abstractmethod
    def make_dirs(self, path: str) -> None:
        ...

    @abstractmethod
    def make_executable(self, path: str) -> None:
        ...

    def read_text(self, path: str) -> str:
        return self.read_bytes(path).decode("utf-8")

    def write_text(self, path: str, text: str) -> None:
        self.write_bytes(path, text.encode("utf-8"))

    def walk_files(self, path: str = "") -> List[str]:
        """All file paths below ``path`` (recursive), sorted.

        Returned paths are relative to the tree root, not to ``path``.
        """
        base = normalize(path)
        if base and self.is_file(base):
            return [base]
        if base and not self.is_dir(base):
            return []

        found: List[str] = []
        for name in self.list_dir(base):
            child = join(base, name)
            if self.is_dir(child):
                found.extend(self.walk_files(child))
            else:
                found.append(child)
        return sorted(found)


class LocalFileSystem(FileSystem):
    """FileSystem rooted at a directory on disk."""

    def __init__(self, root: Union[Path, str]):
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"LocalFileSystem({str(self.root)!r})"

    def _abs(self, path: str) -> Path:
        rel = normalize(path)
        return self.root / rel if rel else self.root

    def exists(self, path: str) -> bool:
        return self._abs(path).exists()

    def is_file(self, path: str) -> bool:
        return self._abs(path).is_file()

    def is_dir(self, path: str) -> bool:
        return self._abs(path).is_dir()

    def read_bytes(self, path: str) -> bytes:
        return self._abs(path).read_bytes()

    def write_bytes(self, path: str, data: bytes) -> None:
        target = self._abs(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def list_dir(self, path: str = "") -> List[str]:
        directory = self._abs(path)
        if not directory.is_dir():
            return []
        return sorted(child.name for child in directory.iterdir())

    def remove_file(self, path: str) -> None:
        self._abs(path).unlink()

    def remove_tree(self, path: str) -> None:
        target = self._abs(path)
        if target == self.root:
            raise ValueError("Refusing to remove the tree root")
        if target.is_symlink() or target.is_file():
            target.unlink()
        elif target.is_dir():
            shutil.rmtree(target)

    def make_dirs(self, path: str) -> None:
        self._abs(path).mkdir(parents=True, exist_ok=True)

    def make_executable(self, path: str) -> None:
        target = self._abs(path)
        mode = target.stat().st_mode
        target.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


class MemoryFileSystem(FileSystem):
    """In-memory FileSystem.

    Directories are implied by the files below them; empty directories are
    tracked separately so ``make_dirs`` behaves like it does on disk.

    Example:
        >>> fs = MemoryFileSystem({".✨/ARCHITECTURE.md": "TBD"})
        >>> fs.read_text(".✨/ARCHITECTURE.md")
        'TBD'
    """

    def __init__(self, files: Optional[Mapping[str, Union[str, bytes]]] = None):
        self.files: Dict[str, bytes] = {}
        self.dirs: Set[str] = set()
        self.executables: Set[str] = set()
        for path, content in (files or {}).items():
            if isinstance(content, str):
                content = content.encode("utf-8")
            self.write_bytes(path, content)

    def __repr__(self) -> str:
        return f"MemoryFileSystem({len(self.files)} files)"

    def snapshot(self) -> Dict[str, bytes]:
        """Copy of the file contents, for before/after comparisons."""
        return dict(self.files)

    def _parents(self, path: str) -> Iterable[str]:
        parts = path.split("/")
        for i in range(1, len(parts)):
            yield "/".join(parts[:i])

    def exists(self, path: str) -> bool:
        return self.is_file(path) or self.is_dir(path)

    def is_file(self, path: str) -> bool:
        return normalize(path) in self.files

    def is_dir(self, path: str) -> bool:
        rel = normalize(path)
        if not rel:
            return True
        if rel in self.dirs:
            return True
        prefix = rel + "/"
        return any(f.startswith(prefix) for f in self.files)

    def read_bytes(self, path: str) -> bytes:
        rel = normalize(path)
        if rel not in self.files:
            raise FileNotFoundError(rel)
        return self.files[rel]

    def write_bytes(self, path: str, data: bytes) -> None:
        rel = normalize(path)
        if not rel or self.is_dir(rel):
            raise IsADirectoryError(rel)
        for parent in self._parents(rel):
            if parent in self.files:
                raise NotADirectoryError(parent)
        self.files[rel] = bytes(data)
        self.dirs.update(self._parents(rel))

    def list_dir(self, path: str = "") -> List[str]:
        rel = normalize(path)
        prefix = rel + "/" if rel else ""
        names: Set[str] = set()
        for entry in list(self.files) + list(self.dirs):
            if entry.startswith(prefix) and entry != rel:
                names.add(entry[len(prefix):].split("/", 1)[0])
        return sorted(names)

    def remove_file(self, path: str) -> None:
        rel = normalize(path)
        if rel not in self.files:
            raise FileNotFoundError(rel)
        del self.files[rel]
        self.executables.discard(rel)

    def remove_tree(self, path: str) -> None:
        rel = normalize(path)
        if not rel:
            raise ValueError("Refusing to remove the tree root")
        prefix = rel + "/"
        for f in [f for f in self.files if f == rel or f.startswith(prefix)]:
            del self.files[f]
            self.executables.discard(f)
        self.dirs = {d for d in self.dirs if d != rel and not d.startswith(prefix)}

    def make_dirs(self, path: str) -> None:
        rel = normalize(path)
        if rel in self.files:
            raise FileExistsError(rel)
        if rel:
            self.dirs.add(rel)
            self.dirs.update(self._parents(rel))

    def make_executable(self, path: str) -> None:
        rel = normalize(path)
        if rel not in self.files:
            raise FileNotFoundError(rel)
        self.executables.add(rel)
