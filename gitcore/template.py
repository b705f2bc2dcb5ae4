"""Template sources.

A template source produces the read-only tree the installer reconciles
against. The default clones the protocol repository with git; a local
directory can be used instead for offline installs.
"""

import logging
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from gitcore.fs import FileSystem, LocalFileSystem

log = logging.getLogger("gitcore.template")

DEFAULT_REPO_URL = "https://github.com/iberi22/Git-Core-Protocol"

CLONE_TIMEOUT = 300


class TemplateFetchError(Exception):
    """Raised when the template tree cannot be obtained. Fatal for a run."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Could not fetch template from {source}: {reason}")


class GitTemplateSource:
    """Shallow-clones the template repository into a temporary directory."""

    def __init__(self, repo_url: str = DEFAULT_REPO_URL, ref: Optional[str] = None):
        self.repo_url = repo_url
        self.ref = ref

    def __repr__(self) -> str:
        return f"GitTemplateSource({self.repo_url!r}, ref={self.ref!r})"

    @property
    def description(self) -> str:
        return f"{self.repo_url}@{self.ref}" if self.ref else self.repo_url

    def _clone(self, dest: Path) -> None:
        cmd = ["git", "clone", "--depth", "1"]
        if self.ref:
            cmd += ["--branch", self.ref]
        cmd += [self.repo_url, str(dest)]

        log.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=CLONE_TIMEOUT,
            )
        except FileNotFoundError as e:
            raise TemplateFetchError(self.description, "git not found") from e
        except subprocess.TimeoutExpired as e:
            raise TemplateFetchError(self.description, "git clone timed out") from e

        if result.returncode != 0:
            raise TemplateFetchError(self.description, result.stderr.strip() or "git clone failed")

        # The template is installed as plain files, not as a nested repository
        shutil.rmtree(dest / ".git", ignore_errors=True)

    @contextmanager
    def fetch(self) -> Iterator[FileSystem]:
        """Clone the template and yield it; the clone is removed on exit."""
        with tempfile.TemporaryDirectory(prefix="git-core-template-") as tmp:
            dest = Path(tmp) / "template"
            self._clone(dest)
            yield LocalFileSystem(dest)


class LocalTemplateSource:
    """Uses an existing directory as the template."""

    def __init__(self, path: Union[Path, str]):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"LocalTemplateSource({str(self.path)!r})"

    @property
    def description(self) -> str:
        return str(self.path)

    @contextmanager
    def fetch(self) -> Iterator[FileSystem]:
        if not self.path.is_dir():
            raise TemplateFetchError(self.description, "directory does not exist")
        yield LocalFileSystem(self.path)
