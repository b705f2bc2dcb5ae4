"""Pytest configuration and fixtures for gitcore tests.

Remote version lookups are stubbed out for every test so nothing reaches
the network. Tests that exercise the lookup itself patch ``httpx.get``.
"""

from contextlib import contextmanager

import pytest
from click.testing import CliRunner

from gitcore.fs import MemoryFileSystem


@pytest.fixture(autouse=True)
def no_remote_version(monkeypatch):
    """Make remote version lookups return a fixed value instead of fetching."""
    monkeypatch.setattr("gitcore.installer.remote_version", lambda *a, **kw: "9.9.9")
    monkeypatch.setattr("gitcore.cli.setup.remote_version", lambda *a, **kw: "9.9.9")


@pytest.fixture
def cli_runner():
    """Create a Click test runner."""
    return CliRunner()


TEMPLATE_FILES = {
    ".✨/ARCHITECTURE.md": "# Architecture\n\nTBD\n",
    ".✨/CONTEXT_LOG.md": "# Context log\n",
    ".✨/AGENT_INDEX.md": "# Agents\n",
    ".github/copilot-instructions.md": "Use GitHub Issues.\n",
    ".github/workflows/update-protocol.yml": "name: update-protocol\n",
    ".github/workflows/agent-dispatcher.yml": "name: agent-dispatcher\n",
    ".github/workflows/build-tools.yml": "name: build-tools\n",
    ".github/workflows/release.yml": "name: release\n",
    ".github/workflows/sync-issues.yml": "name: sync-issues\n",
    "scripts/init_project.sh": "#!/bin/bash\necho init\n",
    "scripts/init_project.ps1": "Write-Host init\n",
    "scripts/bump-version.sh": "#!/bin/bash\necho bump\n",
    "docs/COMMIT_STANDARD.md": "# Commits\n",
    "AGENTS.md": "# Rules for agents\n",
    ".cursorrules": "cursor rules\n",
    ".windsurfrules": "windsurf rules\n",
    ".git-core-protocol-version": "1.4.0\n",
    ".gitignore": "node_modules/\n",
    "README.md": "# Git-Core Protocol\n",
    "install.sh": "#!/bin/bash\n",
}


@pytest.fixture
def template_tree():
    """A template tree shaped like the protocol repository."""
    return MemoryFileSystem(TEMPLATE_FILES)


class FakeTemplateSource:
    """Template source yielding a prepared tree, recording fetches."""

    description = "fake-template"

    def __init__(self, tree=None, error=None):
        self.tree = tree
        self.error = error
        self.fetch_count = 0

    @contextmanager
    def fetch(self):
        self.fetch_count += 1
        if self.error is not None:
            raise self.error
        yield self.tree


@pytest.fixture
def fake_source(template_tree):
    return FakeTemplateSource(template_tree)


@pytest.fixture
def make_source():
    """Factory for template sources: make_source(tree) or make_source(error=exc)."""
    return FakeTemplateSource
