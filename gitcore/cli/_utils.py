"""Shared utilities for CLI modules."""

import logging
import sys
from pathlib import Path

from rich.console import Console

# Shared Rich console instance for all CLI modules
console = Console()


def get_repo_path() -> Path:
    """Get the project root path."""
    return Path.cwd()


def configure_logging(debug: bool) -> None:
    """Send log records to stderr; DEBUG with --debug, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def has_visible_files(path: Path) -> bool:
    """True if the directory contains any entry not starting with a dot."""
    return any(not child.name.startswith(".") for child in path.iterdir())


__all__ = [
    "console",
    "get_repo_path",
    "configure_logging",
    "has_visible_files",
]
