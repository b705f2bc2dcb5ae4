"""Configuration management for the Git-Core installer."""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel

from gitcore.template import DEFAULT_REPO_URL
from gitcore.version import DEFAULT_RAW_URL

CONFIG_FILE_NAME = ".git-core.yaml"


class Config(BaseModel):
    """Installer configuration.

    Every field can be overridden from the command line.
    """

    repo_url: str = DEFAULT_REPO_URL
    # None clones the repository's default branch
    ref: Optional[str] = None
    raw_url: str = DEFAULT_RAW_URL
    version_timeout: float = 10.0


def find_config_file(start_path: Path) -> Optional[Path]:
    """Find .git-core.yaml by walking up the directory tree.

    Args:
        start_path: Directory to start searching from

    Returns:
        Path to config file, or None if not found
    """
    current = start_path.resolve()

    while True:
        config_file = current / CONFIG_FILE_NAME
        if config_file.exists():
            return config_file

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_config(path: Optional[Path] = None) -> Config:
    """Load configuration from a .git-core.yaml file.

    Args:
        path: Directory to start searching from (default: current directory)

    Returns:
        Loaded configuration (or defaults if no file is found)
    """
    if path is None:
        path = Path.cwd()

    config_file = find_config_file(path)

    if config_file is None:
        return Config()

    with open(config_file, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        return Config()

    return Config(**data)
