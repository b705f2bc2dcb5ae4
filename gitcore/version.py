"""Version marker lookup.

The protocol version lives in a one-line file at the root of both the
template repository and every installed project. Versions are informational
only: nothing in the installer branches on them.
"""

import logging
import re
from typing import Tuple

import httpx

from gitcore.fs import FileSystem
from gitcore.rules import VERSION_FILE

log = logging.getLogger("gitcore.version")

# Returned when the project has no marker (nothing installed yet)
NOT_INSTALLED = "0.0.0"

# Returned when the remote marker cannot be fetched
UNKNOWN = "unknown"

DEFAULT_RAW_URL = "https://raw.githubusercontent.com/iberi22/Git-Core-Protocol/main"


def _clean(text: str) -> str:
    # Every whitespace character, not only the ends
    return "".join(text.split())


def current_version(project: FileSystem) -> str:
    """Read the installed protocol version from a project tree.

    Returns:
        The version token, or "0.0.0" if the marker is missing or unreadable
    """
    try:
        if not project.is_file(VERSION_FILE):
            return NOT_INSTALLED
        version = _clean(project.read_text(VERSION_FILE))
    except (OSError, UnicodeDecodeError) as e:
        log.debug("Could not read %s: %s", VERSION_FILE, e)
        return NOT_INSTALLED
    return version or NOT_INSTALLED


def remote_version(raw_url: str = DEFAULT_RAW_URL, timeout: float = 10.0) -> str:
    """Fetch the latest protocol version from the template origin.

    Args:
        raw_url: Base URL serving raw files of the template repository
        timeout: Request timeout in seconds

    Returns:
        The version token, or "unknown" on any fetch error
    """
    url = f"{raw_url.rstrip('/')}/{VERSION_FILE}"
    try:
        response = httpx.get(url, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        log.debug("Could not fetch remote version from %s: %s", url, e)
        return UNKNOWN
    return _clean(response.text) or UNKNOWN


def _version_key(version: str) -> Tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", version))


def compare_versions(a: str, b: str) -> int:
    """Compare two version tokens for display purposes.

    Dotted numeric versions compare numerically ("1.10.0" > "1.9.2"), a
    leading "v" is ignored. The "unknown" sentinel sorts lowest. Tokens
    without digits fall back to plain string comparison.

    Returns:
        -1, 0 or 1
    """
    if a == b:
        return 0
    if a == UNKNOWN or b == UNKNOWN:
        return -1 if a == UNKNOWN else 1

    key_a, key_b = _version_key(a), _version_key(b)
    if key_a and key_b and key_a != key_b:
        return -1 if key_a < key_b else 1
    return (a > b) - (a < b)


def update_available(current: str, latest: str) -> bool:
    """True if ``latest`` is known and newer than ``current``."""
    if latest == UNKNOWN:
        return False
    return compare_versions(current, latest) < 0
