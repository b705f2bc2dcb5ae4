"""Git-Core Protocol installer: bootstrap and upgrade protocol files in a project."""

__version__ = "1.4.0"
