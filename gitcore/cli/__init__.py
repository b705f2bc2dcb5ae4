"""CLI for the Git-Core Protocol installer."""

import click

from gitcore import __version__
from gitcore.cli._utils import configure_logging


@click.group()
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Log debug output to stderr")
def main(debug: bool) -> None:
    """Git-Core Protocol: track agent work in GitHub Issues, not local files.

    Installs and upgrades the protocol's agent instructions, workflows and
    scripts in the current project.
    """
    configure_logging(debug)


# Import and register command modules
from gitcore.cli import setup

main.add_command(setup.install)
main.add_command(setup.upgrade)
main.add_command(setup.organize)
main.add_command(setup.version)
main.add_command(setup.preflight)

__all__ = ["main"]
