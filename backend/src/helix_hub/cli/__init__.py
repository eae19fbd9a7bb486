"""CLI entry points for Helix Hub.

Provides command-line tools for:
- Resolving enquiry identities from exported rows
- Reporting duplicated enquiry IDs in the legacy database
"""

import click

from .. import __version__
from .resolve import cli as resolve_cli


@click.group()
@click.version_option(version=__version__, prog_name="helix-hub")
def main():
    """Helix Hub - enquiry identity tools.

    Command-line tools for inspecting how enquiries are grouped
    into identities.
    """
    pass


main.add_command(resolve_cli, name="resolve")


if __name__ == "__main__":
    main()
