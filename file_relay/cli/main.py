# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import click

from file_relay.cli.files import list_files
from file_relay.cli.log import setup_root_logging

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group("file-relay", context_settings=CONTEXT_SETTINGS)
@click.option("-v", "--verbose", is_flag=True, help="Increase output verbosity")
def cli(verbose: bool):
    """Set of utilities for managing the file relay store."""
    setup_root_logging(verbose)


def main():
    """Register commands and run the CLI."""
    cli.add_command(list_files)

    cli()


if __name__ == "__main__":
    main()
