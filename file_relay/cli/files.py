# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import json
import logging
from pathlib import Path

import click
import prettytable
import pydantic

from file_relay.cli.common import (
    JSON_FORMAT,
    JSON_INDENT_FORMAT,
    TABLE_FORMAT,
    VALUE_FORMAT,
    click_option_format,
)
from file_relay.config import CONF
from file_relay.utils import display_name, download_path, list_entries, mime_type_for

logger = logging.getLogger(__name__)


class StoredFileOutput(pydantic.BaseModel):
    """Output schema for an entry of the upload directory."""

    name: str = pydantic.Field(description="Stored file name")
    size: int = pydantic.Field(description="Size in bytes")
    regular_file: bool = pydantic.Field(description="Whether the entry is a regular file")
    content_type: str = pydantic.Field(description="Content-Type used when downloading")
    download_path: str = pydantic.Field(description="URL path of the download endpoint")


class StoredFileList(pydantic.RootModel[list[StoredFileOutput]]):
    """Root schema for a list of stored files."""


def get_stored_files(upload_dir: Path) -> StoredFileList:
    """Collect the entries of the upload directory."""
    return StoredFileList(
        [
            StoredFileOutput(
                name=display_name(entry.name),
                size=entry.size,
                regular_file=entry.is_file,
                content_type=mime_type_for(entry.name),
                download_path=download_path(entry.name),
            )
            for entry in list_entries(upload_dir)
        ]
    )


def display_files(files: StoredFileList, format: str):
    """Display the result depending on the format."""
    if format in (VALUE_FORMAT, TABLE_FORMAT):
        table = prettytable.PrettyTable()
        table.title = "Stored files"
        table.field_names = ["Name", "Size", "Regular file", "Content-Type", "Download path"]
        for stored in files.root:
            table.add_row(
                [
                    stored.name,
                    stored.size,
                    stored.regular_file,
                    stored.content_type,
                    stored.download_path,
                ]
            )
        print(table)
    elif format in (JSON_FORMAT, JSON_INDENT_FORMAT):
        indent = 2 if format == JSON_INDENT_FORMAT else None
        print(json.dumps({"files": files.model_dump()}, indent=indent))


@click.command("list-files")
@click.option(
    "--upload-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=lambda: CONF.relay.upload_dir,
    show_default="[relay] upload_dir",
    help="Upload directory to inspect",
)
@click_option_format
def list_files(upload_dir: Path, format: str):
    """List the files stored by the relay.

    Every entry found directly under the upload directory is shown,
    including entries that are not regular files.
    """
    try:
        files = get_stored_files(Path(upload_dir))
    except OSError as e:
        logger.debug("Failed to list %s", upload_dir, exc_info=True)
        raise click.ClickException(f"Cannot read upload directory {upload_dir}: {e}")
    display_files(files, format)
