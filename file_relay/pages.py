# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""HTML pages rendered by the file relay."""

from html import escape
from typing import Iterable

from .utils import StoredEntry, display_name, download_path

TITLE = "File Relay"

EMPTY_MESSAGE = "No files uploaded yet."

_LIST_STYLE = """
      body { font-family: "Segoe UI", sans-serif; max-width: 900px; margin: 40px auto; padding: 0 20px; }
      h1 { color: #2c3e50; }
      table { width: 100%; border-collapse: collapse; margin: 20px 0; }
      th, td { padding: 12px 15px; border: 1px solid #ddd; text-align: left; }
      th { background-color: #f4f6f9; color: #2c3e50; }
      tr:nth-child(even) { background-color: #f9f9f9; }
      .filename { font-family: monospace; }
      .empty { color: #777; font-style: italic; }
      .back { margin-top: 30px; }
"""  # noqa: E501


def home_page() -> str:
    """Upload form with a link to the file list."""
    return f"""<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="UTF-8">
    <title>{TITLE}</title>
  </head>
  <body>
    <h2>{TITLE}</h2>
    <form action="/upload" method="post" enctype="multipart/form-data">
      <input type="file" name="file" required />
      <button type="submit">Upload</button>
    </form>
    <a href="/files" class="btn">Browse uploaded files</a>
  </body>
</html>
"""


def upload_result(original_name: str, url: str) -> str:
    """Confirmation fragment returned after a successful upload."""
    return f"""
<p>Upload succeeded</p>
<p>Original filename: {escape(original_name)}</p>
<p>Download link:</p>
<a href="{escape(url)}">{escape(url)}</a>
"""


def file_list(entries: Iterable[StoredEntry], host_url: str) -> str:
    """Table of stored files, or the empty-state message."""
    entries = list(entries)
    if not entries:
        body = f'<p class="empty">{EMPTY_MESSAGE}</p>'
    else:
        rows = []
        for entry in entries:
            path = download_path(entry.name)
            rows.append(
                f"""
          <tr>
            <td class="filename">{escape(display_name(entry.name))}</td>
            <td><small>{escape(host_url + path)}</small></td>
            <td class="action"><a href="{escape(path)}" download>Download</a></td>
          </tr>"""
            )
        body = f"""<table>
      <thead>
        <tr>
          <th>Filename</th>
          <th>Download link</th>
          <th>Action</th>
        </tr>
      </thead>
      <tbody>{"".join(rows)}
      </tbody>
    </table>"""

    return f"""<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="UTF-8">
    <title>{TITLE} - Files</title>
    <style>{_LIST_STYLE}    </style>
  </head>
  <body>
    <h1>{TITLE} - Files</h1>
    {body}
    <div class="back">
      <a href="/">&larr; Back to upload</a>
    </div>
  </body>
</html>
"""
