"""Storage helpers for the file relay (framework-agnostic)."""

# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import BinaryIO, List, NamedTuple
from urllib.parse import quote

LOG = logging.getLogger(__name__)

CHUNK_READ_SIZE = 8 * 1024 * 1024

# Longest name most filesystems accept for a single path component.
MAX_FILENAME_BYTES = 255

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES = {
    ".apk": "application/vnd.android.package-archive",
    ".zip": "application/zip",
    ".rar": "application/x-rar-compressed",
    ".7z": "application/x-7z-compressed",
    ".gz": "application/gzip",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".txt": "text/plain",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
}


class BadRequestError(Exception):
    """Raised when a client input is invalid."""

    pass


class NotFoundError(Exception):
    """Raised when a requested stored file does not exist."""

    pass


class UploadTooLargeError(BadRequestError):
    """Raised when an upload exceeds the configured size ceiling."""

    def __init__(self, limit: int):
        super().__init__(f"file too large: the limit is {limit} bytes")
        self.limit = limit


class StoredEntry(NamedTuple):
    """A single entry found directly under the upload directory."""

    name: str
    size: int
    is_file: bool


def ensure_directory(path: Path) -> Path:
    """Create the directory (and parents) if it is missing."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def purge_directory(path: Path) -> int:
    """Remove every regular file directly under ``path``.

    Returns the number of files removed.
    """
    removed = 0
    for entry in path.iterdir():
        if entry.is_file():
            _remove_file_quietly(entry)
            removed += 1
    return removed


def sanitize_filename(original: str) -> str:
    """Derive the stored name from a client supplied filename.

    Every directory component is stripped, using both ``/`` and ``\\`` as
    separators, and the remaining base name is kept verbatim. Raises
    BadRequestError when nothing usable is left.
    """
    if original is None:
        raise BadRequestError("missing filename")
    name = original.replace("\\", "/").rsplit("/", 1)[-1]
    if not name.strip() or name in (".", ".."):
        raise BadRequestError("invalid filename")
    if name.startswith("."):
        raise BadRequestError("hidden filenames are not accepted")
    if "\x00" in name or any(ord(c) < 32 for c in name):
        raise BadRequestError("filename contains control characters")
    if len(name.encode("utf-8")) > MAX_FILENAME_BYTES:
        raise BadRequestError("filename too long")
    return name


def resolve_stored_path(base: Path, name: str) -> Path:
    """Resolve a stored file name against the upload directory.

    Raises BadRequestError when the name would address anything other than
    a direct child of ``base``.
    """
    if not name or name in (".", "..") or "/" in name or "\\" in name or "\x00" in name:
        raise BadRequestError("invalid filename")
    root = base.resolve()
    resolved = (root / name).resolve()
    if resolved.parent != root:
        raise BadRequestError("path outside upload directory")
    return resolved


def mime_type_for(name: str) -> str:
    """Return the download MIME type for a stored file name."""
    return MIME_TYPES.get(Path(name).suffix.lower(), DEFAULT_MIME_TYPE)


def download_path(name: str) -> str:
    """Return the URL path of a stored file, percent-encoding the name.

    The on-disk bytes of the name are encoded, so names that are not valid
    UTF-8 do not break the listing.
    """
    return f"/download/{quote(os.fsencode(name), safe='')}"


def display_name(name: str) -> str:
    """Return a printable form of a name read from the filesystem.

    Bytes that are not valid UTF-8 are shown as backslash escapes.
    """
    return os.fsencode(name).decode("utf-8", "backslashreplace")


def content_disposition(name: str) -> str:
    """Build an attachment Content-Disposition header value.

    Non-ASCII names get an ASCII fallback plus an RFC 5987 ``filename*``.
    """
    fallback = name.encode("ascii", "replace").decode("ascii").replace('"', "_")
    fallback = fallback.replace("?", "_")
    if fallback == name:
        return f'attachment; filename="{name}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(name, safe='')}"


def list_entries(directory: Path) -> List[StoredEntry]:
    """List every entry directly under ``directory``, sorted by name.

    Raises OSError when the directory cannot be read.
    """
    entries = []
    with os.scandir(directory) as it:
        for entry in it:
            try:
                st = entry.stat(follow_symlinks=False)
                size = st.st_size
                is_file = stat.S_ISREG(st.st_mode)
            except OSError as exc:
                LOG.warning("Failed to stat %s: %s", entry.path, exc)
                size, is_file = 0, False
            entries.append(StoredEntry(entry.name, size, is_file))
    entries.sort(key=lambda e: e.name)
    return entries


def store_stream(src: BinaryIO, staging_dir: Path, destination: Path, limit: int) -> int:
    """Stream ``src`` into ``destination`` through a staging file.

    The content is written to a temporary file in ``staging_dir``, flushed to
    disk, then renamed over ``destination``. An existing destination is only
    replaced once the whole stream has been written. Raises
    UploadTooLargeError when more than ``limit`` bytes are read.

    Returns the number of bytes stored.
    """
    fd, temp_name = tempfile.mkstemp(prefix="upload-", suffix=".part", dir=staging_dir)
    temp_path = Path(temp_name)
    try:
        written = 0
        with os.fdopen(fd, "wb") as out:
            for buf in iter(lambda: src.read(CHUNK_READ_SIZE), b""):
                written += len(buf)
                if written > limit:
                    raise UploadTooLargeError(limit)
                out.write(buf)
            out.flush()
            os.fsync(out.fileno())
        os.chmod(temp_path, 0o644)
        os.replace(temp_path, destination)
        return written
    except BaseException:
        _remove_file_quietly(temp_path)
        raise


def _remove_file_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except Exception as exc:
        LOG.warning("Failed to remove file %s: %s", path, exc)
