# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Configuration for the file relay.

Options are registered with ``oslo_config`` under the ``[relay]`` group and
read once at startup into an immutable :class:`RelayConfig`, which is then
handed to the WSGI application explicitly.
"""

import os
from pathlib import Path
from typing import FrozenSet, Optional

from oslo_config import cfg
from pydantic import BaseModel, ConfigDict, Field, field_validator

MIB = 1024 * 1024

DEFAULT_MAX_UPLOAD_BYTES = 2000 * MIB

DEFAULT_ALLOWED_TYPES = [
    # images
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
    # documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/plain",
    # archives
    "application/zip",
    "application/x-rar-compressed",
    "application/x-7z-compressed",
    "application/gzip",
    "application/vnd.android.package-archive",
    "application/octet-stream",
]

DEFAULT_ALLOWED_EXTENSIONS = [
    ".zip",
    ".rar",
    ".7z",
    ".gz",
    ".tar",
    ".tgz",
    ".tar.gz",
    ".pdf",
    ".doc",
    ".docx",
    ".xls",
    ".xlsx",
    ".ppt",
    ".pptx",
    ".txt",
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".webp",
    ".svg",
    ".apk",
]

relay_opts = [
    cfg.StrOpt(
        "host",
        default=os.environ.get("FILE_RELAY_HOST", "0.0.0.0"),
        help="Listen address for the file relay",
    ),
    cfg.PortOpt(
        "port",
        default=int(os.environ.get("FILE_RELAY_PORT", "8081")),
        help="TCP listen port for the file relay",
    ),
    cfg.StrOpt(
        "upload_dir",
        default=os.environ.get("FILE_RELAY_UPLOAD_DIR", "uploads"),
        help="Flat directory holding the stored files",
    ),
    cfg.StrOpt(
        "staging_dir",
        help="Directory for uploads still in flight. Must live on the same "
        "filesystem as upload_dir. Defaults to '<upload_dir>.partial'.",
    ),
    cfg.StrOpt(
        "static_dir",
        help="Optional directory of public assets served for unmatched GET paths",
    ),
    cfg.IntOpt(
        "max_upload_bytes",
        default=DEFAULT_MAX_UPLOAD_BYTES,
        min=1,
        help="Largest accepted upload, in bytes",
    ),
    cfg.ListOpt(
        "allowed_types",
        default=DEFAULT_ALLOWED_TYPES,
        help="MIME types admitted for upload",
    ),
    cfg.ListOpt(
        "allowed_extensions",
        default=DEFAULT_ALLOWED_EXTENSIONS,
        help="File extensions admitted for upload, matched case-insensitively",
    ),
    cfg.IntOpt(
        "client_socket_timeout",
        default=0,
        min=0,
        help="Timeout in seconds for client connections. 0 disables the "
        "timeout so arbitrarily slow transfers of large files can complete.",
    ),
]

CONF = cfg.CONF


def register_opts(conf: cfg.ConfigOpts) -> None:
    """Register the relay options on the given config object."""
    conf.register_opts(relay_opts, group="relay")


register_opts(CONF)


class AdmissionPolicy(BaseModel):
    """Decides whether an uploaded file may be stored.

    A file is admitted when its declared MIME type is allowed OR its name
    ends with an allowed extension.
    """

    model_config = ConfigDict(frozen=True)

    allowed_types: FrozenSet[str] = Field(default=frozenset(DEFAULT_ALLOWED_TYPES))
    allowed_extensions: FrozenSet[str] = Field(default=frozenset(DEFAULT_ALLOWED_EXTENSIONS))

    @field_validator("allowed_types", mode="before")
    @classmethod
    def _normalize_types(cls, value):
        return frozenset(t.strip().lower() for t in value if t and t.strip())

    @field_validator("allowed_extensions", mode="before")
    @classmethod
    def _normalize_extensions(cls, value):
        normalized = set()
        for ext in value:
            ext = ext.strip().lower() if ext else ""
            if not ext:
                continue
            normalized.add(ext if ext.startswith(".") else f".{ext}")
        return frozenset(normalized)

    def admits(self, mime_type: Optional[str], filename: str) -> bool:
        """Return True when either the MIME type or the extension is allowed."""
        if mime_type and mime_type.split(";", 1)[0].strip().lower() in self.allowed_types:
            return True
        lowered = filename.lower()
        return any(lowered.endswith(ext) for ext in self.allowed_extensions)


class RelayConfig(BaseModel):
    """Process-wide relay configuration, built once at startup."""

    model_config = ConfigDict(frozen=True)

    upload_dir: Path
    staging_dir: Optional[Path] = None
    static_dir: Optional[Path] = None
    host: str = "0.0.0.0"
    port: int = Field(default=8081, ge=0, le=65535)
    max_upload_bytes: int = Field(default=DEFAULT_MAX_UPLOAD_BYTES, gt=0)
    client_socket_timeout: int = Field(default=0, ge=0)
    admission: AdmissionPolicy = Field(default_factory=AdmissionPolicy)

    @property
    def staging_path(self) -> Path:
        """Directory where in-flight uploads are written."""
        if self.staging_dir is not None:
            return self.staging_dir
        return self.upload_dir.with_name(self.upload_dir.name + ".partial")

    @property
    def socket_timeout(self) -> Optional[int]:
        """Socket timeout to apply to client connections, None for unlimited."""
        return self.client_socket_timeout or None

    @classmethod
    def from_conf(cls, conf: cfg.ConfigOpts = CONF) -> "RelayConfig":
        """Build the relay configuration from the ``[relay]`` option group."""
        group = conf.relay
        upload_dir = Path(group.upload_dir).expanduser().resolve()
        return cls(
            upload_dir=upload_dir,
            staging_dir=Path(group.staging_dir).expanduser().resolve()
            if group.staging_dir
            else None,
            static_dir=Path(group.static_dir).expanduser() if group.static_dir else None,
            host=group.host,
            port=group.port,
            max_upload_bytes=group.max_upload_bytes,
            client_socket_timeout=group.client_socket_timeout,
            admission=AdmissionPolicy(
                allowed_types=group.allowed_types,
                allowed_extensions=group.allowed_extensions,
            ),
        )
