# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""File relay: upload files over HTTP and hand out stable download links.

Exposes a small threaded WSGI server storing uploads in a flat directory
and serving them back by name.
"""

from .server import RelayApplication, make_application

__all__ = [
    "RelayApplication",
    "make_application",
]
