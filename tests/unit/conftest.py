# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
from pathlib import Path

import pytest

from file_relay.config import RelayConfig
from file_relay.server import RelayApplication


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    """Location of the upload directory, not created yet."""
    return tmp_path / "uploads"


@pytest.fixture
def relay_config(upload_dir: Path) -> RelayConfig:
    """Relay configuration rooted in a temporary directory."""
    return RelayConfig(upload_dir=upload_dir)


@pytest.fixture
def app(relay_config: RelayConfig) -> RelayApplication:
    """Relay WSGI application using the temporary upload directory."""
    return RelayApplication(relay_config)
