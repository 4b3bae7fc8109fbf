"""
Shared test fixtures for the RADIUS relay.
"""

from __future__ import annotations

import logging
import os

import pytest

from radius_relay.config.constants import ENV_PREFIX


@pytest.fixture(autouse=True)
def _isolated_relay_env(monkeypatch):
    """Hide RADIUS_RELAY_* variables from the developer's shell."""
    for name in list(os.environ):
        if name.startswith(ENV_PREFIX):
            monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """configure_logging() replaces root handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def write_config(tmp_path):
    """Write an INI file and return its path."""

    def _write(text: str, name: str = "relay.conf") -> str:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)

    return _write
