"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Force settings to use test-safe defaults before any import
os.environ.setdefault("REMOTEOPS_SSH_KEY_PATH", "")
os.environ.setdefault("REMOTEOPS_LOG_LEVEL", "DEBUG")

import pytest

from remoteops.config import Settings
from remoteops.models.commands import CommandSpec
from remoteops.services.credentials import SSHCredentials, StaticCredentialResolver
from remoteops.utils.logging import setup_logging
from tests.mock_ssh import MockExecutor

setup_logging(Settings(log_level="DEBUG"))


@pytest.fixture
def test_settings(tmp_path):
    """Settings with fast polling and a temp key directory."""
    return Settings(
        ssh_key_dir=str(tmp_path / "keys"),
        channel_poll_interval=0.001,
        lock_backoff_seconds=30,
        poll_interval_seconds=10,
        max_sessions_per_host=2,
    )


@pytest.fixture
def mock_executor():
    """Provide a fresh MockExecutor."""
    return MockExecutor()


@pytest.fixture
def credentials():
    return StaticCredentialResolver(
        {"deploy": SSHCredentials(username="deploy", key_path="/keys/deploy.pem")},
        default=SSHCredentials(username="ubuntu", key_path="/keys/default.pem"),
    )


@pytest.fixture
def make_spec():
    def _make(command: str = "uptime", host: str = "10.0.0.5", **kwargs) -> CommandSpec:
        kwargs.setdefault("timeout", 30)
        return CommandSpec(host=host, auth_ref=kwargs.pop("auth_ref", "deploy"), command=command, **kwargs)

    return _make
