"""Shared fixtures."""

import pytest

from sensu_ec2_discovery.config import ENV_OVERRIDES


@pytest.fixture(autouse=True)
def _clean_plugin_env(monkeypatch):
    """Keep the plugin's environment variables from leaking into tests."""
    for key in ENV_OVERRIDES:
        monkeypatch.delenv(key, raising=False)
