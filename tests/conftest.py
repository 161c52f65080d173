"""
Shared pytest fixtures for the fzc test suite.

Every test runs with FZC_CONFIG_HOME pointing into its tmp_path, so the
real global config and usage store are never read or written.

Usage in tests:
    def test_something(launcher_factory):
        launcher_factory.write_config({"commands": [...]})
        registry = launcher_factory.create_registry()
"""

import pytest

from tests.factories import LauncherTestFactory


ENV_OVERRIDES = (
    "FZC_CONFIG",
    "FZC_USAGE_ENABLED",
    "FZC_USAGE_WEIGHT",
    "FZC_INTERRUPT_GRACE",
    "FZC_SYMBOLS",
    "FZC_LOG_LEVEL",
    "FZC_LOG_FILE",
    "XDG_CONFIG_HOME",
)


@pytest.fixture(autouse=True)
def isolated_config_home(tmp_path, monkeypatch):
    """Point the global config directory at a temp dir; clear overrides."""
    home = tmp_path / "config-home"
    monkeypatch.setenv("FZC_CONFIG_HOME", str(home))
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def launcher_factory(tmp_path, isolated_config_home):
    """
    Create an empty LauncherTestFactory.

    Example:
        def test_reload(launcher_factory):
            launcher_factory.write_config({"commands": []})
            machine = launcher_factory.create_machine()
    """
    return LauncherTestFactory(tmp_path, isolated_config_home)


@pytest.fixture
def sample_commands():
    """Configured commands shared by ranking and machine tests."""
    return [
        {"name": "Run tests", "run": "echo tests", "description": "Run the test suite"},
        {"name": "Run linter", "run": "echo lint"},
        {"name": "Deploy", "run": "echo deploy", "description": "Ship to production"},
    ]
