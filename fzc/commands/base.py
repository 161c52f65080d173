"""
BaseCommand — Shared foundation for all CLI commands

Commands receive the CLI instance and access its resources through
properties; nothing is reinitialized per command.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..cli import LauncherCLI


class BaseCommand:
    """Base class for CLI commands with access to shared resources."""

    def __init__(self, cli: 'LauncherCLI'):
        self._cli = cli

    @property
    def cwd(self):
        """Launcher working directory."""
        return self._cli.cwd

    @property
    def config_manager(self):
        return self._cli.config_manager

    @property
    def loaded(self):
        """Loaded configuration (loads on first access)."""
        return self._cli.loaded

    @property
    def registry(self):
        """Provider registry with a loaded catalog."""
        return self._cli.registry

    @property
    def usage(self):
        return self._cli.usage

    @property
    def sessions(self):
        return self._cli.sessions

    @property
    def symbols(self):
        """Symbol set for display (Unicode/ASCII)."""
        return self._cli.symbols
