"""
ConfigCommand — Show the effective configuration and where it came from
"""

from ..commands.base import BaseCommand
from ..presentation.symbols import safe_print


class ConfigCommand(BaseCommand):
    """Command for inspecting configuration."""

    def show_config(self) -> int:
        safe_print(self.config_manager.display(self.loaded))
        return 0


def register_parser(subparsers):
    return subparsers.add_parser('config', help='Show effective configuration and file locations')


def handle(cli, args):
    return ConfigCommand(cli).show_config()
