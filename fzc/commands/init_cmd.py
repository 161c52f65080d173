"""
InitCommand — Write the starter configuration

Targets --config when given, otherwise the global config path.
An existing file is never touched unless --force is passed.
"""

import sys

from ..commands.base import BaseCommand
from ..config import InitAlreadyExists
from ..presentation.symbols import safe_print


class InitCommand(BaseCommand):
    """Command for creating the starter config file."""

    def init(self, force: bool = False) -> int:
        symbols = self.symbols
        try:
            path = self.config_manager.write_example_config(force=force)
        except InitAlreadyExists as e:
            safe_print(f"{symbols.failed} {e}", file=sys.stderr)
            return 1
        except OSError as e:
            safe_print(f"{symbols.failed} Failed to write config: {e}", file=sys.stderr)
            return 1

        safe_print(f"{symbols.succeeded} Created {path}")
        safe_print("  Edit it to add commands, then run: fzc")
        return 0


def register_parser(subparsers):
    p = subparsers.add_parser('init', help='Create the starter config file')
    p.add_argument('--force', '-f', action='store_true',
                   help='Overwrite an existing config file')
    return p


def handle(cli, args):
    return InitCommand(cli).init(force=args.force)
