"""
CLI -- Command interface

Without a subcommand, opens the interactive launcher:
  fzc                      Search, run, stream output
  fzc --config PATH        Use a specific config file

Subcommands for scripts and quick checks:
  fzc init [--force]       Write the starter config
  fzc list [QUERY]         Print the ranked catalog
  fzc run NAME             Run one command, output to stdout
  fzc config               Show effective configuration

Logging goes to --log-file (or FZC_LOG_FILE) so it never draws over the
full-screen interface; non-interactive commands also log warnings to stderr.
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config import ConfigError, ConfigManager, LoadedConfig
from .content import EPILOG
from .core.usage import UsageStore
from .interaction.machine import InteractionMachine
from .interaction.state import LauncherContext
from .presentation.symbols import SymbolSet, get_symbols, safe_print
from .services.registry import ProviderRegistry
from .services.session import ProcessSessionManager


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def configure_logging(level: str = "WARNING", log_file: Optional[str] = None, stderr: bool = False):
    """
    Configure the package logger.

    Args:
        level: Level name for the fzc logger
        log_file: Append log records to this file
        stderr: Also log to stderr (never while the full screen is up)
    """
    package_logger = logging.getLogger("fzc")
    package_logger.setLevel(level.upper())
    for existing in list(package_logger.handlers):
        if not isinstance(existing, logging.NullHandler):
            package_logger.removeHandler(existing)
            existing.close()
    formatter = logging.Formatter(LOG_FORMAT)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)
    if stderr:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        package_logger.addHandler(handler)


class LauncherCLI:
    """
    Holds the resources every command shares.

    Config, registry and usage store load lazily so `fzc init` works even
    when the existing config is broken.
    """

    def __init__(self, cwd: Path, config_path: Optional[Path] = None):
        self.cwd = Path(cwd).resolve()
        self.config_manager = ConfigManager(self.cwd, config_path)
        self._loaded: Optional[LoadedConfig] = None
        self._registry: Optional[ProviderRegistry] = None
        self._usage: Optional[UsageStore] = None
        self._sessions: Optional[ProcessSessionManager] = None
        self._symbols: Optional[SymbolSet] = None

    @property
    def loaded(self) -> LoadedConfig:
        """Loaded configuration. Raises ConfigError on first access if invalid."""
        if self._loaded is None:
            self._loaded = self.config_manager.load()
        return self._loaded

    @property
    def registry(self) -> ProviderRegistry:
        """Registry with the catalog already loaded."""
        if self._registry is None:
            registry = ProviderRegistry(self.config_manager, self.cwd)
            registry.load(self.loaded)
            self._registry = registry
        return self._registry

    @property
    def usage(self) -> UsageStore:
        if self._usage is None:
            self._usage = UsageStore(self.config_manager.usage_path)
        return self._usage

    @property
    def sessions(self) -> ProcessSessionManager:
        if self._sessions is None:
            self._sessions = ProcessSessionManager(self.loaded.config.session.interrupt_grace)
        return self._sessions

    @property
    def symbols(self) -> SymbolSet:
        if self._symbols is None:
            preference = self._loaded.config.display.symbols if self._loaded else os.environ.get("FZC_SYMBOLS")
            self._symbols = get_symbols(preference)
        return self._symbols

    def context(self) -> LauncherContext:
        return LauncherContext(
            config_manager=self.config_manager,
            registry=self.registry,
            usage=self.usage,
            sessions=self.sessions,
            ranking=self.loaded.config.ranking,
            cwd=self.cwd,
        )

    def interactive(self) -> int:
        """Open the full-screen launcher; returns the process exit code."""
        # Imported here so non-interactive commands never touch the terminal layer
        from .presentation.terminal import TerminalApp

        if not sys.stdin.isatty() or not sys.stdout.isatty():
            safe_print("error: the launcher needs a terminal; try `fzc list` or `fzc run`", file=sys.stderr)
            return 1

        self.loaded  # Fail before entering the alternate screen
        machine = InteractionMachine(self.context())
        machine.announce_catalog(self.loaded)
        TerminalApp(machine, self.symbols).run()

        # Run-and-exit: show what the command printed once the screen is gone
        session = machine.state.exit_session
        if session is not None and session.output_log:
            sys.stdout.buffer.write(session.output)
            sys.stdout.flush()
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fzc",
        description="fzc -- Fuzzy terminal command launcher",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        '--config', '-c',
        default=os.environ.get("FZC_CONFIG"),
        help='Config file (default: ./fzc.yaml, ./.fzc.yaml, then the global config)'
    )
    parser.add_argument(
        '--log-level',
        default=os.environ.get("FZC_LOG_LEVEL", "WARNING").upper(),
        type=str.upper,
        choices=LOG_LEVELS,
        help='Log level (default: FZC_LOG_LEVEL or WARNING)'
    )
    parser.add_argument(
        '--log-file',
        default=os.environ.get("FZC_LOG_FILE"),
        help='Write logs to this file (default: FZC_LOG_FILE, none)'
    )
    parser.add_argument(
        '--version', '-V',
        action='version',
        version=f'fzc {__version__}'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')
    from .commands import register_all
    register_all(subparsers)
    return parser


def main(argv=None) -> int:
    """
    Main entry point for fzc.

    Parser definitions and dispatch logic live in the command modules.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level, args.log_file, stderr=args.command is not None)
    cli = LauncherCLI(Path.cwd(), Path(args.config) if args.config else None)

    from .commands import dispatch
    try:
        if not args.command:
            return cli.interactive()
        return dispatch(args.command, cli, args)
    except ConfigError as e:
        logger.debug("Config error: %s", e)
        safe_print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == '__main__':
    sys.exit(main())
