"""
RunCommand — Run one catalog entry by name, streaming to stdout

No prompts: params take their fixed value, else their default. A command
with a required value param and no default therefore fails to resolve.
Usage is recorded on success, exactly as in the launcher.
"""

import sys
from typing import Optional

from ..commands.base import BaseCommand
from ..core.model import CommandEntry, PlaceholderResolutionError, resolve_command
from ..core.ranking import rank
from ..presentation.symbols import safe_print
from ..services.session import SessionStatus


INTERRUPTED_EXIT_CODE = 130


class RunCommand(BaseCommand):
    """Command for running a single entry non-interactively."""

    def find(self, name: str) -> Optional[CommandEntry]:
        """Exact name, then case-insensitive name or display name."""
        catalog = self.registry.catalog
        for entry in catalog:
            if entry.name == name:
                return entry
        wanted = name.casefold()
        for entry in catalog:
            if entry.name.casefold() == wanted or entry.display_name.casefold() == wanted:
                return entry
        return None

    def run(self, name: str) -> int:
        symbols = self.symbols
        entry = self.find(name)
        if entry is None:
            safe_print(f"{symbols.failed} No command named '{name}'", file=sys.stderr)
            suggestions = rank(name, self.registry.catalog)[:3]
            if suggestions:
                safe_print("  Did you mean:", file=sys.stderr)
                for r in suggestions:
                    safe_print(f"    {r.entry.name}", file=sys.stderr)
            return 1

        try:
            command_line = resolve_command(entry, {})
        except PlaceholderResolutionError as e:
            safe_print(f"{symbols.failed} {e}", file=sys.stderr)
            return 1

        safe_print(f"{symbols.command} {command_line}", file=sys.stderr)
        session = self.sessions.start(command_line, entry.working_dir or self.cwd, name=entry.name)
        if session.error:
            safe_print(f"{symbols.failed} {session.error}", file=sys.stderr)
            return 1

        out = sys.stdout.buffer
        try:
            for chunk in self.sessions.iter_output(session):
                out.write(chunk)
                out.flush()
        except KeyboardInterrupt:
            seen = len(session.output_log)
            self.sessions.interrupt(session)
            self.sessions.wait(session)
            for chunk in session.output_log[seen:]:
                out.write(chunk)
            out.flush()

        if session.status == SessionStatus.SUCCEEDED:
            self.usage.record(entry.usage_key)
            return 0
        if session.status == SessionStatus.INTERRUPTED:
            safe_print(f"{symbols.interrupted} Interrupted", file=sys.stderr)
            return INTERRUPTED_EXIT_CODE
        if session.exit_code is not None and session.exit_code < 0:
            # Killed by a signal
            return 128 - session.exit_code
        return session.exit_code or 1


def register_parser(subparsers):
    p = subparsers.add_parser('run', help='Run one command by name (no prompts)')
    p.add_argument('name', nargs='+', help='Command name as shown by `fzc list`')
    return p


def handle(cli, args):
    return RunCommand(cli).run(" ".join(args.name))
