"""
ListCommand — Print the ranked catalog without the interactive screen

Same ranking as the launcher: `fzc list` browses in usage order,
`fzc list QUERY` fuzzy-matches (the '!alias' filter works here too).
"""

import sys

import orjson

from ..commands.base import BaseCommand
from ..core.ranking import rank
from ..presentation.symbols import safe_print, truncate


NAME_WIDTH = 36
PROVIDER_WIDTH = 10


class ListCommand(BaseCommand):
    """Command for listing catalog entries."""

    def ranked(self, query: str):
        ranking = self.loaded.config.ranking
        return rank(
            query,
            self.registry.catalog,
            usage=self.usage.counts(),
            usage_enabled=ranking.usage_enabled,
            usage_weight=ranking.usage_weight,
        )

    def list_commands(self, query: str = "", limit: int = 0, as_json: bool = False) -> int:
        results = self.ranked(query)
        if limit > 0:
            results = results[:limit]

        if as_json:
            payload = [
                {
                    "name": r.entry.name,
                    "provider": r.entry.provenance,
                    "description": r.entry.description,
                    "run": r.entry.run,
                    "score": r.score,
                }
                for r in results
            ]
            sys.stdout.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode() + "\n")
            return 0

        if not results:
            safe_print("No matching commands")
            return 0

        ellipsis = self.symbols.ellipsis
        for r in results:
            name = truncate(r.entry.name, NAME_WIDTH, ellipsis).ljust(NAME_WIDTH)
            provider = truncate(r.entry.provenance, PROVIDER_WIDTH, ellipsis).ljust(PROVIDER_WIDTH)
            safe_print(f"{name} {provider} {r.entry.description or ''}".rstrip())
        return 0


def register_parser(subparsers):
    p = subparsers.add_parser('list', help='Print the ranked command catalog')
    p.add_argument('query', nargs='*', help='Fuzzy query (may start with !alias)')
    p.add_argument('--limit', '-n', type=int, default=0, help='Show at most N entries')
    p.add_argument('--json', action='store_true', help='Output as JSON')
    return p


def handle(cli, args):
    return ListCommand(cli).list_commands(" ".join(args.query), limit=args.limit, as_json=args.json)
