"""
Internal Commands — Launcher commands typed after '/'

  /reload          Re-read config and rediscover providers
  /init [--force]  Write the starter config (-f also forces)

'/' alone (or a partial name) lists internal commands, ranked by the same
fuzzy matcher the catalog uses.
"""

from dataclasses import dataclass
from typing import List, Optional

from ..core.ranking import score_text


FORCE_FLAGS = ("--force", "-f")


class UnknownInternalCommand(Exception):
    """A '/' command that does not exist."""

    def __init__(self, name: str):
        self.name = name
        available = ", ".join(c.name for c in INTERNAL_COMMANDS)
        super().__init__(f"Unknown internal command '/{name}'. Available: {available}")


@dataclass(frozen=True)
class InternalCommandDef:
    name: str         # Including the leading '/'
    description: str
    usage: str = ""

    @property
    def keyword(self) -> str:
        return self.name.lstrip("/")


INTERNAL_COMMANDS = (
    InternalCommandDef("/init", "Create default config file", "/init [--force]"),
    InternalCommandDef("/reload", "Reload config and providers", "/reload"),
)


@dataclass(frozen=True)
class InternalInvocation:
    """A parsed internal command line."""
    name: str
    force: bool = False


def find_internal(keyword: str) -> Optional[InternalCommandDef]:
    keyword = keyword.lower()
    for command in INTERNAL_COMMANDS:
        if command.keyword == keyword:
            return command
    return None


def parse_internal_command(text: str) -> Optional[InternalInvocation]:
    """
    Parse '/name [args]'.

    Returns:
        The invocation, or None when text does not start with '/' or names
        no command yet ('/' alone)

    Raises:
        UnknownInternalCommand: a name that is not an internal command
    """
    stripped = text.strip()
    if not stripped.startswith("/"):
        return None
    parts = stripped[1:].split()
    if not parts:
        return None

    name = parts[0].lower()
    if find_internal(name) is None:
        raise UnknownInternalCommand(name)
    force = name == "init" and any(part in FORCE_FLAGS for part in parts[1:])
    return InternalInvocation(name=name, force=force)


def rank_internal(query: str) -> List[InternalCommandDef]:
    """Internal commands matching query (text after '/'), best first."""
    keyword = query.split()[0] if query.split() else ""
    scored = []
    for position, command in enumerate(INTERNAL_COMMANDS):
        score = score_text(keyword, f"{command.keyword} {command.description}", name=command.keyword)
        if score is not None:
            scored.append((-score, position, command))
    scored.sort(key=lambda item: (item[0], item[1]))
    return [command for _, _, command in scored]
