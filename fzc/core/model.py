"""
Model — Catalog entries, parameters and placeholder resolution

A CommandEntry is one runnable command in the catalog:
- run: shell template with {{param}} placeholders
- params: ordered parameter declarations (value or flag)
- provenance: which provider produced it ("config" for configured commands)

Entries are immutable once built for a given catalog load.
Resolution turns a template plus answers into a fully resolved command line,
failing loudly instead of leaving a placeholder behind.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple


PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([^{}\s]+)\s*\}\}")

CONFIG_PROVENANCE = "config"

TRUE_LITERALS = ("true", "t", "1", "yes", "y", "on")
FALSE_LITERALS = ("false", "f", "0", "no", "n", "off")


class PlaceholderResolutionError(Exception):
    """A run template cannot be resolved into a command line."""


class ParamKind(Enum):
    """How a parameter is answered and rendered."""
    VALUE = "value"  # Free text, substituted verbatim
    FLAG = "flag"    # y/n, renders --name when enabled


def parse_bool_literal(raw) -> Optional[bool]:
    """Interpret a config literal or typed answer as a boolean, None if unclear."""
    if isinstance(raw, bool):
        return raw
    if raw is None:
        return None
    text = str(raw).strip().lower()
    if text in TRUE_LITERALS:
        return True
    if text in FALSE_LITERALS:
        return False
    return None


def literal_to_text(raw) -> Optional[str]:
    """Config literals may be strings or booleans; value params want text."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        return "true" if raw else "false"
    return str(raw)


@dataclass(frozen=True)
class CommandParam:
    """A declared parameter of a command."""
    name: str
    kind: ParamKind = ParamKind.VALUE
    prompt: Optional[str] = None
    placeholder: Optional[str] = None
    required: bool = False  # Ignored for flags
    default: Optional[str] = None
    fixed_value: Optional[str] = None

    @property
    def is_flag(self) -> bool:
        return self.kind == ParamKind.FLAG

    @property
    def is_required(self) -> bool:
        return self.required and not self.is_flag

    @property
    def needs_prompt(self) -> bool:
        return self.fixed_value is None

    @property
    def flag_token(self) -> str:
        if self.name.startswith("-"):
            return self.name
        return f"--{self.name}"

    @property
    def default_flag(self) -> bool:
        return bool(parse_bool_literal(self.default))

    @property
    def prompt_text(self) -> str:
        """Label shown when asking for this parameter."""
        if self.prompt:
            return self.prompt
        if self.is_flag:
            return f"Enable {self.flag_token}?"
        return f"{self.name}:"

    def render_flag(self, enabled: bool) -> str:
        return self.flag_token if enabled else ""


@dataclass(frozen=True)
class CommandEntry:
    """One runnable command in the catalog."""
    name: str
    run: str
    description: Optional[str] = None
    scopes: FrozenSet[str] = frozenset()
    working_dir: Optional[Path] = None
    params: Tuple[CommandParam, ...] = field(default_factory=tuple)
    provenance: str = CONFIG_PROVENANCE

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Command name cannot be empty")

    @property
    def usage_key(self) -> str:
        """Stable identity used by the usage store."""
        return f"{self.provenance}::{self.name}"

    @property
    def search_text(self) -> str:
        """Text the fuzzy matcher runs against."""
        if self.description:
            return f"{self.name} {self.description}"
        return self.name

    @property
    def display_name(self) -> str:
        """Name without a redundant '<provider> ' prefix."""
        prefix = f"{self.provenance} "
        if self.name.lower().startswith(prefix) and len(self.name) > len(prefix):
            return self.name[len(prefix):]
        return self.name

    def param(self, name: str) -> Optional[CommandParam]:
        for candidate in self.params:
            if candidate.name == name:
                return candidate
        return None

    def prompt_params(self) -> List[CommandParam]:
        """Parameters that must be asked for, in declared order."""
        return [p for p in self.params if p.needs_prompt]


def template_placeholders(template: str) -> List[str]:
    """Placeholder names referenced by a template, in order of appearance."""
    return PLACEHOLDER_PATTERN.findall(template)


def render_template(template: str, values: Dict[str, str]) -> str:
    """Substitute {{name}} placeholders; unknown names are left untouched."""
    def substitute(match):
        name = match.group(1)
        if name in values:
            return values[name]
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(substitute, template)


def fixed_values(entry: CommandEntry) -> Dict[str, str]:
    """Rendered values for params that never prompt."""
    values = {}
    for param in entry.params:
        if param.fixed_value is None:
            continue
        if param.is_flag:
            values[param.name] = param.render_flag(bool(parse_bool_literal(param.fixed_value)))
        else:
            values[param.name] = param.fixed_value
    return values


def check_placeholders(entry: CommandEntry) -> None:
    """Raise PlaceholderResolutionError if the template uses an undeclared name."""
    declared = {p.name for p in entry.params}
    undeclared = [name for name in template_placeholders(entry.run) if name not in declared]
    if undeclared:
        names = ", ".join(sorted(set(undeclared)))
        raise PlaceholderResolutionError(
            f"Command '{entry.name}' references undeclared parameter(s): {names}"
        )


def resolve_command(entry: CommandEntry, answers: Dict[str, str]) -> str:
    """
    Resolve an entry's run template into a command line.

    Args:
        entry: Catalog entry to resolve
        answers: Rendered values keyed by param name (flags already rendered)

    Returns:
        Fully resolved command line

    Raises:
        PlaceholderResolutionError: undeclared placeholder, or a required
            value param with no fixed, provided or default value
    """
    check_placeholders(entry)

    fixed = fixed_values(entry)
    values: Dict[str, str] = {}
    for param in entry.params:
        if param.name in answers:
            value = answers[param.name]
        elif param.name in fixed:
            value = fixed[param.name]
        elif param.is_flag:
            value = param.render_flag(param.default_flag)
        else:
            value = param.default if param.default is not None else ""

        if param.is_required and not value:
            raise PlaceholderResolutionError(
                f"Command '{entry.name}' requires a value for '{param.name}'"
            )
        values[param.name] = value

    return render_template(entry.run, values)


def normalize_alias(alias: Optional[str]) -> Optional[str]:
    """Aliases are compared trimmed, lowercase and without a leading '!'."""
    if alias is None:
        return None
    normalized = alias.strip().lstrip("!").strip().lower()
    return normalized or None


@dataclass(frozen=True)
class ProviderInfo:
    """Name and alias of a provider that contributed to a catalog."""
    name: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class Catalog:
    """
    Merged, immutable sequence of entries from all enabled providers.

    Order is provider-declaration order, then within-provider order.
    A reload builds a new Catalog; nothing mutates one in place.
    """
    entries: Tuple[CommandEntry, ...] = ()
    providers: Tuple[ProviderInfo, ...] = ()

    @classmethod
    def empty(cls) -> 'Catalog':
        return cls()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def provider_rank(self, provenance: str) -> int:
        """Declaration position of a provider; unknown providers sort last."""
        for index, info in enumerate(self.providers):
            if info.name == provenance:
                return index
        return len(self.providers)

    def resolve_filter(self, token: str) -> FrozenSet[str]:
        """
        Provider names selected by a filter token.

        An exact alias match wins; the provider name is only considered
        for providers that have no alias. Several providers may share an
        alias. An empty set means the token matches nothing.
        """
        wanted = normalize_alias(token)
        if not wanted:
            return frozenset()
        by_alias = {info.name for info in self.providers if normalize_alias(info.alias) == wanted}
        if by_alias:
            return frozenset(by_alias)
        return frozenset(
            info.name for info in self.providers
            if info.alias is None and info.name.lower() == wanted
        )
