"""
Configuration — Discovery, loading and the starter config

Discovery order (first existing file wins, no merging between files):
  1. Explicit path (--config PATH)
  2. ./fzc.yaml, ./.fzc.yaml in the working directory
  3. Global config: $FZC_CONFIG_HOME/config.yaml
     (default $XDG_CONFIG_HOME/fzc/config.yaml, else ~/.config/fzc/config.yaml)
  4. Nothing found: defaults, every provider disabled

Environment variables override file values:
  FZC_USAGE_ENABLED, FZC_USAGE_WEIGHT, FZC_INTERRUPT_GRACE, FZC_SYMBOLS

Malformed YAML or invalid structure raises ConfigError. Unlike a missing
file this is never silently ignored.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .core.model import (
    CommandEntry, CommandParam, ParamKind, PLACEHOLDER_PATTERN,
    literal_to_text, normalize_alias, parse_bool_literal,
)


logger = logging.getLogger(__name__)

LOCAL_CONFIG_NAMES = ("fzc.yaml", ".fzc.yaml")
GLOBAL_CONFIG_NAME = "config.yaml"

DEFAULT_USAGE_WEIGHT = 8000
DEFAULT_INTERRUPT_GRACE = 3.0
DEFAULT_JUSTFILE_PATH = "justfile"

SYMBOL_MODES = ("unicode", "ascii", "auto")


class ConfigError(Exception):
    """Configuration exists but cannot be used."""


class InitAlreadyExists(Exception):
    """Starter config target already exists and force was not given."""

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(f"{self.path} already exists. Use --force to overwrite.")


def _get_bool(raw, where: str, default: bool) -> bool:
    if raw is None:
        return default
    value = parse_bool_literal(raw)
    if value is None:
        raise ConfigError(f"{where}: expected a boolean, got {raw!r}")
    return value


def _get_str(raw, where: str) -> Optional[str]:
    if raw is None:
        return None
    if not isinstance(raw, (str, int, float)) or isinstance(raw, bool):
        raise ConfigError(f"{where}: expected a string, got {raw!r}")
    return str(raw)


def _get_str_list(raw, where: str) -> List[str]:
    """A string or a list of strings, as a list."""
    if raw is None:
        return []
    if isinstance(raw, str):
        return [raw]
    if isinstance(raw, list) and all(isinstance(item, str) for item in raw):
        return list(raw)
    raise ConfigError(f"{where}: expected a string or a list of strings")


def _get_table(raw, where: str) -> Dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: expected a mapping")
    return raw


@dataclass
class RankingConfig:
    """Usage re-weighting settings."""
    usage_enabled: bool = True
    usage_weight: int = DEFAULT_USAGE_WEIGHT

    def validate(self) -> Optional[str]:
        """Validate config. Returns error message or None if valid."""
        if self.usage_weight < 0:
            return f"usage_weight must be >= 0, got {self.usage_weight}"
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RankingConfig':
        weight = data.get("usage_weight", DEFAULT_USAGE_WEIGHT)
        if isinstance(weight, bool) or not isinstance(weight, (int, float)):
            raise ConfigError(f"ranking.usage_weight: expected a number, got {weight!r}")
        return cls(
            usage_enabled=_get_bool(data.get("usage_enabled"), "ranking.usage_enabled", True),
            usage_weight=int(weight),
        )


@dataclass
class SessionConfig:
    """Child process settings."""
    interrupt_grace: float = DEFAULT_INTERRUPT_GRACE  # Seconds before SIGINT escalates to kill

    def validate(self) -> Optional[str]:
        if self.interrupt_grace < 0:
            return f"interrupt_grace must be >= 0, got {self.interrupt_grace}"
        return None


@dataclass
class DisplayConfig:
    """Display preferences."""
    symbols: str = "auto"  # "unicode" | "ascii" | "auto"

    def validate(self) -> Optional[str]:
        if self.symbols not in SYMBOL_MODES:
            return f"Unknown symbols setting '{self.symbols}'. Valid: {', '.join(SYMBOL_MODES)}"
        return None


@dataclass
class ProviderConfig:
    """Enablement and filter alias of one provider."""
    enabled: bool = False
    alias: Optional[str] = None

    @classmethod
    def from_raw(cls, raw, name: str, enabled_default: bool = False) -> 'ProviderConfig':
        """A provider section is either a bare boolean or a mapping."""
        if isinstance(raw, bool):
            return cls(enabled=raw)
        table = _get_table(raw, f"providers.{name}")
        return cls(
            enabled=_get_bool(table.get("enabled"), f"providers.{name}.enabled", enabled_default),
            alias=_get_str(table.get("alias"), f"providers.{name}.alias"),
        )


@dataclass
class JustfileProviderConfig(ProviderConfig):
    """Justfile provider: which justfile and extra `just` options."""
    path: str = DEFAULT_JUSTFILE_PATH
    options: List[str] = field(default_factory=list)

    @classmethod
    def from_raw(cls, raw, name: str = "justfile", enabled_default: bool = False) -> 'JustfileProviderConfig':
        if isinstance(raw, bool):
            return cls(enabled=raw)
        table = _get_table(raw, f"providers.{name}")
        return cls(
            enabled=_get_bool(table.get("enabled"), f"providers.{name}.enabled", enabled_default),
            alias=_get_str(table.get("alias"), f"providers.{name}.alias"),
            path=_get_str(table.get("path"), f"providers.{name}.path") or DEFAULT_JUSTFILE_PATH,
            options=_get_str_list(table.get("options"), f"providers.{name}.options"),
        )


@dataclass
class ProvidersConfig:
    """Provider sections in declaration order."""
    config: ProviderConfig = field(default_factory=lambda: ProviderConfig(enabled=True))
    artisan: ProviderConfig = field(default_factory=ProviderConfig)
    composer: ProviderConfig = field(default_factory=ProviderConfig)
    justfile: JustfileProviderConfig = field(default_factory=JustfileProviderConfig)

    @classmethod
    def disabled(cls) -> 'ProvidersConfig':
        return cls(config=ProviderConfig(enabled=False))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProvidersConfig':
        unknown = sorted(set(data) - {"config", "artisan", "composer", "justfile"})
        if unknown:
            raise ConfigError(f"Unknown provider(s): {', '.join(unknown)}")
        return cls(
            config=ProviderConfig.from_raw(data.get("config"), "config", enabled_default=True),
            artisan=ProviderConfig.from_raw(data.get("artisan"), "artisan"),
            composer=ProviderConfig.from_raw(data.get("composer"), "composer"),
            justfile=JustfileProviderConfig.from_raw(data.get("justfile")),
        )

    def items(self) -> List[Tuple[str, ProviderConfig]]:
        return [
            ("config", self.config),
            ("artisan", self.artisan),
            ("composer", self.composer),
            ("justfile", self.justfile),
        ]

    def alias_collisions(self) -> Dict[str, List[str]]:
        """Aliases shared by more than one provider (allowed, but worth a warning)."""
        seen: Dict[str, List[str]] = {}
        for name, provider in self.items():
            alias = normalize_alias(provider.alias)
            if alias:
                seen.setdefault(alias, []).append(name)
        return {alias: names for alias, names in seen.items() if len(names) > 1}


@dataclass
class ParamConfig:
    """A declared command parameter as written in the config file."""
    name: str
    type: str = "value"
    prompt: Optional[str] = None
    placeholder: Optional[str] = None
    required: bool = False
    default: Optional[str] = None
    value: Optional[str] = None  # Fixed value: never prompted

    @classmethod
    def from_dict(cls, data: Dict[str, Any], where: str) -> 'ParamConfig':
        data = _get_table(data, where)
        name = _get_str(data.get("name"), f"{where}.name")
        if not name or not name.strip():
            raise ConfigError(f"{where}: param name is required")

        param_type = str(data.get("type", "value")).lower()
        if param_type not in ("value", "flag"):
            raise ConfigError(f"{where}.type: expected 'value' or 'flag', got {param_type!r}")

        default = data.get("default")
        value = data.get("value")
        for label, literal in (("default", default), ("value", value)):
            if literal is not None and not isinstance(literal, (str, bool, int, float)):
                raise ConfigError(f"{where}.{label}: expected a string or boolean")
            if param_type == "flag" and literal is not None and parse_bool_literal(literal) is None:
                raise ConfigError(f"{where}.{label}: flag literal must be a boolean, got {literal!r}")

        return cls(
            name=name.strip(),
            type=param_type,
            prompt=_get_str(data.get("prompt"), f"{where}.prompt"),
            placeholder=_get_str(data.get("placeholder"), f"{where}.placeholder"),
            required=_get_bool(data.get("required"), f"{where}.required", False),
            default=literal_to_text(default),
            value=literal_to_text(value),
        )

    def to_param(self) -> CommandParam:
        return CommandParam(
            name=self.name,
            kind=ParamKind(self.type),
            prompt=self.prompt,
            placeholder=self.placeholder,
            required=self.required,
            default=self.default,
            fixed_value=self.value,
        )


@dataclass
class CommandConfig:
    """A configured command."""
    name: str
    run: str
    description: Optional[str] = None
    scopes: List[str] = field(default_factory=list)
    working_dir: Optional[str] = None
    params: List[ParamConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], where: str) -> 'CommandConfig':
        data = _get_table(data, where)
        name = _get_str(data.get("name"), f"{where}.name")
        if not name or not name.strip():
            raise ConfigError(f"{where}: command name is required")

        # 'cmd' is accepted as an alias of 'run'
        run = _get_str(data.get("run", data.get("cmd")), f"{where}.run")
        if not run:
            raise ConfigError(f"{where} ('{name}'): 'run' is required")

        raw_params = data.get("params") or []
        if not isinstance(raw_params, list):
            raise ConfigError(f"{where}.params: expected a list")
        params = [
            ParamConfig.from_dict(item, f"{where}.params[{i}]")
            for i, item in enumerate(raw_params)
        ]
        names = [p.name for p in params]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigError(f"{where} ('{name}'): duplicate param(s): {', '.join(duplicates)}")

        return cls(
            name=name.strip(),
            run=run,
            description=_get_str(data.get("description"), f"{where}.description"),
            scopes=_get_str_list(data.get("scopes"), f"{where}.scopes"),
            working_dir=_get_str(data.get("working_dir"), f"{where}.working_dir"),
            params=params,
        )

    def undeclared_placeholders(self) -> List[str]:
        declared = {p.name for p in self.params}
        return [n for n in PLACEHOLDER_PATTERN.findall(self.run) if n not in declared]

    def to_entry(self, base_dir: Path) -> CommandEntry:
        """
        Build the catalog entry.

        Args:
            base_dir: Directory relative working_dir values resolve against
        """
        working_dir = None
        if self.working_dir:
            path = Path(self.working_dir).expanduser()
            working_dir = path if path.is_absolute() else Path(base_dir) / path
        return CommandEntry(
            name=self.name,
            run=self.run,
            description=self.description,
            scopes=frozenset(self.scopes),
            working_dir=working_dir,
            params=tuple(p.to_param() for p in self.params),
        )


@dataclass
class Config:
    """Application configuration."""
    ranking: RankingConfig = field(default_factory=RankingConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    commands: List[CommandConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create from a parsed YAML document."""
        ranking = RankingConfig.from_dict(_get_table(data.get("ranking"), "ranking"))

        session_data = _get_table(data.get("session"), "session")
        grace = session_data.get("interrupt_grace", DEFAULT_INTERRUPT_GRACE)
        if isinstance(grace, bool) or not isinstance(grace, (int, float)):
            raise ConfigError(f"session.interrupt_grace: expected a number, got {grace!r}")

        display_data = _get_table(data.get("display"), "display")

        raw_commands = data.get("commands") or []
        if not isinstance(raw_commands, list):
            raise ConfigError("commands: expected a list")

        config = cls(
            ranking=ranking,
            session=SessionConfig(interrupt_grace=float(grace)),
            display=DisplayConfig(symbols=str(display_data.get("symbols", "auto")).lower()),
            providers=ProvidersConfig.from_dict(_get_table(data.get("providers"), "providers")),
            commands=[
                CommandConfig.from_dict(item, f"commands[{i}]")
                for i, item in enumerate(raw_commands)
            ],
        )
        error = config.validate()
        if error:
            raise ConfigError(error)
        return config

    def validate(self) -> Optional[str]:
        """Validate config. Returns error message or None if valid."""
        for section in (self.ranking, self.session, self.display):
            error = section.validate()
            if error:
                return error
        return None


@dataclass
class LoadedConfig:
    """A config together with where it came from."""
    config: Config
    path: Optional[Path] = None  # None: no file found anywhere

    @property
    def base_dir(self) -> Optional[Path]:
        return self.path.parent if self.path else None


class ConfigManager:
    """
    Manages configuration discovery, loading and the starter file.

    Hierarchy (first hit wins):
      1. Explicit path
      2. Local fzc.yaml / .fzc.yaml
      3. Global config
    """

    def __init__(self, cwd: Optional[Path] = None, explicit_path: Optional[Path] = None):
        self.cwd = Path(cwd) if cwd else Path.cwd()
        self.explicit_path = Path(explicit_path).expanduser() if explicit_path else None

    @staticmethod
    def config_home() -> Path:
        """Directory holding the global config and the usage store."""
        if os.environ.get("FZC_CONFIG_HOME"):
            return Path(os.environ["FZC_CONFIG_HOME"]).expanduser()
        if os.environ.get("XDG_CONFIG_HOME"):
            return Path(os.environ["XDG_CONFIG_HOME"]).expanduser() / "fzc"
        return Path.home() / ".config" / "fzc"

    @property
    def global_config_path(self) -> Path:
        return self.config_home() / GLOBAL_CONFIG_NAME

    @property
    def usage_path(self) -> Path:
        return self.config_home() / "usage.json"

    @property
    def init_target(self) -> Path:
        """Where the starter config goes: the explicit path, else the global one."""
        return self.explicit_path or self.global_config_path

    def candidates(self) -> List[Path]:
        if self.explicit_path is not None:
            return [self.explicit_path]
        local = [self.cwd / name for name in LOCAL_CONFIG_NAMES]
        return local + [self.global_config_path]

    def discover(self) -> Optional[Path]:
        """First existing config file in discovery order."""
        if self.explicit_path is not None:
            if not self.explicit_path.exists():
                raise ConfigError(f"Config file not found: {self.explicit_path}")
            return self.explicit_path
        for path in self.candidates():
            if path.exists():
                return path
        return None

    def load(self) -> LoadedConfig:
        """
        Load configuration from the first discovered file.

        Returns:
            LoadedConfig; path is None when no file exists anywhere

        Raises:
            ConfigError: unreadable file, malformed YAML or invalid structure
        """
        path = self.discover()
        if path is None:
            logger.info("No config file found, starting with providers disabled")
            config = Config(providers=ProvidersConfig.disabled())
        else:
            config = Config.from_dict(self._read(path))
            logger.info("Loaded config from %s (%d commands)", path, len(config.commands))

        self._apply_env_overrides(config)
        for alias, names in config.providers.alias_collisions().items():
            logger.warning("Alias '%s' is shared by providers: %s", alias, ", ".join(names))
        return LoadedConfig(config=config, path=path)

    def _read(self, path: Path) -> Dict[str, Any]:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to read {path}: {e}") from e
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid config in {path}: top level must be a mapping")
        return data

    def _apply_env_overrides(self, config: Config):
        """Environment variables win over file values."""
        if os.environ.get("FZC_USAGE_ENABLED"):
            enabled = parse_bool_literal(os.environ["FZC_USAGE_ENABLED"])
            if enabled is not None:
                config.ranking.usage_enabled = enabled
        if os.environ.get("FZC_USAGE_WEIGHT"):
            try:
                config.ranking.usage_weight = max(0, int(os.environ["FZC_USAGE_WEIGHT"]))
            except ValueError:
                logger.warning("Ignoring invalid FZC_USAGE_WEIGHT=%r", os.environ["FZC_USAGE_WEIGHT"])
        if os.environ.get("FZC_INTERRUPT_GRACE"):
            try:
                config.session.interrupt_grace = max(0.0, float(os.environ["FZC_INTERRUPT_GRACE"]))
            except ValueError:
                logger.warning("Ignoring invalid FZC_INTERRUPT_GRACE=%r", os.environ["FZC_INTERRUPT_GRACE"])
        if os.environ.get("FZC_SYMBOLS", "").lower() in SYMBOL_MODES:
            config.display.symbols = os.environ["FZC_SYMBOLS"].lower()

    def write_example_config(self, force: bool = False, path: Optional[Path] = None) -> Path:
        """
        Write the starter config.

        Args:
            force: Overwrite an existing file
            path: Target; defaults to init_target

        Returns:
            Path written

        Raises:
            InitAlreadyExists: target exists and force is False
        """
        target = Path(path) if path else self.init_target
        if target.exists() and not force:
            raise InitAlreadyExists(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(EXAMPLE_CONFIG, encoding="utf-8")
        logger.info("Wrote starter config to %s", target)
        return target

    def display(self, loaded: LoadedConfig) -> str:
        """Format the effective config for display."""
        config = loaded.config
        lines = [
            "Configuration:",
            f"  File: {loaded.path or '(none found)'}",
            f"  Global: {self.global_config_path}",
            f"  Usage store: {self.usage_path}",
            "",
            "Ranking:",
            f"  Usage enabled: {str(config.ranking.usage_enabled).lower()}",
            f"  Usage weight: {config.ranking.usage_weight}",
            "",
            "Session:",
            f"  Interrupt grace: {config.session.interrupt_grace:g}s",
            "",
            "Providers:",
        ]
        for name, provider in config.providers.items():
            state = "enabled" if provider.enabled else "disabled"
            alias = f" (!{normalize_alias(provider.alias)})" if normalize_alias(provider.alias) else ""
            lines.append(f"  {name}: {state}{alias}")
        lines.extend(["", f"Commands: {len(config.commands)}"])
        return "\n".join(lines)


EXAMPLE_CONFIG = """\
# fzc config
#
# Use {{param}} placeholders inside command `run` templates.
# Parameter types:
# - value (default): free text
# - flag: y/n prompt, renders --name when enabled

ranking:
  usage_enabled: true
  usage_weight: 8000

session:
  # Seconds an interrupted command gets before it is killed
  interrupt_grace: 3

providers:
  # Commands from the `commands` list below
  config:
    enabled: true
    alias: cf

  # Laravel artisan commands when inside a Laravel project
  artisan:
    enabled: false
    alias: a

  # Composer commands and scripts when composer.json is present
  composer:
    enabled: false
    alias: co

  # Recipes from a justfile
  justfile:
    enabled: false
    path: justfile
    options: "--working-directory ."
    alias: j

# Add your own commands below.
# Example:
#
# commands:
#   - name: Run tests
#     run: "php artisan test --filter={{filter}} {{no-coverage}}"
#     description: Example command
#     scopes: [laravel]  # optional
#     params:
#       - name: filter
#         prompt: Test filter
#         required: true
#       - name: no-coverage
#         type: flag
#         default: false
commands: []
"""
