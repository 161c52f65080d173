"""
Command Providers — Sources of catalog entries

Supports: config, artisan, composer, justfile
All providers implement the same interface: discover() -> entries.

- ConfigProvider: commands declared in the config file
- ArtisanProvider: `php artisan list` inside a Laravel project
- ComposerProvider: basic composer commands plus composer.json scripts
- JustfileProvider: recipes from `just --summary`

A provider that finds nothing to work with (no Laravel root, no
composer.json, no justfile) returns an empty list. A provider whose tool
fails raises ProviderError; the registry isolates that failure.
"""

import logging
import os
import shlex
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import orjson

from ..config import CommandConfig, JustfileProviderConfig, LoadedConfig, ProviderConfig
from ..core.model import CommandEntry
from ..core.scope import detect_composer_root, detect_laravel_root


logger = logging.getLogger(__name__)

# Seconds a discovery tool may take before the provider gives up
DISCOVERY_TIMEOUT = 20

BASIC_COMPOSER_COMMANDS = (
    ("install", "Install project dependencies"),
    ("update", "Update dependencies"),
    ("dump-autoload", "Regenerate autoloader files"),
    ("validate", "Validate composer.json and composer.lock"),
    ("show", "List installed packages"),
    ("outdated", "Show outdated dependencies"),
    ("audit", "Run security audit on dependencies"),
)

# Runs a discovery tool in a directory and returns its stdout
ToolRunner = Callable[[Sequence[str], Path], str]


class ProviderError(Exception):
    """A provider could not discover its commands."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


def run_tool(args: Sequence[str], cwd: Path) -> str:
    """
    Run a discovery tool and capture stdout.

    Raises:
        ProviderError: tool missing, timed out or exited non-zero
    """
    name = os.path.basename(args[0])
    try:
        result = subprocess.run(
            list(args),
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            timeout=DISCOVERY_TIMEOUT,
        )
    except FileNotFoundError as e:
        raise ProviderError(name, f"'{args[0]}' not found") from e
    except subprocess.TimeoutExpired as e:
        raise ProviderError(name, f"timed out after {DISCOVERY_TIMEOUT}s") from e
    except OSError as e:
        raise ProviderError(name, str(e)) from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        detail = stderr.splitlines()[-1] if stderr else f"exit code {result.returncode}"
        raise ProviderError(name, f"'{' '.join(args)}' failed: {detail}")
    return result.stdout.decode("utf-8", errors="replace")


# =============================================================================
# Output parsers
# =============================================================================

def parse_artisan_commands(raw: str) -> List[str]:
    """Command names from `php artisan list --raw`, sorted, '_' names skipped."""
    commands = set()
    for line in raw.splitlines():
        parts = line.split()
        if not parts or parts[0].startswith("_"):
            continue
        commands.add(parts[0])
    return sorted(commands)


def parse_artisan_descriptions(raw: str) -> Dict[str, str]:
    """Descriptions from `php artisan list --format=json` (list or mapping form)."""
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError:
        return {}

    commands = data.get("commands") if isinstance(data, dict) else None
    descriptions = {}
    if isinstance(commands, list):
        for item in commands:
            if isinstance(item, dict) and isinstance(item.get("name"), str):
                descriptions[item["name"]] = str(item.get("description") or "")
    elif isinstance(commands, dict):
        for name, item in commands.items():
            description = item.get("description") if isinstance(item, dict) else None
            descriptions[name] = str(description or "")
    return descriptions


def parse_composer_scripts(raw: str) -> List[str]:
    """Script names from composer.json content, sorted, '_' names skipped."""
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError:
        return []
    scripts = data.get("scripts") if isinstance(data, dict) else None
    if not isinstance(scripts, dict):
        return []
    names = {key.strip() for key in scripts}
    return sorted(name for name in names if name and not name.startswith("_"))


def _is_recipe_name(name: str) -> bool:
    return all(c.isascii() and (c.isalnum() or c in "-_:") for c in name)


def parse_just_recipes(raw: str) -> List[str]:
    """Recipe names from `just --summary` (or `--list`-like) output, sorted."""
    recipes = set()
    for line in raw.splitlines():
        line = line.strip()
        if not line or line.lower().startswith("available recipes"):
            continue
        for token in line.split():
            if token == "--" or token.startswith("#"):
                break
            name = token.strip(",").strip(":")
            if not name or name.startswith("_"):
                continue
            if name.lower() in ("available", "recipes"):
                continue
            if _is_recipe_name(name):
                recipes.add(name)
    return sorted(recipes)


def resolve_provider_path(cwd: Path, raw_path: str) -> Optional[Path]:
    """An existing file for raw_path: absolute, '~'-expanded, or found in cwd or an ancestor."""
    candidate = Path(raw_path).expanduser()
    if candidate.is_absolute():
        return candidate if candidate.is_file() else None
    cwd = Path(cwd)
    for directory in [cwd, *cwd.parents]:
        joined = directory / candidate
        if joined.is_file():
            return joined
    return None


def tokenize_options(options: Sequence[str]) -> List[str]:
    """Provider options split on whitespace."""
    return [token for option in options for token in option.split()]


def shell_quote(arg: str) -> str:
    """Quote an argument for the platform shell the session manager uses."""
    if os.name == "nt":
        if arg and all(c.isalnum() or c in "_-./:=+@%\\" for c in arg):
            return arg
        return '"' + arg.replace('"', '\\"') + '"'
    return shlex.quote(arg)


def build_just_command(justfile: Path, options: Sequence[str], recipe: str) -> str:
    pieces = ["just"]
    pieces.extend(shell_quote(option) for option in options)
    pieces.extend(["--justfile", shell_quote(str(justfile)), shell_quote(recipe)])
    return " ".join(pieces)


# =============================================================================
# Providers
# =============================================================================

class CommandProvider(ABC):
    """Abstract base for command providers."""

    name: str = ""

    def __init__(self, config: ProviderConfig, cwd: Path, runner: Optional[ToolRunner] = None):
        self.config = config
        self.cwd = Path(cwd)
        self.runner = runner or run_tool

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def alias(self) -> Optional[str]:
        return self.config.alias

    @abstractmethod
    def discover(self) -> List[CommandEntry]:
        """
        Discover this provider's commands.

        Returns:
            Entries in provider order, provenance set to self.name

        Raises:
            ProviderError: discovery failed
        """
        pass

    def _entry(self, name: str, run: str, description: Optional[str], working_dir: Path) -> CommandEntry:
        return CommandEntry(
            name=name,
            run=run,
            description=description,
            working_dir=working_dir,
            provenance=self.name,
        )


class ConfigProvider(CommandProvider):
    """Commands declared under `commands:` in the config file."""

    name = "config"

    def __init__(
        self,
        config: ProviderConfig,
        cwd: Path,
        commands: Sequence[CommandConfig] = (),
        runner: Optional[ToolRunner] = None,
    ):
        super().__init__(config, cwd, runner)
        self.commands = list(commands)

    def discover(self) -> List[CommandEntry]:
        entries = []
        for command in self.commands:
            undeclared = command.undeclared_placeholders()
            if undeclared:
                # Kept in the catalog; running it reports the error
                logger.warning(
                    "Command '%s' uses undeclared placeholder(s): %s",
                    command.name, ", ".join(undeclared),
                )
            entries.append(command.to_entry(self.cwd))
        return entries


class ArtisanProvider(CommandProvider):
    """Laravel artisan commands, run from the Laravel root."""

    name = "artisan"

    def discover(self) -> List[CommandEntry]:
        root = detect_laravel_root(self.cwd)
        if root is None:
            logger.debug("artisan: no Laravel root above %s", self.cwd)
            return []

        names = parse_artisan_commands(
            self.runner(["php", "artisan", "list", "--raw", "--no-ansi"], root)
        )
        try:
            descriptions = parse_artisan_descriptions(
                self.runner(["php", "artisan", "list", "--format=json", "--no-ansi"], root)
            )
        except ProviderError as e:
            logger.info("artisan: descriptions unavailable: %s", e)
            descriptions = {}

        return [
            self._entry(
                name=f"artisan {name}",
                run=f"php artisan {name} --ansi",
                description=descriptions.get(name, "").strip() or "Laravel artisan command",
                working_dir=root,
            )
            for name in names
        ]


class ComposerProvider(CommandProvider):
    """Basic composer commands and composer.json scripts."""

    name = "composer"

    def discover(self) -> List[CommandEntry]:
        root = detect_composer_root(self.cwd)
        if root is None:
            logger.debug("composer: no composer.json above %s", self.cwd)
            return []

        entries = [
            self._entry(f"composer {command}", f"composer {command}", description, root)
            for command, description in BASIC_COMPOSER_COMMANDS
        ]

        try:
            raw = (root / "composer.json").read_text(encoding="utf-8")
        except OSError as e:
            raise ProviderError(self.name, f"cannot read composer.json: {e}") from e

        for script in parse_composer_scripts(raw):
            entries.append(self._entry(
                f"composer script:{script}",
                f"composer run-script {shell_quote(script)}",
                "composer script",
                root,
            ))
        return entries


class JustfileProvider(CommandProvider):
    """Recipes of a justfile found at `path` in cwd or an ancestor."""

    name = "justfile"
    config: JustfileProviderConfig

    def discover(self) -> List[CommandEntry]:
        justfile = resolve_provider_path(self.cwd, self.config.path)
        if justfile is None:
            logger.debug("justfile: '%s' not found above %s", self.config.path, self.cwd)
            return []

        options = tokenize_options(self.config.options)
        raw = self.runner(["just", *options, "--summary", "--justfile", str(justfile)], self.cwd)
        return [
            self._entry(
                name=f"just {recipe}",
                run=build_just_command(justfile, options, recipe),
                description="just recipe",
                working_dir=self.cwd,
            )
            for recipe in parse_just_recipes(raw)
        ]


# Declaration order is catalog order
PROVIDER_TYPES = {
    "config": ConfigProvider,
    "artisan": ArtisanProvider,
    "composer": ComposerProvider,
    "justfile": JustfileProvider,
}


def build_providers(
    loaded: LoadedConfig,
    cwd: Path,
    runner: Optional[ToolRunner] = None,
) -> List[CommandProvider]:
    """
    Instantiate enabled providers in declaration order.

    Args:
        loaded: Loaded configuration
        cwd: Launcher working directory
        runner: Discovery tool runner (tests inject a fake)
    """
    providers: List[CommandProvider] = []
    for name, provider_config in loaded.config.providers.items():
        if not provider_config.enabled:
            continue
        provider_class = PROVIDER_TYPES[name]
        if provider_class is ConfigProvider:
            providers.append(ConfigProvider(provider_config, cwd, loaded.config.commands, runner))
        else:
            providers.append(provider_class(provider_config, cwd, runner))
    return providers
