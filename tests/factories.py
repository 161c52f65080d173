"""
Test Data Factory — Isolated launcher environments for fzc tests

Builds real ConfigManager, ProviderRegistry, UsageStore and
ProcessSessionManager instances over a tmp_path project directory.
Discovery tools (php, composer, just) are replaced by FakeRunner so no
external program is needed; session tests run the current Python
interpreter through the shell instead.

Usage:
    def test_something(launcher_factory):
        launcher_factory.write_config({"commands": [{"name": "Hello", "run": "echo hi"}]})
        machine = launcher_factory.create_machine()
        machine.type_text("hel")
"""

import shlex
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import yaml

from fzc.config import ConfigManager, LoadedConfig
from fzc.core.model import Catalog, CommandEntry, CommandParam, ParamKind, ProviderInfo
from fzc.core.usage import UsageStore
from fzc.interaction.machine import InteractionMachine
from fzc.interaction.state import LauncherContext
from fzc.services.providers import ProviderError
from fzc.services.registry import ProviderRegistry
from fzc.services.session import ProcessSessionManager, Session


def python_command(code: str) -> str:
    """Shell command line running code with the test interpreter."""
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


def make_entry(
    name: str,
    run: Optional[str] = None,
    description: Optional[str] = None,
    provenance: str = "config",
    params: Sequence[CommandParam] = (),
    scopes: Sequence[str] = (),
) -> CommandEntry:
    return CommandEntry(
        name=name,
        run=run or f"echo {shlex.quote(name)}",
        description=description,
        provenance=provenance,
        params=tuple(params),
        scopes=frozenset(scopes),
    )


def make_catalog(
    entries: Sequence[CommandEntry],
    providers: Optional[Sequence[Tuple[str, Optional[str]]]] = None,
) -> Catalog:
    """
    Catalog over entries.

    Args:
        entries: Entries in catalog order
        providers: (name, alias) pairs; defaults to each distinct provenance
            in order of first appearance, without alias
    """
    if providers is None:
        names: List[str] = []
        for entry in entries:
            if entry.provenance not in names:
                names.append(entry.provenance)
        providers = [(name, None) for name in names]
    return Catalog(
        entries=tuple(entries),
        providers=tuple(ProviderInfo(name=name, alias=alias) for name, alias in providers),
    )


def value_param(name: str, **kwargs) -> CommandParam:
    return CommandParam(name=name, kind=ParamKind.VALUE, **kwargs)


def flag_param(name: str, **kwargs) -> CommandParam:
    return CommandParam(name=name, kind=ParamKind.FLAG, **kwargs)


class FakeRunner:
    """
    Stand-in for providers.run_tool.

    Responses are keyed by an argument prefix; the longest matching prefix
    wins. A response may be an exception instance, which is raised.
    Unstubbed calls raise ProviderError like a missing tool would.
    """

    def __init__(self):
        self.responses: Dict[Tuple[str, ...], Union[str, Exception]] = {}
        self.calls: List[Tuple[Tuple[str, ...], Path]] = []

    def stub(self, prefix: Sequence[str], response: Union[str, Exception]):
        self.responses[tuple(prefix)] = response

    def __call__(self, args: Sequence[str], cwd: Path) -> str:
        args = tuple(args)
        self.calls.append((args, Path(cwd)))
        matches = [prefix for prefix in self.responses if args[:len(prefix)] == prefix]
        if not matches:
            raise ProviderError(args[0], f"'{args[0]}' not found")
        response = self.responses[max(matches, key=len)]
        if isinstance(response, Exception):
            raise response
        return response


class LauncherTestFactory:
    """
    Factory for isolated launcher environments.

    Layout under tmp_path:
        project/       working directory of the launcher
        config-home/   FZC_CONFIG_HOME (global config, usage.json)
    """

    def __init__(self, tmp_path: Path, config_home: Optional[Path] = None):
        """
        Initialize factory with temporary directory.

        Args:
            tmp_path: pytest tmp_path fixture for isolated temp directory
            config_home: Directory FZC_CONFIG_HOME points to
        """
        self.tmp_path = tmp_path
        self.project = tmp_path / "project"
        self.project.mkdir(parents=True, exist_ok=True)
        self.config_home = config_home or (tmp_path / "config-home")
        self.runner = FakeRunner()

    # =========================================================================
    # Files
    # =========================================================================

    def write_config(self, data: Union[Dict[str, Any], str], path: Optional[Path] = None) -> Path:
        """Write a config file (dict dumped as YAML, str written verbatim)."""
        target = path or (self.project / "fzc.yaml")
        target.parent.mkdir(parents=True, exist_ok=True)
        text = data if isinstance(data, str) else yaml.safe_dump(data, sort_keys=False)
        target.write_text(text, encoding="utf-8")
        return target

    def write_file(self, relative: str, content: str = "") -> Path:
        path = self.project / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def make_laravel_project(self):
        self.write_file("artisan", "<?php\n")
        self.write_file("app/.gitkeep")

    # =========================================================================
    # Real collaborators
    # =========================================================================

    def config_manager(self, explicit_path: Optional[Path] = None) -> ConfigManager:
        return ConfigManager(self.project, explicit_path)

    def load(self, explicit_path: Optional[Path] = None) -> LoadedConfig:
        return self.config_manager(explicit_path).load()

    def create_registry(self, explicit_path: Optional[Path] = None) -> ProviderRegistry:
        """Registry with its catalog loaded."""
        manager = self.config_manager(explicit_path)
        registry = ProviderRegistry(manager, self.project, runner=self.runner)
        registry.load(manager.load())
        return registry

    def create_usage(self) -> UsageStore:
        return UsageStore(self.config_home / "usage.json")

    def create_context(self, interrupt_grace: float = 0.5) -> LauncherContext:
        registry = self.create_registry()
        loaded = registry.loaded_config
        return LauncherContext(
            config_manager=registry.config_manager,
            registry=registry,
            usage=self.create_usage(),
            sessions=ProcessSessionManager(interrupt_grace),
            ranking=loaded.config.ranking,
            cwd=self.project,
        )

    def create_machine(self, interrupt_grace: float = 0.5) -> InteractionMachine:
        return InteractionMachine(self.create_context(interrupt_grace))


def run_until_finished(machine: InteractionMachine, timeout: float = 10.0) -> Session:
    """Tick the machine until its current session finishes."""
    session = machine.state.current_session
    assert session is not None, "no session was started"
    deadline = time.monotonic() + timeout
    while not session.finished:
        machine.tick()
        if time.monotonic() > deadline:
            raise AssertionError(f"session did not finish within {timeout}s")
        time.sleep(0.01)
    return session
