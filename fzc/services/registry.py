"""
ProviderRegistry — Builds and swaps the command catalog

Load cycle:
1. Instantiate enabled providers in declaration order
2. Run every provider's discover() in parallel (I/O-bound: subprocess, files)
3. Isolate failures: a failing provider contributes nothing, its error is
   logged and kept in last_errors
4. Merge in declaration order, dropping entries whose scopes do not hold
5. Swap the catalog reference under a lock

Readers always see either the old or the new catalog, never a mix.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional

from ..config import ConfigManager, LoadedConfig
from ..core.model import Catalog, CommandEntry, ProviderInfo, normalize_alias
from ..core.scope import ScopeEnvironment, matches_scope
from .providers import CommandProvider, ProviderError, ToolRunner, build_providers


logger = logging.getLogger(__name__)

DEFAULT_DISCOVERY_WORKERS = 4


class ProviderRegistry:
    """
    Owns providers and the current catalog.

    Key methods:
    - load: build a catalog from an already-loaded config
    - reload: re-read config through the ConfigManager, then load
    - catalog / last_errors: current state
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        cwd: Optional[Path] = None,
        runner: Optional[ToolRunner] = None,
        max_workers: int = DEFAULT_DISCOVERY_WORKERS,
    ):
        """
        Initialize ProviderRegistry.

        Args:
            config_manager: Loader used by reload()
            cwd: Launcher working directory (defaults to the manager's)
            runner: Discovery tool runner handed to providers
            max_workers: Discovery thread pool size
        """
        self.config_manager = config_manager
        self.cwd = Path(cwd) if cwd else config_manager.cwd
        self.runner = runner
        self.max_workers = max_workers

        self._lock = threading.Lock()
        self._catalog = Catalog.empty()
        self._loaded: Optional[LoadedConfig] = None
        self._errors: Dict[str, str] = {}

    @property
    def catalog(self) -> Catalog:
        with self._lock:
            return self._catalog

    @property
    def loaded_config(self) -> Optional[LoadedConfig]:
        with self._lock:
            return self._loaded

    @property
    def last_errors(self) -> Dict[str, str]:
        """Provider name -> error message from the most recent load."""
        with self._lock:
            return dict(self._errors)

    def load(self, loaded: LoadedConfig) -> Catalog:
        """
        Build a catalog from a loaded config and make it current.

        Never raises for provider failures; see last_errors.
        """
        providers = build_providers(loaded, self.cwd, self.runner)
        results = self._discover_all(providers)
        environment = ScopeEnvironment.detect(self.cwd)

        entries: List[CommandEntry] = []
        errors: Dict[str, str] = {}
        for provider, outcome in zip(providers, results):
            if isinstance(outcome, Exception):
                errors[provider.name] = str(outcome)
                continue
            kept = [entry for entry in outcome if matches_scope(entry.scopes, environment)]
            dropped = len(outcome) - len(kept)
            if dropped:
                logger.debug("%s: %d entries out of scope", provider.name, dropped)
            entries.extend(kept)

        catalog = Catalog(
            entries=tuple(entries),
            providers=tuple(
                ProviderInfo(name=p.name, alias=normalize_alias(p.alias)) for p in providers
            ),
        )

        with self._lock:
            self._catalog = catalog
            self._loaded = loaded
            self._errors = errors

        logger.info(
            "Catalog loaded: %d entries from %d providers (%d failed)",
            len(catalog), len(providers), len(errors),
        )
        return catalog

    def reload(self) -> Catalog:
        """
        Re-read configuration and rebuild the catalog.

        Raises:
            ConfigError: config became unreadable; the current catalog is kept
        """
        loaded = self.config_manager.load()
        return self.load(loaded)

    def _discover_all(self, providers: List[CommandProvider]) -> List[object]:
        """Run discover() for each provider; results in provider order."""
        if not providers:
            return []

        with ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(providers)),
            thread_name_prefix="fzc-discover-",
        ) as executor:
            futures = [executor.submit(self._discover_one, provider) for provider in providers]
            return [future.result() for future in futures]

    @staticmethod
    def _discover_one(provider: CommandProvider):
        try:
            return provider.discover()
        except ProviderError as e:
            logger.warning("Provider %s failed: %s", provider.name, e)
            return e
        except Exception as e:
            logger.exception("Provider %s crashed", provider.name)
            return ProviderError(provider.name, f"unexpected error: {e}")
