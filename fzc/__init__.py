"""
fzc — Fuzzy terminal command launcher

Keyboard-first: type to fuzzy-search a catalog of commands, Enter to run,
watch the output stream in, Esc to interrupt.

Catalog sources:
- Commands declared in fzc.yaml
- Laravel artisan, composer and justfile discovery

Usage:
    fzc                      Interactive launcher
    fzc init                 Write the starter config
    fzc list "deploy"        Ranked catalog, non-interactive
    fzc run "Run tests"      Run one command by name
"""

import logging

__version__ = "0.1.0"

# Library code logs; the CLI decides where records go
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Core layer (data)
from .core.model import (
    Catalog, CommandEntry, CommandParam, ParamKind, ProviderInfo,
    PlaceholderResolutionError, resolve_command,
)
from .core.ranking import RankedEntry, parse_query, rank, score_text
from .core.usage import UsageStore
from .core.scope import ScopeEnvironment, matches_scope

# Services layer
from .services.providers import (
    CommandProvider, ConfigProvider, ArtisanProvider, ComposerProvider,
    JustfileProvider, ProviderError, PROVIDER_TYPES,
)
from .services.registry import ProviderRegistry
from .services.session import ProcessSessionManager, Session, SessionStatus

# Interaction layer
from .interaction.machine import InteractionMachine
from .interaction.state import Action, AppState, InputEvent, LauncherContext, Mode, Pane

# Config (stays at root)
from .config import Config, ConfigManager, ConfigError, InitAlreadyExists, LoadedConfig

__all__ = [
    # Core
    'Catalog', 'CommandEntry', 'CommandParam', 'ParamKind', 'ProviderInfo',
    'PlaceholderResolutionError', 'resolve_command',
    'RankedEntry', 'parse_query', 'rank', 'score_text',
    'UsageStore', 'ScopeEnvironment', 'matches_scope',
    # Services
    'CommandProvider', 'ConfigProvider', 'ArtisanProvider', 'ComposerProvider',
    'JustfileProvider', 'ProviderError', 'PROVIDER_TYPES',
    'ProviderRegistry',
    'ProcessSessionManager', 'Session', 'SessionStatus',
    # Interaction
    'InteractionMachine', 'Action', 'AppState', 'InputEvent', 'LauncherContext', 'Mode', 'Pane',
    # Config
    'Config', 'ConfigManager', 'ConfigError', 'InitAlreadyExists', 'LoadedConfig',
]
