"""
Interaction State — Everything the launcher screen is derived from

AppState is plain data: the machine mutates it, the renderer reads it.
LauncherContext bundles the collaborators the machine talks to, so nothing
is reached through module-level singletons.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional

from ..core.model import CommandEntry, CommandParam
from ..core.ranking import ParsedQuery, RankedEntry

if TYPE_CHECKING:
    from ..config import ConfigManager, RankingConfig
    from ..core.usage import UsageStore
    from ..services.registry import ProviderRegistry
    from ..services.session import ProcessSessionManager, Session
    from .internal import InternalCommandDef


DEFAULT_PAGE_SIZE = 10


class Pane(Enum):
    """Which pane has focus."""
    COMMANDS = "commands"
    SESSION = "session"


class Mode(Enum):
    """What typed characters edit."""
    SEARCH = "search"  # The search box
    PROMPT = "prompt"  # The answer to a parameter prompt
    CONFIRM = "confirm"  # A y/n answer before an overwrite


class Action(Enum):
    """Logical input events, independent of the key that produced them."""
    CHAR = "char"
    BACKSPACE = "backspace"
    DELETE = "delete"
    CURSOR_LEFT = "cursor_left"
    CURSOR_RIGHT = "cursor_right"
    CURSOR_HOME = "cursor_home"
    CURSOR_END = "cursor_end"
    UP = "up"
    DOWN = "down"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    TOGGLE_PANE = "toggle_pane"
    RUN = "run"
    RUN_AND_EXIT = "run_and_exit"
    TOGGLE_HELP = "toggle_help"
    CANCEL = "cancel"
    QUIT = "quit"


@dataclass(frozen=True)
class InputEvent:
    action: Action
    text: str = ""  # Inserted text for CHAR


class LineKind(Enum):
    """Transcript line categories, styled differently."""
    INFO = "info"
    COMMAND = "command"  # Echo of the command line being run
    OUTPUT = "output"    # Raw child output
    ERROR = "error"


@dataclass
class TranscriptLine:
    kind: LineKind
    text: str = ""
    raw: bytes = b""  # OUTPUT only: the chunk exactly as the child wrote it


@dataclass
class PromptState:
    """A parameter prompt in progress."""
    entry: CommandEntry
    params: List[CommandParam]
    run_and_exit: bool = False
    index: int = 0
    answers: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    error: Optional[str] = None

    @property
    def current(self) -> CommandParam:
        return self.params[self.index]

    @property
    def done(self) -> bool:
        return self.index >= len(self.params)

    @property
    def progress(self) -> str:
        return f"{self.index + 1}/{len(self.params)}"

    @property
    def hint(self) -> str:
        """Default or placeholder shown next to the answer field."""
        param = self.current
        if param.is_flag:
            return "Y/n" if param.default_flag else "y/N"
        if param.default is not None:
            return f"default: {param.default}"
        return param.placeholder or ""


@dataclass
class ConfirmState:
    """A y/n question guarding a destructive internal command."""
    question: str
    target: Path
    text: str = ""
    error: Optional[str] = None


@dataclass
class AppState:
    """UI-relevant state of the launcher."""
    search_text: str = ""
    cursor_position: int = 0
    active_pane: Pane = Pane.COMMANDS
    mode: Mode = Mode.SEARCH
    selection_index: int = 0
    help_visible: bool = False
    active_filter: Optional[ParsedQuery] = None
    ranked_view: List[RankedEntry] = field(default_factory=list)
    internal_view: List['InternalCommandDef'] = field(default_factory=list)
    prompt: Optional[PromptState] = None
    confirm: Optional[ConfirmState] = None
    current_session: Optional['Session'] = None
    running_entry: Optional[CommandEntry] = None
    exit_after_session: bool = False
    exit_session: Optional['Session'] = None  # Session whose completion ended the launcher
    session_history: List['Session'] = field(default_factory=list)
    transcript: List[TranscriptLine] = field(default_factory=list)
    session_scroll: int = 0  # Lines scrolled up from the bottom; 0 follows output
    page_size: int = DEFAULT_PAGE_SIZE
    exit_requested: bool = False

    @property
    def internal_mode(self) -> bool:
        """Search text addresses internal commands."""
        return self.search_text.startswith("/")

    @property
    def session_active(self) -> bool:
        return self.current_session is not None and not self.current_session.finished

    @property
    def visible_count(self) -> int:
        return len(self.internal_view) if self.internal_mode else len(self.ranked_view)

    @property
    def selected_entry(self) -> Optional[CommandEntry]:
        if self.internal_mode or not self.ranked_view:
            return None
        index = min(self.selection_index, len(self.ranked_view) - 1)
        return self.ranked_view[index].entry


@dataclass
class LauncherContext:
    """Collaborators of the interaction machine."""
    config_manager: 'ConfigManager'
    registry: 'ProviderRegistry'
    usage: 'UsageStore'
    sessions: 'ProcessSessionManager'
    ranking: 'RankingConfig'
    cwd: Path
