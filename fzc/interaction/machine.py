"""
InteractionMachine — The launcher's state transitions

Receives logical input events and drives everything else:
- Search edits recompute the ranked view
- Run opens the parameter prompt, then starts a session
- Run is ignored while the session pane has focus
- '/' commands reload providers or write the starter config
- tick() drains session output into the transcript once per loop cycle

Rules:
- At most one running session; a second run is refused with a message
- Usage is recorded only when a session succeeds
- Cancel unwinds one layer at a time: search, help, running session, exit
- Errors never escape to the caller; they become transcript lines
"""

import logging
from typing import List, Optional

from ..config import ConfigError, InitAlreadyExists, LoadedConfig
from ..core.model import (
    CommandEntry, PlaceholderResolutionError, check_placeholders, parse_bool_literal,
    resolve_command,
)
from ..core.ranking import parse_query, rank
from ..services.session import Session, SessionStatus
from .internal import (
    InternalInvocation, UnknownInternalCommand, parse_internal_command, rank_internal,
)
from .state import (
    Action, AppState, ConfirmState, InputEvent, LauncherContext, LineKind, Mode,
    Pane, PromptState, TranscriptLine,
)


logger = logging.getLogger(__name__)

# Oldest transcript lines are dropped past this; session.output_log keeps everything
MAX_TRANSCRIPT_LINES = 20000


class InteractionMachine:
    """
    Owns AppState and applies input events to it.

    Key methods:
    - handle: apply one input event
    - tick: drain running session output, observe completion
    - announce_catalog: startup/reload summary lines
    """

    def __init__(self, context: LauncherContext, state: Optional[AppState] = None):
        self.context = context
        self.state = state or AppState()
        self.recompute()

    # -------------------------------------------------------------------------
    # Transcript helpers
    # -------------------------------------------------------------------------

    def _append(self, line: TranscriptLine):
        transcript = self.state.transcript
        transcript.append(line)
        if len(transcript) > MAX_TRANSCRIPT_LINES:
            del transcript[:len(transcript) - MAX_TRANSCRIPT_LINES]

    def info(self, text: str):
        self._append(TranscriptLine(LineKind.INFO, text))

    def error(self, text: str):
        logger.warning("%s", text)
        self._append(TranscriptLine(LineKind.ERROR, text))

    def announce_catalog(self, loaded: Optional[LoadedConfig] = None):
        """Summary lines after a load: count, config source, cwd, provider errors."""
        registry = self.context.registry
        loaded = loaded or registry.loaded_config
        self.info(f"Loaded {len(registry.catalog)} commands")
        if loaded is not None and loaded.path is not None:
            self.info(f"Config: {loaded.path}")
        else:
            self.info("No config file found. Type /init to create one.")
        self.info(f"Working directory: {self.context.cwd}")
        for provider, message in registry.last_errors.items():
            self.error(f"Provider '{provider}' failed: {message}")

    # -------------------------------------------------------------------------
    # Ranking
    # -------------------------------------------------------------------------

    def recompute(self, reset_selection: bool = True):
        """Rebuild the visible list from the search text."""
        state = self.state
        if state.internal_mode:
            state.active_filter = None
            state.ranked_view = []
            state.internal_view = rank_internal(state.search_text[1:])
        else:
            parsed = parse_query(state.search_text)
            state.active_filter = parsed if parsed.is_filtered else None
            state.internal_view = []
            state.ranked_view = rank(
                state.search_text,
                self.context.registry.catalog,
                usage=self.context.usage.counts(),
                usage_enabled=self.context.ranking.usage_enabled,
                usage_weight=self.context.ranking.usage_weight,
            )

        if reset_selection:
            state.selection_index = 0
        else:
            state.selection_index = max(0, min(state.selection_index, state.visible_count - 1))

    # -------------------------------------------------------------------------
    # Event dispatch
    # -------------------------------------------------------------------------

    def handle(self, event: InputEvent):
        """Apply one input event."""
        if self.state.mode == Mode.PROMPT:
            self._handle_prompt(event)
            return
        if self.state.mode == Mode.CONFIRM:
            self._handle_confirm(event)
            return

        handlers = {
            Action.CHAR: self._on_char,
            Action.BACKSPACE: self._on_backspace,
            Action.DELETE: self._on_delete,
            Action.CURSOR_LEFT: self._on_cursor,
            Action.CURSOR_RIGHT: self._on_cursor,
            Action.CURSOR_HOME: self._on_cursor,
            Action.CURSOR_END: self._on_cursor,
            Action.UP: self._on_navigate,
            Action.DOWN: self._on_navigate,
            Action.PAGE_UP: self._on_navigate,
            Action.PAGE_DOWN: self._on_navigate,
            Action.TOGGLE_PANE: self._on_toggle_pane,
            Action.RUN: self._on_run,
            Action.RUN_AND_EXIT: self._on_run,
            Action.TOGGLE_HELP: self._on_toggle_help,
            Action.CANCEL: self._on_cancel,
            Action.QUIT: self._on_quit,
        }
        handlers[event.action](event)

    def _focus_commands(self):
        self.state.active_pane = Pane.COMMANDS

    def _set_search(self, text: str, cursor: int):
        self.state.search_text = text
        self.state.cursor_position = cursor
        self.recompute()

    def _on_char(self, event: InputEvent):
        if not event.text:
            return
        state = self.state
        self._focus_commands()
        state.help_visible = False
        pos = state.cursor_position
        text = state.search_text[:pos] + event.text + state.search_text[pos:]
        self._set_search(text, pos + len(event.text))

    def _on_backspace(self, event: InputEvent):
        state = self.state
        self._focus_commands()
        pos = state.cursor_position
        if pos == 0:
            return
        self._set_search(state.search_text[:pos - 1] + state.search_text[pos:], pos - 1)

    def _on_delete(self, event: InputEvent):
        state = self.state
        self._focus_commands()
        pos = state.cursor_position
        if pos >= len(state.search_text):
            return
        self._set_search(state.search_text[:pos] + state.search_text[pos + 1:], pos)

    def _on_cursor(self, event: InputEvent):
        state = self.state
        self._focus_commands()
        length = len(state.search_text)
        if event.action == Action.CURSOR_LEFT:
            state.cursor_position = max(0, state.cursor_position - 1)
        elif event.action == Action.CURSOR_RIGHT:
            state.cursor_position = min(length, state.cursor_position + 1)
        elif event.action == Action.CURSOR_HOME:
            state.cursor_position = 0
        else:
            state.cursor_position = length

    def _on_navigate(self, event: InputEvent):
        state = self.state
        page = max(1, state.page_size)

        if state.active_pane == Pane.SESSION:
            step = {Action.UP: 1, Action.DOWN: -1, Action.PAGE_UP: page, Action.PAGE_DOWN: -page}
            state.session_scroll = max(0, state.session_scroll + step[event.action])
            return

        count = state.visible_count
        if count == 0:
            state.selection_index = 0
            return
        index = state.selection_index
        if event.action == Action.UP:
            index = (index - 1) % count
        elif event.action == Action.DOWN:
            index = (index + 1) % count
        elif event.action == Action.PAGE_UP:
            index = max(0, index - page)
        else:
            index = min(count - 1, index + page)
        state.selection_index = index

    def _on_toggle_pane(self, event: InputEvent):
        state = self.state
        state.active_pane = Pane.SESSION if state.active_pane == Pane.COMMANDS else Pane.COMMANDS

    def _on_toggle_help(self, event: InputEvent):
        self.state.help_visible = not self.state.help_visible

    def _on_cancel(self, event: InputEvent):
        state = self.state
        if state.search_text:
            self._set_search("", 0)
        elif state.help_visible:
            state.help_visible = False
        elif state.session_active:
            self._interrupt()
        else:
            state.exit_requested = True

    def _on_quit(self, event: InputEvent):
        if self.state.session_active:
            self._interrupt()
        self.state.exit_requested = True

    def _interrupt(self):
        session = self.state.current_session
        if session is not None and self.context.sessions.interrupt(session):
            self.info("Interrupt sent")

    # -------------------------------------------------------------------------
    # Running
    # -------------------------------------------------------------------------

    def _on_run(self, event: InputEvent):
        state = self.state
        run_and_exit = event.action == Action.RUN_AND_EXIT

        if state.active_pane == Pane.SESSION:
            return

        if state.session_active:
            self.error("A command is already running. Press Esc to interrupt it.")
            return

        if state.internal_mode:
            self._run_internal()
            return

        entry = state.selected_entry
        if entry is None:
            self.info("No command selected")
            return

        try:
            check_placeholders(entry)
        except PlaceholderResolutionError as e:
            self.error(str(e))
            return

        params = entry.prompt_params()
        if params:
            state.mode = Mode.PROMPT
            state.prompt = PromptState(entry=entry, params=params, run_and_exit=run_and_exit)
            return
        self._launch(entry, {}, run_and_exit)

    def _handle_prompt(self, event: InputEvent):
        state = self.state
        prompt = state.prompt

        if event.action == Action.CANCEL:
            state.mode = Mode.SEARCH
            state.prompt = None
            self.info(f"Cancelled {prompt.entry.name}")
        elif event.action == Action.QUIT:
            state.mode = Mode.SEARCH
            state.prompt = None
            self._on_quit(event)
        elif event.action in (Action.CHAR, Action.TOGGLE_HELP):
            # '?' is an ordinary character while answering
            prompt.text += event.text
            prompt.error = None
        elif event.action == Action.BACKSPACE:
            prompt.text = prompt.text[:-1]
        elif event.action in (Action.RUN, Action.RUN_AND_EXIT):
            if event.action == Action.RUN_AND_EXIT:
                prompt.run_and_exit = True
            self._submit_answer(prompt)

    def _submit_answer(self, prompt: PromptState):
        param = prompt.current
        answer = prompt.text.strip()

        if param.is_flag:
            enabled = param.default_flag if not answer else parse_bool_literal(answer)
            if enabled is None:
                prompt.error = "Please enter y or n"
                return
            value = param.render_flag(enabled)
        elif answer:
            value = answer
        elif param.default is not None:
            value = param.default
        elif param.is_required:
            prompt.error = f"'{param.name}' is required"
            return
        else:
            value = ""

        prompt.answers[param.name] = value
        prompt.index += 1
        prompt.text = ""
        prompt.error = None

        if prompt.done:
            self.state.mode = Mode.SEARCH
            self.state.prompt = None
            self._launch(prompt.entry, prompt.answers, prompt.run_and_exit)

    def _launch(self, entry: CommandEntry, answers, run_and_exit: bool):
        state = self.state
        try:
            command_line = resolve_command(entry, answers)
        except PlaceholderResolutionError as e:
            self.error(str(e))
            return

        working_dir = entry.working_dir or self.context.cwd
        self._append(TranscriptLine(LineKind.COMMAND, command_line))
        if working_dir != self.context.cwd:
            self.info(f"in {working_dir}")

        session = self.context.sessions.start(command_line, working_dir, name=entry.name)
        state.current_session = session
        state.running_entry = entry
        state.exit_after_session = run_and_exit
        state.active_pane = Pane.SESSION
        state.session_scroll = 0
        state.help_visible = False
        self._set_search("", 0)

        if session.finished:
            self.error(session.error or "Failed to start command")
            self._finish_session(session)

    def tick(self) -> bool:
        """
        Drain output of the running session; call once per loop cycle.

        Returns:
            True when the state changed
        """
        session = self.state.current_session
        if session is None or session.finished:
            return False

        chunks = self.context.sessions.poll(session)
        for chunk in chunks:
            self._append(TranscriptLine(LineKind.OUTPUT, raw=chunk))
        if session.finished:
            self._finish_session(session)
            return True
        return bool(chunks)

    def _finish_session(self, session: Session):
        state = self.state
        if session.error is None:
            if session.status == SessionStatus.INTERRUPTED:
                self.info("Interrupted")
            elif session.status == SessionStatus.SUCCEEDED:
                self.info(f"Exit code 0 ({session.duration:.1f}s)")
            else:
                self.error(f"Exit code {session.exit_code} ({session.duration:.1f}s)")

        if session.status == SessionStatus.SUCCEEDED and state.running_entry is not None:
            self.context.usage.record(state.running_entry.usage_key)
            self.recompute(reset_selection=False)

        state.session_history.append(session)
        state.running_entry = None
        if state.exit_after_session:
            state.exit_requested = True
            state.exit_session = session
            state.exit_after_session = False

    # -------------------------------------------------------------------------
    # Internal commands
    # -------------------------------------------------------------------------

    def _run_internal(self):
        state = self.state
        try:
            invocation = parse_internal_command(state.search_text)
        except UnknownInternalCommand as e:
            self.error(str(e))
            return

        if invocation is None:
            # '/' alone: run the selected entry of the list
            if not state.internal_view:
                self.error("No internal command selected")
                return
            index = min(state.selection_index, len(state.internal_view) - 1)
            invocation = InternalInvocation(name=state.internal_view[index].keyword)

        self._set_search("", 0)
        if invocation.name == "reload":
            self.reload()
        elif invocation.name == "init":
            self.init_config(force=invocation.force)

    def reload(self) -> bool:
        """Re-read config and rebuild the catalog; keeps the old one on error."""
        try:
            self.context.registry.reload()
        except ConfigError as e:
            self.error(f"Reload failed, keeping previous commands: {e}")
            return False

        loaded = self.context.registry.loaded_config
        if loaded is not None:
            self.context.ranking = loaded.config.ranking
            self.context.sessions.interrupt_grace = loaded.config.session.interrupt_grace
        self.recompute()
        self.announce_catalog(loaded)
        return True

    def init_config(self, force: bool = False) -> bool:
        """
        Write the starter config, then reload so it takes effect.

        Without force an existing file is left alone and an overwrite
        confirmation opens instead.
        """
        try:
            path = self.context.config_manager.write_example_config(force=force)
        except InitAlreadyExists as e:
            self.error(str(e))
            self.state.mode = Mode.CONFIRM
            self.state.confirm = ConfirmState(question=f"Overwrite {e.path}?", target=e.path)
            return False
        except OSError as e:
            self.error(f"Failed to write config: {e}")
            return False
        self.info(f"Created config at {path}")
        self.reload()
        return True

    def _handle_confirm(self, event: InputEvent):
        state = self.state
        confirm = state.confirm

        if event.action in (Action.CANCEL, Action.QUIT):
            answer = False
        elif event.action in (Action.CHAR, Action.TOGGLE_HELP):
            confirm.text += event.text
            confirm.error = None
            return
        elif event.action == Action.BACKSPACE:
            confirm.text = confirm.text[:-1]
            return
        elif event.action in (Action.RUN, Action.RUN_AND_EXIT):
            # Empty answer keeps the file
            answer = parse_bool_literal(confirm.text) if confirm.text.strip() else False
            if answer is None:
                confirm.error = "Please enter y or n"
                return
        else:
            return

        state.mode = Mode.SEARCH
        state.confirm = None
        if answer:
            self.init_config(force=True)
        else:
            self.info(f"Kept {confirm.target}")
        if event.action == Action.QUIT:
            self._on_quit(event)

    # -------------------------------------------------------------------------
    # Convenience
    # -------------------------------------------------------------------------

    def type_text(self, text: str):
        """Feed text as character events."""
        for char in text:
            self.handle(InputEvent(Action.CHAR, char))

    def output_lines(self) -> List[str]:
        """Transcript rendered as plain text lines (output decoded leniently)."""
        lines: List[str] = []
        buffer = b""
        for line in self.state.transcript:
            if line.kind == LineKind.OUTPUT:
                buffer += line.raw
                continue
            if buffer:
                lines.extend(buffer.decode("utf-8", errors="replace").splitlines())
                buffer = b""
            lines.append(line.text)
        if buffer:
            lines.extend(buffer.decode("utf-8", errors="replace").splitlines())
        return lines
