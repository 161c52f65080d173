"""
Screen — Rich renderables derived from AppState

Layout (top to bottom):
- Search line: prompt, query with cursor, active filter, match count
  (replaced by the parameter prompt while one is open)
- Commands pane: ranked entries or internal commands around the selection
- Session pane: transcript; child output rendered from its ANSI bytes
- Help panel (toggled)
- Status bar: session state, spinner, focus

The renderer only reads state; the one value it feeds back is how many
list rows fit, which the CLI copies into state.page_size.
"""

from typing import List, Optional, Tuple

from rich.console import Group
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..content.help_text import KEY_HELP
from ..interaction.state import AppState, LineKind, Mode, Pane
from ..services.session import SessionStatus
from .symbols import SymbolSet, truncate


SEARCH_HEIGHT = 3
STATUS_HEIGHT = 1
PANEL_CHROME = 2  # Border lines around a panel

FOCUSED_BORDER = "cyan"
UNFOCUSED_BORDER = "grey37"


def _visible_window(selected: int, count: int, rows: int) -> Tuple[int, int]:
    """[start, end) of a list window of rows keeping selected visible."""
    if count <= rows:
        return 0, count
    start = max(0, min(selected - rows // 2, count - rows))
    return start, start + rows


class ScreenRenderer:
    """
    Builds the full-screen layout for rich.live.Live.

    Transcript text is cached between frames and rebuilt only when the
    transcript grows.
    """

    def __init__(self, symbols: SymbolSet):
        self.symbols = symbols
        self.frame = 0
        self._cache_key: Optional[Tuple[int, int]] = None
        self._cache_lines: List[Text] = []

    # -------------------------------------------------------------------------
    # Geometry
    # -------------------------------------------------------------------------

    def _body_height(self, height: int, help_visible: bool) -> int:
        body = height - SEARCH_HEIGHT - STATUS_HEIGHT
        if help_visible:
            body -= len(KEY_HELP) + PANEL_CHROME
        return max(2 * (PANEL_CHROME + 1), body)

    def list_rows(self, height: int, help_visible: bool = False) -> int:
        """Rows of the commands pane, the page size for page moves."""
        return max(1, self._body_height(height, help_visible) // 2 - PANEL_CHROME)

    # -------------------------------------------------------------------------
    # Sections
    # -------------------------------------------------------------------------

    def _search_line(self, state: AppState) -> Panel:
        symbols = self.symbols
        if state.mode == Mode.PROMPT and state.prompt is not None:
            prompt = state.prompt
            line = Text()
            line.append(f"{prompt.current.prompt_text} ", style="bold")
            line.append(prompt.text)
            line.append("█", style="blink")
            if prompt.hint:
                line.append(f"  ({prompt.hint})", style="dim")
            if prompt.error:
                line.append(f"  {prompt.error}", style="red")
            title = f"{prompt.entry.display_name} [{prompt.progress}]"
            return Panel(line, title=Text(title), title_align="left", border_style="yellow")

        if state.mode == Mode.CONFIRM and state.confirm is not None:
            confirm = state.confirm
            line = Text()
            line.append(f"{confirm.question} ", style="bold")
            line.append(confirm.text)
            line.append("█", style="blink")
            line.append("  (y/N)", style="dim")
            if confirm.error:
                line.append(f"  {confirm.error}", style="red")
            return Panel(line, title=Text("/init"), title_align="left", border_style="yellow")

        text = state.search_text
        pos = min(state.cursor_position, len(text))
        line = Text()
        line.append(f"{symbols.prompt} ", style="bold cyan")
        line.append(text[:pos])
        line.append(text[pos:pos + 1] or " ", style="reverse")
        line.append(text[pos + 1:])

        subtitle = f"{state.visible_count}"
        if state.active_filter is not None:
            subtitle = f"{symbols.filter_marker} {state.active_filter.filter_token}  {subtitle}"
        border = FOCUSED_BORDER if state.active_pane == Pane.COMMANDS else UNFOCUSED_BORDER
        return Panel(line, subtitle=Text(subtitle), subtitle_align="right", border_style=border)

    def _commands_pane(self, state: AppState, rows: int) -> Panel:
        symbols = self.symbols
        table = Table.grid(padding=(0, 1), expand=True)
        table.add_column(width=len(symbols.pointer))
        table.add_column(ratio=2, no_wrap=True)
        table.add_column(no_wrap=True, style="magenta")
        table.add_column(ratio=3, no_wrap=True, style="dim")

        if state.internal_mode:
            items = [(c.name, "internal", c.description) for c in state.internal_view]
        else:
            items = [
                (r.entry.display_name, r.entry.provenance, r.entry.description or "")
                for r in state.ranked_view
            ]

        start, end = _visible_window(state.selection_index, len(items), rows)
        for index in range(start, end):
            name, provider, description = items[index]
            selected = index == state.selection_index
            table.add_row(
                symbols.pointer if selected else "",
                Text(name, style="bold reverse" if selected else ""),
                Text(provider),
                Text(description),
            )
        if not items:
            table.add_row("", Text("No matching commands", style="dim italic"), "", "")

        border = FOCUSED_BORDER if state.active_pane == Pane.COMMANDS else UNFOCUSED_BORDER
        return Panel(table, title="Commands", title_align="left", border_style=border)

    def _transcript_lines(self, state: AppState) -> List[Text]:
        transcript = state.transcript
        key = (len(transcript), id(transcript[-1]) if transcript else 0)
        if key == self._cache_key:
            return self._cache_lines

        symbols = self.symbols
        lines: List[Text] = []
        buffer = b""

        def flush():
            if buffer:
                decoded = buffer.decode("utf-8", errors="replace")
                lines.extend(Text.from_ansi(decoded).split("\n", allow_blank=True))

        for line in transcript:
            if line.kind == LineKind.OUTPUT:
                buffer += line.raw
                continue
            flush()
            buffer = b""
            if line.kind == LineKind.COMMAND:
                lines.append(Text(f"{symbols.command} {line.text}", style="bold green"))
            elif line.kind == LineKind.ERROR:
                lines.append(Text(f"{symbols.error} {line.text}", style="bold red"))
            else:
                lines.append(Text(f"{symbols.info} {line.text}", style="dim"))
        flush()

        self._cache_key = key
        self._cache_lines = lines
        return lines

    def _session_pane(self, state: AppState, rows: int) -> Panel:
        lines = self._transcript_lines(state)
        scroll = min(state.session_scroll, max(0, len(lines) - rows))
        end = len(lines) - scroll
        window = lines[max(0, end - rows):end]

        title = "Session"
        if scroll:
            title = f"Session (+{scroll})"
        border = FOCUSED_BORDER if state.active_pane == Pane.SESSION else UNFOCUSED_BORDER
        return Panel(Group(*window), title=title, title_align="left", border_style=border)

    def _help_panel(self) -> Panel:
        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold")
        table.add_column(style="dim")
        for keys, description in KEY_HELP:
            table.add_row(keys, description)
        return Panel(table, title="Help", title_align="left", border_style="grey50")

    def status_text(self, state: AppState) -> Text:
        """One-line summary of the session and focus."""
        symbols = self.symbols
        session = state.current_session
        status = Text()
        if session is None:
            status.append("ready", style="dim")
        elif not session.finished:
            status.append(f"{symbols.spinner_frame(self.frame)} ", style="yellow")
            status.append(f"{truncate(session.name or session.command_line, 40, symbols.ellipsis)} ")
            status.append(f"{session.duration:.0f}s", style="dim")
        elif session.status == SessionStatus.SUCCEEDED:
            status.append(f"{symbols.succeeded} {session.name or ''}", style="green")
        elif session.status == SessionStatus.INTERRUPTED:
            status.append(f"{symbols.interrupted} {session.name or ''}", style="yellow")
        else:
            code = "" if session.exit_code is None else f" (exit {session.exit_code})"
            status.append(f"{symbols.failed} {session.name or ''}{code}", style="red")

        status.append(f"  {symbols.separator} focus: {state.active_pane.value}", style="dim")
        status.append(f"  {symbols.separator} ? help", style="dim")
        return status

    # -------------------------------------------------------------------------
    # Full frame
    # -------------------------------------------------------------------------

    def render(self, state: AppState, height: int) -> Layout:
        """Build the layout for a terminal of the given height."""
        self.frame += 1
        rows = self.list_rows(height, state.help_visible)
        body_height = self._body_height(height, state.help_visible)
        session_rows = max(1, body_height - (rows + PANEL_CHROME) - PANEL_CHROME)

        layout = Layout()
        sections = [
            Layout(self._search_line(state), name="search", size=SEARCH_HEIGHT),
            Layout(self._commands_pane(state, rows), name="commands", size=rows + PANEL_CHROME),
            Layout(self._session_pane(state, session_rows), name="session"),
        ]
        if state.help_visible:
            sections.append(Layout(self._help_panel(), name="help", size=len(KEY_HELP) + PANEL_CHROME))
        sections.append(Layout(self.status_text(state), name="status", size=STATUS_HEIGHT))
        layout.split_column(*sections)
        return layout
