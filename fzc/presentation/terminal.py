"""
Terminal — The interactive launcher loop

One cycle:
1. Wait briefly for a key event (KeyReader thread feeds the queue)
2. Apply every pending event to the machine
3. machine.tick() drains running session output
4. Redraw through rich.live.Live on the alternate screen

A silent child never blocks input and a key press never waits on output.
"""

import logging
import queue
from typing import Optional

from rich.console import Console
from rich.live import Live

from ..interaction.machine import InteractionMachine
from .keys import KeyReader
from .screen import ScreenRenderer
from .symbols import SymbolSet


logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05  # Seconds to wait for a key before draining output
REFRESH_PER_SECOND = 20


class TerminalApp:
    """Runs an InteractionMachine on a full-screen rich display."""

    def __init__(self, machine: InteractionMachine, symbols: SymbolSet, console: Optional[Console] = None):
        self.machine = machine
        self.console = console or Console()
        self.renderer = ScreenRenderer(symbols)
        self.events: "queue.Queue" = queue.Queue()

    def _frame(self):
        state = self.machine.state
        height = self.console.size.height
        state.page_size = self.renderer.list_rows(height, state.help_visible)
        return self.renderer.render(state, height)

    def _drain_events(self, timeout: float) -> bool:
        """Apply queued key events; True if any arrived."""
        try:
            event = self.events.get(timeout=timeout)
        except queue.Empty:
            return False
        while True:
            self.machine.handle(event)
            if self.machine.state.exit_requested:
                return True
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                return True

    def run(self):
        """Run until the machine requests exit."""
        machine = self.machine
        reader = KeyReader(self.events)
        reader.start()
        logger.debug("Interactive loop started")

        try:
            with Live(
                self._frame(),
                console=self.console,
                screen=True,
                auto_refresh=False,
                refresh_per_second=REFRESH_PER_SECOND,
            ) as live:
                while not machine.state.exit_requested:
                    self._drain_events(POLL_INTERVAL)
                    machine.tick()
                    live.update(self._frame(), refresh=True)
        finally:
            reader.stop()

        session = machine.state.current_session
        if session is not None and session.is_active:
            # Quit while running: the interrupt was sent, give the child its grace period
            sessions = machine.context.sessions
            sessions.wait(session, timeout=sessions.interrupt_grace + 1.0)
