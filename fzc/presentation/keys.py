"""
Keys — Raw key presses to logical input events

readchar delivers one key (or escape sequence) at a time; map_key turns it
into an InputEvent. KeyReader runs readchar on a background thread and
feeds a queue so the main loop can keep draining session output while no
key is pressed.

Terminal notes:
- Enter arrives as LF on POSIX, the same byte as Ctrl-J, so line moves use
  Ctrl-K/Ctrl-P (up) and Ctrl-N (down)
- A lone Esc is only reported together with the next key; any unrecognized
  Esc sequence counts as Esc
"""

import logging
import queue
import threading
from typing import Dict, Optional

import readchar

from ..interaction.state import Action, InputEvent


logger = logging.getLogger(__name__)

KEY_ACTIONS: Dict[str, Action] = {
    readchar.key.UP: Action.UP,
    readchar.key.DOWN: Action.DOWN,
    readchar.key.CTRL_K: Action.UP,
    readchar.key.CTRL_P: Action.UP,
    readchar.key.CTRL_N: Action.DOWN,
    readchar.key.PAGE_UP: Action.PAGE_UP,
    readchar.key.PAGE_DOWN: Action.PAGE_DOWN,
    readchar.key.LEFT: Action.CURSOR_LEFT,
    readchar.key.RIGHT: Action.CURSOR_RIGHT,
    readchar.key.HOME: Action.CURSOR_HOME,
    readchar.key.END: Action.CURSOR_END,
    readchar.key.CTRL_A: Action.CURSOR_HOME,
    readchar.key.CTRL_E: Action.CURSOR_END,
    readchar.key.BACKSPACE: Action.BACKSPACE,
    "\x08": Action.BACKSPACE,
    readchar.key.DELETE: Action.DELETE,
    readchar.key.TAB: Action.TOGGLE_PANE,
    readchar.key.CR: Action.RUN,
    readchar.key.LF: Action.RUN,
    readchar.key.ESC + readchar.key.CR: Action.RUN_AND_EXIT,
    readchar.key.ESC + readchar.key.LF: Action.RUN_AND_EXIT,
    readchar.key.CTRL_R: Action.RUN_AND_EXIT,
    readchar.key.F1: Action.TOGGLE_HELP,
    readchar.key.ESC: Action.CANCEL,
    readchar.key.CTRL_C: Action.QUIT,
    readchar.key.CTRL_Q: Action.QUIT,
}


def map_key(key: str) -> Optional[InputEvent]:
    """
    Map one readchar key to an input event.

    Returns:
        The event, or None for keys with no meaning
    """
    if not key:
        return None
    action = KEY_ACTIONS.get(key)
    if action is not None:
        return InputEvent(action)
    if key == "?":
        return InputEvent(Action.TOGGLE_HELP, key)
    if key.startswith(readchar.key.ESC):
        return InputEvent(Action.CANCEL)
    if len(key) == 1 and key.isprintable():
        return InputEvent(Action.CHAR, key)
    return None


class KeyReader:
    """Background thread turning key presses into queued InputEvents."""

    def __init__(self, events: "queue.Queue", read_key=None):
        self.events = events
        self.read_key = read_key or readchar.readkey
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="fzc-keys", daemon=True)

    def start(self):
        self._thread.start()

    def stop(self):
        # The thread stays blocked in read_key until the next key press; it is a daemon
        self._stop.set()

    def _run(self):
        while not self._stop.is_set():
            try:
                key = self.read_key()
            except KeyboardInterrupt:
                self.events.put(InputEvent(Action.QUIT))
                continue
            except (OSError, EOFError) as e:
                logger.error("Key input failed: %s", e)
                self.events.put(InputEvent(Action.QUIT))
                return
            event = map_key(key)
            if event is not None:
                self.events.put(event)
