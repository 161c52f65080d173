"""
Help text for fzc.

KEY_HELP is the in-app help panel; EPILOG closes `fzc --help`.
"""

KEY_HELP = (
    ("Enter", "Run selected command"),
    ("Alt+Enter / Ctrl+R", "Run selected command and exit"),
    ("Tab", "Toggle command/session focus"),
    ("Up/Down, Ctrl+P/N/K", "Move selection / scroll session"),
    ("PgUp/PgDn", "Move or scroll a page"),
    ("Left/Right", "Move cursor in search input"),
    ("Home/End, Ctrl+A/E", "Jump cursor in search input"),
    ("Backspace/Del", "Edit search input"),
    ("!provider text", "Filter by provider alias or name"),
    ("/", "Internal commands (/reload, /init)"),
    ("? or F1", "Toggle this help"),
    ("Esc", "Clear search / close help / interrupt / quit"),
    ("Ctrl+C / Ctrl+Q", "Quit (interrupts a running command)"),
)

EPILOG = """
Search syntax:
  text              fuzzy match on name and description
  !alias text       only commands from one provider
  /reload, /init    internal commands

Configuration is read from --config, ./fzc.yaml, ./.fzc.yaml or the
global config file (see `fzc config`). Run `fzc init` to create one.
"""
