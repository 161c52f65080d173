"""
Symbols — Visual vocabulary of the launcher

Progressive enhancement: Unicode when supported, ASCII fallback.
Configurable via display.symbols setting (or FZC_SYMBOLS).

Also provides safe output utilities for the non-interactive commands:
- safe_print(): Encoding-safe printing
- truncate(): Width-limited text with ellipsis
"""

import os
import sys
from dataclasses import dataclass
from typing import Optional, Tuple


# Common Unicode to ASCII replacements for display
UNICODE_TO_ASCII = {
    '→': '->',
    '›': '>',
    '…': '...',
    '•': '*',
    '·': '.',
    '✓': 'ok',
    '✗': 'x',
}


def safe_print(text: str, end: str = '\n', file=None) -> None:
    """
    Print with graceful encoding fallback.

    Replaces unencodable characters with ASCII equivalents, or '?' as a
    last resort.

    Args:
        text: Text to print (may contain any Unicode)
        end: String appended after text (default: newline)
        file: Output stream (default: sys.stdout)
    """
    if file is None:
        file = sys.stdout

    try:
        print(text, end=end, file=file)
    except UnicodeEncodeError:
        safe_text = text
        for unicode_char, ascii_equiv in UNICODE_TO_ASCII.items():
            safe_text = safe_text.replace(unicode_char, ascii_equiv)

        try:
            print(safe_text, end=end, file=file)
        except UnicodeEncodeError:
            encoding = getattr(file, 'encoding', 'utf-8') or 'utf-8'
            encoded = safe_text.encode(encoding, errors='replace')
            print(encoded.decode(encoding), end=end, file=file)


def truncate(text: str, length: int, ellipsis: str = "...") -> str:
    """
    Truncate text with ellipsis.

    Examples:
        truncate("composer dump-autoload", 12)  -> "composer ..."
        truncate("Short", 50)                   -> "Short"
    """
    if not text:
        return ""
    if len(text) <= length:
        return text
    if length <= len(ellipsis):
        return text[:length]
    return text[:length - len(ellipsis)] + ellipsis


@dataclass(frozen=True)
class SymbolSet:
    """Complete set of symbols for the launcher screen."""
    # Search line
    prompt: str
    pointer: str         # Selected row marker
    filter_marker: str

    # Session states
    running: str
    succeeded: str
    failed: str
    interrupted: str

    # Transcript
    command: str         # Echoed command line prefix
    info: str
    error: str

    # Misc
    separator: str
    ellipsis: str
    spinner: Tuple[str, ...]

    def spinner_frame(self, tick: int) -> str:
        return self.spinner[tick % len(self.spinner)]


UNICODE = SymbolSet(
    prompt="›",
    pointer="▶",
    filter_marker="⧩",
    running="●",
    succeeded="✓",
    failed="✗",
    interrupted="⊘",
    command="$",
    info="·",
    error="!",
    separator="│",
    ellipsis="…",
    spinner=("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"),
)

ASCII = SymbolSet(
    prompt=">",
    pointer=">",
    filter_marker="!",
    running="*",
    succeeded="ok",
    failed="x",
    interrupted="^C",
    command="$",
    info="-",
    error="!",
    separator="|",
    ellipsis="...",
    spinner=("|", "/", "-", "\\"),
)


def supports_unicode() -> bool:
    """
    Check if environment likely supports Unicode output.

    Conservative: defaults to ASCII if uncertain.
    """
    if os.environ.get('FZC_ASCII_ONLY', '').lower() in ('1', 'true', 'yes'):
        return False
    if os.environ.get('FZC_UNICODE', '').lower() in ('1', 'true', 'yes'):
        return True

    stdout_encoding = getattr(sys.stdout, 'encoding', None)
    if stdout_encoding:
        encoding_lower = stdout_encoding.lower().replace('-', '').replace('_', '')
        if encoding_lower.startswith('cp') or encoding_lower in ('ascii', 'latin1', 'iso88591'):
            return False
        if 'utf' in encoding_lower:
            return True

    lang = os.environ.get('LANG', '').lower()
    lc_all = os.environ.get('LC_ALL', '').lower()
    if 'utf-8' in lang or 'utf8' in lang or 'utf-8' in lc_all or 'utf8' in lc_all:
        return True

    if os.environ.get('TERM_PROGRAM', '') in ('vscode', 'iTerm.app', 'Apple_Terminal', 'Hyper'):
        return True
    if os.environ.get('WT_SESSION'):
        return True

    return False


def get_symbols(preference: Optional[str] = None) -> SymbolSet:
    """
    Get appropriate symbol set based on preference or auto-detection.

    Args:
        preference: "unicode", "ascii", or "auto" (None = auto)
    """
    if preference == 'unicode':
        return UNICODE
    if preference == 'ascii':
        return ASCII
    return UNICODE if supports_unicode() else ASCII
