"""
Presentation — Symbols, key mapping, screen rendering and the terminal loop
"""

from .symbols import get_symbols, safe_print, SymbolSet, UNICODE, ASCII

__all__ = ['get_symbols', 'safe_print', 'SymbolSet', 'UNICODE', 'ASCII']
