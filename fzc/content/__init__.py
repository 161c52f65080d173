"""
Content — Static text content for display

Text is data, not code embedded in methods.
"""

from .help_text import KEY_HELP, EPILOG

__all__ = ['KEY_HELP', 'EPILOG']
