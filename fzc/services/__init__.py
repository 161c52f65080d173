"""
Services — Providers, catalog registry and process sessions
"""
