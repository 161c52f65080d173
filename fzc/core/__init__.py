"""
Core — Catalog model, ranking, usage counts and scopes

Pure data and functions; no terminal, no subprocesses.
"""
