"""
Interaction — Launcher state and the machine that transitions it
"""
