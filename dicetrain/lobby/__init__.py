"""Lobby life cycle: roster, settings, join checks and game start."""
