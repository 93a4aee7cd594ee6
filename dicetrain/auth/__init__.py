"""Lobby password hashing."""
