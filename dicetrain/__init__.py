"""Dice Train networked session core.

Lobby formation, peer transport, the host-authoritative turn/phase state
machine and snapshot replication for the Dice Train board game.
"""

__version__ = "1.0.0"
