"""Peer transports: websocket and in-process."""

from .transport import PeerTransport, TransportEvent, generate_lobby_code, generate_peer_id
from .local_transport import LocalNetwork, LocalTransport
from .websocket_transport import WebSocketTransport

__all__ = [
    "LocalNetwork",
    "LocalTransport",
    "PeerTransport",
    "TransportEvent",
    "WebSocketTransport",
    "generate_lobby_code",
    "generate_peer_id",
]
