"""Test transport implementation for unit tests."""

from dataclasses import dataclass
import json
from typing import Any

from ..messages.protocol import MessageType, create_message
from .transport import PeerTransport, generate_peer_id


@dataclass
class SentMessage:
    """A captured outbound message."""

    target_id: str
    type: MessageType
    payload: dict[str, Any]


class MockTransport(PeerTransport):
    """
    PeerTransport that delivers nothing and records everything.

    Inbound traffic is simulated with ``receive``, which goes through the
    same parse/decode/dispatch path as a real transport.
    """

    def __init__(self):
        super().__init__()
        self.sent: list[SentMessage] = []
        self.closed_peers: list[str] = []

    @classmethod
    def hosting(cls, session_id: str = "DT-TEST01", peers: tuple[str, ...] = ()) -> "MockTransport":
        """A transport already hosting ``session_id`` with ``peers`` connected."""
        transport = cls()
        transport._is_host = True
        transport._is_open = True
        transport._local_id = session_id
        transport._session_id = session_id
        for peer_id in peers:
            transport.connect_peer(peer_id)
        return transport

    def connect_peer(self, peer_id: str) -> None:
        self._peer_opened(peer_id)

    def drop_peer(self, peer_id: str) -> None:
        self._peer_closed(peer_id)

    def receive(self, from_id: str, msg_type: MessageType, payload: Any = None) -> None:
        self._dispatch(from_id, json.dumps(create_message(msg_type, payload)))

    def messages_of(self, msg_type: MessageType) -> list[SentMessage]:
        return [message for message in self.sent if message.type == msg_type]

    def clear(self) -> None:
        self.sent.clear()

    async def _open_host(self, session_id: str) -> None:
        pass

    async def _open_client(self, session_id: str) -> str:
        return generate_peer_id()

    def _deliver(self, target_id: str, message: dict) -> bool:
        self.sent.append(SentMessage(target_id, MessageType(message["type"]), message["payload"]))
        return True

    def _close_peer(self, peer_id: str) -> None:
        self.closed_peers.append(peer_id)
        self._peer_closed(peer_id)

    async def _close_all(self) -> None:
        pass
