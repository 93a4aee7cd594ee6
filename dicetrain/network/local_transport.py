"""In-process transport for tests and single-process play."""

import asyncio
import json
import logging
from typing import Any, Callable

from ..errors import AddressUnavailable, ConnectRefused
from .transport import PeerTransport, generate_peer_id

logger = logging.getLogger(__name__)


class LocalNetwork:
    """
    Hub connecting LocalTransports inside one event loop.

    Deliveries are scheduled with ``loop.call_soon`` so they stay FIFO per
    sender and never run inside the sender's call stack.
    """

    def __init__(self):
        self._hosts: dict[str, "LocalTransport"] = {}
        self._clients: dict[str, "LocalTransport"] = {}
        self._pending = 0

    def register_host(self, session_id: str, transport: "LocalTransport") -> None:
        if session_id in self._hosts:
            raise AddressUnavailable(f"Session {session_id} is already hosted")
        self._hosts[session_id] = transport

    def unregister_host(self, session_id: str) -> None:
        self._hosts.pop(session_id, None)

    def lookup(self, session_id: str) -> "LocalTransport | None":
        return self._hosts.get(session_id)

    def register_client(self, peer_id: str, transport: "LocalTransport") -> None:
        self._clients[peer_id] = transport

    def unregister_client(self, peer_id: str) -> None:
        self._clients.pop(peer_id, None)

    def schedule(self, callback: Callable[..., Any], *args: Any) -> None:
        """Run ``callback(*args)`` on a later loop iteration."""
        self._pending += 1

        def run() -> None:
            try:
                callback(*args)
            finally:
                self._pending -= 1

        asyncio.get_running_loop().call_soon(run)

    @property
    def pending(self) -> int:
        return self._pending

    async def settle(self) -> None:
        """Yield to the loop until no delivery is pending."""
        while self._pending:
            await asyncio.sleep(0)

    def drop(self, peer_id: str) -> bool:
        """Cut a client's link without a goodbye, as a network failure would."""
        client = self._clients.get(peer_id)
        if client is None or client._host is None:
            return False
        host = client._host
        self.schedule(host._client_gone, peer_id)
        self.schedule(client._host_gone)
        return True


class LocalTransport(PeerTransport):
    """PeerTransport whose links are direct references through a LocalNetwork."""

    def __init__(self, network: LocalNetwork):
        super().__init__()
        self.network = network
        self._links: dict[str, "LocalTransport"] = {}  # host side: client id -> client
        self._host: "LocalTransport | None" = None  # client side

    async def _open_host(self, session_id: str) -> None:
        self.network.register_host(session_id, self)

    async def _open_client(self, session_id: str) -> str:
        host = self.network.lookup(session_id)
        if host is None or not host.is_open:
            raise ConnectRefused(f"No host for session {session_id}")
        local_id = generate_peer_id()
        self._host = host
        self.network.register_client(local_id, self)
        host._links[local_id] = self
        self.network.schedule(host._peer_opened, local_id)
        return local_id

    def _deliver(self, target_id: str, message: dict) -> bool:
        target = self._host if not self.is_host else self._links.get(target_id)
        if target is None:
            return False
        # same wire data as the websocket path
        self.network.schedule(target._receive, self.local_id, json.dumps(message))
        return True

    def _receive(self, from_id: str, data: str) -> None:
        if self.is_host:
            if from_id not in self._links:
                return
        elif self._host is None:
            return
        self._dispatch(from_id, data)

    def _close_peer(self, peer_id: str) -> None:
        # scheduled behind anything already queued, so the peer gets it first
        self.network.schedule(self._sever, peer_id)

    def _sever(self, peer_id: str) -> None:
        client = self._links.pop(peer_id, None)
        self._peer_closed(peer_id)
        if client is not None:
            client._host_gone()

    def _client_gone(self, peer_id: str) -> None:
        self._links.pop(peer_id, None)
        self._peer_closed(peer_id)

    def _host_gone(self) -> None:
        if self._host is None:
            return
        self._host = None
        self.network.unregister_client(self.local_id)
        self._host_lost()

    async def _close_all(self) -> None:
        if self.is_host:
            self.network.unregister_host(self.session_id)
            for client in list(self._links.values()):
                self.network.schedule(client._host_gone)
            self._links.clear()
        elif self._host is not None:
            self.network.schedule(self._host._client_gone, self.local_id)
            self._host = None
            self.network.unregister_client(self.local_id)
