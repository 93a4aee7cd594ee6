"""WebSocket transport: the host runs a server, clients connect to it."""

import asyncio
from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
import ssl
from urllib.parse import quote, urlsplit

from websockets.asyncio.client import ClientConnection, connect
from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from ..config import CONNECT_TIMEOUT
from ..errors import AddressUnavailable, ConnectRefused, ConnectTimeout
from .transport import PeerTransport, generate_peer_id

logger = logging.getLogger(__name__)

HANDSHAKE_TYPE = "transport_open"
CLOSE_UNKNOWN_SESSION = 4404

_CLOSE = object()  # outbox sentinel: close once everything before it is sent


@dataclass
class PeerConnection:
    """One open websocket plus its outbound queue and writer task."""

    peer_id: str
    websocket: ServerConnection | ClientConnection
    outbox: asyncio.Queue = field(default_factory=asyncio.Queue)
    writer: asyncio.Task | None = None
    closing: bool = False

    def start(self) -> None:
        self.writer = asyncio.create_task(self._write_loop())

    def enqueue(self, data: str) -> bool:
        if self.closing:
            return False
        self.outbox.put_nowait(data)
        return True

    def close_after_flush(self) -> None:
        if not self.closing:
            self.closing = True
            self.outbox.put_nowait(_CLOSE)

    async def _write_loop(self) -> None:
        while True:
            item = await self.outbox.get()
            if item is _CLOSE:
                await self.websocket.close()
                return
            try:
                await self.websocket.send(item)
            except ConnectionClosed:
                return


class WebSocketTransport(PeerTransport):
    """
    PeerTransport over websockets.

    The host listens on ``host:port`` (TLS when a certificate and key are
    given). A client reaches the session at
    ``<server_url>/<session_id>``. The host picks the client's peer id and
    sends it in the handshake frame; the client counts as connected once that
    frame arrives.
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 8000,
        server_url: str | None = None,
        ssl_cert: str | Path | None = None,
        ssl_key: str | Path | None = None,
        client_ssl: ssl.SSLContext | None = None,
        connect_timeout: float = CONNECT_TIMEOUT,
    ):
        super().__init__()
        self.host = host
        self.port = port
        self.server_url = server_url or f"ws://{host}:{port}"
        self.connect_timeout = connect_timeout
        self._client_ssl = client_ssl
        self._server: Server | None = None
        self._connections: dict[str, PeerConnection] = {}  # host side
        self._host_conn: PeerConnection | None = None  # client side
        self._reader: asyncio.Task | None = None
        self._ssl_context = None

        # Configure SSL if certificates provided
        if ssl_cert and ssl_key:
            self._ssl_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
            self._ssl_context.load_cert_chain(str(ssl_cert), str(ssl_key))

    @property
    def url(self) -> str:
        """Address clients should use to reach this host."""
        scheme = "wss" if self._ssl_context else "ws"
        return f"{scheme}://{self.host}:{self.port}"

    # ------------------------------------------------------------------
    # Host side
    # ------------------------------------------------------------------

    async def _open_host(self, session_id: str) -> None:
        if self._server is not None:
            # already listening; only the session id changes
            return
        try:
            self._server = await serve(
                self._handle_client,
                self.host,
                self.port,
                ssl=self._ssl_context,
            )
        except OSError as e:
            raise AddressUnavailable(f"Cannot listen on {self.host}:{self.port}: {e}") from e
        if self.port == 0:
            self.port = self._server.sockets[0].getsockname()[1]
        logger.info("WebSocket transport listening on %s", self.url)

    async def _handle_client(self, websocket: ServerConnection) -> None:
        session_id = urlsplit(websocket.request.path).path.strip("/")
        if not self.is_open or session_id != self.session_id:
            await websocket.close(CLOSE_UNKNOWN_SESSION, "Unknown session")
            return

        # peer ids are host-assigned, never read from the request
        peer_id = generate_peer_id()
        while peer_id in self._connections:
            peer_id = generate_peer_id()

        conn = PeerConnection(peer_id, websocket)
        self._connections[peer_id] = conn
        conn.start()
        conn.enqueue(json.dumps({"type": HANDSHAKE_TYPE, "session_id": session_id, "peer_id": peer_id}))
        self._peer_opened(peer_id)

        try:
            async for message in websocket:
                self._dispatch(peer_id, message)
        except ConnectionClosed:
            pass
        finally:
            if self._connections.get(peer_id) is conn:
                del self._connections[peer_id]
            conn.close_after_flush()
            self._peer_closed(peer_id)

    def _close_peer(self, peer_id: str) -> None:
        conn = self._connections.get(peer_id)
        if conn is not None:
            conn.close_after_flush()

    # ------------------------------------------------------------------
    # Client side
    # ------------------------------------------------------------------

    async def _open_client(self, session_id: str) -> str:
        url = f"{self.server_url.rstrip('/')}/{quote(session_id)}"
        try:
            websocket = await connect(url, ssl=self._client_ssl, open_timeout=self.connect_timeout)
        except (asyncio.TimeoutError, TimeoutError) as e:
            raise ConnectTimeout(f"No answer from {self.server_url}") from e
        except (OSError, InvalidHandshake, InvalidURI) as e:
            raise ConnectRefused(f"Cannot connect to {self.server_url}: {e}") from e

        try:
            raw = await asyncio.wait_for(websocket.recv(), self.connect_timeout)
        except (asyncio.TimeoutError, TimeoutError) as e:
            await websocket.close()
            raise ConnectTimeout(f"Host {session_id} did not complete the handshake") from e
        except ConnectionClosed as e:
            code = e.rcvd.code if e.rcvd else None
            raise ConnectRefused(f"Host refused session {session_id} (close code {code})") from e

        try:
            handshake = json.loads(raw)
        except ValueError:
            handshake = None
        if not isinstance(handshake, dict) or handshake.get("type") != HANDSHAKE_TYPE:
            await websocket.close()
            raise ConnectRefused(f"Unexpected handshake from host {session_id}")
        local_id = handshake.get("peer_id")
        if not isinstance(local_id, str) or not local_id:
            await websocket.close()
            raise ConnectRefused(f"Host {session_id} did not assign a peer id")

        conn = PeerConnection(session_id, websocket)
        conn.start()
        self._host_conn = conn
        self._reader = asyncio.create_task(self._read_loop(conn))
        return local_id

    async def _read_loop(self, conn: PeerConnection) -> None:
        try:
            async for message in conn.websocket:
                self._dispatch(conn.peer_id, message)
        except ConnectionClosed:
            pass
        finally:
            conn.close_after_flush()
            if self._host_conn is conn:
                self._host_conn = None
                self._host_lost()

    # ------------------------------------------------------------------
    # Both sides
    # ------------------------------------------------------------------

    def _deliver(self, target_id: str, message: dict) -> bool:
        conn = self._connections.get(target_id) if self.is_host else self._host_conn
        if conn is None:
            return False
        return conn.enqueue(json.dumps(message))

    async def _close_all(self) -> None:
        if self.is_host:
            connections = list(self._connections.values())
            self._connections.clear()
            for conn in connections:
                conn.close_after_flush()
            for conn in connections:
                if conn.writer is not None:
                    await conn.writer
            if self._server is not None:
                self._server.close()
                await self._server.wait_closed()
                self._server = None
            return

        conn, self._host_conn = self._host_conn, None
        if conn is not None:
            conn.close_after_flush()
            if conn.writer is not None:
                await conn.writer
        if self._reader is not None:
            await self._reader
            self._reader = None
