"""Peer transport abstraction shared by the websocket and in-process transports."""

from abc import ABC, abstractmethod
from enum import Enum
import logging
import secrets
import uuid
from typing import Any, Callable

from ..errors import AddressUnavailable, ProtocolError
from ..events import EventEmitter
from ..messages.protocol import MessageType, create_message, decode_payload, parse_envelope

logger = logging.getLogger(__name__)

LOBBY_CODE_PREFIX = "DT-"
LOBBY_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no I, O, 0 or 1
LOBBY_CODE_LENGTH = 6

MessageHandler = Callable[[Any, str], None]


class TransportEvent(str, Enum):
    OPEN = "open"  # (local_id)
    PEER_CONNECTED = "peer_connected"  # (peer_id), host only
    PEER_DISCONNECTED = "peer_disconnected"  # (peer_id), host only
    DISCONNECTED = "disconnected"  # (session_id), client lost its host
    ERROR = "error"  # (exception)


def generate_lobby_code() -> str:
    """A lobby code such as ``DT-K7M2QX``."""
    return LOBBY_CODE_PREFIX + "".join(
        secrets.choice(LOBBY_CODE_ALPHABET) for _ in range(LOBBY_CODE_LENGTH)
    )


def generate_peer_id() -> str:
    return f"peer-{uuid.uuid4().hex}"


class PeerTransport(ABC):
    """
    One host, any number of clients, typed messages between them.

    The transport knows nothing about games. Inbound messages are parsed,
    decoded into their payload dataclass and handed to the single handler
    registered for their type. Sends never block: they enqueue and return.

    Subclasses implement the ``_open_*``, ``_deliver`` and ``_close_*`` hooks
    and report link changes through ``_peer_opened``, ``_peer_closed`` and
    ``_host_lost``.
    """

    def __init__(self):
        self.events = EventEmitter()
        self._handlers: dict[MessageType, MessageHandler] = {}
        self._peers: dict[str, None] = {}  # ordered set of client ids (host)
        self._is_host = False
        self._is_open = False
        self._local_id: str | None = None
        self._session_id: str | None = None

    @property
    def is_host(self) -> bool:
        return self._is_host

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def local_id(self) -> str | None:
        """This end's id: the session id on the host, a peer id on clients."""
        return self._local_id

    @property
    def session_id(self) -> str | None:
        return self._session_id

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------

    async def become_host(self, max_attempts: int = 5) -> str:
        """Open a session under a fresh lobby code and return it.

        Raises:
            AddressUnavailable: If no code could be registered.
        """
        last_error: AddressUnavailable | None = None
        for attempt in range(1, max_attempts + 1):
            code = generate_lobby_code()
            try:
                await self._open_host(code)
            except AddressUnavailable as e:
                logger.info("Session id %s unavailable (attempt %d): %s", code, attempt, e.reason)
                last_error = e
                continue
            self._is_host = True
            self._is_open = True
            self._local_id = code
            self._session_id = code
            logger.info("Hosting session %s", code)
            self._emit(TransportEvent.OPEN, code)
            return code
        raise AddressUnavailable(
            f"No session id available after {max_attempts} attempts"
            + (f": {last_error.reason}" if last_error else "")
        )

    async def become_client(self, session_id: str) -> str:
        """Connect to the host of ``session_id`` and return our peer id.

        Raises:
            ConnectTimeout: If the host does not answer in time.
            ConnectRefused: If there is no such host or it refused us.
        """
        local_id = await self._open_client(session_id)
        self._is_host = False
        self._is_open = True
        self._local_id = local_id
        self._session_id = session_id
        logger.info("Connected to session %s as %s", session_id, local_id)
        self._emit(TransportEvent.OPEN, local_id)
        return local_id

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def send(self, target_id: str, msg_type: MessageType, payload: Any = None) -> bool:
        """Send to one peer. Returns False if the target is not connected."""
        if not self.is_peer_connected(target_id):
            logger.debug("Not sending %s to %s: not connected", msg_type.value, target_id)
            return False
        return self._deliver(target_id, create_message(msg_type, payload))

    def send_to_host(self, msg_type: MessageType, payload: Any = None) -> bool:
        if self._is_host or self._session_id is None:
            return False
        return self.send(self._session_id, msg_type, payload)

    def broadcast(self, msg_type: MessageType, payload: Any = None) -> None:
        """Send to every connected client (host only)."""
        self.broadcast_except(None, msg_type, payload)

    def broadcast_except(
        self, exclude_id: str | None, msg_type: MessageType, payload: Any = None
    ) -> None:
        if not self._is_host:
            logger.warning("Ignoring %s broadcast: only the host can broadcast", msg_type.value)
            return
        message = create_message(msg_type, payload)
        for peer_id in list(self._peers):
            if peer_id != exclude_id:
                self._deliver(peer_id, message)

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------

    def on_message(self, msg_type: MessageType, handler: MessageHandler) -> None:
        """Register the handler for ``msg_type``, replacing any previous one."""
        self._handlers[msg_type] = handler

    def off_message(self, msg_type: MessageType) -> bool:
        return self._handlers.pop(msg_type, None) is not None

    def _dispatch(self, from_id: str, raw: str | bytes) -> None:
        """Parse an inbound frame and run its handler to completion."""
        try:
            envelope = parse_envelope(raw)
            payload = decode_payload(envelope.type, envelope.payload)
        except ProtocolError as e:
            logger.warning("Dropping message from %s: %s", from_id, e)
            return

        if envelope.type == MessageType.PING:
            self.send(from_id, MessageType.PONG)

        handler = self._handlers.get(envelope.type)
        if handler is None:
            logger.debug("No handler for %s from %s", envelope.type.value, from_id)
            return
        try:
            handler(payload, from_id)
        except Exception as e:
            logger.exception("Handler for %s from %s failed", envelope.type.value, from_id)
            self._emit(TransportEvent.ERROR, e)

    # ------------------------------------------------------------------
    # Closing
    # ------------------------------------------------------------------

    def disconnect(self, peer_id: str) -> bool:
        """Close one client's connection after its queued messages go out."""
        if not self._is_host:
            logger.warning("Ignoring disconnect of %s: only the host can disconnect peers", peer_id)
            return False
        if peer_id not in self._peers:
            return False
        self._close_peer(peer_id)
        return True

    async def teardown(self) -> None:
        """Close every connection and release the session."""
        if not self._is_open:
            return
        self._is_open = False
        self._peers.clear()
        await self._close_all()
        logger.info("Transport for %s torn down", self._session_id)

    def connected_peers(self) -> list[str]:
        """Client ids on the host; the session id on a connected client."""
        if self._is_host:
            return list(self._peers)
        if self._is_open and self._session_id is not None:
            return [self._session_id]
        return []

    def is_peer_connected(self, peer_id: str) -> bool:
        return peer_id in self.connected_peers()

    # ------------------------------------------------------------------
    # Hooks for implementations
    # ------------------------------------------------------------------

    def _peer_opened(self, peer_id: str) -> None:
        if not self._is_open or peer_id in self._peers:
            return
        self._peers[peer_id] = None
        logger.info("Peer %s connected", peer_id)
        self._emit(TransportEvent.PEER_CONNECTED, peer_id)

    def _peer_closed(self, peer_id: str) -> None:
        if peer_id not in self._peers:
            return
        del self._peers[peer_id]
        logger.info("Peer %s disconnected", peer_id)
        self._emit(TransportEvent.PEER_DISCONNECTED, peer_id)

    def _host_lost(self) -> None:
        if not self._is_open or self._is_host:
            return
        self._is_open = False
        logger.info("Lost connection to host %s", self._session_id)
        self._emit(TransportEvent.DISCONNECTED, self._session_id)

    def _emit(self, event: TransportEvent, *args: Any) -> None:
        try:
            self.events.emit(event, *args)
        except Exception as e:
            logger.exception("Listener for %s failed", event.value)
            if event != TransportEvent.ERROR:
                self._emit(TransportEvent.ERROR, e)

    @abstractmethod
    async def _open_host(self, session_id: str) -> None:
        """Start accepting clients for ``session_id``; raise AddressUnavailable if taken."""

    @abstractmethod
    async def _open_client(self, session_id: str) -> str:
        """Connect to the host of ``session_id`` and return the id it assigned us."""

    @abstractmethod
    def _deliver(self, target_id: str, message: dict) -> bool:
        """Queue one envelope for ``target_id``."""

    @abstractmethod
    def _close_peer(self, peer_id: str) -> None:
        """Flush, then close the link to one client."""

    @abstractmethod
    async def _close_all(self) -> None:
        """Close every link and stop listening."""
