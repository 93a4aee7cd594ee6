"""Lobby manager: the session roster before and during a game."""

import asyncio
from enum import Enum
import logging
import uuid
from typing import Callable

from argon2 import PasswordHasher

from ..auth.passwords import PasswordGuard
from ..config import JOIN_TIMEOUT, MAX_PLAYERS, MIN_PLAYERS, LobbyConfig
from ..errors import ConnectRefused, JoinRejected, JoinTimeout, TransportError
from ..events import EventEmitter
from ..game.state import PlayerConfig
from ..messages.protocol import (
    GameStartInfo,
    JoinAcceptance,
    JoinRejection,
    JoinRequest,
    LobbyClosedNotice,
    LobbyUpdate,
    MessageType,
    PlayerJoinedNotice,
    PlayerLeftNotice,
)
from ..network.transport import PeerTransport, TransportEvent
from .state import LobbyState, LobbyStatus, Participant

logger = logging.getLogger(__name__)

BOT_NAMES = [
    "Casey", "Dolly", "Ezra", "Flossie", "Gus", "Hattie", "Ike", "Josie",
    "Kit", "Lottie", "Moses", "Nell", "Otis", "Pearl", "Rufus", "Sadie",
    "Toby", "Virgil", "Wyatt", "Zeke",
]

REASON_BAD_PASSWORD = "Incorrect password"
REASON_FULL = "Lobby is full"
REASON_STARTED = "Game has already started"
REASON_KICKED = "You have been kicked"
REASON_HOST_CLOSED = "Lobby closed by host"
REASON_HOST_LOST = "Connection to host lost"

_UNSET = object()


class LobbyEvent(str, Enum):
    UPDATED = "updated"  # (LobbyState)
    PLAYER_JOINED = "player_joined"  # (Participant)
    PLAYER_LEFT = "player_left"  # (participant id)
    GAME_STARTED = "game_started"  # (GameStartInfo)
    CLOSED = "closed"  # (reason)


class LobbyManager:
    """
    Runs one lobby, either as its host or as a joined client.

    The host owns the roster and answers join requests; clients keep the
    last LobbyState they were sent. Listeners subscribe to ``events``.
    """

    def __init__(self, transport: PeerTransport, hasher: PasswordHasher | None = None):
        self.transport = transport
        self.events = EventEmitter()
        self._passwords = PasswordGuard(hasher)
        self._password_hash: str | None = None
        self._state: LobbyState | None = None
        self._is_host = False
        self._closed = False
        self._pending_join: asyncio.Future | None = None
        self._handled_types: list[MessageType] = []
        self._unsubscribers: list[Callable[[], None]] = []
        self._cleanup_task: asyncio.Task | None = None

    @property
    def state(self) -> LobbyState | None:
        return self._state

    @property
    def is_host(self) -> bool:
        return self._is_host

    @property
    def local_id(self) -> str | None:
        return self.transport.local_id

    # ------------------------------------------------------------------
    # Host: creation and join handling
    # ------------------------------------------------------------------

    async def create_lobby(self, config: LobbyConfig) -> LobbyState:
        """Open a session and seat the host.

        Raises:
            ConfigError: If the configuration is out of range.
            AddressUnavailable: If the transport cannot host.
        """
        config.validate()
        code = await self.transport.become_host()
        self._is_host = True
        self._closed = False
        self._password_hash = (
            self._passwords.hash_password(config.password) if config.password else None
        )
        self._state = LobbyState(
            code=code,
            name=config.name,
            host_name=config.host_name,
            max_players=config.max_players,
            round_count=config.round_count,
            has_password=bool(config.password),
            players=[Participant(id=code, name=config.host_name, is_host=True, is_ready=True)],
        )
        self._handle(MessageType.JOIN_REQUEST, self._on_join_request)
        self._listen(TransportEvent.PEER_DISCONNECTED, self._on_peer_disconnected)
        logger.info("Lobby %s created by %s", code, config.host_name)
        self.events.emit(LobbyEvent.UPDATED, self._state)
        return self._state

    def _on_join_request(self, request: JoinRequest, from_id: str) -> None:
        state = self._state
        if state is None:
            return
        existing = state.find(from_id)
        if existing is not None and (existing.is_host or existing.is_ai):
            logger.warning("Ignoring join from %s: id belongs to a local seat", from_id)
            return
        if existing is not None:
            self.transport.send(from_id, MessageType.JOIN_ACCEPTED, JoinAcceptance(state))
            return

        reason = None
        if not self._passwords.verify_password(request.password, self._password_hash):
            reason = REASON_BAD_PASSWORD
        elif state.is_full():
            reason = REASON_FULL
        elif state.status != LobbyStatus.WAITING:
            reason = REASON_STARTED
        if reason is not None:
            logger.info("Rejected join from %s: %s", from_id, reason)
            self.transport.send(from_id, MessageType.JOIN_REJECTED, JoinRejection(reason))
            return

        name = request.name.strip() or f"Player {len(state.players) + 1}"
        participant = Participant(id=from_id, name=name)
        state.players.append(participant)
        logger.info("%s joined lobby %s as %s", from_id, state.code, name)

        self.transport.send(from_id, MessageType.JOIN_ACCEPTED, JoinAcceptance(state))
        self.transport.broadcast_except(
            from_id, MessageType.PLAYER_JOINED, PlayerJoinedNotice(participant)
        )
        self.transport.broadcast(MessageType.LOBBY_UPDATE, LobbyUpdate(state))
        self.events.emit(LobbyEvent.PLAYER_JOINED, participant)
        self.events.emit(LobbyEvent.UPDATED, state)

    def _on_peer_disconnected(self, peer_id: str) -> None:
        if self._remove_participant(peer_id) is not None:
            logger.info("%s left lobby %s", peer_id, self._state.code)

    def _remove_participant(self, participant_id: str) -> Participant | None:
        """Drop a seat and tell everyone. The host seat is never removed."""
        state = self._state
        if state is None:
            return None
        participant = state.find(participant_id)
        if participant is None or participant.is_host:
            return None
        state.players.remove(participant)
        self.transport.broadcast(MessageType.PLAYER_LEFT, PlayerLeftNotice(participant_id))
        self.transport.broadcast(MessageType.LOBBY_UPDATE, LobbyUpdate(state))
        self.events.emit(LobbyEvent.PLAYER_LEFT, participant_id)
        self.events.emit(LobbyEvent.UPDATED, state)
        return participant

    # ------------------------------------------------------------------
    # Host: roster and settings
    # ------------------------------------------------------------------

    def _can_edit(self) -> bool:
        return (
            self._is_host
            and self._state is not None
            and self._state.status == LobbyStatus.WAITING
        )

    def _new_ai_id(self) -> str:
        while True:
            ai_id = f"ai-{uuid.uuid4().hex}"
            if self._state.find(ai_id) is None:
                return ai_id

    def add_ai_player(self, name: str | None = None) -> Participant | None:
        """Seat an AI player. Returns None if the lobby is full."""
        if not self._can_edit() or self._state.is_full():
            return None
        state = self._state
        if not name or not name.strip():
            taken = {p.name.lower() for p in state.players}
            name = next((n for n in BOT_NAMES if n.lower() not in taken), None)
            if name is None:
                name = f"AI {sum(1 for p in state.players if p.is_ai) + 1}"

        participant = Participant(id=self._new_ai_id(), name=name.strip(), is_ai=True, is_ready=True)
        state.players.append(participant)
        self.transport.broadcast(MessageType.LOBBY_UPDATE, LobbyUpdate(state))
        self.events.emit(LobbyEvent.UPDATED, state)
        return participant

    def remove_ai_player(self, participant_id: str) -> bool:
        if not self._can_edit():
            return False
        participant = self._state.find(participant_id)
        if participant is None or not participant.is_ai:
            return False
        self._state.players.remove(participant)
        self.transport.broadcast(MessageType.LOBBY_UPDATE, LobbyUpdate(self._state))
        self.events.emit(LobbyEvent.UPDATED, self._state)
        return True

    def kick_player(self, participant_id: str) -> bool:
        """Remove any seat but the host's before the game starts.

        Humans are told, then disconnected. Once the game is running the seat
        belongs to the state machine, so kicks are refused.
        """
        if not self._can_edit():
            return False
        participant = self._state.find(participant_id)
        if participant is None or participant.is_host:
            return False
        if not participant.is_ai:
            self.transport.send(
                participant_id, MessageType.LOBBY_CLOSED, LobbyClosedNotice(REASON_KICKED)
            )
            self.transport.disconnect(participant_id)
        self._remove_participant(participant_id)
        logger.info("Kicked %s from lobby %s", participant_id, self._state.code)
        return True

    def update_settings(
        self,
        name: str | None = None,
        max_players: int | None = None,
        round_count: int | None = None,
        password=_UNSET,
    ) -> bool:
        """Change lobby settings. Nothing changes unless every value is valid.

        ``password=None`` (or an empty string) removes the password.
        """
        if not self._can_edit():
            return False
        state = self._state
        if name is not None and not name.strip():
            return False
        if max_players is not None and not (
            max(MIN_PLAYERS, len(state.players)) <= max_players <= MAX_PLAYERS
        ):
            return False
        if round_count is not None and round_count < 1:
            return False

        if name is not None:
            state.name = name.strip()
        if max_players is not None:
            state.max_players = max_players
        if round_count is not None:
            state.round_count = round_count
        if password is not _UNSET:
            self._password_hash = self._passwords.hash_password(password) if password else None
            state.has_password = self._password_hash is not None

        self.transport.broadcast(MessageType.LOBBY_UPDATE, LobbyUpdate(state))
        self.events.emit(LobbyEvent.UPDATED, state)
        return True

    # ------------------------------------------------------------------
    # Host: game start and shutdown
    # ------------------------------------------------------------------

    def can_start_game(self) -> bool:
        return self._can_edit() and len(self._state.players) >= MIN_PLAYERS

    def is_full(self) -> bool:
        return self._state is not None and self._state.is_full()

    def start_game(self) -> GameStartInfo | None:
        """Freeze the roster and announce the game. Seats keep roster order."""
        if not self.can_start_game():
            return None
        state = self._state
        state.status = LobbyStatus.STARTING
        info = GameStartInfo(
            player_configs=[
                PlayerConfig(
                    peer_id=p.id,
                    name=p.name,
                    is_ai=p.is_ai,
                    is_local=p.is_host or p.is_ai,
                )
                for p in state.players
            ],
            round_count=state.round_count,
        )
        logger.info("Starting game in lobby %s with %d players", state.code, len(state.players))
        self.transport.broadcast(MessageType.GAME_START, info)
        self.events.emit(LobbyEvent.GAME_STARTED, info)
        state.status = LobbyStatus.PLAYING
        self.events.emit(LobbyEvent.UPDATED, state)
        return info

    def finish_game(self) -> bool:
        """Mark the lobby's game as over."""
        if not self._is_host or self._state is None:
            return False
        if self._state.status != LobbyStatus.PLAYING:
            return False
        self._state.status = LobbyStatus.ENDED
        self.transport.broadcast(MessageType.LOBBY_UPDATE, LobbyUpdate(self._state))
        self.events.emit(LobbyEvent.UPDATED, self._state)
        return True

    async def close_lobby(self, reason: str = REASON_HOST_CLOSED) -> None:
        """Tell every client the lobby is gone, then release the session."""
        if not self._is_host or self._state is None:
            return
        self.transport.broadcast(MessageType.LOBBY_CLOSED, LobbyClosedNotice(reason))
        logger.info("Lobby %s closed: %s", self._state.code, reason)
        self._closed = True
        self.events.emit(LobbyEvent.CLOSED, reason)
        await self._reset()

    async def leave_lobby(self) -> None:
        if self._is_host:
            await self.close_lobby()
            return
        self._closed = True
        await self._reset()

    # ------------------------------------------------------------------
    # Client
    # ------------------------------------------------------------------

    async def join_lobby(
        self,
        code: str,
        name: str,
        password: str | None = None,
        timeout: float = JOIN_TIMEOUT,
    ) -> LobbyState:
        """Connect to a lobby and ask to be seated.

        Raises:
            ConnectTimeout, ConnectRefused: If the host cannot be reached.
            JoinRejected: If the host turned the request down.
            JoinTimeout: If the host did not answer within ``timeout``.
        """
        self._is_host = False
        self._closed = False
        await self.transport.become_client(code)

        self._pending_join = asyncio.get_running_loop().create_future()
        self._handle(MessageType.JOIN_ACCEPTED, self._on_join_accepted)
        self._handle(MessageType.JOIN_REJECTED, self._on_join_rejected)
        self._handle(MessageType.LOBBY_UPDATE, self._on_lobby_update)
        self._handle(MessageType.PLAYER_JOINED, self._on_player_joined)
        self._handle(MessageType.PLAYER_LEFT, self._on_player_left)
        self._handle(MessageType.GAME_START, self._on_game_start)
        self._handle(MessageType.LOBBY_CLOSED, self._on_lobby_closed)
        self._listen(TransportEvent.DISCONNECTED, self._on_host_lost)

        self.transport.send_to_host(MessageType.JOIN_REQUEST, JoinRequest(name=name, password=password))
        try:
            state = await asyncio.wait_for(self._pending_join, timeout)
        except asyncio.TimeoutError:
            await self._reset()
            raise JoinTimeout(f"Lobby {code} did not answer within {timeout:g}s") from None
        except (JoinRejected, TransportError):
            await self._reset()
            raise
        finally:
            self._pending_join = None

        logger.info("Joined lobby %s", code)
        self.events.emit(LobbyEvent.UPDATED, state)
        return state

    def _on_join_accepted(self, payload: JoinAcceptance, from_id: str) -> None:
        if self._pending_join is None or self._pending_join.done():
            return
        self._state = payload.lobby_state
        self._pending_join.set_result(self._state)

    def _on_join_rejected(self, payload: JoinRejection, from_id: str) -> None:
        if self._pending_join is None or self._pending_join.done():
            return
        self._pending_join.set_exception(JoinRejected(payload.reason))

    def _on_lobby_update(self, payload: LobbyUpdate, from_id: str) -> None:
        self._state = payload.lobby_state
        self.events.emit(LobbyEvent.UPDATED, self._state)

    def _on_player_joined(self, payload: PlayerJoinedNotice, from_id: str) -> None:
        self.events.emit(LobbyEvent.PLAYER_JOINED, payload.participant)

    def _on_player_left(self, payload: PlayerLeftNotice, from_id: str) -> None:
        self.events.emit(LobbyEvent.PLAYER_LEFT, payload.player_id)

    def _on_game_start(self, payload: GameStartInfo, from_id: str) -> None:
        if self._state is not None:
            self._state.status = LobbyStatus.PLAYING
        self.events.emit(LobbyEvent.GAME_STARTED, payload)

    def _on_lobby_closed(self, payload: LobbyClosedNotice, from_id: str) -> None:
        self._close_from_host(payload.reason or REASON_HOST_CLOSED)

    def _on_host_lost(self, session_id: str) -> None:
        if self._pending_join is not None and not self._pending_join.done():
            self._pending_join.set_exception(ConnectRefused(REASON_HOST_LOST))
            return
        self._close_from_host(REASON_HOST_LOST)

    def _close_from_host(self, reason: str) -> None:
        if self._closed:
            return
        self._closed = True
        logger.info("Lobby closed: %s", reason)
        self.events.emit(LobbyEvent.CLOSED, reason)
        self._cleanup_task = asyncio.get_running_loop().create_task(self._reset())

    async def wait_closed(self) -> None:
        """Wait for a teardown started by the host closing the lobby."""
        if self._cleanup_task is not None:
            await self._cleanup_task

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _handle(self, msg_type: MessageType, handler) -> None:
        self.transport.on_message(msg_type, handler)
        self._handled_types.append(msg_type)

    def _listen(self, event: TransportEvent, listener) -> None:
        self._unsubscribers.append(self.transport.events.subscribe(event, listener))

    async def _reset(self) -> None:
        for msg_type in self._handled_types:
            self.transport.off_message(msg_type)
        self._handled_types.clear()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        await self.transport.teardown()
        self._state = None
        self._password_hash = None
        self._is_host = False
