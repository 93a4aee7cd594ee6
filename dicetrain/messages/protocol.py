"""Message types, payload records and the message envelope.

Every message on the wire is a JSON object ``{type, payload, timestamp}``.
Each ``MessageType`` has exactly one payload dataclass, so a handler always
receives a typed record and never a raw dict.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
import json
import time
from typing import Any, get_type_hints

from mashumaro.exceptions import InvalidFieldValue, MissingField
from mashumaro.mixins.json import DataClassJSONMixin

from ..errors import ProtocolError
from ..game.state import GameSnapshot, Phase, PlayerConfig, Standing
from ..lobby.state import LobbyState, Participant


class MessageType(str, Enum):
    """All message types. Values are the strings sent on the wire."""

    # Lobby management
    JOIN_REQUEST = "join_request"
    JOIN_ACCEPTED = "join_accepted"
    JOIN_REJECTED = "join_rejected"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    LOBBY_UPDATE = "lobby_update"
    LOBBY_CLOSED = "lobby_closed"

    # Game flow
    GAME_START = "game_start"
    GAME_STATE = "game_state"
    GAME_END = "game_end"

    # Draft actions
    ACTION_DRAFT_SELECT = "action_draft_select"
    ACTION_DRAFT_CONFIRM = "action_draft_confirm"

    # Turn actions
    ACTION_ROLL = "action_roll"
    ACTION_REROLL = "action_reroll"
    ACTION_CONTINUE = "action_continue"
    ACTION_PURCHASE_CAR = "action_purchase_car"
    ACTION_PURCHASE_CARD = "action_purchase_card"
    ACTION_PLAY_CARD = "action_play_card"
    ACTION_END_TURN = "action_end_turn"

    # Keep-alive
    PING = "ping"
    PONG = "pong"


@dataclass
class JoinRequest(DataClassJSONMixin):
    name: str
    password: str | None = None


@dataclass
class JoinAcceptance(DataClassJSONMixin):
    lobby_state: LobbyState


@dataclass
class JoinRejection(DataClassJSONMixin):
    reason: str


@dataclass
class PlayerJoinedNotice(DataClassJSONMixin):
    participant: Participant


@dataclass
class PlayerLeftNotice(DataClassJSONMixin):
    player_id: str


@dataclass
class LobbyUpdate(DataClassJSONMixin):
    lobby_state: LobbyState


@dataclass
class LobbyClosedNotice(DataClassJSONMixin):
    reason: str


@dataclass
class GameStartInfo(DataClassJSONMixin):
    """Seats in turn order, produced by the lobby when the game starts."""

    player_configs: list[PlayerConfig] = field(default_factory=list)
    round_count: int = 1


@dataclass
class GameEndNotice(DataClassJSONMixin):
    standings: list[Standing] = field(default_factory=list)


@dataclass
class DraftSelectAction(DataClassJSONMixin):
    card_index: int


@dataclass
class DraftConfirmAction(DataClassJSONMixin):
    pass


@dataclass
class RollAction(DataClassJSONMixin):
    pass


@dataclass
class RerollAction(DataClassJSONMixin):
    die_index: int


@dataclass
class ContinueAction(DataClassJSONMixin):
    to_phase: Phase  # STATION or SHOP


@dataclass
class PurchaseCarAction(DataClassJSONMixin):
    car_id: str


@dataclass
class PurchaseCardAction(DataClassJSONMixin):
    card_index: int


@dataclass
class PlayCardAction(DataClassJSONMixin):
    card_index: int


@dataclass
class EndTurnAction(DataClassJSONMixin):
    pass


@dataclass
class Ping(DataClassJSONMixin):
    pass


@dataclass
class Pong(DataClassJSONMixin):
    pass


PAYLOAD_TYPES: dict[MessageType, type[DataClassJSONMixin]] = {
    MessageType.JOIN_REQUEST: JoinRequest,
    MessageType.JOIN_ACCEPTED: JoinAcceptance,
    MessageType.JOIN_REJECTED: JoinRejection,
    MessageType.PLAYER_JOINED: PlayerJoinedNotice,
    MessageType.PLAYER_LEFT: PlayerLeftNotice,
    MessageType.LOBBY_UPDATE: LobbyUpdate,
    MessageType.LOBBY_CLOSED: LobbyClosedNotice,
    MessageType.GAME_START: GameStartInfo,
    MessageType.GAME_STATE: GameSnapshot,
    MessageType.GAME_END: GameEndNotice,
    MessageType.ACTION_DRAFT_SELECT: DraftSelectAction,
    MessageType.ACTION_DRAFT_CONFIRM: DraftConfirmAction,
    MessageType.ACTION_ROLL: RollAction,
    MessageType.ACTION_REROLL: RerollAction,
    MessageType.ACTION_CONTINUE: ContinueAction,
    MessageType.ACTION_PURCHASE_CAR: PurchaseCarAction,
    MessageType.ACTION_PURCHASE_CARD: PurchaseCardAction,
    MessageType.ACTION_PLAY_CARD: PlayCardAction,
    MessageType.ACTION_END_TURN: EndTurnAction,
    MessageType.PING: Ping,
    MessageType.PONG: Pong,
}

# Client intents the host routes into the game state machine
ACTION_TYPES: frozenset[MessageType] = frozenset(
    {
        MessageType.ACTION_DRAFT_SELECT,
        MessageType.ACTION_DRAFT_CONFIRM,
        MessageType.ACTION_ROLL,
        MessageType.ACTION_REROLL,
        MessageType.ACTION_CONTINUE,
        MessageType.ACTION_PURCHASE_CAR,
        MessageType.ACTION_PURCHASE_CARD,
        MessageType.ACTION_PLAY_CARD,
        MessageType.ACTION_END_TURN,
    }
)


@dataclass
class Envelope:
    """A parsed message whose payload has not been decoded yet."""

    type: MessageType
    payload: dict[str, Any]
    timestamp: int = 0


def now_ms() -> int:
    return int(time.time() * 1000)


def create_message(msg_type: MessageType, payload: Any = None) -> dict:
    """Build a wire envelope. ``payload`` may be a dataclass, a dict or None."""
    if payload is None:
        data = {}
    elif isinstance(payload, DataClassJSONMixin):
        data = payload.to_dict()
    elif isinstance(payload, dict):
        data = payload
    else:
        raise TypeError(f"Unsupported payload for {msg_type.value}: {type(payload).__name__}")
    return {"type": msg_type.value, "payload": data, "timestamp": now_ms()}


def encode_message(msg_type: MessageType, payload: Any = None) -> str:
    return json.dumps(create_message(msg_type, payload))


def parse_envelope(raw: str | bytes | dict) -> Envelope:
    """
    Parse raw wire data into an Envelope.

    Raises:
        ProtocolError: If the data is not a JSON object or its type is
            missing or unknown.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise ProtocolError(f"Malformed JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ProtocolError("Message is not a JSON object")

    type_value = raw.get("type")
    if not isinstance(type_value, str):
        raise ProtocolError("Message has no type")
    try:
        msg_type = MessageType(type_value)
    except ValueError:
        raise ProtocolError(f"Unknown message type: {type_value}") from None

    payload = raw.get("payload")
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ProtocolError(f"Payload of {type_value} is not an object")

    timestamp = raw.get("timestamp", 0)
    if not isinstance(timestamp, int) or isinstance(timestamp, bool):
        timestamp = 0
    return Envelope(msg_type, payload, timestamp)


_SCALARS = (bool, int, str)


def _check_scalars(cls: type, data: dict) -> None:
    # mashumaro passes plain scalars through unconverted
    hints = get_type_hints(cls)
    for f in fields(cls):
        if f.name not in data:
            continue
        expected = hints[f.name]
        if expected not in _SCALARS:
            continue
        value = data[f.name]
        if expected is not bool and isinstance(value, bool):
            raise ProtocolError(f"{cls.__name__}.{f.name} must be {expected.__name__}")
        if not isinstance(value, expected):
            raise ProtocolError(f"{cls.__name__}.{f.name} must be {expected.__name__}")


def decode_payload(msg_type: MessageType, data: dict) -> DataClassJSONMixin:
    """
    Decode a payload dict into the dataclass registered for ``msg_type``.

    Raises:
        ProtocolError: If a field is missing or has the wrong shape.
    """
    payload_cls = PAYLOAD_TYPES[msg_type]
    _check_scalars(payload_cls, data)
    try:
        return payload_cls.from_dict(data)
    except (MissingField, InvalidFieldValue, ValueError, TypeError, KeyError) as e:
        raise ProtocolError(f"Bad {msg_type.value} payload: {e}") from e
