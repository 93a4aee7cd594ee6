"""Lobby roster records shared by host and clients."""

from dataclasses import dataclass, field
from enum import Enum

from mashumaro.mixins.json import DataClassJSONMixin

from ..config import DEFAULT_MAX_PLAYERS, DEFAULT_ROUNDS


class LobbyStatus(str, Enum):
    WAITING = "waiting"
    STARTING = "starting"
    PLAYING = "playing"
    ENDED = "ended"


@dataclass
class Participant(DataClassJSONMixin):
    """A seat in the lobby: the host, a remote human or an AI."""

    id: str  # peer id, or ai-<hex> for AI seats
    name: str
    is_ai: bool = False
    is_host: bool = False
    is_ready: bool = False


@dataclass
class LobbyState(DataClassJSONMixin):
    """
    Everything clients are told about a lobby.

    The password itself never appears here, only whether one is set.
    """

    code: str
    name: str = "Game Lobby"
    host_name: str = "Host"
    max_players: int = DEFAULT_MAX_PLAYERS
    round_count: int = DEFAULT_ROUNDS
    has_password: bool = False
    status: LobbyStatus = LobbyStatus.WAITING
    players: list[Participant] = field(default_factory=list)

    def find(self, participant_id: str) -> Participant | None:
        for participant in self.players:
            if participant.id == participant_id:
                return participant
        return None

    def is_full(self) -> bool:
        return len(self.players) >= self.max_players

    @property
    def host(self) -> Participant | None:
        return next((p for p in self.players if p.is_host), None)
