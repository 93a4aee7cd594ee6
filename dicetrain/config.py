"""Session configuration: lobby settings and AI pacing tiers."""

from dataclasses import dataclass
from enum import Enum

from mashumaro.mixins.json import DataClassJSONMixin

from .errors import ConfigError

MIN_PLAYERS = 2
MAX_PLAYERS = 6
DEFAULT_MAX_PLAYERS = 4
DEFAULT_ROUNDS = 12
JOIN_TIMEOUT = 10.0  # seconds to wait for JOIN_ACCEPTED / JOIN_REJECTED
CONNECT_TIMEOUT = 10.0  # seconds to wait for the host handshake


class AiSpeed(str, Enum):
    """How long AI seats pause between steps so humans can follow along."""

    SLOW = "slow"
    NORMAL = "normal"
    FAST = "fast"
    INSTANT = "instant"

    @property
    def delay(self) -> float:
        """Pause between AI steps in seconds (0 for instant)."""
        return AI_SPEED_DELAYS[self]


AI_SPEED_DELAYS: dict[AiSpeed, float] = {
    AiSpeed.SLOW: 2.0,
    AiSpeed.NORMAL: 1.0,
    AiSpeed.FAST: 0.5,
    AiSpeed.INSTANT: 0.0,
}


@dataclass
class LobbyConfig(DataClassJSONMixin):
    """Settings the host chooses when creating a lobby."""

    name: str = "Game Lobby"
    host_name: str = "Host"
    max_players: int = DEFAULT_MAX_PLAYERS
    round_count: int = DEFAULT_ROUNDS
    password: str | None = None  # plain text, hashed by the lobby on creation
    ai_speed: AiSpeed = AiSpeed.NORMAL

    def validate(self) -> None:
        """Raise ConfigError if any setting is out of range."""
        if not MIN_PLAYERS <= self.max_players <= MAX_PLAYERS:
            raise ConfigError(
                f"max_players must be between {MIN_PLAYERS} and {MAX_PLAYERS}, "
                f"got {self.max_players}"
            )
        if self.round_count < 1:
            raise ConfigError(f"round_count must be at least 1, got {self.round_count}")
        if not self.host_name.strip():
            raise ConfigError("host_name must not be blank")
