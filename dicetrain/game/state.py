"""Game state tree for Dice Train.

The machine owns one ``GameState``; players are plain data records inside it.
Clients never see a ``GameState``, only ``GameSnapshot`` copies of it.
"""

from dataclasses import dataclass, field
from enum import Enum

from mashumaro.mixins.json import DataClassJSONMixin

from .cards import Card, TrainCar
from .dice import DieResult
from .station import Earning, StationEarnings


class GameStatus(str, Enum):
    SETUP = "setup"
    DRAFTING = "drafting"
    PLAYING = "playing"
    ENDED = "ended"


class Phase(str, Enum):
    DRAFT = "draft"
    ROLL = "roll"
    STATION = "station"
    SHOP = "shop"


@dataclass
class PlayerConfig(DataClassJSONMixin):
    """A seat as handed from the lobby to the game."""

    peer_id: str
    name: str
    is_ai: bool = False
    is_local: bool = False  # host and AI seats run on the host


@dataclass
class Player(DataClassJSONMixin):
    """Per-seat game record. Only the state machine mutates it."""

    id: int  # seat number, 1-based
    peer_id: str
    name: str
    is_ai: bool = False
    is_local: bool = False
    gold: int = 0
    fuel: int = 0
    total_distance: int = 0
    train_cars: list[TrainCar] = field(default_factory=list)
    enhancements: list[Card] = field(default_factory=list)  # persistent cards
    card_hand: list[Card] = field(default_factory=list)
    active_cards: list[Card] = field(default_factory=list)  # one-time, this turn
    last_roll: list[DieResult] = field(default_factory=list)
    card_rerolls_remaining: int = 0
    fuel_rerolls_remaining: int = 0
    has_rolled: bool = False

    def modifier_cards(self) -> list[Card]:
        """Cards whose effects apply to the current roll."""
        return self.enhancements + self.active_cards

    def owns_car(self, car_id: str) -> bool:
        return any(car.id == car_id for car in self.train_cars)


@dataclass
class GameState(DataClassJSONMixin):
    """Authoritative state tree, host only."""

    status: GameStatus = GameStatus.SETUP
    phase: Phase = Phase.DRAFT
    players: list[Player] = field(default_factory=list)
    current_player_index: int = 0
    current_round: int = 1
    total_rounds: int = 1
    deck: list[Card] = field(default_factory=list)
    draft_cards: list[Card] = field(default_factory=list)  # offer to the drafting seat
    draft_selections: list[int] = field(default_factory=list)
    available_cards: list[Card] = field(default_factory=list)  # shop offer
    available_cars: list[TrainCar] = field(default_factory=list)
    last_station_earnings: list[Earning] = field(default_factory=list)
    last_fuel_gained: int = 0


@dataclass
class GameSnapshot(DataClassJSONMixin):
    """Everything a client renders. The deck is never included."""

    status: GameStatus
    phase: Phase
    players: list[Player]
    current_player_index: int
    current_round: int
    total_rounds: int
    draft_cards: list[Card] = field(default_factory=list)
    draft_selections: list[int] = field(default_factory=list)
    available_cards: list[Card] = field(default_factory=list)
    available_cars: list[TrainCar] = field(default_factory=list)
    last_station_earnings: list[Earning] = field(default_factory=list)
    last_fuel_gained: int = 0
    current_peer_id: str | None = None
    deck_size: int = 0

    @classmethod
    def capture(cls, state: GameState) -> "GameSnapshot":
        """Deep copy the renderable part of ``state``."""
        data = state.to_dict()
        del data["deck"]
        data["deck_size"] = len(state.deck)
        if state.players and state.status in (GameStatus.DRAFTING, GameStatus.PLAYING):
            data["current_peer_id"] = state.players[state.current_player_index].peer_id
        return cls.from_dict(data)

    @property
    def current_player(self) -> Player | None:
        if not self.players:
            return None
        return self.players[self.current_player_index]


@dataclass
class Standing(DataClassJSONMixin):
    rank: int  # 1-based position in the final order
    seat: int  # 0-based index into players
    peer_id: str
    name: str
    total_distance: int
    gold: int
    train_cars: int


@dataclass
class StationResult(DataClassJSONMixin):
    """What the current player collected on arriving at the station."""

    distance: int
    earnings: StationEarnings


@dataclass
class TurnEnd(DataClassJSONMixin):
    game_ended: bool
    current_round: int
    next_peer_id: str | None = None
