"""Train car and enhancement card catalogs for Dice Train."""

from dataclasses import dataclass, replace
from enum import Enum
import random

from mashumaro.mixins.json import DataClassJSONMixin


class CarType(str, Enum):
    """Train car families; card effects target them by type."""

    COAL = "coal"
    PASSENGER = "passenger"
    FREIGHT = "freight"
    SPECIAL = "special"


class CarSpecial(str, Enum):
    """Special abilities a train car may carry."""

    SELF_BONUS = "self_bonus"  # +self_bonus to this car's own die
    LOWEST_DIE_BONUS = "lowest_die_bonus"  # +1 to the lowest die
    FREE_REROLL = "free_reroll"  # one free reroll per turn
    PASSENGER_SYNERGY = "passenger_synergy"  # +1 gold per other passenger car
    PER_CAR_GOLD = "per_car_gold"  # +1 gold per owned car


class EffectType(str, Enum):
    """Enhancement card effects."""

    DIE_BONUS = "die_bonus"
    ALL_DIE_BONUS = "all_die_bonus"
    MINIMUM_ROLL = "minimum_roll"
    HIGHEST_DIE_BONUS = "highest_die_bonus"
    STATION_BONUS = "station_bonus"
    CAR_TYPE_GOLD_BONUS = "car_type_gold_bonus"
    PER_CAR_GOLD_BONUS = "per_car_gold_bonus"
    REROLL = "reroll"
    DOUBLE_GOLD = "double_gold"
    DISTANCE_BONUS = "distance_bonus"


@dataclass
class TrainCar(DataClassJSONMixin):
    """A train car. Each car owned adds one die to the roll."""

    id: str
    name: str
    description: str
    die: int  # number of sides
    car_type: CarType
    cost: int = 0
    station_gold: int = 0
    fuel_per_station: int = 0
    starting_fuel: int = 0
    unlock_distance: int = 0
    is_starting: bool = False
    special: CarSpecial | None = None
    self_bonus: int = 0


@dataclass
class CardEffect(DataClassJSONMixin):
    type: EffectType
    bonus: int = 0
    car_type: CarType | None = None
    minimum: int = 0
    count: int = 0


@dataclass
class Card(DataClassJSONMixin):
    """An enhancement card.

    Persistent cards become permanent upgrades once played or bought;
    one-time cards sit in the hand until played and last one turn.
    """

    id: str
    name: str
    description: str
    cost: int
    persistent: bool
    effect: CardEffect


def _car(car_id: str, name: str, description: str, die: int, car_type: CarType, **kwargs) -> TrainCar:
    return TrainCar(id=car_id, name=name, description=description, die=die, car_type=car_type, **kwargs)


TRAIN_CARS: dict[str, TrainCar] = {
    car.id: car
    for car in [
        # Starting cars, one per playstyle
        _car("coal_tender", "Coal Tender", "Fuel engine. Start with 3 fuel, +1 fuel per station.",
             6, CarType.COAL, is_starting=True, starting_fuel=3, fuel_per_station=1),
        _car("passenger_car", "Passenger Car", "Carry travelers. Earn 3 gold at each station.",
             6, CarType.PASSENGER, is_starting=True, station_gold=3),
        _car("freight_car", "Freight Car", "Heavy hauler. This die gets +1 to its roll.",
             6, CarType.FREIGHT, is_starting=True, special=CarSpecial.SELF_BONUS, self_bonus=1),
        # Entry level
        _car("boxcar", "Boxcar", "Reliable freight hauler. This die gets +1 to its roll.",
             6, CarType.FREIGHT, cost=4, special=CarSpecial.SELF_BONUS, self_bonus=1),
        _car("mail_car", "Mail Car", "Steady postal income. +1 gold at each station.",
             6, CarType.PASSENGER, cost=5, station_gold=1),
        _car("water_tower", "Water Tower", "Steam supply car. +2 fuel at each station.",
             4, CarType.COAL, cost=5, fuel_per_station=2),
        _car("caboose", "Caboose", "Tail car provides stability. +1 to your lowest die roll.",
             6, CarType.SPECIAL, cost=6, special=CarSpecial.LOWEST_DIE_BONUS),
        # Mid tier
        _car("stock_car", "Stock Car", "Livestock transport. Larger die for more distance.",
             8, CarType.FREIGHT, cost=7, unlock_distance=30),
        _car("coal_hopper", "Coal Hopper", "+1 fuel per station. First reroll each turn is free.",
             6, CarType.COAL, cost=7, unlock_distance=30, fuel_per_station=1,
             special=CarSpecial.FREE_REROLL),
        _car("dining_car", "Dining Car", "Fine dining attracts wealthy travelers. +2 gold at stations.",
             6, CarType.PASSENGER, cost=8, unlock_distance=30, station_gold=2),
        _car("observation_deck", "Observation Deck", "+1 gold per other Passenger car at stations.",
             6, CarType.PASSENGER, cost=8, unlock_distance=30, special=CarSpecial.PASSENGER_SYNERGY),
        # Strong tier
        _car("gondola_car", "Gondola Car", "Open-top bulk hauler. This die gets +1 to its roll.",
             8, CarType.FREIGHT, cost=9, unlock_distance=60, special=CarSpecial.SELF_BONUS, self_bonus=1),
        _car("tank_car", "Tank Car", "Massive fuel reserves. +3 fuel at each station.",
             6, CarType.COAL, cost=10, unlock_distance=60, fuel_per_station=3),
        _car("cargo_hold", "Cargo Hold", "Massive storage capacity. Roll d10 for maximum speed.",
             10, CarType.FREIGHT, cost=10, unlock_distance=60),
        _car("luxury_sleeper", "Luxury Sleeper", "Premium accommodations. +4 gold at each station.",
             6, CarType.PASSENGER, cost=11, unlock_distance=60, station_gold=4),
        # Elite tier
        _car("first_class_car", "First Class Car", "Railroad tycoon status. +1 gold per train car you own.",
             6, CarType.PASSENGER, cost=13, unlock_distance=100, special=CarSpecial.PER_CAR_GOLD),
        _car("express_engine", "Express Engine", "Pure power. Roll the mighty d12.",
             12, CarType.COAL, cost=14, unlock_distance=100),
        _car("pullman_car", "Pullman Car", "The famous luxury sleeper. +6 gold at each station.",
             6, CarType.PASSENGER, cost=15, unlock_distance=100, station_gold=6),
    ]
}


def _card(card_id: str, name: str, description: str, cost: int, persistent: bool, **effect) -> Card:
    return Card(id=card_id, name=name, description=description, cost=cost,
                persistent=persistent, effect=CardEffect(**effect))


ENHANCEMENT_CARDS: list[Card] = [
    _card("coal_efficiency", "Coal Efficiency", "+1 to all Coal type dice", 6, True,
          type=EffectType.DIE_BONUS, car_type=CarType.COAL, bonus=1),
    _card("passenger_comfort", "Passenger Comfort", "+1 to all Passenger type dice", 6, True,
          type=EffectType.DIE_BONUS, car_type=CarType.PASSENGER, bonus=1),
    _card("freight_optimization", "Freight Optimization", "+1 to all Freight type dice", 6, True,
          type=EffectType.DIE_BONUS, car_type=CarType.FREIGHT, bonus=1),
    _card("station_master", "Station Master", "+2 gold at every station", 8, True,
          type=EffectType.STATION_BONUS, bonus=2),
    _card("efficient_engine", "Efficient Engine", "+1 to all dice rolls", 15, True,
          type=EffectType.ALL_DIE_BONUS, bonus=1),
    _card("lucky_charm", "Lucky Charm", "Re-roll one die per turn", 7, True,
          type=EffectType.REROLL, count=1),
    _card("express_delivery", "Express Delivery", "+2 to your highest die roll", 9, True,
          type=EffectType.HIGHEST_DIE_BONUS, bonus=2),
    _card("gold_rush", "Gold Rush", "Double gold from this turn's station (one-time)", 5, False,
          type=EffectType.DOUBLE_GOLD),
    _card("steady_hand", "Steady Hand", "Minimum die roll of 2 on all dice", 10, True,
          type=EffectType.MINIMUM_ROLL, minimum=2),
    _card("cargo_master", "Cargo Master", "+1 gold per Freight car at stations", 7, True,
          type=EffectType.CAR_TYPE_GOLD_BONUS, car_type=CarType.FREIGHT, bonus=1),
    _card("vip_service", "VIP Service", "+1 gold per Passenger car at stations", 7, True,
          type=EffectType.CAR_TYPE_GOLD_BONUS, car_type=CarType.PASSENGER, bonus=1),
    _card("turbo_boost", "Turbo Boost", "+3 to this turn's distance (one-time)", 4, False,
          type=EffectType.DISTANCE_BONUS, bonus=3),
    _card("iron_horse", "Iron Horse", "+2 to all Coal type dice", 11, True,
          type=EffectType.DIE_BONUS, car_type=CarType.COAL, bonus=2),
    _card("conductors_bell", "Conductor's Bell", "+3 gold at every station", 12, True,
          type=EffectType.STATION_BONUS, bonus=3),
    _card("railroad_tycoon", "Railroad Tycoon", "+1 gold per train car you own at stations", 14, True,
          type=EffectType.PER_CAR_GOLD_BONUS, bonus=1),
    _card("wild_west_express", "Wild West Express", "Re-roll up to two dice per turn", 12, True,
          type=EffectType.REROLL, count=2),
    _card("golden_spike", "Golden Spike", "+5 to this turn's distance (one-time)", 6, False,
          type=EffectType.DISTANCE_BONUS, bonus=5),
    _card("frontier_spirit", "Frontier Spirit", "Minimum die roll of 3 on all dice", 16, True,
          type=EffectType.MINIMUM_ROLL, minimum=3),
    _card("coal_barons_deal", "Coal Baron's Deal", "+2 gold per Coal car at stations", 10, True,
          type=EffectType.CAR_TYPE_GOLD_BONUS, car_type=CarType.COAL, bonus=2),
]


def starting_cars() -> list[TrainCar]:
    """Fresh copies of the three cars every player starts with."""
    return [replace(car) for car in TRAIN_CARS.values() if car.is_starting]


def purchasable_cars() -> list[TrainCar]:
    """Fresh copies of every car sold in the shop."""
    return [replace(car) for car in TRAIN_CARS.values() if not car.is_starting]


def get_car(car_id: str) -> TrainCar | None:
    car = TRAIN_CARS.get(car_id)
    return replace(car) if car else None


def create_deck(rng: random.Random) -> list[Card]:
    """Build a shuffled deck holding one copy of every enhancement card."""
    deck = [Card.from_dict(card.to_dict()) for card in ENHANCEMENT_CARDS]
    rng.shuffle(deck)
    return deck


def draw_cards(deck: list[Card], count: int) -> list[Card]:
    """Remove up to ``count`` cards from the top of ``deck``."""
    drawn = deck[:count]
    del deck[:count]
    return drawn
