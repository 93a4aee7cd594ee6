"""Station earnings: gold and fuel collected when a train pulls in."""

from dataclasses import dataclass, field

from mashumaro.mixins.json import DataClassJSONMixin

from .cards import Card, CarSpecial, CarType, EffectType, TrainCar


@dataclass
class Earning(DataClassJSONMixin):
    """One line of the station breakdown shown to players."""

    source: str
    amount: int


@dataclass
class StationEarnings(DataClassJSONMixin):
    gold: int = 0
    fuel: int = 0
    breakdown: list[Earning] = field(default_factory=list)
    consumed_cards: list[str] = field(default_factory=list)  # active card ids used up


def calculate_earnings(
    cars: list[TrainCar], enhancements: list[Card], active_cards: list[Card]
) -> StationEarnings:
    """
    Work out what a player collects at the station.

    Double gold cards among ``active_cards`` double everything earned before
    them and are reported in ``consumed_cards``; the caller removes them.
    """
    earnings = StationEarnings()

    def add(source: str, amount: int) -> None:
        if amount > 0:
            earnings.gold += amount
            earnings.breakdown.append(Earning(source, amount))

    for car in cars:
        add(car.name, car.station_gold)

    passenger_count = sum(1 for car in cars if car.car_type == CarType.PASSENGER)
    for car in cars:
        if car.special == CarSpecial.PASSENGER_SYNERGY:
            add(car.name, passenger_count - 1)
        elif car.special == CarSpecial.PER_CAR_GOLD:
            add(car.name, len(cars))

    for card in enhancements:
        effect = card.effect
        if effect.type == EffectType.STATION_BONUS:
            add(card.name, effect.bonus)
        elif effect.type == EffectType.CAR_TYPE_GOLD_BONUS:
            matching = sum(1 for car in cars if car.car_type == effect.car_type)
            add(card.name, matching * effect.bonus)
        elif effect.type == EffectType.PER_CAR_GOLD_BONUS:
            add(card.name, len(cars) * effect.bonus)

    for card in active_cards:
        if card.effect.type == EffectType.DOUBLE_GOLD:
            add(f"{card.name} (consumed)", earnings.gold)
            earnings.consumed_cards.append(card.id)

    earnings.fuel = sum(car.fuel_per_station for car in cars)
    return earnings
