"""Dice rolling and modifier arithmetic."""

from dataclasses import dataclass
import random

from mashumaro.mixins.json import DataClassJSONMixin

from .cards import Card, CarSpecial, CarType, EffectType, TrainCar


@dataclass
class DieResult(DataClassJSONMixin):
    """One die rolled for one train car."""

    die: int  # number of sides
    car_name: str
    car_type: CarType
    base_value: int
    bonus: int = 0
    final_value: int = 0


def roll_die(sides: int, rng: random.Random) -> int:
    """Roll a single die with the given number of sides."""
    return rng.randint(1, sides)


def roll_dice(cars: list[TrainCar], rng: random.Random) -> list[DieResult]:
    """Roll one die per train car. Modifiers are not applied yet."""
    results = []
    for car in cars:
        value = roll_die(car.die, rng)
        results.append(DieResult(car.die, car.name, car.car_type, value, 0, value))
    return results


def _highest(results: list[DieResult]) -> DieResult:
    # first die wins ties
    return max(results, key=lambda r: r.base_value + r.bonus)


def _lowest(results: list[DieResult]) -> DieResult:
    return min(results, key=lambda r: r.base_value + r.bonus)


def apply_modifiers(
    results: list[DieResult], cards: list[Card], cars: list[TrainCar]
) -> list[DieResult]:
    """
    Recompute bonuses and final values in place.

    Bonuses are reset first so this can run again after a reroll or after a
    card is played. Order: car self bonuses, then card effects in card order,
    then the caboose bonus on the lowest die.
    """
    for result in results:
        result.bonus = 0

    for result, car in zip(results, cars):
        if car.special == CarSpecial.SELF_BONUS:
            result.bonus += car.self_bonus

    for card in cards:
        effect = card.effect
        if effect.type == EffectType.DIE_BONUS:
            for result in results:
                if result.car_type == effect.car_type:
                    result.bonus += effect.bonus
        elif effect.type == EffectType.ALL_DIE_BONUS:
            for result in results:
                result.bonus += effect.bonus
        elif effect.type == EffectType.MINIMUM_ROLL:
            for result in results:
                if result.base_value < effect.minimum:
                    result.bonus += effect.minimum - result.base_value
        elif effect.type == EffectType.HIGHEST_DIE_BONUS and results:
            _highest(results).bonus += effect.bonus

    if results and any(car.special == CarSpecial.LOWEST_DIE_BONUS for car in cars):
        _lowest(results).bonus += 1

    for result in results:
        result.final_value = result.base_value + result.bonus
    return results


def roll_total(results: list[DieResult]) -> int:
    return sum(result.final_value for result in results)
