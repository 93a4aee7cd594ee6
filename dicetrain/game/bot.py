"""Heuristic decisions for AI seats.

Every choice is made from a GameSnapshot, the same view a client has, so
the strategy never peeks at the deck.
"""

from dataclasses import dataclass
import random

from .cards import Card, CarSpecial, EffectType, TrainCar
from .dice import DieResult
from .machine import DRAFT_PICKS, FUEL_REROLL_COST
from .state import GameSnapshot, Player

PURCHASE_THRESHOLD = 25  # minimum score worth spending gold on
REROLL_FRACTION = 0.4  # reroll dice showing less than this share of their sides


@dataclass
class Purchase:
    """A shop decision: a car by id or a card by offer index."""

    score: float
    car_id: str | None = None
    card_index: int | None = None


def _progress(snapshot: GameSnapshot) -> float:
    return snapshot.current_round / max(1, snapshot.total_rounds)


class BotStrategy:
    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()

    def evaluate_car(self, car: TrainCar, player: Player, snapshot: GameSnapshot) -> float:
        """Score a train car from 0 to 100."""
        score = car.die * 2.5
        score += car.station_gold * 6
        score += car.fuel_per_station * 10
        if car.special in (CarSpecial.PER_CAR_GOLD, CarSpecial.PASSENGER_SYNERGY):
            score += 18
        elif car.special in (CarSpecial.LOWEST_DIE_BONUS, CarSpecial.FREE_REROLL):
            score += 15
        elif car.special == CarSpecial.SELF_BONUS:
            score += car.self_bonus * 8
        score -= car.cost * 1.5

        if player.gold < 10:
            score *= 0.7
        elif player.gold > 25:
            score *= 1.2

        progress = _progress(snapshot)
        if progress < 0.3 and car.station_gold > 0:
            score *= 1.3  # income first
        elif progress > 0.7:
            score += car.die * 1.5  # speed last
        return max(0.0, min(100.0, score))

    def evaluate_card(self, card: Card, player: Player, snapshot: GameSnapshot) -> float:
        """Score an enhancement card from 0 to 100."""
        effect = card.effect
        score = 25.0 if card.persistent else 10.0
        remaining = snapshot.total_rounds - snapshot.current_round

        if effect.type == EffectType.REROLL:
            score += max(1, effect.count) * 15
        elif effect.type == EffectType.STATION_BONUS:
            score += effect.bonus * remaining * 0.8
        elif effect.type in (EffectType.DIE_BONUS, EffectType.CAR_TYPE_GOLD_BONUS):
            matching = sum(
                1
                for car in player.train_cars
                if effect.car_type is None or car.car_type == effect.car_type
            )
            score += effect.bonus * matching * 4
        elif effect.type in (EffectType.ALL_DIE_BONUS, EffectType.PER_CAR_GOLD_BONUS):
            score += effect.bonus * len(player.train_cars) * 4
        elif effect.type == EffectType.DISTANCE_BONUS:
            score += effect.bonus * (1 + _progress(snapshot))
        else:
            score += 10
        score -= card.cost * 1.5

        if player.gold < 10:
            score *= 0.6
        return max(0.0, min(100.0, score))

    def choose_draft(self, snapshot: GameSnapshot) -> list[int]:
        """Offer indices to keep, best first."""
        player = snapshot.current_player
        ranked = sorted(
            range(len(snapshot.draft_cards)),
            key=lambda i: -self.evaluate_card(snapshot.draft_cards[i], player, snapshot),
        )
        return ranked[:DRAFT_PICKS]

    def _should_reroll(self, result: DieResult) -> bool:
        threshold = result.die * REROLL_FRACTION
        # a little noise so AI seats are not predictable
        return result.final_value <= threshold * (1 + self._rng.random() * 0.15)

    def choose_reroll(self, player: Player) -> int | None:
        """Index of the worst die worth rerolling, or None to stop."""
        can_pay = player.card_rerolls_remaining > 0 or (
            player.fuel_rerolls_remaining > 0 and player.fuel >= FUEL_REROLL_COST
        )
        if not can_pay or not player.last_roll:
            return None
        worst_index = None
        worst_score = float("inf")
        for index, result in enumerate(player.last_roll):
            score = result.final_value / result.die
            if score < worst_score and self._should_reroll(result):
                worst_index, worst_score = index, score
        return worst_index

    def choose_card_to_play(self, snapshot: GameSnapshot, player: Player) -> int | None:
        """Hand index of a card worth playing this turn, or None."""
        for index, card in enumerate(player.card_hand):
            if card.persistent:
                return index
            if card.effect.type == EffectType.DOUBLE_GOLD:
                return index
            if card.effect.type == EffectType.DISTANCE_BONUS and (
                _progress(snapshot) >= 0.7 or snapshot.current_round == snapshot.total_rounds
            ):
                return index
        return None

    def choose_purchase(self, snapshot: GameSnapshot, player: Player) -> Purchase | None:
        """The best affordable purchase above the spending threshold."""
        options = []
        for car in snapshot.available_cars:
            if car.cost <= player.gold and car.unlock_distance <= player.total_distance:
                options.append(Purchase(self.evaluate_car(car, player, snapshot), car_id=car.id))
        for index, card in enumerate(snapshot.available_cards):
            if card.cost <= player.gold:
                options.append(
                    Purchase(self.evaluate_card(card, player, snapshot), card_index=index)
                )
        if not options:
            return None
        best = max(options, key=lambda option: option.score)
        return best if best.score >= PURCHASE_THRESHOLD else None
