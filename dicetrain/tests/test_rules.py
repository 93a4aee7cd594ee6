"""Tests for dice modifiers, station earnings and the bot heuristics."""

import random

from dicetrain.game.bot import BotStrategy
from dicetrain.game.cards import (
    ENHANCEMENT_CARDS,
    TRAIN_CARS,
    Card,
    CarType,
    create_deck,
    draw_cards,
    get_car,
    purchasable_cars,
    starting_cars,
)
from dicetrain.game.dice import DieResult, apply_modifiers, roll_dice, roll_total
from dicetrain.game.machine import GameStateMachine
from dicetrain.game.state import PlayerConfig
from dicetrain.game.station import calculate_earnings


def card(card_id: str) -> Card:
    original = next(c for c in ENHANCEMENT_CARDS if c.id == card_id)
    return Card.from_dict(original.to_dict())


def fixed_roll(cars, values) -> list[DieResult]:
    return [
        DieResult(car.die, car.name, car.car_type, value, 0, value)
        for car, value in zip(cars, values)
    ]


class TestCatalog:
    def test_three_starting_cars(self):
        assert [c.id for c in starting_cars()] == ["coal_tender", "passenger_car", "freight_car"]

    def test_shop_never_sells_starting_cars(self):
        assert all(not car.is_starting for car in purchasable_cars())
        assert "coal_tender" not in [car.id for car in purchasable_cars()]

    def test_get_car_returns_a_copy(self):
        car = get_car("boxcar")
        car.cost = 0
        assert TRAIN_CARS["boxcar"].cost == 4
        assert get_car("missing") is None

    def test_deck_has_one_of_each_card(self):
        deck = create_deck(random.Random(5))
        assert sorted(c.id for c in deck) == sorted(c.id for c in ENHANCEMENT_CARDS)

    def test_draw_removes_from_top(self):
        deck = create_deck(random.Random(5))
        top = [c.id for c in deck[:3]]
        drawn = draw_cards(deck, 3)
        assert [c.id for c in drawn] == top
        assert len(deck) == len(ENHANCEMENT_CARDS) - 3
        assert draw_cards([], 2) == []


class TestDiceModifiers:
    def setup_method(self):
        self.cars = starting_cars()  # coal d6, passenger d6, freight d6 (+1)

    def test_roll_dice_uses_car_die(self):
        results = roll_dice([TRAIN_CARS["express_engine"]] * 20, random.Random(2))
        assert all(1 <= r.base_value <= 12 for r in results)
        assert all(r.die == 12 for r in results)

    def test_self_bonus(self):
        results = apply_modifiers(fixed_roll(self.cars, [2, 2, 2]), [], self.cars)
        assert [r.final_value for r in results] == [2, 2, 3]

    def test_type_bonus_and_all_bonus(self):
        cards = [card("coal_efficiency"), card("efficient_engine")]
        results = apply_modifiers(fixed_roll(self.cars, [2, 2, 2]), cards, self.cars)
        assert [r.final_value for r in results] == [4, 3, 4]

    def test_minimum_roll(self):
        results = apply_modifiers(fixed_roll(self.cars, [1, 5, 1]), [card("frontier_spirit")], self.cars)
        assert [r.final_value for r in results] == [3, 5, 4]

    def test_highest_die_bonus_first_wins_ties(self):
        results = apply_modifiers(fixed_roll(self.cars, [6, 6, 1]), [card("express_delivery")], self.cars)
        assert [r.final_value for r in results] == [8, 6, 2]

    def test_caboose_lifts_lowest_die(self):
        cars = self.cars + [TRAIN_CARS["caboose"]]
        results = apply_modifiers(fixed_roll(cars, [4, 1, 3, 5]), [], cars)
        assert [r.final_value for r in results] == [4, 2, 4, 5]

    def test_recompute_resets_bonuses(self):
        results = fixed_roll(self.cars, [2, 2, 2])
        apply_modifiers(results, [card("efficient_engine")], self.cars)
        apply_modifiers(results, [card("efficient_engine")], self.cars)
        assert roll_total(results) == 10


class TestStationEarnings:
    def setup_method(self):
        self.cars = starting_cars()

    def test_base_earnings(self):
        earnings = calculate_earnings(self.cars, [], [])
        assert earnings.gold == 3
        assert earnings.fuel == 1
        assert [(e.source, e.amount) for e in earnings.breakdown] == [("Passenger Car", 3)]

    def test_card_bonuses(self):
        cards = [card("station_master"), card("vip_service"), card("railroad_tycoon")]
        earnings = calculate_earnings(self.cars, cards, [])
        # 3 base + 2 station + 1 passenger car + 3 cars
        assert earnings.gold == 9

    def test_passenger_synergy_and_per_car_gold(self):
        cars = self.cars + [TRAIN_CARS["observation_deck"], TRAIN_CARS["first_class_car"]]
        earnings = calculate_earnings(cars, [], [])
        # 3 base + 2 other passenger cars + 5 cars owned
        assert earnings.gold == 10

    def test_double_gold_doubles_and_is_reported(self):
        earnings = calculate_earnings(self.cars, [card("station_master")], [card("gold_rush")])
        assert earnings.gold == 10
        assert earnings.consumed_cards == ["gold_rush"]

    def test_fuel_from_every_car(self):
        cars = self.cars + [TRAIN_CARS["tank_car"]]
        assert calculate_earnings(cars, [], []).fuel == 4


class TestBotStrategy:
    def setup_method(self):
        self.machine = GameStateMachine(rng=random.Random(4))
        self.machine.initialize([PlayerConfig("a", "A"), PlayerConfig("b", "B")], 4)
        for _ in range(2):
            self.machine.toggle_selection(0)
            self.machine.toggle_selection(1)
            self.machine.confirm_selections()
        self.bot = BotStrategy(random.Random(9))

    def test_draft_picks_two_distinct_offer_cards(self):
        machine = GameStateMachine(rng=random.Random(4))
        machine.initialize([PlayerConfig("a", "A"), PlayerConfig("b", "B")], 3)
        picks = self.bot.choose_draft(machine.snapshot())
        assert len(picks) == 2
        assert len(set(picks)) == 2
        assert all(0 <= i < 3 for i in picks)

    def test_no_purchase_without_gold(self):
        self.machine.current_player.gold = 0
        assert self.bot.choose_purchase(self.machine.snapshot(), self.machine.current_player) is None

    def test_purchase_is_affordable_and_unlocked(self):
        player = self.machine.current_player
        player.gold = 12
        purchase = self.bot.choose_purchase(self.machine.snapshot(), player)
        if purchase is not None:
            if purchase.car_id is not None:
                car = TRAIN_CARS[purchase.car_id]
                assert car.cost <= 12 and car.unlock_distance <= player.total_distance
            else:
                assert self.machine.state.available_cards[purchase.card_index].cost <= 12

    def test_reroll_choice_needs_a_way_to_pay(self):
        player = self.machine.current_player
        self.machine.roll_dice()
        player.card_rerolls_remaining = 0
        player.fuel = 0
        assert self.bot.choose_reroll(player) is None

    def test_reroll_targets_a_low_die(self):
        player = self.machine.current_player
        self.machine.roll_dice()
        for result, value in zip(player.last_roll, [6, 1, 6]):
            result.base_value = value
            result.final_value = value
        assert self.bot.choose_reroll(player) == 1

    def test_plays_persistent_cards(self):
        player = self.machine.current_player
        player.card_hand = [card("turbo_boost"), card("station_master")]
        assert self.bot.choose_card_to_play(self.machine.snapshot(), player) == 1
        player.card_hand = [card("turbo_boost")]
        assert self.bot.choose_card_to_play(self.machine.snapshot(), player) is None

    def test_car_scores_in_range(self):
        player = self.machine.current_player
        for car in purchasable_cars():
            assert 0 <= self.bot.evaluate_car(car, player, self.machine.snapshot()) <= 100
        assert CarType.COAL in {car.car_type for car in purchasable_cars()}
