"""Authoritative turn and phase engine for Dice Train."""

import logging
import random

from .cards import CarSpecial, EffectType, create_deck, draw_cards, get_car, purchasable_cars, starting_cars
from .dice import DieResult, apply_modifiers, roll_dice, roll_die, roll_total
from .state import (
    GameSnapshot,
    GameState,
    GameStatus,
    Phase,
    Player,
    PlayerConfig,
    Standing,
    StationResult,
    TurnEnd,
)
from .station import calculate_earnings

logger = logging.getLogger(__name__)

MIN_GAME_PLAYERS = 2
DRAFT_OFFER_SIZE = 3
DRAFT_PICKS = 2
SHOP_OFFER_SIZE = 3
FUEL_REROLLS_PER_TURN = 1
FUEL_REROLL_COST = 1


class GameStateMachine:
    """
    Owns the game state tree and every rule that changes it.

    Rejected operations return False or None and leave the state untouched;
    nothing here raises for a move that is merely illegal right now. Once the
    game has ENDED every mutator is rejected.
    """

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()
        self._state = GameState()

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def status(self) -> GameStatus:
        return self._state.status

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def current_player(self) -> Player | None:
        """The seat whose turn (or draft pick) it is."""
        if not self._state.players:
            return None
        return self._state.players[self._state.current_player_index]

    @property
    def current_peer_id(self) -> str | None:
        """Peer id allowed to act, or None when nobody may act."""
        if self._state.status not in (GameStatus.DRAFTING, GameStatus.PLAYING):
            return None
        player = self.current_player
        return player.peer_id if player else None

    def is_ended(self) -> bool:
        return self._state.status == GameStatus.ENDED

    # ------------------------------------------------------------------
    # Setup and draft
    # ------------------------------------------------------------------

    def initialize(self, player_configs: list[PlayerConfig], round_count: int) -> bool:
        """Seat the players and deal the first draft offer."""
        if self._state.status != GameStatus.SETUP:
            return False
        if len(player_configs) < MIN_GAME_PLAYERS or round_count < 1:
            logger.debug(
                "Refusing to start with %d players and %d rounds",
                len(player_configs),
                round_count,
            )
            return False

        players = []
        for seat, config in enumerate(player_configs, start=1):
            cars = starting_cars()
            players.append(
                Player(
                    id=seat,
                    peer_id=config.peer_id,
                    name=config.name,
                    is_ai=config.is_ai,
                    is_local=config.is_local,
                    fuel=sum(car.starting_fuel for car in cars),
                    train_cars=cars,
                )
            )

        state = GameState(
            status=GameStatus.DRAFTING,
            phase=Phase.DRAFT,
            players=players,
            total_rounds=round_count,
            deck=create_deck(self._rng),
            available_cars=purchasable_cars(),
        )
        state.draft_cards = draw_cards(state.deck, DRAFT_OFFER_SIZE)
        self._state = state
        logger.info("Game initialized: %d players, %d rounds", len(players), round_count)
        return True

    def toggle_selection(self, index: int) -> bool:
        """Select or deselect a card of the current draft offer."""
        state = self._state
        if state.status != GameStatus.DRAFTING:
            return False
        if not 0 <= index < len(state.draft_cards):
            return False
        if index in state.draft_selections:
            state.draft_selections.remove(index)
            return True
        if len(state.draft_selections) >= DRAFT_PICKS:
            return False
        state.draft_selections.append(index)
        return True

    def confirm_selections(self) -> bool:
        """Keep the selected cards and pass the draft to the next seat."""
        state = self._state
        if state.status != GameStatus.DRAFTING:
            return False
        if len(state.draft_selections) != DRAFT_PICKS:
            return False

        player = self.current_player
        for index, card in enumerate(state.draft_cards):
            if index in state.draft_selections:
                player.card_hand.append(card)
            else:
                state.deck.append(card)
        state.draft_cards = []
        state.draft_selections = []

        if state.current_player_index + 1 < len(state.players):
            state.current_player_index += 1
            state.draft_cards = draw_cards(state.deck, DRAFT_OFFER_SIZE)
            return True

        self._rng.shuffle(state.deck)
        state.available_cards = draw_cards(state.deck, SHOP_OFFER_SIZE)
        state.status = GameStatus.PLAYING
        state.phase = Phase.ROLL
        state.current_player_index = 0
        state.current_round = 1
        logger.info("Draft complete, round 1 begins")
        return True

    # ------------------------------------------------------------------
    # Roll phase
    # ------------------------------------------------------------------

    def _in_phase(self, phase: Phase) -> bool:
        return self._state.status == GameStatus.PLAYING and self._state.phase == phase

    def roll_dice(self) -> list[DieResult] | None:
        """Roll one die per train car. Allowed once per turn."""
        if not self._in_phase(Phase.ROLL):
            return None
        player = self.current_player
        if player.has_rolled:
            return None

        results = roll_dice(player.train_cars, self._rng)
        apply_modifiers(results, player.modifier_cards(), player.train_cars)
        player.last_roll = results
        player.has_rolled = True
        player.card_rerolls_remaining = sum(
            card.effect.count
            for card in player.modifier_cards()
            if card.effect.type == EffectType.REROLL
        ) + sum(1 for car in player.train_cars if car.special == CarSpecial.FREE_REROLL)
        player.fuel_rerolls_remaining = FUEL_REROLLS_PER_TURN
        return results

    def reroll_die(self, index: int) -> bool:
        """Reroll one die, paying with a free reroll first and fuel second."""
        if not self._in_phase(Phase.ROLL):
            return False
        player = self.current_player
        if not player.has_rolled or not 0 <= index < len(player.last_roll):
            return False

        if player.card_rerolls_remaining > 0:
            player.card_rerolls_remaining -= 1
        elif player.fuel_rerolls_remaining > 0 and player.fuel >= FUEL_REROLL_COST:
            player.fuel_rerolls_remaining -= 1
            player.fuel -= FUEL_REROLL_COST
        else:
            return False

        die = player.last_roll[index]
        die.base_value = roll_die(die.die, self._rng)
        apply_modifiers(player.last_roll, player.modifier_cards(), player.train_cars)
        return True

    def play_card(self, hand_index: int) -> bool:
        """Play a card from hand during the roll phase."""
        if not self._in_phase(Phase.ROLL):
            return False
        player = self.current_player
        if not 0 <= hand_index < len(player.card_hand):
            return False

        card = player.card_hand.pop(hand_index)
        if card.persistent:
            player.enhancements.append(card)
        else:
            player.active_cards.append(card)

        if player.has_rolled:
            apply_modifiers(player.last_roll, player.modifier_cards(), player.train_cars)
            if card.effect.type == EffectType.REROLL:
                player.card_rerolls_remaining += card.effect.count
        return True

    # ------------------------------------------------------------------
    # Station and shop
    # ------------------------------------------------------------------

    def advance_to_station(self) -> StationResult | None:
        """Move the train, then collect gold and fuel."""
        if not self._in_phase(Phase.ROLL):
            return None
        state = self._state
        player = self.current_player
        if not player.has_rolled:
            return None

        distance = roll_total(player.last_roll)
        for card in [c for c in player.active_cards if c.effect.type == EffectType.DISTANCE_BONUS]:
            distance += card.effect.bonus
            player.active_cards.remove(card)
        player.total_distance += distance

        earnings = calculate_earnings(player.train_cars, player.enhancements, player.active_cards)
        player.gold += earnings.gold
        player.fuel += earnings.fuel
        player.active_cards = [c for c in player.active_cards if c.id not in earnings.consumed_cards]

        state.last_station_earnings = earnings.breakdown
        state.last_fuel_gained = earnings.fuel
        state.phase = Phase.STATION
        return StationResult(distance=distance, earnings=earnings)

    def advance_to_shop(self) -> bool:
        """Open the shop with a freshly shuffled card offer."""
        if not self._in_phase(Phase.STATION):
            return False
        state = self._state
        state.deck.extend(state.available_cards)
        self._rng.shuffle(state.deck)
        state.available_cards = draw_cards(state.deck, SHOP_OFFER_SIZE)
        state.phase = Phase.SHOP
        return True

    def purchase_car(self, car_id: str) -> bool:
        if not self._in_phase(Phase.SHOP):
            return False
        player = self.current_player
        offered = next((car for car in self._state.available_cars if car.id == car_id), None)
        if offered is None or offered.unlock_distance > player.total_distance:
            return False
        if player.gold < offered.cost:
            return False
        player.gold -= offered.cost
        player.train_cars.append(get_car(car_id))
        return True

    def purchase_card(self, index: int) -> bool:
        if not self._in_phase(Phase.SHOP):
            return False
        state = self._state
        player = self.current_player
        if not 0 <= index < len(state.available_cards):
            return False
        card = state.available_cards[index]
        if player.gold < card.cost:
            return False

        player.gold -= card.cost
        del state.available_cards[index]
        if card.persistent:
            player.enhancements.append(card)
        else:
            player.card_hand.append(card)
        for replacement in draw_cards(state.deck, 1):
            state.available_cards.insert(index, replacement)
        return True

    # ------------------------------------------------------------------
    # Turn advance and results
    # ------------------------------------------------------------------

    def end_turn(self) -> TurnEnd | None:
        """Hand the turn to the next seat, ending the game after the last round."""
        if not self._in_phase(Phase.SHOP):
            return None
        state = self._state
        player = self.current_player
        player.active_cards = []
        player.last_roll = []
        player.has_rolled = False
        player.card_rerolls_remaining = 0
        player.fuel_rerolls_remaining = 0
        state.last_station_earnings = []
        state.last_fuel_gained = 0

        state.current_player_index = (state.current_player_index + 1) % len(state.players)
        if state.current_player_index == 0:
            state.current_round += 1
            if state.current_round > state.total_rounds:
                state.status = GameStatus.ENDED
                logger.info("Game over after %d rounds", state.total_rounds)
                return TurnEnd(game_ended=True, current_round=state.current_round)

        state.phase = Phase.ROLL
        return TurnEnd(
            game_ended=False,
            current_round=state.current_round,
            next_peer_id=self.current_player.peer_id,
        )

    def standings(self) -> list[Standing]:
        """Players ordered by distance; ties keep seat order."""
        ordered = sorted(
            enumerate(self._state.players), key=lambda item: -item[1].total_distance
        )
        return [
            Standing(
                rank=rank,
                seat=seat,
                peer_id=player.peer_id,
                name=player.name,
                total_distance=player.total_distance,
                gold=player.gold,
                train_cars=len(player.train_cars),
            )
            for rank, (seat, player) in enumerate(ordered, start=1)
        ]

    def snapshot(self) -> GameSnapshot:
        return GameSnapshot.capture(self._state)
