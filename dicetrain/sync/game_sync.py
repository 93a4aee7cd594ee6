"""Host-authoritative game synchronization.

Clients only ever send intents. The host checks that the sender owns the
current turn, applies the intent to its state machine and broadcasts a full
snapshot; clients replace their mirror with whatever arrives.
"""

from dataclasses import MISSING, fields
from enum import Enum
import logging
from typing import Any

from ..events import EventEmitter
from ..game.machine import GameStateMachine
from ..game.state import GameSnapshot, Phase, Player, Standing, TurnEnd
from ..messages.protocol import (
    ACTION_TYPES,
    PAYLOAD_TYPES,
    ContinueAction,
    DraftSelectAction,
    GameEndNotice,
    MessageType,
    PlayCardAction,
    PurchaseCarAction,
    PurchaseCardAction,
    RerollAction,
)
from ..network.transport import PeerTransport

logger = logging.getLogger(__name__)


def _has_required_fields(cls: type) -> bool:
    return any(f.default is MISSING and f.default_factory is MISSING for f in fields(cls))


class SyncEvent(str, Enum):
    STATE_CHANGED = "state_changed"  # (GameSnapshot)
    ACTION_APPLIED = "action_applied"  # (peer_id, MessageType, result)
    GAME_ENDED = "game_ended"  # (list[Standing])


class HostGameSync:
    """Routes authorized intents into the machine and replicates the result."""

    def __init__(
        self,
        transport: PeerTransport,
        machine: GameStateMachine,
        local_peer_id: str | None = None,
    ):
        self.transport = transport
        self.machine = machine
        self.local_peer_id = local_peer_id or transport.local_id
        self.events = EventEmitter()
        self._attached = False

    def attach(self) -> None:
        """Start accepting action messages from clients."""
        for msg_type in ACTION_TYPES:
            self.transport.on_message(msg_type, self._make_handler(msg_type))
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        for msg_type in ACTION_TYPES:
            self.transport.off_message(msg_type)
        self._attached = False

    def _make_handler(self, msg_type: MessageType):
        def handler(payload: Any, from_id: str) -> None:
            self.handle_action(from_id, msg_type, payload)

        return handler

    def handle_action(self, from_id: str, msg_type: MessageType, payload: Any) -> Any:
        """Apply one intent if ``from_id`` owns the turn, then broadcast.

        Intents from anyone else are dropped without touching the state.
        Returns the machine's result, or None for a dropped intent.
        """
        if msg_type not in ACTION_TYPES:
            logger.warning("Ignoring non-action %s from %s", msg_type.value, from_id)
            return None
        if from_id != self.machine.current_peer_id:
            logger.debug(
                "Dropping %s from %s: turn belongs to %s",
                msg_type.value,
                from_id,
                self.machine.current_peer_id,
            )
            return None

        result = self._apply(msg_type, payload)
        self.broadcast_state()
        self.events.emit(SyncEvent.ACTION_APPLIED, from_id, msg_type, result)

        if isinstance(result, TurnEnd) and result.game_ended:
            standings = self.machine.standings()
            self.transport.broadcast(MessageType.GAME_END, GameEndNotice(standings))
            self.events.emit(SyncEvent.GAME_ENDED, standings)
        return result

    def perform(self, peer_id: str, msg_type: MessageType, payload: Any = None) -> Any:
        """Act for a seat played on the host (the host's human or an AI).

        ``payload`` may be omitted for actions that carry no fields; an action
        that needs one and has none is dropped and returns None.
        """
        if payload is None:
            payload_cls = PAYLOAD_TYPES[msg_type]
            if _has_required_fields(payload_cls):
                logger.warning("Dropping %s from %s: payload required", msg_type.value, peer_id)
                return None
            payload = payload_cls()
        return self.handle_action(peer_id, msg_type, payload)

    def _apply(self, msg_type: MessageType, payload: Any) -> Any:
        machine = self.machine
        if msg_type == MessageType.ACTION_DRAFT_SELECT:
            return machine.toggle_selection(payload.card_index)
        if msg_type == MessageType.ACTION_DRAFT_CONFIRM:
            return machine.confirm_selections()
        if msg_type == MessageType.ACTION_ROLL:
            return machine.roll_dice()
        if msg_type == MessageType.ACTION_REROLL:
            return machine.reroll_die(payload.die_index)
        if msg_type == MessageType.ACTION_CONTINUE:
            if payload.to_phase == Phase.STATION:
                return machine.advance_to_station()
            if payload.to_phase == Phase.SHOP:
                return machine.advance_to_shop()
            return None
        if msg_type == MessageType.ACTION_PURCHASE_CAR:
            return machine.purchase_car(payload.car_id)
        if msg_type == MessageType.ACTION_PURCHASE_CARD:
            return machine.purchase_card(payload.card_index)
        if msg_type == MessageType.ACTION_PLAY_CARD:
            return machine.play_card(payload.card_index)
        if msg_type == MessageType.ACTION_END_TURN:
            return machine.end_turn()
        return None

    def broadcast_state(self) -> GameSnapshot:
        """Send a full snapshot to every client and to local listeners."""
        snapshot = self.machine.snapshot()
        self.transport.broadcast(MessageType.GAME_STATE, snapshot)
        self.events.emit(SyncEvent.STATE_CHANGED, snapshot)
        return snapshot


class ClientGameSync:
    """Thin client: a mirror of the last snapshot plus intent senders."""

    def __init__(self, transport: PeerTransport, local_peer_id: str | None = None):
        self.transport = transport
        self.local_peer_id = local_peer_id or transport.local_id
        self.events = EventEmitter()
        self.mirror: GameSnapshot | None = None
        self.standings: list[Standing] | None = None

    def attach(self) -> None:
        self.transport.on_message(MessageType.GAME_STATE, self._on_game_state)
        self.transport.on_message(MessageType.GAME_END, self._on_game_end)

    def detach(self) -> None:
        self.transport.off_message(MessageType.GAME_STATE)
        self.transport.off_message(MessageType.GAME_END)

    def _from_host(self, from_id: str) -> bool:
        if from_id != self.transport.session_id:
            logger.warning("Ignoring game message from non-host %s", from_id)
            return False
        return True

    def _on_game_state(self, snapshot: GameSnapshot, from_id: str) -> None:
        if not self._from_host(from_id):
            return
        self.mirror = snapshot
        self.events.emit(SyncEvent.STATE_CHANGED, snapshot)

    def _on_game_end(self, notice: GameEndNotice, from_id: str) -> None:
        if not self._from_host(from_id):
            return
        self.standings = notice.standings
        self.events.emit(SyncEvent.GAME_ENDED, notice.standings)

    def is_my_turn(self) -> bool:
        return self.mirror is not None and self.mirror.current_peer_id == self.local_peer_id

    def my_player(self) -> Player | None:
        if self.mirror is None:
            return None
        return next((p for p in self.mirror.players if p.peer_id == self.local_peer_id), None)

    def send_draft_select(self, card_index: int) -> bool:
        return self.transport.send_to_host(
            MessageType.ACTION_DRAFT_SELECT, DraftSelectAction(card_index)
        )

    def send_draft_confirm(self) -> bool:
        return self.transport.send_to_host(MessageType.ACTION_DRAFT_CONFIRM)

    def send_roll(self) -> bool:
        return self.transport.send_to_host(MessageType.ACTION_ROLL)

    def send_reroll(self, die_index: int) -> bool:
        return self.transport.send_to_host(MessageType.ACTION_REROLL, RerollAction(die_index))

    def send_continue(self, to_phase: Phase) -> bool:
        return self.transport.send_to_host(MessageType.ACTION_CONTINUE, ContinueAction(to_phase))

    def send_purchase_car(self, car_id: str) -> bool:
        return self.transport.send_to_host(
            MessageType.ACTION_PURCHASE_CAR, PurchaseCarAction(car_id)
        )

    def send_purchase_card(self, card_index: int) -> bool:
        return self.transport.send_to_host(
            MessageType.ACTION_PURCHASE_CARD, PurchaseCardAction(card_index)
        )

    def send_play_card(self, card_index: int) -> bool:
        return self.transport.send_to_host(MessageType.ACTION_PLAY_CARD, PlayCardAction(card_index))

    def send_end_turn(self) -> bool:
        return self.transport.send_to_host(MessageType.ACTION_END_TURN)
