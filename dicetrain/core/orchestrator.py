"""Host-side game driver: starts the game and plays the AI seats."""

import asyncio
import logging
from typing import Any, Callable

from ..config import AiSpeed
from ..game.bot import BotStrategy
from ..game.machine import GameStateMachine
from ..game.state import GameSnapshot, GameStatus, Phase, Standing
from ..messages.protocol import (
    ContinueAction,
    DraftSelectAction,
    GameStartInfo,
    MessageType,
    PlayCardAction,
    PurchaseCardAction,
    PurchaseCarAction,
    RerollAction,
)
from ..sync.game_sync import HostGameSync, SyncEvent

logger = logging.getLogger(__name__)

MAX_PURCHASES_PER_TURN = 3


class _SeatInterrupted(Exception):
    """The AI seat lost its turn (or the orchestrator stopped) mid-step."""


class TurnOrchestrator:
    """
    Drives a game on the host.

    AI seats, plus any seat named in ``autopilot``, are played by one asyncio
    task at a time with a pause of ``ai_speed.delay`` between steps. Human
    seats act through their own ClientGameSync, or through ``human_action``
    for the host's seat.
    """

    def __init__(
        self,
        sync: HostGameSync,
        machine: GameStateMachine,
        ai_speed: AiSpeed = AiSpeed.NORMAL,
        strategy: BotStrategy | None = None,
        autopilot: set[str] | None = None,
    ):
        self.sync = sync
        self.machine = machine
        self.ai_speed = ai_speed
        self.strategy = strategy or BotStrategy()
        self._autopilot = set(autopilot or ())
        self._ai_seats: set[str] = set()
        self._task: asyncio.Task | None = None
        self._finished: asyncio.Future | None = None
        self._unsubscribers: list[Callable[[], None]] = []
        self._stopped = False

    def begin(self, start_info: GameStartInfo) -> bool:
        """Set up the game from the lobby's seats and publish the first state."""
        if not self.machine.initialize(start_info.player_configs, start_info.round_count):
            logger.error("Could not initialize game from %d seats", len(start_info.player_configs))
            return False
        self._ai_seats = {c.peer_id for c in start_info.player_configs if c.is_ai} | self._autopilot
        self._finished = asyncio.get_running_loop().create_future()
        self._unsubscribers = [
            self.sync.events.subscribe(SyncEvent.STATE_CHANGED, self._on_state_changed),
            self.sync.events.subscribe(SyncEvent.GAME_ENDED, self._on_game_ended),
        ]
        self.sync.attach()
        self.sync.broadcast_state()
        return True

    def human_action(self, msg_type: MessageType, payload: Any = None) -> Any:
        """Apply input from the person sitting at the host."""
        return self.sync.perform(self.sync.local_peer_id, msg_type, payload)

    async def wait_until_finished(self) -> list[Standing] | None:
        """Final standings, or None if the orchestrator was stopped first."""
        if self._finished is None:
            return None
        return await self._finished

    async def stop(self) -> None:
        self._stopped = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self.sync.detach()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._finished is not None and not self._finished.done():
            self._finished.set_result(None)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _on_state_changed(self, snapshot: GameSnapshot) -> None:
        self._schedule()

    def _on_game_ended(self, standings: list[Standing]) -> None:
        if self._finished is not None and not self._finished.done():
            self._finished.set_result(standings)

    def _schedule(self) -> None:
        if self._stopped or self.machine.current_peer_id not in self._ai_seats:
            return
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._run_ai())
        self._task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("AI task failed", exc_info=error)
            if self._finished is not None and not self._finished.done():
                self._finished.set_exception(error)

    async def _run_ai(self) -> None:
        """Play AI seats for as long as one of them holds the turn."""
        while not self._stopped:
            peer_id = self.machine.current_peer_id
            if peer_id not in self._ai_seats:
                return
            before = self._position()
            try:
                if self.machine.status == GameStatus.DRAFTING:
                    await self._play_draft(peer_id)
                else:
                    await self._play_turn(peer_id)
            except _SeatInterrupted:
                logger.debug("AI play for %s interrupted", peer_id)
                continue
            if self._position() == before:
                logger.error("AI seat %s made no progress, giving up the loop", peer_id)
                return

    def _position(self) -> tuple:
        state = self.machine.state
        return (state.status, state.current_round, state.current_player_index, state.phase)

    async def _step(self, peer_id: str, msg_type: MessageType, payload: Any = None) -> Any:
        await asyncio.sleep(self.ai_speed.delay)
        if self._stopped or self.machine.current_peer_id != peer_id:
            raise _SeatInterrupted()
        return self.sync.perform(peer_id, msg_type, payload)

    # ------------------------------------------------------------------
    # AI play
    # ------------------------------------------------------------------

    async def _play_draft(self, peer_id: str) -> None:
        snapshot = self.machine.snapshot()
        for index in list(snapshot.draft_selections):
            await self._step(peer_id, MessageType.ACTION_DRAFT_SELECT, DraftSelectAction(index))
        for index in self.strategy.choose_draft(snapshot):
            await self._step(peer_id, MessageType.ACTION_DRAFT_SELECT, DraftSelectAction(index))
        await self._step(peer_id, MessageType.ACTION_DRAFT_CONFIRM)

    async def _play_turn(self, peer_id: str) -> None:
        machine = self.machine
        if machine.phase == Phase.ROLL:
            if not machine.current_player.has_rolled:
                await self._step(peer_id, MessageType.ACTION_ROLL)

            while True:
                index = self.strategy.choose_card_to_play(machine.snapshot(), machine.current_player)
                if index is None:
                    break
                if not await self._step(peer_id, MessageType.ACTION_PLAY_CARD, PlayCardAction(index)):
                    break

            while True:
                index = self.strategy.choose_reroll(machine.current_player)
                if index is None:
                    break
                if not await self._step(peer_id, MessageType.ACTION_REROLL, RerollAction(index)):
                    break

            await self._step(peer_id, MessageType.ACTION_CONTINUE, ContinueAction(Phase.STATION))

        if machine.phase == Phase.STATION:
            await self._step(peer_id, MessageType.ACTION_CONTINUE, ContinueAction(Phase.SHOP))

        if machine.phase == Phase.SHOP:
            for _ in range(MAX_PURCHASES_PER_TURN):
                purchase = self.strategy.choose_purchase(machine.snapshot(), machine.current_player)
                if purchase is None:
                    break
                if purchase.car_id is not None:
                    bought = await self._step(
                        peer_id, MessageType.ACTION_PURCHASE_CAR, PurchaseCarAction(purchase.car_id)
                    )
                else:
                    bought = await self._step(
                        peer_id,
                        MessageType.ACTION_PURCHASE_CARD,
                        PurchaseCardAction(purchase.card_index),
                    )
                if not bought:
                    break
            await self._step(peer_id, MessageType.ACTION_END_TURN)
