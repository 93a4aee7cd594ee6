"""Dice Train rules: catalogs, dice, state tree and the turn state machine."""

from .cards import Card, CardEffect, CarSpecial, CarType, EffectType, TrainCar
from .dice import DieResult
from .machine import GameStateMachine
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

__all__ = [
    "Card",
    "CardEffect",
    "CarSpecial",
    "CarType",
    "DieResult",
    "EffectType",
    "GameSnapshot",
    "GameState",
    "GameStateMachine",
    "GameStatus",
    "Phase",
    "Player",
    "PlayerConfig",
    "Standing",
    "StationResult",
    "TrainCar",
    "TurnEnd",
]
