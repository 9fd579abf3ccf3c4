"""Game core for Lupus."""

from game.codes import generate_code, normalize_code
from game.controller import PhaseController
from game.engine import (
    start_game,
    resolve_night,
    resolve_day,
    end_game,
    check_action,
    investigate,
)
from game.errors import (
    GameError,
    NotFoundError,
    NotHostError,
    PreconditionError,
    StaleStateError,
    StoreError,
    CodeCollisionError,
)
from game.ledger import ActionLedger
from game.resolution import evaluate_winner
from game.roles import assign_roles
from game.rules import Role, ActionType, GameStatus, PhaseName, Winner
from game.state import Game, GameSession, Player, Action, Phase, NightOutcome, DayOutcome
from game.watcher import SessionWatcher

__all__ = [
    "generate_code",
    "normalize_code",
    "PhaseController",
    "start_game",
    "resolve_night",
    "resolve_day",
    "end_game",
    "check_action",
    "investigate",
    "GameError",
    "NotFoundError",
    "NotHostError",
    "PreconditionError",
    "StaleStateError",
    "StoreError",
    "CodeCollisionError",
    "ActionLedger",
    "evaluate_winner",
    "assign_roles",
    "Role",
    "ActionType",
    "GameStatus",
    "PhaseName",
    "Winner",
    "Game",
    "GameSession",
    "Player",
    "Action",
    "Phase",
    "NightOutcome",
    "DayOutcome",
    "SessionWatcher",
]
