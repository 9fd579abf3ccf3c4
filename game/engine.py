"""Game engine: pure state transitions over a GameSession snapshot, no I/O."""

import copy
import dataclasses
import random
from typing import Optional

from game.errors import NotFoundError, NotHostError, PreconditionError
from game.ledger import select_actions
from game.resolution import day_lynch, evaluate_winner, is_suspicious, night_kill
from game.roles import assign_roles
from game.rules import (
    ACTION_PHASE,
    MAX_PLAYER_NAME_LENGTH,
    MIN_ELIGIBLE_PLAYERS,
    MIN_PLAYERS,
    NIGHT_ACTION_BY_ROLE,
    ActionType,
    GameStatus,
    PhaseName,
    Role,
    Winner,
)
from game.state import (
    DayOutcome,
    Game,
    GameSession,
    InvestigationResult,
    NightOutcome,
    Phase,
    Player,
)


def clean_player_name(name: str) -> str:
    """Trimmed display name; 1 to MAX_PLAYER_NAME_LENGTH characters."""
    trimmed = (name or "").strip()
    if not trimmed:
        raise PreconditionError("Name must contain at least one character")
    if len(trimmed) > MAX_PLAYER_NAME_LENGTH:
        raise PreconditionError(f"Name must be at most {MAX_PLAYER_NAME_LENGTH} characters")
    return trimmed


def new_game(game_id: str, code: str, host_id: str, host_name: str, host_token: str = "") -> GameSession:
    """Fresh lobby with the host as its only player."""
    name = clean_player_name(host_name)
    game = Game(id=game_id, code=code, host_id=host_id, host_name=name)
    host = Player(id=host_id, game_id=game_id, name=name, is_host=True, token=host_token)
    return GameSession(game=game, players=[host])


def require_host(session: GameSession, caller_id: Optional[str]) -> None:
    """Raise NotHostError unless caller_id is this game's host."""
    host = session.get_host()
    if caller_id is None or host is None or host.id != caller_id or session.game.host_id != caller_id:
        raise NotHostError("Only the host can do that")


def _require_phase(session: GameSession, name: PhaseName) -> None:
    if session.game.phase.name != name:
        raise PreconditionError(
            f"Game is in phase {session.game.phase}, expected {name.value}"
        )


def check_join(session: GameSession, name: str) -> str:
    """Validate a join request; returns the cleaned name."""
    _require_phase(session, PhaseName.LOBBY)
    cleaned = clean_player_name(name)
    if any(p.name.casefold() == cleaned.casefold() for p in session.players):
        raise PreconditionError(f"Name {cleaned!r} is already taken in this game")
    return cleaned


def check_leave(session: GameSession, player_id: str, caller_id: Optional[str]) -> Player:
    """A player may leave, or the host may remove them, while the game is in the lobby."""
    _require_phase(session, PhaseName.LOBBY)
    player = session.get_player(player_id)
    if player is None:
        raise NotFoundError("Player not found")
    if player.is_host:
        raise PreconditionError("The host cannot leave; delete the game instead")
    if caller_id != player_id:
        require_host(session, caller_id)
    return player


def start_game(
    session: GameSession,
    caller_id: Optional[str],
    rng: Optional[random.Random] = None,
) -> GameSession:
    """lobby -> night(1). Deals roles. Returns new session; does not mutate input."""
    require_host(session, caller_id)
    _require_phase(session, PhaseName.LOBBY)
    if len(session.players) < MIN_PLAYERS:
        raise PreconditionError(f"At least {MIN_PLAYERS} players are required to start")
    if len(session.eligible_players()) < MIN_ELIGIBLE_PLAYERS:
        raise PreconditionError(
            f"At least {MIN_ELIGIBLE_PLAYERS} players besides the host are required to start"
        )
    state = copy.deepcopy(session)
    state.players = assign_roles(state.players, rng)
    state.game = dataclasses.replace(
        state.game,
        status=GameStatus.ONGOING,
        phase=Phase.night(1),
        round=1,
    )
    return state


def _kill(state: GameSession, player_id: str) -> None:
    state.players = [
        dataclasses.replace(p, alive=False) if p.id == player_id else p
        for p in state.players
    ]


def _finish(state: GameSession, winner: Optional[Winner]) -> None:
    state.game = dataclasses.replace(
        state.game,
        status=GameStatus.ENDED,
        phase=Phase.ended(),
        winner=winner,
    )


def resolve_night(session: GameSession, caller_id: Optional[str]) -> tuple[GameSession, NightOutcome]:
    """
    night(r) -> day(r), or ended if the kill decides the game.

    Mafia kill the plurality of their final picks unless the doctor's latest protect
    names the same player.
    """
    require_host(session, caller_id)
    _require_phase(session, PhaseName.NIGHT)
    state = copy.deepcopy(session)
    round_number = state.game.round
    actions = select_actions(state.actions, round_number, PhaseName.NIGHT)

    target, protected, killed = night_kill(actions, state.players)
    if killed is not None:
        _kill(state, killed)

    winner = evaluate_winner(state.players)
    if winner is not None:
        _finish(state, winner)
    else:
        state.game = dataclasses.replace(state.game, phase=Phase.day(round_number))
    outcome = NightOutcome(
        round=round_number,
        mafia_target_id=target,
        protected_id=protected,
        killed_id=killed,
        winner=winner,
    )
    return state, outcome


def resolve_day(session: GameSession, caller_id: Optional[str]) -> tuple[GameSession, DayOutcome]:
    """day(r) -> night(r + 1), or ended. A tied vote lynches no one."""
    require_host(session, caller_id)
    _require_phase(session, PhaseName.DAY)
    state = copy.deepcopy(session)
    round_number = state.game.round
    votes = select_actions(state.actions, round_number, PhaseName.DAY, ActionType.DAY_VOTE)

    counts, lynched = day_lynch(votes, state.players)
    if lynched is not None:
        _kill(state, lynched)

    winner = evaluate_winner(state.players)
    if winner is not None:
        _finish(state, winner)
    else:
        state.game = dataclasses.replace(
            state.game,
            phase=Phase.night(round_number + 1),
            round=round_number + 1,
        )
    outcome = DayOutcome(round=round_number, tally=dict(counts), lynched_id=lynched, winner=winner)
    return state, outcome


def end_game(session: GameSession, caller_id: Optional[str]) -> GameSession:
    """Manual termination from any non-terminal phase. Roster untouched, no winner."""
    require_host(session, caller_id)
    if session.game.phase.is_terminal:
        raise PreconditionError("Game has already ended")
    state = copy.deepcopy(session)
    _finish(state, None)
    return state


def check_action(
    session: GameSession,
    player_id: str,
    action_type: ActionType,
    target_player_id: Optional[str],
) -> tuple[int, PhaseName]:
    """
    Validate a submission against the current phase and roster.

    Returns (round, phase) the action belongs to.
    """
    game = session.game
    if game.status != GameStatus.ONGOING:
        raise PreconditionError("Game is not in progress")
    phase = ACTION_PHASE[action_type]
    _require_phase(session, phase)

    actor = session.get_player(player_id)
    if actor is None:
        raise NotFoundError("Player not found")
    if actor.is_host:
        raise PreconditionError("The host does not take part in the game")
    if not actor.alive:
        raise PreconditionError("Dead players cannot act")
    if phase == PhaseName.NIGHT and NIGHT_ACTION_BY_ROLE.get(actor.role) != action_type:
        raise PreconditionError(f"Your role cannot perform {action_type.value}")

    if target_player_id is None:
        if action_type == ActionType.DETECTIVE_INVESTIGATE:
            raise PreconditionError("An investigation needs a target")
        return game.round, phase
    target = session.get_player(target_player_id)
    if target is None or target.is_host:
        raise NotFoundError("Target player not found")
    if not target.alive:
        raise PreconditionError("Target is already dead")
    if target.id == actor.id and action_type != ActionType.DOCTOR_PROTECT:
        raise PreconditionError("You cannot target yourself")
    if action_type == ActionType.MAFIA_KILL and target.role == Role.MAFIA:
        raise PreconditionError("Mafia cannot target another mafia player")
    if action_type == ActionType.DETECTIVE_INVESTIGATE:
        earlier = select_actions(session.actions, game.round, phase, action_type)
        for a in earlier:
            if a.player_id == actor.id and a.target_player_id != target.id:
                raise PreconditionError("You have already investigated someone tonight")
    return game.round, phase


def investigate(session: GameSession, target_player_id: str) -> InvestigationResult:
    """Answer against the roster snapshot at submission time."""
    target = session.get_player(target_player_id)
    if target is None:
        raise NotFoundError("Target player not found")
    return InvestigationResult(target_player_id=target.id, suspicious=is_suspicious(target))
