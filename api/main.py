"""FastAPI app: lobby, host transitions, player actions, host dashboard."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.game_store import store
from api.models import (
    ActionPublic,
    ActionRequest,
    ActionResponse,
    ActionStatusResponse,
    DayResolutionResponse,
    GameCreateRequest,
    GameCreateResponse,
    GameStateResponse,
    HostCommandRequest,
    JoinRequest,
    JoinResponse,
    NightResolutionResponse,
    action_to_public,
    day_outcome_to_public,
    game_state_to_public,
    investigation_to_public,
    night_outcome_to_public,
    status_to_public,
)
from api.settings import get_code_attempts, get_cors_origins, get_log_level
from game.codes import normalize_code
from game.controller import PhaseController
from game.errors import (
    GameError,
    NotFoundError,
    NotHostError,
    PreconditionError,
    StaleStateError,
    StoreError,
)
from game.rules import PhaseName

logging.basicConfig(level=get_log_level())
logger = logging.getLogger(__name__)

app = FastAPI(title="Lupus API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

controller = PhaseController(store, code_attempts=get_code_attempts())

# Error kind -> HTTP status
ERROR_STATUS = (
    (NotFoundError, 404),
    (NotHostError, 403),
    (StaleStateError, 409),
    (PreconditionError, 400),
    (StoreError, 503),
)


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
    status_code = 500
    for kind, code in ERROR_STATUS:
        if isinstance(exc, kind):
            status_code = code
            break
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def _caller(code: str, token: str | None) -> str | None:
    """Public id behind a player token; None for unknown tokens."""
    return controller.player_id_for_token(code, token)


@app.post("/games", response_model=GameCreateResponse, tags=["Games"], summary="Create game")
def create_game(body: GameCreateRequest):
    """Create a lobby with the caller as host. Returns the shareable code and the host's token."""
    session = controller.create_game(body.host_name)
    host = session.get_host()
    return GameCreateResponse(
        game_id=session.game.id,
        code=session.game.code,
        player_id=host.id,
        token=host.token,
    )


@app.get("/games", response_model=list[str], tags=["Games"], summary="List game codes")
def list_games_route():
    return [g.code for g in store.list_games()]


@app.get("/games/{code}", response_model=GameStateResponse, tags=["Games"], summary="Get game state")
def get_game(code: str, token: str | None = None):
    """Full session as seen by the token's holder; clients re-fetch this on every change."""
    session = controller.session(code)
    viewer = session.get_player_by_token(token)
    return game_state_to_public(session, viewer.id if viewer else None)


@app.delete("/games/{code}", status_code=204, tags=["Games"], summary="Delete game and history")
def delete_game(code: str, token: str):
    controller.delete_game(code, _caller(code, token))


@app.post("/games/{code}/players", response_model=JoinResponse, tags=["Lobby"], summary="Join game")
def join_game(code: str, body: JoinRequest):
    player = controller.join_game(code, body.name)
    return JoinResponse(player_id=player.id, name=player.name, code=normalize_code(code), token=player.token)


@app.delete("/games/{code}/players/{player_id}", status_code=204, tags=["Lobby"], summary="Leave or remove player")
def leave_game(code: str, player_id: str, token: str):
    """A player leaves with their own token or the host removes them. Lobby only."""
    controller.leave_game(code, player_id, _caller(code, token))


@app.post("/games/{code}/start", response_model=GameStateResponse, tags=["Host"], summary="Start game")
def start_game_endpoint(code: str, body: HostCommandRequest):
    """Deal roles and move to night 1."""
    caller_id = _caller(code, body.token)
    session = controller.start_game(code, caller_id)
    return game_state_to_public(session, caller_id)


@app.post("/games/{code}/resolve-night", response_model=NightResolutionResponse, tags=["Host"], summary="Resolve night")
def resolve_night_endpoint(code: str, body: HostCommandRequest):
    caller_id = _caller(code, body.token)
    session, outcome = controller.resolve_night(code, caller_id)
    return NightResolutionResponse(
        game=game_state_to_public(session, caller_id),
        outcome=night_outcome_to_public(outcome),
    )


@app.post("/games/{code}/resolve-day", response_model=DayResolutionResponse, tags=["Host"], summary="Resolve day")
def resolve_day_endpoint(code: str, body: HostCommandRequest):
    caller_id = _caller(code, body.token)
    session, outcome = controller.resolve_day(code, caller_id)
    return DayResolutionResponse(
        game=game_state_to_public(session, caller_id),
        outcome=day_outcome_to_public(outcome),
    )


@app.post("/games/{code}/end", response_model=GameStateResponse, tags=["Host"], summary="End game")
def end_game_endpoint(code: str, body: HostCommandRequest):
    caller_id = _caller(code, body.token)
    session = controller.end_game(code, caller_id)
    return game_state_to_public(session, caller_id)


@app.post("/games/{code}/actions", response_model=ActionResponse, tags=["Players"], summary="Submit action")
def submit_action(code: str, body: ActionRequest):
    """
    Record a kill, protect, investigation or vote. Resubmitting replaces the earlier one,
    except that a detective who already investigated tonight may only repeat that target.
    """
    player_id = _caller(code, body.token)
    if player_id is None:
        raise NotFoundError("Unknown player token")
    action, investigation = controller.submit_action(
        code, player_id, body.action_type, body.target_player_id
    )
    return ActionResponse(
        action=action_to_public(action),
        investigation=investigation_to_public(investigation),
    )


@app.get("/games/{code}/actions", response_model=list[ActionPublic], tags=["Host"], summary="Audit actions")
def audit_actions(code: str, token: str, round: int | None = None, phase: PhaseName | None = None):
    """Stored actions, kept after resolution. Host only."""
    actions = controller.audit_actions(code, _caller(code, token), round=round, phase=phase)
    return [action_to_public(a) for a in actions]


@app.get("/games/{code}/actions/status", response_model=ActionStatusResponse, tags=["Host"], summary="Round status")
def action_status(code: str, token: str):
    """Who has submitted what in the current round. Host only."""
    session, statuses = controller.action_status(code, _caller(code, token))
    return ActionStatusResponse(
        round=session.game.round,
        phase=session.game.phase.name.value,
        players=[status_to_public(s) for s in statuses],
    )


@app.get("/health", tags=["System"], summary="Health check")
def health():
    return {"status": "ok"}
