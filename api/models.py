"""Pydantic request/response models for the API."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from game.ledger import PlayerActionStatus
from game.rules import MAX_PLAYER_NAME_LENGTH, ActionType, PhaseName
from game.state import (
    Action,
    DayOutcome,
    GameSession,
    InvestigationResult,
    NightOutcome,
)


def _strip_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("name must contain at least one character")
    if len(v) > MAX_PLAYER_NAME_LENGTH:
        raise ValueError(f"name must be at most {MAX_PLAYER_NAME_LENGTH} characters")
    return v


class GameCreateRequest(BaseModel):
    """Body for POST /games."""

    host_name: str = Field(..., description="Display name of the host")

    @field_validator("host_name")
    @classmethod
    def host_name_valid(cls, v: str) -> str:
        return _strip_name(v)


class GameCreateResponse(BaseModel):
    game_id: str
    code: str
    player_id: str = Field(description="The host's public player id")
    token: str = Field(description="The host's secret; send it as token on host commands")


class JoinRequest(BaseModel):
    """Body for POST /games/{code}/players."""

    name: str

    @field_validator("name")
    @classmethod
    def name_valid(cls, v: str) -> str:
        return _strip_name(v)


class JoinResponse(BaseModel):
    player_id: str
    name: str
    code: str
    token: str = Field(description="The player's secret; send it as token on actions and views")


class HostCommandRequest(BaseModel):
    """Body for host-only transitions (start, resolve-night, resolve-day, end)."""

    token: str = Field(..., description="Secret returned to the host by POST /games")


class ActionRequest(BaseModel):
    """
    Body for POST /games/{code}/actions.

    A new submission replaces the earlier one with the same round and type. Investigations
    are the exception: once a detective has investigated someone tonight, only the same
    target may be resubmitted, so resubmitting cannot reveal a second role.
    """

    token: str = Field(..., description="Secret of the acting player")
    action_type: ActionType
    target_player_id: str | None = Field(default=None, description="Required for investigations")


class PlayerPublic(BaseModel):
    """Player as shown to a viewer: role hidden unless the viewer may see it."""

    id: str
    name: str
    is_host: bool
    alive: bool
    role: str | None = Field(default=None, description="Own role, dead players, host view, or after the game")


class GameStateResponse(BaseModel):
    """Session as seen by one viewer."""

    game_id: str
    code: str
    host_name: str
    status: str
    phase: str = Field(description='"lobby", "night_<round>", "day_<round>" or "ended"')
    round: int
    winner: str | None = Field(default=None, description="VILLAGERS or MAFIA once decided")
    players: list[PlayerPublic]
    viewer_id: str | None = None


class ActionPublic(BaseModel):
    id: str
    player_id: str
    round: int
    phase: str
    action_type: str
    target_player_id: str | None = None
    submitted_at: datetime


class InvestigationPublic(BaseModel):
    target_player_id: str
    suspicious: bool


class ActionResponse(BaseModel):
    action: ActionPublic
    investigation: InvestigationPublic | None = Field(
        default=None, description="Only for DETECTIVE_INVESTIGATE, only to the detective"
    )


class NightOutcomePublic(BaseModel):
    round: int
    mafia_target_id: str | None = None
    protected_id: str | None = None
    killed_id: str | None = None
    winner: str | None = None


class DayOutcomePublic(BaseModel):
    round: int
    tally: dict[str, int] = Field(default_factory=dict)
    lynched_id: str | None = None
    winner: str | None = None


class NightResolutionResponse(BaseModel):
    game: GameStateResponse
    outcome: NightOutcomePublic


class DayResolutionResponse(BaseModel):
    game: GameStateResponse
    outcome: DayOutcomePublic


class PlayerActionStatusPublic(BaseModel):
    player_id: str
    name: str
    submitted: list[str]
    expected: list[str]
    pending: list[str]


class ActionStatusResponse(BaseModel):
    """Host dashboard for the current round."""

    round: int
    phase: str
    players: list[PlayerActionStatusPublic]


def game_state_to_public(session: GameSession, viewer_id: str | None = None) -> GameStateResponse:
    """Build the viewer's response; hide roles of alive players the viewer may not see."""
    game = session.game
    viewer = session.get_player(viewer_id)
    sees_all = game.phase.name == PhaseName.ENDED or (viewer is not None and viewer.is_host)
    players_public = []
    for p in session.players:
        visible = sees_all or not p.alive or (viewer is not None and viewer.id == p.id)
        role_str = p.role.value if (visible and p.role is not None) else None
        players_public.append(
            PlayerPublic(id=p.id, name=p.name, is_host=p.is_host, alive=p.alive, role=role_str)
        )
    return GameStateResponse(
        game_id=game.id,
        code=game.code,
        host_name=game.host_name,
        status=game.status.value,
        phase=game.phase.to_storage(),
        round=game.round,
        winner=game.winner.value if game.winner else None,
        players=players_public,
        viewer_id=viewer.id if viewer else None,
    )


def action_to_public(action: Action) -> ActionPublic:
    return ActionPublic(
        id=action.id,
        player_id=action.player_id,
        round=action.round,
        phase=action.phase.value,
        action_type=action.action_type.value,
        target_player_id=action.target_player_id,
        submitted_at=action.submitted_at,
    )


def investigation_to_public(result: InvestigationResult | None) -> InvestigationPublic | None:
    if result is None:
        return None
    return InvestigationPublic(target_player_id=result.target_player_id, suspicious=result.suspicious)


def night_outcome_to_public(outcome: NightOutcome) -> NightOutcomePublic:
    return NightOutcomePublic(
        round=outcome.round,
        mafia_target_id=outcome.mafia_target_id,
        protected_id=outcome.protected_id,
        killed_id=outcome.killed_id,
        winner=outcome.winner.value if outcome.winner else None,
    )


def day_outcome_to_public(outcome: DayOutcome) -> DayOutcomePublic:
    return DayOutcomePublic(
        round=outcome.round,
        tally=dict(outcome.tally),
        lynched_id=outcome.lynched_id,
        winner=outcome.winner.value if outcome.winner else None,
    )


def status_to_public(status: PlayerActionStatus) -> PlayerActionStatusPublic:
    return PlayerActionStatusPublic(
        player_id=status.player_id,
        name=status.name,
        submitted=[a.value for a in status.submitted],
        expected=[a.value for a in status.expected],
        pending=[a.value for a in status.pending],
    )
