"""Game state types for Lupus."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from game.rules import ActionType, GameStatus, PhaseName, Role, Winner


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Phase:
    """Tagged phase: lobby, night(round), day(round) or ended.

    Persisted as "lobby", "night_1", "day_2", "ended".
    """

    name: PhaseName
    round: int = 0

    @classmethod
    def lobby(cls) -> "Phase":
        return cls(PhaseName.LOBBY)

    @classmethod
    def night(cls, round: int) -> "Phase":
        return cls(PhaseName.NIGHT, round)

    @classmethod
    def day(cls, round: int) -> "Phase":
        return cls(PhaseName.DAY, round)

    @classmethod
    def ended(cls) -> "Phase":
        return cls(PhaseName.ENDED)

    @classmethod
    def parse(cls, value: str) -> "Phase":
        """Parse the stored string form; raises ValueError on anything else."""
        if value == PhaseName.LOBBY.value:
            return cls.lobby()
        if value == PhaseName.ENDED.value:
            return cls.ended()
        name, sep, number = value.partition("_")
        if not sep or name not in (PhaseName.NIGHT.value, PhaseName.DAY.value):
            raise ValueError(f"Unknown phase: {value!r}")
        try:
            round_number = int(number)
        except ValueError:
            raise ValueError(f"Bad round in phase: {value!r}") from None
        if round_number < 1:
            raise ValueError(f"Round must be positive: {value!r}")
        return cls(PhaseName(name), round_number)

    def to_storage(self) -> str:
        if self.name in (PhaseName.NIGHT, PhaseName.DAY):
            return f"{self.name.value}_{self.round}"
        return self.name.value

    @property
    def is_terminal(self) -> bool:
        return self.name == PhaseName.ENDED

    def __str__(self) -> str:
        return self.to_storage()


@dataclass(frozen=True)
class Game:
    """One game record."""

    id: str
    code: str
    host_id: str
    host_name: str
    status: GameStatus = GameStatus.LOBBY
    phase: Phase = field(default_factory=Phase.lobby)
    round: int = 0
    winner: Optional[Winner] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class Player:
    """A player in a game. role is None until the game starts (and forever for the host).

    token is the secret the player authenticates with; it never leaves the API except in the
    response to the create or join call that made the player.
    """

    id: str
    game_id: str
    name: str
    is_host: bool = False
    role: Optional[Role] = None
    alive: bool = True
    joined_at: datetime = field(default_factory=utcnow)
    token: str = field(default="", repr=False)


@dataclass(frozen=True)
class Action:
    """One submitted intent. seq is assigned by the store and orders submissions."""

    game_id: str
    player_id: str
    round: int
    phase: PhaseName
    action_type: ActionType
    target_player_id: Optional[str] = None
    id: str = ""
    seq: int = 0
    submitted_at: datetime = field(default_factory=utcnow)

    @property
    def key(self) -> tuple[str, str, int, PhaseName, ActionType]:
        return (self.game_id, self.player_id, self.round, self.phase, self.action_type)


@dataclass
class GameSession:
    """Snapshot of a game with its roster (join order) and every stored action."""

    game: Game
    players: list[Player] = field(default_factory=list)
    actions: list[Action] = field(default_factory=list)

    def get_player(self, player_id: Optional[str]) -> Optional[Player]:
        """Return player by id or None."""
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def get_player_by_token(self, token: Optional[str]) -> Optional[Player]:
        if not token:
            return None
        for p in self.players:
            if p.token == token:
                return p
        return None

    def get_host(self) -> Optional[Player]:
        for p in self.players:
            if p.is_host:
                return p
        return None

    def eligible_players(self) -> list[Player]:
        """Non-host players, in join order."""
        return [p for p in self.players if not p.is_host]

    def alive_eligible_players(self) -> list[Player]:
        return [p for p in self.players if not p.is_host and p.alive]

    def get_players_by_role(self, role: Role) -> list[Player]:
        """Return alive players with the given role."""
        return [p for p in self.players if p.alive and p.role == role]


@dataclass(frozen=True)
class NightOutcome:
    """Result of resolving one night."""

    round: int
    mafia_target_id: Optional[str] = None
    protected_id: Optional[str] = None
    killed_id: Optional[str] = None
    winner: Optional[Winner] = None

    @property
    def saved(self) -> bool:
        return self.mafia_target_id is not None and self.killed_id is None


@dataclass(frozen=True)
class DayOutcome:
    """Result of resolving one day vote."""

    round: int
    tally: dict[str, int] = field(default_factory=dict)
    lynched_id: Optional[str] = None
    winner: Optional[Winner] = None


@dataclass(frozen=True)
class InvestigationResult:
    """Answer shown only to the detective who asked."""

    target_player_id: str
    suspicious: bool


class ChangeKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """Row-level change notification. Consumers treat it as a trigger only."""

    table: str
    kind: ChangeKind
    game_id: str
    row_id: str
