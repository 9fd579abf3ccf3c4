"""Game rules and constants for Lupus."""

from enum import Enum


class Role(str, Enum):
    """Roles dealt to eligible (non-host) players."""

    MAFIA = "MAFIA"
    DOCTOR = "DOCTOR"
    DETECTIVE = "DETECTIVE"
    CITIZEN = "CITIZEN"


class GameStatus(str, Enum):
    LOBBY = "lobby"
    ONGOING = "ongoing"
    ENDED = "ended"


class PhaseName(str, Enum):
    """Kind of phase; night and day carry a round number."""

    LOBBY = "lobby"
    NIGHT = "night"
    DAY = "day"
    ENDED = "ended"


class ActionType(str, Enum):
    MAFIA_KILL = "MAFIA_KILL"
    DOCTOR_PROTECT = "DOCTOR_PROTECT"
    DETECTIVE_INVESTIGATE = "DETECTIVE_INVESTIGATE"
    DAY_VOTE = "DAY_VOTE"


class Winner(str, Enum):
    VILLAGERS = "VILLAGERS"
    MAFIA = "MAFIA"


# Phase in which each action type may be submitted
ACTION_PHASE = {
    ActionType.MAFIA_KILL: PhaseName.NIGHT,
    ActionType.DOCTOR_PROTECT: PhaseName.NIGHT,
    ActionType.DETECTIVE_INVESTIGATE: PhaseName.NIGHT,
    ActionType.DAY_VOTE: PhaseName.DAY,
}

# Night action owned by each role (citizens sleep)
NIGHT_ACTION_BY_ROLE = {
    Role.MAFIA: ActionType.MAFIA_KILL,
    Role.DOCTOR: ActionType.DOCTOR_PROTECT,
    Role.DETECTIVE: ActionType.DETECTIVE_INVESTIGATE,
}

# Minimum players to start, host included
MIN_PLAYERS = 4

# Minimum eligible (non-host) players to start
MIN_ELIGIBLE_PLAYERS = 3

# Game code alphabet: no I or O, they read like 1 and 0
CODE_LETTERS = "ABCDEFGHJKLMNPQRSTUVWXYZ"
CODE_DIGITS = "0123456789"
CODE_PART_LENGTH = 3

MAX_PLAYER_NAME_LENGTH = 20
