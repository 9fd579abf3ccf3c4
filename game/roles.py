"""Role distribution at game start."""

import dataclasses
import random
from collections import Counter
from typing import Optional

from game.errors import PreconditionError
from game.rules import MIN_ELIGIBLE_PLAYERS, MIN_PLAYERS, Role
from game.state import Player


def mafia_count(num_eligible: int) -> int:
    return max(1, num_eligible // 4)


def build_role_bag(num_eligible: int) -> list[Role]:
    """mafia_count MAFIA, one DETECTIVE, one DOCTOR, the rest CITIZEN (unshuffled)."""
    if num_eligible < MIN_ELIGIBLE_PLAYERS:
        raise PreconditionError(
            f"At least {MIN_ELIGIBLE_PLAYERS} players besides the host are required"
        )
    mafia = mafia_count(num_eligible)
    roles: list[Role] = [Role.MAFIA] * mafia
    roles.append(Role.DETECTIVE)
    roles.append(Role.DOCTOR)
    roles.extend([Role.CITIZEN] * (num_eligible - mafia - 2))
    return roles


def shuffle_roles(roles: list[Role], rng: random.Random) -> list[Role]:
    """Fisher-Yates: walk down from the last index, swap with a uniform index in [0, i]."""
    shuffled = list(roles)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def assign_roles(
    players: list[Player],
    rng: Optional[random.Random] = None,
) -> list[Player]:
    """
    Deal roles to every non-host player, in the order given.

    Returns the full roster with eligible players holding a role and alive, and the
    host reset to no role and alive. Refuses if anyone already has a role.
    """
    if any(p.role is not None for p in players):
        raise PreconditionError("Roles have already been assigned")
    if len(players) < MIN_PLAYERS:
        raise PreconditionError(f"At least {MIN_PLAYERS} players are required")

    eligible = [p for p in players if not p.is_host]
    bag = shuffle_roles(build_role_bag(len(eligible)), rng or random.Random())
    dealt = {p.id: role for p, role in zip(eligible, bag)}

    assigned: list[Player] = []
    for p in players:
        if p.is_host:
            assigned.append(dataclasses.replace(p, role=None, alive=True))
        else:
            assigned.append(dataclasses.replace(p, role=dealt[p.id], alive=True))
    return assigned


def role_counts(players: list[Player]) -> Counter:
    return Counter(p.role for p in players if p.role is not None)

