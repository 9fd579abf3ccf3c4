"""Night/day resolution and win evaluation: pure functions over roster and actions."""

from collections import Counter
from typing import Iterable, Optional

from game.ledger import latest_per_player
from game.rules import ActionType, Role, Winner
from game.state import Action, Player


def evaluate_winner(players: Iterable[Player]) -> Optional[Winner]:
    """
    Win check over alive non-host players.

    No one alive counts as "keep going" rather than an error; it cannot happen in a
    normal game.
    """
    alive = [p for p in players if p.alive and not p.is_host]
    if not alive:
        return None
    mafia_alive = sum(1 for p in alive if p.role == Role.MAFIA)
    good_alive = len(alive) - mafia_alive
    if mafia_alive == 0:
        return Winner.VILLAGERS
    if mafia_alive >= good_alive:
        return Winner.MAFIA
    return None


def tally(actions: Iterable[Action]) -> Counter:
    """Count final choices, one per actor. Null targets are not counted."""
    counts: Counter = Counter()
    for a in latest_per_player(actions).values():
        if a.target_player_id is not None:
            counts[a.target_player_id] += 1
    return counts


def plurality_leader(counts: Counter) -> Optional[str]:
    """The single target with strictly the most votes; None when empty or tied."""
    if not counts:
        return None
    max_votes = max(counts.values())
    leaders = [target for target, c in counts.items() if c == max_votes]
    if len(leaders) != 1:
        return None
    return leaders[0]


def _from_role(actions: Iterable[Action], players: list[Player], role: Role, action_type: ActionType) -> list[Action]:
    """Actions of the given type sent by alive players holding role."""
    actor_ids = {p.id for p in players if p.alive and p.role == role}
    return [a for a in actions if a.action_type == action_type and a.player_id in actor_ids]


def _alive_target(players: list[Player], target_id: Optional[str]) -> Optional[str]:
    for p in players:
        if p.id == target_id and p.alive and not p.is_host:
            return p.id
    return None


def mafia_target(actions: Iterable[Action], players: list[Player]) -> Optional[str]:
    """Plurality of the mafia's final picks; a split mafia kills no one."""
    kills = _from_role(actions, players, Role.MAFIA, ActionType.MAFIA_KILL)
    return _alive_target(players, plurality_leader(tally(kills)))


def doctor_target(actions: Iterable[Action], players: list[Player]) -> Optional[str]:
    """Target of the latest protect submission."""
    protects = _from_role(actions, players, Role.DOCTOR, ActionType.DOCTOR_PROTECT)
    latest: Optional[Action] = None
    for a in protects:
        if latest is None or (a.submitted_at, a.seq) >= (latest.submitted_at, latest.seq):
            latest = a
    return latest.target_player_id if latest else None


def night_kill(actions: Iterable[Action], players: list[Player]) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """Return (mafia_target_id, protected_id, killed_id)."""
    actions = list(actions)
    target = mafia_target(actions, players)
    protected = doctor_target(actions, players)
    killed = target if target is not None and target != protected else None
    return target, protected, killed


def day_lynch(actions: Iterable[Action], players: list[Player]) -> tuple[Counter, Optional[str]]:
    """Return (tally, lynched_id). A tie for the most votes lynches no one."""
    voter_ids = {p.id for p in players if p.alive and not p.is_host}
    votes = [a for a in actions if a.action_type == ActionType.DAY_VOTE and a.player_id in voter_ids]
    counts = tally(votes)
    return counts, _alive_target(players, plurality_leader(counts))


def is_suspicious(target: Player) -> bool:
    """Detective answer: only mafia read as suspicious."""
    return target.role == Role.MAFIA
